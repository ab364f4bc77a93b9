"""
Tests for Stripe webhook processing and the billing endpoints.
"""
import pytest
import stripe
from types import SimpleNamespace

from resumeforge.core import config
from resumeforge.core.exceptions import WebhookVerificationError
from resumeforge.db.models.subscription import Subscription
from resumeforge.services import billing_service, stripe_service
from resumeforge.services.billing_provider import (
    BillingIdentity,
    DatabaseBillingProvider,
    StripeBillingProvider,
    search_literal,
)
from resumeforge.services.billing_service import process_webhook_event
from resumeforge.services.credit_service import Resolution, resolve_balance


def stripe_subscription(price_id, status="active", sub_id="sub_123", customer="cus_123", metadata=None):
    return {
        "id": sub_id,
        "customer": customer,
        "status": status,
        "metadata": metadata or {},
        "current_period_start": 1790000000,
        "current_period_end": 1792592000,
        "items": {"data": [{"price": {"id": price_id}}]},
    }


def event(event_type, obj):
    return {"type": event_type, "data": {"object": obj}}


@pytest.fixture
def no_stripe_api(monkeypatch):
    monkeypatch.setattr(billing_service, "retrieve_subscription", lambda subscription_id: None)


def test_checkout_completed_activates_plan(db, test_user, no_stripe_api):
    handled = process_webhook_event(event("checkout.session.completed", {
        "customer": "cus_123",
        "subscription": "sub_123",
        "metadata": {"user_id": test_user.id, "plan": "standard"},
    }), db)

    assert handled is True
    record = db.query(Subscription).filter(Subscription.user_id == test_user.id).one()
    assert record.plan_type == "standard"
    assert record.status == "active"
    assert record.stripe_customer_id == "cus_123"

    balance = resolve_balance(db, test_user.id, DatabaseBillingProvider())
    assert balance.plan == "standard"
    assert balance.total == 50


def test_checkout_completed_uses_live_subscription(db, test_user, monkeypatch):
    monkeypatch.setattr(
        billing_service,
        "retrieve_subscription",
        lambda subscription_id: stripe_subscription(config.STRIPE_PRICE_ID_PRO),
    )

    process_webhook_event(event("checkout.session.completed", {
        "customer": "cus_123",
        "subscription": "sub_123",
        "metadata": {"auth_user_id": test_user.auth_user_id},
    }), db)

    record = db.query(Subscription).filter(Subscription.user_id == test_user.id).one()
    assert record.plan_type == "pro"
    assert record.stripe_price_id == config.STRIPE_PRICE_ID_PRO
    assert record.current_period_end is not None


def test_checkout_for_unknown_user_raises(db, no_stripe_api):
    with pytest.raises(ValueError):
        process_webhook_event(event("checkout.session.completed", {
            "customer": "cus_x",
            "metadata": {"user_id": "nobody"},
        }), db)


def test_subscription_updated_changes_plan(db, test_user, standard_subscription):
    process_webhook_event(event(
        "customer.subscription.updated",
        stripe_subscription(config.STRIPE_PRICE_ID_PRO, sub_id="sub_test", customer="cus_test"),
    ), db)

    db.refresh(standard_subscription)
    assert standard_subscription.plan_type == "pro"
    assert standard_subscription.status == "active"


def test_subscription_created_from_metadata(db, test_user):
    process_webhook_event(event(
        "customer.subscription.created",
        stripe_subscription(config.STRIPE_PRICE_ID_BASIC, metadata={"user_id": test_user.id}),
    ), db)

    record = db.query(Subscription).filter(Subscription.user_id == test_user.id).one()
    assert record.plan_type == "basic"


def test_subscription_deleted_reverts_to_free(db, test_user, standard_subscription):
    process_webhook_event(event("customer.subscription.deleted", {"id": "sub_test"}), db)

    assert db.query(Subscription).count() == 0
    balance = resolve_balance(db, test_user.id, DatabaseBillingProvider())
    assert balance.plan == "free"
    assert balance.total == 3


def test_payment_failed_marks_past_due(db, test_user, standard_subscription):
    process_webhook_event(event("invoice.payment_failed", {
        "subscription": "sub_test",
        "customer": "cus_test",
    }), db)

    db.refresh(standard_subscription)
    assert standard_subscription.status == "past_due"


def test_payment_succeeded_rolls_period(db, test_user, standard_subscription):
    standard_subscription.status = "past_due"
    db.commit()

    process_webhook_event(event("invoice.payment_succeeded", {
        "parent": {"subscription_details": {"subscription": "sub_test"}},
        "lines": {"data": [{"period": {"start": 1790000000, "end": 1792592000}}]},
    }), db)

    db.refresh(standard_subscription)
    assert standard_subscription.status == "active"
    assert standard_subscription.current_period_start is not None


def test_unhandled_event_ignored(db):
    assert process_webhook_event(event("customer.created", {"id": "cus_1"}), db) is False


def test_webhook_endpoint_rejects_bad_signature(client, monkeypatch):
    def reject(body, signature):
        raise WebhookVerificationError("Invalid signature")

    monkeypatch.setattr(stripe_service, "verify_webhook", reject)

    response = client.post("/api/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=bad"})
    assert response.status_code == 400


def test_webhook_endpoint_acks_unknown_subscription(client, monkeypatch):
    monkeypatch.setattr(
        stripe_service,
        "verify_webhook",
        lambda body, signature: event("customer.subscription.deleted", {"id": "sub_missing"}),
    )

    response = client.post("/api/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=ok"})

    assert response.status_code == 200
    assert response.json() == {
        "received": True,
        "event_type": "customer.subscription.deleted",
        "handled": False,
    }


def test_checkout_endpoint(client, auth_headers, monkeypatch):
    captured = {}

    def fake_checkout(user, plan, success_url, cancel_url, db):
        captured["plan"] = plan
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")

    monkeypatch.setattr(stripe_service, "create_checkout_session", fake_checkout)

    response = client.post(
        "/api/stripe/create-checkout-session",
        json={"plan": "pro", "success_url": "http://localhost:3000/ok", "cancel_url": "http://localhost:3000/no"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["session_id"] == "cs_test_1"
    assert captured["plan"] == "pro"


def test_checkout_endpoint_rejects_free_plan(client, auth_headers):
    response = client.post(
        "/api/stripe/create-checkout-session",
        json={"plan": "free", "success_url": "http://x/ok", "cancel_url": "http://x/no"},
        headers=auth_headers,
    )
    assert response.status_code == 400


# Stripe SDK objects are not dicts in current releases of the library; these
# tests feed the code real StripeObjects instead of plain dicts.

def sdk_subscription(price_id, sub_id="sub_test", customer="cus_test", metadata=None):
    values = dict(stripe_subscription(price_id, sub_id=sub_id, customer=customer, metadata=metadata))
    values["object"] = "subscription"
    values["items"] = {"object": "list", "data": [{"object": "subscription_item", "price": {"object": "price", "id": price_id}}]}
    return stripe.Subscription.construct_from(values, "sk_test")


def sdk_list(items):
    return stripe.ListObject.construct_from({"object": "list", "data": items}, "sk_test")


def sdk_event(event_type, obj):
    return stripe.Event.construct_from(
        {"id": "evt_test", "object": "event", "type": event_type, "data": {"object": obj}},
        "sk_test",
    )


def test_stripe_provider_reads_sdk_subscription(db, test_user, standard_subscription, monkeypatch):
    captured = {}

    def fake_list(**params):
        captured.update(params)
        return sdk_list([sdk_subscription(config.STRIPE_PRICE_ID_PRO)])

    monkeypatch.setattr(stripe.Subscription, "list", fake_list)

    balance = resolve_balance(db, test_user.id, StripeBillingProvider("sk_test"))

    assert captured["customer"] == "cus_test"
    assert balance.resolution == Resolution.RESOLVED
    assert balance.plan == "pro"
    assert balance.total == 200


def test_sdk_webhook_event_is_applied(db, test_user, standard_subscription):
    handled = process_webhook_event(sdk_event("invoice.payment_failed", {
        "object": "invoice",
        "subscription": "sub_test",
        "customer": "cus_test",
    }), db)

    assert handled is True
    db.refresh(standard_subscription)
    assert standard_subscription.status == "past_due"


def test_sdk_subscription_update_changes_plan(db, test_user, standard_subscription):
    process_webhook_event(
        sdk_event("customer.subscription.updated", sdk_subscription(config.STRIPE_PRICE_ID_BASIC).to_dict()),
        db,
    )

    db.refresh(standard_subscription)
    assert standard_subscription.plan_type == "basic"
    assert standard_subscription.current_period_end is not None


def test_checkout_reads_retrieved_sdk_subscription(db, test_user, monkeypatch):
    monkeypatch.setattr(
        stripe.Subscription,
        "retrieve",
        lambda subscription_id, **params: sdk_subscription(config.STRIPE_PRICE_ID_PRO, sub_id=subscription_id),
    )

    process_webhook_event(sdk_event("checkout.session.completed", {
        "object": "checkout.session",
        "customer": "cus_test",
        "subscription": "sub_test",
        "metadata": {"user_id": test_user.id},
    }), db)

    record = db.query(Subscription).filter(Subscription.user_id == test_user.id).one()
    assert record.plan_type == "pro"
    assert record.stripe_price_id == config.STRIPE_PRICE_ID_PRO


def test_verify_webhook_returns_plain_dict(monkeypatch):
    monkeypatch.setattr(stripe_service, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setattr(
        stripe.Webhook,
        "construct_event",
        lambda payload, sig_header, secret, **kwargs: sdk_event(
            "invoice.payment_failed", {"object": "invoice", "subscription": "sub_test"}
        ),
    )

    verified = stripe_service.verify_webhook(b"{}", "t=1,v1=ok")

    assert isinstance(verified, dict)
    assert isinstance(verified["data"]["object"], dict)
    assert verified["data"]["object"]["subscription"] == "sub_test"


def test_search_literal_escapes_quotes():
    assert search_literal("user_2abc") == "'user_2abc'"
    assert search_literal("o'brien") == "'o\\'brien'"
    assert search_literal("back\\slash") == "'back\\\\slash'"


def test_customer_search_query_is_escaped(db, monkeypatch):
    captured = {}

    def fake_search(**params):
        captured.update(params)
        return sdk_list([])

    monkeypatch.setattr(stripe.Customer, "search", fake_search)

    found = StripeBillingProvider("sk_test").find_active_subscription(
        db, BillingIdentity(user_identifier="user_o'brien")
    )

    assert found is None
    assert captured["query"] == "metadata['auth_user_id']:'user_o\\'brien'"
