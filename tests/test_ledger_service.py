"""
Unit tests for the usage ledger.
"""
from datetime import datetime, timezone

from resumeforge.db.models.usage import UsageEvent
from resumeforge.services.ledger_service import (
    UsageWindow,
    append_usage_event_if_within,
    get_recent_usage,
    get_usage_breakdown,
    get_used_credits,
    month_window,
    resolve_user_refs,
)

from tests.helpers import add_usage


def _this_month():
    return month_window(datetime.now(timezone.utc))


def test_resolve_refs_internal_id_first(db, test_user):
    refs = resolve_user_refs(db, test_user.auth_user_id)
    assert refs == [test_user.id, test_user.auth_user_id]


def test_resolve_refs_unknown_identifier(db):
    assert resolve_user_refs(db, "user_unknown") == ["user_unknown"]


def test_month_window_rolls_over_december():
    window = month_window(datetime(2026, 12, 15, 8, 30, tzinfo=timezone.utc))
    assert window.start == datetime(2026, 12, 1, tzinfo=timezone.utc)
    assert window.end == datetime(2027, 1, 1, tzinfo=timezone.utc)


def test_used_credits_scoped_to_window(db, test_user):
    add_usage(db, test_user.id, "cover_letter", 3)
    add_usage(db, test_user.id, "job_tailoring", 3)
    add_usage(db, test_user.id, "cover_letter", 3, created_at=datetime(2019, 12, 5, tzinfo=timezone.utc))

    december = month_window(datetime(2019, 12, 1, tzinfo=timezone.utc))
    assert get_used_credits(db, [test_user.id], _this_month()) == 6
    assert get_used_credits(db, [test_user.id], december) == 3


def test_window_end_is_exclusive(db, test_user):
    boundary = datetime(2026, 11, 28, tzinfo=timezone.utc)
    add_usage(db, test_user.id, "cover_letter", 3, created_at=boundary)

    before = UsageWindow(datetime(2026, 10, 28, tzinfo=timezone.utc), boundary)
    after = UsageWindow(boundary, datetime(2026, 12, 28, tzinfo=timezone.utc))
    assert get_used_credits(db, [test_user.id], before) == 0
    assert get_used_credits(db, [test_user.id], after) == 3


def test_used_credits_empty(db, test_user):
    assert get_used_credits(db, [test_user.id], _this_month()) == 0


def test_usage_breakdown(db, test_user):
    add_usage(db, test_user.id, "cover_letter", 3)
    add_usage(db, test_user.id, "cover_letter", 3)
    add_usage(db, test_user.id, "salary_research", 2)

    assert get_usage_breakdown(db, [test_user.id], _this_month()) == {
        "cover_letter": 6,
        "salary_research": 2,
    }


def test_recent_usage_newest_first(db, test_user):
    add_usage(db, test_user.id, "cover_letter", 3)
    add_usage(db, test_user.id, "salary_research", 2)

    recent = get_recent_usage(db, [test_user.id], limit=1)
    assert [event.feature for event in recent] == ["salary_research"]


def test_conditional_append_within_total(db, test_user):
    window = _this_month()

    written = append_usage_event_if_within(
        db, test_user.id, [test_user.id], "cover_letter", 3, total=3, window=window
    )

    assert written is True
    assert get_used_credits(db, [test_user.id], window) == 3
    event = db.query(UsageEvent).one()
    assert event.month_key == UsageEvent.get_month_key()


def test_conditional_append_blocks_overspend(db, test_user):
    """Two charges decided on the same stale balance: only one lands."""
    window = _this_month()
    refs = [test_user.id, test_user.auth_user_id]

    first = append_usage_event_if_within(db, test_user.id, refs, "cover_letter", 3, 3, window)
    second = append_usage_event_if_within(db, test_user.id, refs, "cover_letter", 3, 3, window)

    assert first is True
    assert second is False
    assert db.query(UsageEvent).count() == 1


def test_conditional_append_counts_every_ref(db, test_user):
    add_usage(db, test_user.auth_user_id, "resume_generation", 2)

    written = append_usage_event_if_within(
        db, test_user.id, [test_user.id, test_user.auth_user_id], "ai_suggestions", 2, 3, _this_month()
    )
    assert written is False


def test_conditional_append_stamps_event_inside_window(db, test_user):
    """An event dated in a later period does not count against this one."""
    period = UsageWindow(
        datetime(2026, 10, 28, tzinfo=timezone.utc),
        datetime(2026, 11, 28, tzinfo=timezone.utc),
    )
    charged_at = datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)

    written = append_usage_event_if_within(
        db, test_user.id, [test_user.id], "cover_letter", 3, 50, period, now=charged_at
    )

    assert written is True
    assert get_used_credits(db, [test_user.id], period) == 3
    assert db.query(UsageEvent).one().month_key == "2026-11"


def test_sequential_charges_of_five_with_five_remaining(db, test_user):
    """
    Back-to-back appends against one session: only the first fits.

    Concurrent sessions are covered in test_credit_service against a
    file-backed database.
    """
    window = _this_month()
    add_usage(db, test_user.id, "resume_generation", 5)
    refs = [test_user.id]

    results = [
        append_usage_event_if_within(db, test_user.id, refs, "resume_generation", 5, 10, window)
        for _ in range(2)
    ]

    assert results == [True, False]
    assert get_used_credits(db, refs, window) == 10
