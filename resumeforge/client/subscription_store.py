"""
Client-side subscription cache.

Mirrors the user's balance in memory so a UI can avoid a round trip per
render. The server stays authoritative: every charge goes through the
consume endpoint, and the cache only reconciles with what it returns.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from resumeforge.core.credit_costs import get_credit_cost, is_known_feature
from resumeforge.core.exceptions import InsufficientCreditsError
from resumeforge.core.plan_catalog import plan_has_feature

logger = logging.getLogger(__name__)

CREDITS_UPDATED = "credits-updated"
PAYMENT_SUCCESS = "payment-success"
SUBSCRIPTION_UPDATED = "subscription-updated"
PLAN_CHANGED = "plan-changed"

REFRESH_EVENTS = (CREDITS_UPDATED, PAYMENT_SUCCESS, SUBSCRIPTION_UPDATED, PLAN_CHANGED)


class CreditApiError(Exception):
    """Raised when the credit API is unreachable or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(message)


class CreditApiClient:
    """Thin httpx client for the balance and consume endpoints."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise CreditApiError(f"Credit API unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            if isinstance(message, dict):
                message = message.get("error")
            raise CreditApiError(
                message or f"Credit API returned {response.status_code}",
                status_code=response.status_code,
                payload=body if isinstance(body, dict) else {},
            )
        return body

    def fetch_balance(self) -> Dict[str, Any]:
        return self._request("GET", "/api/user/credits")

    def consume(self, feature: str, amount: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"feature": feature}
        if amount is not None:
            payload["amount"] = amount
        return self._request("POST", "/api/user/credits/consume", json=payload)

    def close(self):
        self._client.close()


class EventBus:
    """Named-event dispatcher shared by the pieces of one client session."""

    def __init__(self):
        self._handlers: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Register a handler; the returned callable unregisters it."""
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, event: str, payload: Any = None):
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception(f"Event handler failed: event={event}")


class SubscriptionStore:
    """
    In-memory mirror of one user's subscription snapshot.

    load() fetches once; there is no polling. Events on the bus trigger a
    single forced refetch each.
    """

    def __init__(self, client: CreditApiClient, bus: Optional[EventBus] = None):
        self.client = client
        self.bus = bus or EventBus()
        self.subscription: Optional[Dict[str, Any]] = None
        self.loading = False
        self.loaded = False
        self.error: Optional[str] = None
        self._unsubscribers = [
            self.bus.subscribe(event, self._on_refresh_event) for event in REFRESH_EVENTS
        ]

    # ---- state ----

    @property
    def plan(self) -> str:
        return (self.subscription or {}).get("plan", "free")

    @property
    def remaining_credits(self) -> int:
        return int((self.subscription or {}).get("remainingCredits", 0))

    def _apply(self, snapshot: Optional[Dict[str, Any]]):
        if snapshot:
            self.subscription = dict(snapshot)

    # ---- fetching ----

    def load(self) -> Optional[Dict[str, Any]]:
        """Fetch the snapshot unless one is already cached."""
        if self.loaded:
            return self.subscription
        return self.refresh(force=True)

    def refresh(self, force: bool = False) -> Optional[Dict[str, Any]]:
        if self.loading or (self.loaded and not force):
            return self.subscription

        self.loading = True
        try:
            overview = self.client.fetch_balance()
            self._apply(overview.get("subscription"))
            self.error = None
        except CreditApiError as e:
            logger.warning(f"Subscription refresh failed: status={e.status_code}, error={e}")
            self.error = str(e)
        finally:
            self.loading = False
            self.loaded = True
        return self.subscription

    def _on_refresh_event(self, payload: Any = None):
        self.refresh(force=True)

    # ---- capability checks ----

    def has_feature_access(self, feature: str) -> bool:
        if self.subscription is None:
            return False
        return plan_has_feature(self.plan, feature)

    def can_use_feature(self, feature: str, amount: Optional[int] = None) -> bool:
        """Plan includes the feature AND the cached balance covers its cost."""
        if not self.has_feature_access(feature):
            return False
        cost = amount if amount is not None else get_credit_cost(feature)
        return self.remaining_credits >= cost

    # ---- charging ----

    def consume_credit(self, feature: str, amount: Optional[int] = None) -> bool:
        """
        Charge a feature, decrementing the cached balance before the server
        answers. The server's snapshot replaces the guess on success; any
        failure forces a refetch to discard it.
        """
        if self.subscription is None:
            self.load()

        cost = amount if amount is not None else get_credit_cost(feature)
        if self.subscription is not None:
            used = int(self.subscription.get("usedCredits", 0)) + cost
            self.subscription = {
                **self.subscription,
                "usedCredits": used,
                "remainingCredits": max(0, self.remaining_credits - cost),
            }

        try:
            result = self.client.consume(feature, amount)
        except CreditApiError as e:
            logger.warning(f"Credit consumption rejected: feature={feature}, status={e.status_code}, error={e}")
            self.refresh(force=True)
            self.error = str(e)
            return False

        self._apply(result.get("subscription"))
        self.error = None
        return True

    def use_ai_feature(
        self,
        feature: str,
        api_call: Callable[[], Any],
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None
    ) -> Any:
        """
        Run a credit-gated server call.

        The server route charges the credits; this only checks capability
        up front and refreshes the cache once the call succeeds. Errors go
        to on_error when given, otherwise they propagate.
        """
        if not self.can_use_feature(feature):
            error = InsufficientCreditsError(
                feature,
                required=get_credit_cost(feature) if is_known_feature(feature) else 0,
                remaining=self.remaining_credits,
                plan=self.plan,
            )
            if on_error is None:
                raise error
            on_error(error)
            return None

        try:
            result = api_call()
        except Exception as e:
            logger.warning(f"AI feature call failed: feature={feature}, error={e}")
            if on_error is None:
                raise
            on_error(e)
            self.refresh(force=True)
            return None

        self.refresh(force=True)
        if on_success is not None:
            on_success(result)
        return result

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
