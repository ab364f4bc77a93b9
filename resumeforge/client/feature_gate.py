"""Feature gate: loading / allowed / denied over a SubscriptionStore."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from resumeforge.core.credit_costs import get_credit_cost
from resumeforge.core.plan_catalog import cheapest_plan_with_feature
from resumeforge.client.subscription_store import SubscriptionStore


class GateState(str, Enum):
    LOADING = "loading"
    ALLOWED = "allowed"
    DENIED = "denied"


@dataclass
class UpgradePrompt:
    feature: str
    required_credits: int
    remaining_credits: int
    current_plan: str
    suggested_plan: Optional[str]
    has_access: bool

    @property
    def shortfall(self) -> int:
        return max(0, self.required_credits - self.remaining_credits)

    @property
    def message(self) -> str:
        if not self.has_access:
            if self.suggested_plan:
                return f"Upgrade to {self.suggested_plan} to unlock {self.feature}"
            return f"{self.feature} is not available on any plan"
        return (
            f"Need {self.required_credits} credits for {self.feature}, "
            f"have {self.remaining_credits}"
        )


class FeatureGate:
    def __init__(self, store: SubscriptionStore, feature: str, required_credits: Optional[int] = None):
        self.store = store
        self.feature = feature
        self.required_credits = (
            required_credits if required_credits is not None else get_credit_cost(feature)
        )

    def state(self) -> GateState:
        if self.store.loading or not self.store.loaded:
            return GateState.LOADING
        if self.store.can_use_feature(self.feature, self.required_credits):
            return GateState.ALLOWED
        return GateState.DENIED

    def upgrade_prompt(self) -> Optional[UpgradePrompt]:
        """Only set while the gate is denied."""
        if self.state() != GateState.DENIED:
            return None
        cheapest = cheapest_plan_with_feature(self.feature)
        return UpgradePrompt(
            feature=self.feature,
            required_credits=self.required_credits,
            remaining_credits=self.store.remaining_credits,
            current_plan=self.store.plan,
            suggested_plan=cheapest.id if cheapest else None,
            has_access=self.store.has_feature_access(self.feature),
        )

    def render(
        self,
        children: Callable[[], Any],
        loading: Optional[Callable[[], Any]] = None,
        upgrade: Optional[Callable[[UpgradePrompt], Any]] = None
    ) -> Any:
        current = self.state()
        if current == GateState.LOADING:
            return loading() if loading else None
        if current == GateState.DENIED:
            return upgrade(self.upgrade_prompt()) if upgrade else None
        return children()
