"""
Domain errors for credit accounting and billing.

Services raise these; routes and dependencies translate them into HTTP responses.
"""
from typing import Optional


class CreditError(Exception):
    """Base class for credit accounting errors."""


class UnknownFeatureError(CreditError):
    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"Unknown feature: {feature}")


class InvalidCreditAmountError(CreditError):
    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Invalid credit amount: {amount}")


class InsufficientCreditsError(CreditError):
    """Raised when a user cannot afford a feature."""

    def __init__(self, feature: str, required: int, remaining: int, plan: Optional[str] = None):
        self.feature = feature
        self.required = required
        self.remaining = remaining
        self.plan = plan
        super().__init__(f"Insufficient credits. Need {required}, have {remaining}")


class CreditLedgerError(CreditError):
    """The usage ledger could not be read or written."""


class BillingProviderError(Exception):
    """The billing provider was unreachable or returned something unusable."""


class WebhookVerificationError(ValueError):
    """Webhook payload or signature failed verification."""
