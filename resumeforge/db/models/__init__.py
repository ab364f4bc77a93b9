"""
Database models module.

Imports every model so they are registered with Base.metadata before table
creation and migrations.
"""
from resumeforge.db.models.user import User
from resumeforge.db.models.subscription import Subscription
from resumeforge.db.models.usage import UsageEvent

__all__ = [
    "User",
    "Subscription",
    "UsageEvent",
]
