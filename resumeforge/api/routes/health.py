"""
Health check endpoint for deployment monitoring.
"""
from datetime import datetime, timezone
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from resumeforge.core import config
from resumeforge.db.session import SessionLocal

router = APIRouter(prefix="/health", tags=["Health"])


def _check_database() -> str:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return "connected"
    except SQLAlchemyError as e:
        return f"error: {type(e).__name__}"
    finally:
        db.close()


@router.get("")
def health_check():
    """
    Always 200. `status` is "degraded" when the database check fails, since
    balances cannot be resolved without the ledger.
    """
    database = _check_database()
    return {
        "status": "healthy" if database == "connected" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": database,
        "billing_source": config.BILLING_SOURCE,
        "llm": "openai" if config.OPENAI_API_KEY else "fallback",
        "version": "1.0.0",
    }
