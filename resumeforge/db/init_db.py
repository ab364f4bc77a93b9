import logging

from resumeforge.db.session import engine
from resumeforge.db.base import Base
import resumeforge.db.models  # noqa: F401  registers all models on Base.metadata

logger = logging.getLogger(__name__)


def init_db():
    """Create any missing tables. Production databases use Alembic instead."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
