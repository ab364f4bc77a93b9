import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from resumeforge.db.base import Base


def _new_uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_uuid)
    auth_user_id = Column(String, unique=True, index=True, nullable=False)  # identity provider's user id
    email = Column(String, index=True, nullable=True)
    full_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
