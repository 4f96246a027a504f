"""
Base model classes for the CAS backend.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import declarative_mixin

# Import Base from the database module to avoid duplicate declarations
from ..core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@declarative_mixin
class TimestampMixin:
    """Mixin for adding timestamp columns to models."""

    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


@declarative_mixin
class UUIDMixin:
    """Mixin for adding UUID primary key to models."""

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))


class BaseModel(Base, TimestampMixin, UUIDMixin):
    """Base model class with common functionality."""

    __abstract__ = True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
