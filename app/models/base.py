"""
Base Model Mixins
"""
from sqlalchemy import Column, DateTime

from app.core.clock import utcnow


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps (naive UTC)"""
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
