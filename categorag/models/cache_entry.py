"""
Cache entry database model.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from categorag.database import Base


class CacheEntry(Base):
    """Key/value row with an expiry, shared by every app instance."""

    __tablename__ = "cache_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
