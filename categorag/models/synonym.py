"""
Personalized synonym database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Float, DateTime, Enum, UniqueConstraint, Index, text
import enum
from categorag.database import Base


class SynonymSource(str, enum.Enum):
    """Where a learned synonym came from."""
    USER_CONFIRMED = "USER_CONFIRMED"
    AI_SUGGESTED = "AI_SUGGESTED"
    AUTO_LEARNED = "AUTO_LEARNED"
    IMPORTED = "IMPORTED"
    ADMIN_APPROVED = "ADMIN_APPROVED"


class UserSynonym(Base):
    """Learned keyword -> category mapping. A NULL user_id makes it global."""

    __tablename__ = "user_synonyms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=True, index=True)
    keyword = Column(String(255), nullable=False)  # Stored normalized
    category_id = Column(String(64), nullable=True)
    category_name = Column(String(255), nullable=False)
    sub_category_id = Column(String(64), nullable=True)
    sub_category_name = Column(String(255), nullable=True)
    confidence = Column(Float, default=1.0, nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    source = Column(Enum(SynonymSource), default=SynonymSource.USER_CONFIRMED, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "keyword", name="uq_user_synonyms_user_keyword"),
        Index("ix_user_synonyms_keyword", "keyword"),
        # NULLs never collide in the unique constraint, so globals need their own index
        Index(
            "uq_user_synonyms_global_keyword",
            "keyword",
            unique=True,
            sqlite_where=text("user_id IS NULL"),
            postgresql_where=text("user_id IS NULL"),
        ),
    )

    @property
    def is_global(self) -> bool:
        return self.user_id is None
