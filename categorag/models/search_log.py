"""
Search log database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, Enum, Text, JSON, Index
import enum
from categorag.database import Base


class SearchMode(str, enum.Enum):
    """Which ranker produced the matches."""
    BM25 = "BM25"
    AI = "AI"
    HYBRID = "HYBRID"


class SearchLog(Base):
    """Append-only record of one category match attempt."""

    __tablename__ = "search_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False)
    query = Column(Text, nullable=False)
    query_normalized = Column(Text, nullable=False)
    matches = Column(JSON, nullable=False)  # Full CategoryMatch list
    best_match = Column(String(255), nullable=True)
    best_score = Column(Float, nullable=True)
    threshold = Column(Float, nullable=False)
    success = Column(Boolean, default=False, nullable=False)
    mode = Column(Enum(SearchMode), default=SearchMode.BM25, nullable=False)
    response_time_ms = Column(Integer, default=0, nullable=False)

    # Multi-step tracking (AI fallback flows)
    flow_step = Column(Integer, default=1, nullable=False)
    total_steps = Column(Integer, default=1, nullable=False)
    ai_provider = Column(String(50), nullable=True)
    ai_model = Column(String(100), nullable=True)
    ai_confidence = Column(Float, nullable=True)
    ai_category_id = Column(String(64), nullable=True)
    ai_category_name = Column(String(255), nullable=True)
    final_category_id = Column(String(64), nullable=True)
    final_category_name = Column(String(255), nullable=True)
    rag_initial_score = Column(Float, nullable=True)
    rag_final_score = Column(Float, nullable=True)
    was_ai_fallback = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_search_logs_user_success", "user_id", "success"),
    )
