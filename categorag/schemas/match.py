"""
Match Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from categorag.config import settings
from categorag.schemas.category import TransactionType


class MatchOptions(BaseModel):
    """Tuning knobs for a single search."""
    min_score: float = Field(default_factory=lambda: settings.min_score, ge=0)
    max_results: int = Field(default_factory=lambda: settings.max_results, ge=1)
    boost_exact_match: float = Field(default_factory=lambda: settings.boost_exact_match, ge=1)
    boost_starts_with: float = Field(default_factory=lambda: settings.boost_starts_with, ge=1)
    transaction_type: Optional[TransactionType] = None
    skip_logging: bool = False


class CategoryMatch(BaseModel):
    """A ranked candidate. Score is additive and may exceed 1."""
    category_id: str
    category_name: str
    sub_category_id: Optional[str] = None
    sub_category_name: Optional[str] = None
    score: float
    matched_terms: List[str] = []


class MatchRequest(BaseModel):
    query: str
    user_id: str = Field(..., min_length=1)
    options: MatchOptions = Field(default_factory=MatchOptions)


class MatchResponse(BaseModel):
    items: List[CategoryMatch]
    total: int
