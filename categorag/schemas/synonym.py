"""
Synonym Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from categorag.models.synonym import SynonymSource


class SynonymCreate(BaseModel):
    """Schema for adding a personalized (or global, user_id=None) synonym."""
    user_id: Optional[str] = None
    keyword: str = Field(..., min_length=1, max_length=255)
    category_id: Optional[str] = None
    category_name: str = Field(..., min_length=1, max_length=255)
    sub_category_id: Optional[str] = None
    sub_category_name: Optional[str] = None
    confidence: float = Field(1.0, ge=0, le=1)
    source: SynonymSource = SynonymSource.USER_CONFIRMED


class SynonymDelete(BaseModel):
    user_id: Optional[str] = None
    keyword: str = Field(..., min_length=1)


class SynonymResponse(BaseModel):
    """Schema for synonym response."""
    id: str
    user_id: Optional[str] = None
    keyword: str
    category_id: Optional[str] = None
    category_name: str
    sub_category_id: Optional[str] = None
    sub_category_name: Optional[str] = None
    confidence: float
    usage_count: int
    source: SynonymSource
    last_used_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SynonymList(BaseModel):
    items: List[SynonymResponse]
    total: int
