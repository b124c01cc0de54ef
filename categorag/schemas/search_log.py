"""Pydantic schemas for search logs."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from categorag.models.search_log import SearchMode


class SearchTracking(BaseModel):
    """Extra fields recorded when a search is one step of a longer flow."""
    flow_step: int = 1
    total_steps: int = 1
    ai_provider: Optional[str] = None
    ai_model: Optional[str] = None
    ai_confidence: Optional[float] = None
    ai_category_id: Optional[str] = None
    ai_category_name: Optional[str] = None
    final_category_id: Optional[str] = None
    final_category_name: Optional[str] = None
    was_ai_fallback: bool = False


class SearchLogResponse(BaseModel):
    id: str
    user_id: str
    query: str
    query_normalized: str
    matches: List[Dict[str, Any]]
    best_match: Optional[str] = None
    best_score: Optional[float] = None
    threshold: float
    success: bool
    mode: SearchMode
    response_time_ms: int
    flow_step: int
    total_steps: int
    was_ai_fallback: bool
    final_category_name: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SearchLogList(BaseModel):
    logs: List[SearchLogResponse]
    total: int
    limit: int
    offset: int


class SearchLogDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class SearchLogDeleteResponse(BaseModel):
    deleted_count: int
