"""Pydantic schemas for the synonym learning dialogue."""

from enum import Enum
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from categorag.schemas.category import UserCategory


class LearningState(str, Enum):
    """States of a confirmation dialogue."""
    IDLE = "IDLE"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    AWAITING_CORRECTION = "AWAITING_CORRECTION"
    AWAITING_SELECTION = "AWAITING_SELECTION"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class LearningAction(str, Enum):
    confirmed = "confirmed"
    rejected = "rejected"
    cancelled = "cancelled"
    awaiting_correction = "awaiting_correction"


class AIHint(BaseModel):
    """Category picked by an upstream AI classifier, if any."""
    category: Optional[str] = None
    category_id: Optional[str] = None
    sub_category: Optional[str] = None
    sub_category_id: Optional[str] = None
    confidence: Optional[float] = None


class Detection(BaseModel):
    detected_term: str
    suggested_category_id: Optional[str] = None
    suggested_category: Optional[str] = None
    suggested_subcategory_id: Optional[str] = None
    suggested_subcategory: Optional[str] = None
    confidence: float = 0.0
    reason: str = ""
    has_outros_category: bool = True


class PendingMatch(BaseModel):
    category_id: str
    category_name: str
    sub_category_id: Optional[str] = None
    sub_category_name: Optional[str] = None
    score: float = 0.0

    @property
    def label(self) -> str:
        if self.sub_category_name:
            return f"{self.category_name} > {self.sub_category_name}"
        return self.category_name


class LearningContext(BaseModel):
    """Pending dialogue for one phone/platform id. Lives in the cache with a TTL."""
    state: LearningState = LearningState.AWAITING_CONFIRMATION
    detected_term: str
    suggested_category_id: Optional[str] = None
    suggested_category: Optional[str] = None
    suggested_subcategory_id: Optional[str] = None
    suggested_subcategory: Optional[str] = None
    original_text: str
    confidence: float = 0.0
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    has_outros_category: bool = True
    pending_matches: List[PendingMatch] = []


class ConfirmationPrompt(BaseModel):
    needs_confirmation: bool
    message: Optional[str] = None
    context: Optional[LearningContext] = None


class ResponseResult(BaseModel):
    processed: bool
    action: Optional[LearningAction] = None
    message: Optional[str] = None
    should_continue: bool = False
    original_text: Optional[str] = None


class CorrectionResult(BaseModel):
    success: bool
    message: Optional[str] = None
    needs_selection: bool = False
    should_continue: bool = False
    cancelled: bool = False
    original_text: Optional[str] = None
    pending_matches: List[PendingMatch] = []


class DetectRequest(BaseModel):
    text: str
    user_id: str = Field(..., min_length=1)
    phone_id: str = Field(..., min_length=1)
    ai_hint: Optional[AIHint] = None


class RespondRequest(BaseModel):
    phone_id: str = Field(..., min_length=1)
    reply: str
    user_id: str = Field(..., min_length=1)


class CorrectRequest(BaseModel):
    phone_id: str = Field(..., min_length=1)
    text: str
    user_id: str = Field(..., min_length=1)
    categories: List[UserCategory] = []
