"""
Pydantic schemas package.
"""

from categorag.schemas.category import (
    TransactionType,
    SubCategoryRef,
    UserCategory,
    SourceCategory,
    AccountCategories,
)
from categorag.schemas.match import MatchOptions, CategoryMatch
from categorag.schemas.learning import (
    AIHint,
    Detection,
    LearningContext,
    LearningState,
    LearningAction,
    PendingMatch,
    ConfirmationPrompt,
    ResponseResult,
    CorrectionResult,
)
from categorag.schemas.search_log import SearchTracking

__all__ = [
    "TransactionType",
    "SubCategoryRef",
    "UserCategory",
    "SourceCategory",
    "AccountCategories",
    "MatchOptions",
    "CategoryMatch",
    "AIHint",
    "Detection",
    "LearningContext",
    "LearningState",
    "LearningAction",
    "PendingMatch",
    "ConfirmationPrompt",
    "ResponseResult",
    "CorrectionResult",
    "SearchTracking",
]
