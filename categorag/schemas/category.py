"""
Category Pydantic schemas for indexing and matching.
"""

from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional


class TransactionType(str, Enum):
    """Direction of money a category applies to."""
    INCOME = "INCOME"
    EXPENSES = "EXPENSES"


class SubCategoryRef(BaseModel):
    """Subcategory attached to an indexed category record."""
    id: str
    name: str = Field(..., min_length=1, max_length=255)


class UserCategory(BaseModel):
    """One indexed record: a category with at most one subcategory."""
    id: str
    name: str = Field(..., min_length=1, max_length=255)
    account_id: str
    type: Optional[TransactionType] = None
    sub_category: Optional[SubCategoryRef] = None

    @property
    def label(self) -> str:
        if self.sub_category:
            return f"{self.name} > {self.sub_category.name}"
        return self.name


class SourceCategory(BaseModel):
    """Category as delivered by the category source, before expansion."""
    id: str
    name: str
    type: Optional[TransactionType] = None
    sub_categories: List[SubCategoryRef] = []


class AccountCategories(BaseModel):
    """Account with its categories, as delivered by the category source."""
    id: str
    categories: List[SourceCategory] = []


class CategoryIndexRequest(BaseModel):
    """Schema for indexing a user's categories.

    Either a flat, already expanded ``categories`` list or the nested
    ``accounts`` payload may be sent.
    """
    user_id: str = Field(..., min_length=1)
    categories: List[UserCategory] = []
    accounts: List[AccountCategories] = []


class CategoryIndexResponse(BaseModel):
    """Schema for the indexed category list."""
    user_id: str
    items: List[UserCategory]
    total: int
