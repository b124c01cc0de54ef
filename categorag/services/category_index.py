"""Per-user cache of subcategory-expanded category records."""

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from categorag.config import settings
from categorag.schemas.category import AccountCategories, UserCategory
from categorag.services.cache import CacheError, CacheStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "categories:"

_categories_adapter = TypeAdapter(List[UserCategory])


def index_key(user_id: str) -> str:
    return f"{KEY_PREFIX}{user_id}"


def expand_categories(accounts: List[AccountCategories]) -> List[UserCategory]:
    """
    Flatten accounts into one record per (category, subcategory) pair.

    A category without subcategories yields a single record with no
    subcategory. Order follows the input order.
    """
    records = []
    for account in accounts:
        for category in account.categories:
            if not category.sub_categories:
                records.append(UserCategory(
                    id=category.id,
                    name=category.name,
                    account_id=account.id,
                    type=category.type,
                ))
                continue
            for sub in category.sub_categories:
                records.append(UserCategory(
                    id=category.id,
                    name=category.name,
                    account_id=account.id,
                    type=category.type,
                    sub_category=sub,
                ))
    return records


class CategoryIndex:
    """Stores a user's category list in a CacheStore with a TTL."""

    def __init__(self, store: CacheStore, ttl_seconds: Optional[int] = None):
        self.store = store
        self.ttl_seconds = ttl_seconds or settings.category_index_ttl

    def index(self, user_id: str, categories: List[UserCategory]) -> None:
        """Replace the user's indexed list. Last write wins."""
        payload = _categories_adapter.dump_json(categories).decode("utf-8")
        self.store.set(index_key(user_id), payload, self.ttl_seconds)
        logger.info("Indexed %d categories for user %s", len(categories), user_id)

    def get(self, user_id: str) -> List[UserCategory]:
        """Indexed list for the user, or [] when absent, expired or unreadable."""
        try:
            raw = self.store.get(index_key(user_id))
        except CacheError as e:
            logger.warning("Category index unavailable for user %s: %s", user_id, e)
            return []

        if raw is None:
            return []

        try:
            return _categories_adapter.validate_json(raw)
        except (ValidationError, json.JSONDecodeError) as e:
            logger.warning("Discarding unreadable category index for user %s: %s", user_id, e)
            return []

    def invalidate(self, user_id: Optional[str] = None) -> int:
        """Clear one user's index, or every user's when user_id is None."""
        if user_id is not None:
            self.store.delete(index_key(user_id))
            logger.info("Invalidated category index for user %s", user_id)
            return 1

        removed = self.store.delete_prefix(KEY_PREFIX)
        logger.info("Invalidated %d category indexes", removed)
        return removed
