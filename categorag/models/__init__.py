"""
Database models package.
"""

from categorag.models.synonym import UserSynonym, SynonymSource
from categorag.models.search_log import SearchLog, SearchMode
from categorag.models.cache_entry import CacheEntry

__all__ = [
    "UserSynonym",
    "SynonymSource",
    "SearchLog",
    "SearchMode",
    "CacheEntry",
]
