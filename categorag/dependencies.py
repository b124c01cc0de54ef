"""
FastAPI dependencies.
"""

from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from categorag.config import settings
from categorag.database import SessionLocal
from categorag.services.cache import CacheStore, DatabaseCacheStore, MemoryCacheStore
from categorag.services.categorization_service import CategorizationService
from categorag.services.search_log_service import SearchLogger
from categorag.services.synonym_graph import SynonymGraph, load_default_graph


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_cache_store() -> CacheStore:
    """Process-wide cache store selected by ``settings.cache_backend``."""
    if settings.cache_backend == "database":
        return DatabaseCacheStore(SessionLocal)
    if settings.cache_backend != "memory":
        raise ValueError(f"Unknown cache backend: {settings.cache_backend}")
    return MemoryCacheStore()


def get_synonym_graph() -> SynonymGraph:
    return load_default_graph()


@lru_cache(maxsize=1)
def get_search_log_executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(
        max_workers=settings.search_log_workers,
        thread_name_prefix="search-log",
    )


def get_search_logger() -> SearchLogger:
    executor = get_search_log_executor() if settings.search_log_async else None
    return SearchLogger(SessionLocal, executor)


def get_categorization_service(
    db: Session = Depends(get_db),
    store: CacheStore = Depends(get_cache_store),
    graph: SynonymGraph = Depends(get_synonym_graph),
    search_logger: SearchLogger = Depends(get_search_logger),
) -> CategorizationService:
    return CategorizationService(db, store, graph, search_logger)
