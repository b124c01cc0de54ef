"""
Main API router.
"""

from fastapi import APIRouter
from categorag.api import categories, synonyms, search_logs, learning

api_router = APIRouter()

api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(synonyms.router, prefix="/synonyms", tags=["synonyms"])
api_router.include_router(search_logs.router, prefix="/search-logs", tags=["search-logs"])
api_router.include_router(learning.router, prefix="/learning", tags=["learning"])
