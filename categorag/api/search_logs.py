"""
Search log API endpoints.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from categorag.dependencies import get_search_logger
from categorag.schemas.search_log import (
    SearchLogList,
    SearchLogDeleteRequest,
    SearchLogDeleteResponse,
)
from categorag.services.search_log_service import SearchLogger

router = APIRouter()


@router.get("", response_model=SearchLogList)
def list_search_logs(
    user_id: Optional[str] = None,
    failed_only: bool = False,
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    search_logger: SearchLogger = Depends(get_search_logger)
):
    """List recorded search attempts, newest first."""
    logs, total = search_logger.get_search_attempts(
        user_id=user_id,
        failed_only=failed_only,
        limit=limit,
        offset=offset
    )
    return SearchLogList(logs=logs, total=total, limit=limit, offset=offset)


@router.post("/delete", response_model=SearchLogDeleteResponse)
def delete_search_logs(
    request: SearchLogDeleteRequest,
    search_logger: SearchLogger = Depends(get_search_logger)
):
    deleted = search_logger.delete_search_logs(request.ids)
    return SearchLogDeleteResponse(deleted_count=deleted)
