"""
Category index and matching API endpoints.
"""

from fastapi import APIRouter, Depends

from categorag.dependencies import get_categorization_service
from categorag.schemas.category import CategoryIndexRequest, CategoryIndexResponse
from categorag.schemas.match import MatchRequest, MatchResponse
from categorag.services.categorization_service import CategorizationService
from categorag.services.category_index import expand_categories

router = APIRouter()


@router.post("/index", response_model=CategoryIndexResponse)
def index_categories(
    request: CategoryIndexRequest,
    service: CategorizationService = Depends(get_categorization_service)
):
    """Index a user's categories, replacing whatever was indexed before."""
    categories = list(request.categories) + expand_categories(request.accounts)
    service.index_user_categories(request.user_id, categories)

    return CategoryIndexResponse(
        user_id=request.user_id,
        items=categories,
        total=len(categories)
    )


@router.get("/index/{user_id}", response_model=CategoryIndexResponse)
def get_indexed_categories(
    user_id: str,
    service: CategorizationService = Depends(get_categorization_service)
):
    """Return the cached category list (empty when absent or expired)."""
    categories = service.get_cached_categories(user_id)
    return CategoryIndexResponse(user_id=user_id, items=categories, total=len(categories))


@router.delete("/index", status_code=204)
def invalidate_all_indexes(
    service: CategorizationService = Depends(get_categorization_service)
):
    service.invalidate_index()
    return None


@router.delete("/index/{user_id}", status_code=204)
def invalidate_index(
    user_id: str,
    service: CategorizationService = Depends(get_categorization_service)
):
    service.invalidate_index(user_id)
    return None


@router.post("/match", response_model=MatchResponse)
def match_categories(
    request: MatchRequest,
    service: CategorizationService = Depends(get_categorization_service)
):
    """Rank the user's categories against a transaction description."""
    items = service.find_similar_categories(request.query, request.user_id, request.options)
    return MatchResponse(items=items, total=len(items))
