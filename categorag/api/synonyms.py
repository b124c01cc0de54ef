"""
Personalized synonym API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

from categorag.dependencies import get_db, get_categorization_service
from categorag.schemas.synonym import SynonymCreate, SynonymDelete, SynonymResponse, SynonymList
from categorag.services.categorization_service import CategorizationService
from categorag.services.synonym_service import SynonymService

router = APIRouter()


@router.get("", response_model=SynonymList)
def list_synonyms(
    user_id: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List a user's synonyms, or the global ones when no user_id is given."""
    synonyms = SynonymService(db).list_synonyms(user_id)
    return SynonymList(items=synonyms, total=len(synonyms))


@router.post("", response_model=SynonymResponse, status_code=201)
def add_synonym(
    synonym: SynonymCreate,
    service: CategorizationService = Depends(get_categorization_service)
):
    """Create or update a synonym for (user_id, keyword)."""
    return service.add_synonym(synonym)


@router.delete("", status_code=204)
def delete_synonym(
    synonym: SynonymDelete,
    db: Session = Depends(get_db)
):
    if not SynonymService(db).remove_synonym(synonym.user_id, synonym.keyword):
        raise HTTPException(status_code=404, detail="Synonym not found")
    return None
