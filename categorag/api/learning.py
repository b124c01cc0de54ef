"""
Synonym learning dialogue API endpoints.
"""

from fastapi import APIRouter, Depends

from categorag.dependencies import get_categorization_service
from categorag.schemas.learning import (
    ConfirmationPrompt,
    CorrectionResult,
    CorrectRequest,
    DetectRequest,
    RespondRequest,
    ResponseResult,
)
from categorag.services.categorization_service import CategorizationService

router = APIRouter()


@router.post("/detect", response_model=ConfirmationPrompt)
def detect(
    request: DetectRequest,
    service: CategorizationService = Depends(get_categorization_service)
):
    """Check a description for an unknown term and open a confirmation dialogue if needed."""
    return service.detect_and_prepare_confirmation(
        request.text, request.user_id, request.phone_id, request.ai_hint
    )


@router.post("/respond", response_model=ResponseResult)
def respond(
    request: RespondRequest,
    service: CategorizationService = Depends(get_categorization_service)
):
    return service.process_response(request.phone_id, request.reply, request.user_id)


@router.post("/correct", response_model=CorrectionResult)
def correct(
    request: CorrectRequest,
    service: CategorizationService = Depends(get_categorization_service)
):
    return service.process_correction(
        request.phone_id, request.text, request.user_id, request.categories
    )
