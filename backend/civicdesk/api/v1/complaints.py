"""
Complaint endpoints.

Authorization and validation live in ComplaintService; handlers only translate
between HTTP payloads and service calls.
"""
import logging
import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from civicdesk.core.deps import category_classifier, complaint_service
from civicdesk.core.errors import ValidationError
from civicdesk.core.security import get_current_actor
from civicdesk.engine.scope import Actor
from civicdesk.models.complaint import ComplaintStatus
from civicdesk.schemas.complaint import (
    AssignRequest,
    CategorySuggestionResponse,
    CompleteRequest,
    ComplaintCreate,
    ComplaintResponse,
    FeedbackRequest,
    HistoryEntryResponse,
    PatchRequest,
)
from civicdesk.services.classifier import ALLOWED_MIME_TYPES, CategoryClassifier
from civicdesk.services.complaints import ComplaintService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/complaints", tags=["complaints"])

MAX_IMAGE_BYTES = 10 * 1024 * 1024


@router.post("", response_model=ComplaintResponse, status_code=status.HTTP_201_CREATED)
async def create_complaint(
    payload: ComplaintCreate,
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> ComplaintResponse:
    complaint = await service.create_complaint(
        actor,
        categories=payload.categories,
        latitude=payload.latitude,
        longitude=payload.longitude,
        evidence_ref=payload.evidence_ref,
        note=payload.note,
        ward=payload.ward,
        priority=payload.priority,
    )
    return ComplaintResponse.model_validate(complaint)


@router.get("", response_model=list[ComplaintResponse])
async def list_complaints(
    status_filter: ComplaintStatus | None = Query(default=None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> list[ComplaintResponse]:
    """Complaints visible to the caller, newest first."""
    complaints = await service.list_complaints(actor, status=status_filter)
    return [ComplaintResponse.model_validate(c) for c in complaints]


@router.post("/suggest-categories", response_model=CategorySuggestionResponse)
async def suggest_categories(
    image: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    classifier: CategoryClassifier = Depends(category_classifier),
) -> CategorySuggestionResponse:
    """Advisory category labels for a complaint photo. Empty when the classifier is unavailable."""
    mime_type = (image.content_type or "").lower()
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(f"Unsupported image type '{mime_type or 'unknown'}'")
    data = await image.read()
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError("Image exceeds the 10 MB limit")

    suggestions = await classifier.suggest(data, mime_type)
    logger.info("Category suggestions for %s: %s", actor.id, suggestions)
    return CategorySuggestionResponse(
        categories=suggestions,
        vocabulary_version=classifier.vocabulary.version,
    )


@router.get("/{complaint_id}", response_model=ComplaintResponse)
async def get_complaint(
    complaint_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> ComplaintResponse:
    complaint = await service.get_complaint(actor, complaint_id)
    return ComplaintResponse.model_validate(complaint)


@router.get("/{complaint_id}/history", response_model=list[HistoryEntryResponse])
async def get_history(
    complaint_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> list[HistoryEntryResponse]:
    entries = await service.get_history(actor, complaint_id)
    return [HistoryEntryResponse.model_validate(e) for e in entries]


@router.post("/{complaint_id}/assign", response_model=ComplaintResponse)
async def assign_worker(
    complaint_id: uuid.UUID,
    payload: AssignRequest,
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> ComplaintResponse:
    complaint = await service.assign_worker(
        actor,
        complaint_id,
        payload.worker_id,
        department_id=payload.department_id,
        eta=payload.estimated_completion,
        notes=payload.notes,
    )
    return ComplaintResponse.model_validate(complaint)


@router.post("/{complaint_id}/complete", response_model=ComplaintResponse)
async def mark_completed(
    complaint_id: uuid.UUID,
    payload: CompleteRequest,
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> ComplaintResponse:
    complaint = await service.mark_completed(
        actor,
        complaint_id,
        payload.evidence_ref,
        notes=payload.completion_notes,
    )
    return ComplaintResponse.model_validate(complaint)


@router.patch("/{complaint_id}", response_model=ComplaintResponse)
async def patch_complaint(
    complaint_id: uuid.UUID,
    payload: PatchRequest,
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> ComplaintResponse:
    complaint = await service.patch_complaint(
        actor,
        complaint_id,
        status=payload.status,
        priority=payload.priority,
        notes=payload.notes,
    )
    return ComplaintResponse.model_validate(complaint)


@router.post("/{complaint_id}/feedback", response_model=ComplaintResponse)
async def rate_complaint(
    complaint_id: uuid.UUID,
    payload: FeedbackRequest,
    actor: Actor = Depends(get_current_actor),
    service: ComplaintService = Depends(complaint_service),
) -> ComplaintResponse:
    complaint = await service.rate_complaint(actor, complaint_id, payload.rating, payload.feedback)
    return ComplaintResponse.model_validate(complaint)
