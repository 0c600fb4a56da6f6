from __future__ import annotations

from fastapi import APIRouter

from finspace.schemas import (
    RecurrenceConfig,
    RecurrencePreviewOut,
    RecurrencePreviewRequest,
    RecurrenceValidationResult,
)
from finspace.services.recurrence_service import (
    format_recurrence_description,
    generate_scheduled_dates,
    validate_recurrence_config,
)


router = APIRouter(prefix="/recurrence", tags=["recurrence"])


@router.post("/validate", response_model=RecurrenceValidationResult)
def validate_recurrence(config: RecurrenceConfig):
    return validate_recurrence_config(config)


@router.post("/preview", response_model=RecurrencePreviewOut)
def preview_recurrence(payload: RecurrencePreviewRequest):
    """Dates the configuration would produce after ``start_date``.

    Nothing is generated for an invalid configuration; the validation
    errors are returned instead.
    """
    validation = validate_recurrence_config(payload.recurrence)
    dates = generate_scheduled_dates(payload.start_date, payload.recurrence, payload.count) if validation.is_valid else []
    return RecurrencePreviewOut(
        dates=dates,
        description=format_recurrence_description(payload.recurrence),
        validation=validation,
    )
