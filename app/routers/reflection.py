"""
Reflections router.

GET  /reflections/{period}             — stored reflection, generated on first request
POST /reflections/{period}/regenerate  — AI reflection for the period (debounced)

period is one of 7d, 30d, 90d, 365d.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_user_id
from app.db.base import get_db
from app.schemas.common import COMMON_ERROR_RESPONSES, ErrorResponse
from app.schemas.reflection import ReflectionResponse
from app.services.reflection import (
    ReflectionGenerator,
    get_reflection_generator,
    reflection_to_dict,
)

router = APIRouter(prefix="/reflections", tags=["reflections"], responses=COMMON_ERROR_RESPONSES)


@router.get(
    "/{period}",
    response_model=ReflectionResponse,
    summary="Get (or create) the reflection for a period",
    responses={
        500: {"model": ErrorResponse, "description": "The reflection could not be stored."},
    },
)
def get_reflection(
    period: str = Path(description="7d, 30d, 90d or 365d.", examples=["30d"]),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    generator: ReflectionGenerator = Depends(get_reflection_generator),
):
    """
    Returns the reflection stored for the period's current date range. The
    first request for a range writes a rule-based reflection; later requests
    return the stored row unchanged, even if moments were added since.
    """
    row = generator.get_or_generate_reflection(db, user_id, period)
    return reflection_to_dict(row)


@router.post(
    "/{period}/regenerate",
    response_model=ReflectionResponse,
    summary="Regenerate the reflection with the AI narrative",
    responses={
        204: {"description": "Debounced: a regeneration for this period ran moments ago."},
        502: {"model": ErrorResponse, "description": "The AI provider failed."},
        503: {"model": ErrorResponse, "description": "AI narratives are not configured."},
        504: {"model": ErrorResponse, "description": "The AI provider timed out."},
    },
)
def regenerate_reflection(
    period: str = Path(description="7d, 30d, 90d or 365d.", examples=["30d"]),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    generator: ReflectionGenerator = Depends(get_reflection_generator),
):
    """
    Recomputes the aggregate and replaces the stored narrative in place. On
    any AI failure the stored reflection is left exactly as it was. Calls
    within the debounce window return **204 No Content**.
    """
    row = generator.regenerate_reflection(db, user_id, period)
    if row is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return reflection_to_dict(row)
