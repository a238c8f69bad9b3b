"""
Streak router.

GET /streak — current and best run of consecutive days with a moment
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_user_id
from app.db.base import get_db
from app.schemas.common import COMMON_ERROR_RESPONSES
from app.schemas.streak import StreakResponse
from app.services.streak import get_streak

router = APIRouter(prefix="/streak", tags=["streak"], responses=COMMON_ERROR_RESPONSES)


@router.get(
    "",
    response_model=StreakResponse,
    summary="Current and best streak",
)
def streak(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Rebuilt from the full moment log on every call, counting any moment
    regardless of action or significance. `current` is 0 once a full civil
    day has passed without a moment.
    """
    return get_streak(db, user_id).to_dict()
