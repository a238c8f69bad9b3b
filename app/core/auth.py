"""
Request identity.

Authentication happens at the gateway in front of this service; it forwards
the signed-in user's id in the `X-User-Id` header. Every route that touches
journal data depends on get_current_user_id.
"""
from typing import Optional

from fastapi import Header

from app.services.event_store import require_user


def get_current_user_id(
    x_user_id: Optional[str] = Header(
        default=None,
        alias="X-User-Id",
        description="Id of the signed-in user, set by the auth gateway.",
    ),
) -> str:
    return require_user(x_user_id)
