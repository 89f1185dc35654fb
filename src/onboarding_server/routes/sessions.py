"""Questionnaire session endpoints — create, read, replace, attach.

Create, read and replace are anonymous: the session UUID is the capability.
Attach requires the ``X-User-ID`` header injected by the API gateway.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_flow.models.draft import Profile

from onboarding_server.dependencies import get_db, get_service, get_user_id
from onboarding_server.service import SessionService, SessionView

router = APIRouter(prefix="/questionnaire/sessions", tags=["sessions"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    """Body for POST /questionnaire/sessions."""
    payload: dict[str, Any] = Field(default_factory=dict)


class CreateSessionResponse(BaseModel):
    session_uuid: str


class UpdateSessionRequest(BaseModel):
    """Body for PUT /questionnaire/sessions/{uuid}."""
    payload: dict[str, Any] = Field(default_factory=dict)
    completed: bool | None = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("", status_code=201)
async def create_session(
    body: CreateSessionRequest,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> CreateSessionResponse:
    """Create an anonymous session seeded with ``payload``."""
    view = await service.create_session(db, body.payload)
    return CreateSessionResponse(session_uuid=view.session_uuid)


@router.get("/{session_uuid}")
async def get_session(
    session_uuid: str,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> SessionView:
    """Return the stored draft.  404 if the session is unknown."""
    return await service.get_session(db, session_uuid)


@router.put("/{session_uuid}")
async def update_session(
    session_uuid: str,
    body: UpdateSessionRequest,
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> SessionView:
    """Replace the stored answers.

    404 if the session is unknown, 403 if it is already attached.
    """
    return await service.update_session(
        db, session_uuid, body.payload, completed=body.completed,
    )


@router.post("/{session_uuid}/attach")
async def attach_session(
    session_uuid: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> Profile:
    """Attach the session to the caller and return the resulting profile.

    404 unknown, 409 already attached to the caller, 403 attached to
    another account, 422 questionnaire incomplete.
    """
    return await service.attach_session(db, session_uuid, user_id)
