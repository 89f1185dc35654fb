"""Profile endpoint — the caller's questionnaire profile."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_flow.models.draft import Profile

from onboarding_server.dependencies import get_db, get_service, get_user_id
from onboarding_server.service import SessionService

router = APIRouter(tags=["profile"])


@router.get("/profile")
async def get_profile(
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> Profile:
    """Return the caller's profile.  404 if none has been created yet."""
    return await service.get_profile(db, user_id)
