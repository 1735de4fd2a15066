"""Profile endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from atelier_api.auth.session import get_current_profile
from atelier_api.db.models.studio import Profile
from atelier_api.schemas.studio import ProfileOut

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileOut)
async def me(profile: Annotated[Profile, Depends(get_current_profile)]):
    """Return the profile the session token resolves to."""
    return ProfileOut.model_validate(profile, from_attributes=True)
