from typing import Annotated

from fastapi import APIRouter, Depends

from governor.api.dependencies import get_profile_service, profile_service_for
from governor.core.auth import current_user_id
from governor.core.errors import NotFoundAppError
from governor.schemas.profile import ProfileUpdate, SignInRequest, UserProfile
from governor.services.profile_service import ProfileService

router = APIRouter(tags=["Profiles"])

Service = Annotated[ProfileService, Depends(get_profile_service)]
UserId = Annotated[str, Depends(current_user_id)]


@router.get("/profiles/{uid}", response_model=UserProfile)
async def get_profile(uid: str, service: Service) -> UserProfile:
    profile = await service.get_profile(uid)
    if profile is None:
        raise NotFoundAppError(
            code="profile_not_found", message="Profile not found.", details={"user_id": uid}
        )
    return profile


@router.patch("/profiles/me", response_model=UserProfile)
async def update_my_profile(
    payload: ProfileUpdate, service: Service, user_id: UserId
) -> UserProfile:
    return await service.update_profile(user_id, payload)


@router.post("/session/sign-in", response_model=UserProfile)
async def sign_in(payload: SignInRequest) -> UserProfile:
    """Register a provider sign-in; creates the profile on first visit.

    Counted against the signing-in user's own quota.
    """
    return await profile_service_for(payload.uid).sign_in(payload)


@router.post("/session/sign-out")
async def sign_out(service: Service, user_id: UserId) -> dict:
    """End the caller's session: their cached reads and quota records are discarded."""
    service.sign_out()
    return {"status": "signed_out"}
