"""
Onboarding API Routes: partner-driven stage progression.

1. POST /onboarding/verify-email - email_pending -> a_pending
2. POST /onboarding/section-{a,b,c}/submit - advance one stage
3. POST /onboarding/restart - changes_requested -> a_pending
4. GET /onboarding/review-status - where the review stands
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ..core import PartnerDep, SessionDep
from ..schemas import ProgressResponse, ReviewStatusResponse, VerifyEmailRequest
from ..services import (
    ForbiddenError,
    InvalidStateError,
    InvalidVerificationTokenError,
    OnboardingService,
    OrganizationNotFoundError,
    PersistenceUnavailableError,
    ProgressResult,
)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


def get_onboarding_service(session: SessionDep) -> OnboardingService:
    return OnboardingService(session)


OnboardingServiceDep = Annotated[OnboardingService, Depends(get_onboarding_service)]


def build_progress_response(result: ProgressResult) -> ProgressResponse:
    return ProgressResponse(
        organization_id=result.organization_id,
        previous_status=result.previous_status.value,
        status=result.new_status.value,
        updated_at=result.occurred_at,
        next_step=result.next_step,
        notification_delivered=result.notification_delivered,
        warning=result.warning,
    )


@router.post("/verify-email", response_model=ProgressResponse)
async def verify_email(
    request: VerifyEmailRequest,
    service: OnboardingServiceDep,
):
    """Confirm a partner's email address using the mailed token."""
    try:
        result = await service.verify_email(request.token)
    except InvalidVerificationTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except OrganizationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidStateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except PersistenceUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return build_progress_response(result)


@router.post("/section-{section}/submit", response_model=ProgressResponse)
async def submit_section(
    section: Annotated[Literal["a", "b", "c"], Path()],
    current_user: PartnerDep,
    service: OnboardingServiceDep,
):
    """Submit a section and move to the next stage."""
    try:
        result = await service.submit_section(current_user.user, section)
    except OrganizationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidStateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except ForbiddenError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e),
        )
    except PersistenceUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return build_progress_response(result)


@router.post("/restart", response_model=ProgressResponse)
async def restart(
    current_user: PartnerDep,
    service: OnboardingServiceDep,
):
    """Start over at Section A after a reviewer requested changes."""
    try:
        result = await service.restart(current_user.user)
    except OrganizationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidStateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except ForbiddenError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e),
        )
    except PersistenceUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return build_progress_response(result)


@router.get("/review-status", response_model=ReviewStatusResponse)
async def review_status(
    current_user: PartnerDep,
    service: OnboardingServiceDep,
):
    """Review status with both review stages reported as ``under_review``."""
    try:
        result = await service.review_status(current_user.organization_id)
    except OrganizationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return ReviewStatusResponse(
        organization_status=result.organization_status,
        can_proceed=result.can_proceed,
    )
