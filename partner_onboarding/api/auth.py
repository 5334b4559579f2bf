"""Authentication API routes: partner registration, login and verification resend."""

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import func, select

from ..core import SessionDep
from ..core.security import create_access_token, verify_password
from ..models import Organization, User
from ..schemas import (
    LoginRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResendVerificationResponse,
    TokenResponse,
)
from ..services import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidStateError,
    OnboardingService,
    PersistenceUnavailableError,
    RegistrationInput,
    redirect_path_for_status,
    role_landing,
)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    session: SessionDep,
):
    """
    Register a partner user and their organization.

    The organization starts in ``email_pending`` and a verification link is
    sent to the registered email.
    """
    service = OnboardingService(session)
    try:
        result = await service.register(
            RegistrationInput(
                email=request.email,
                password=request.password,
                organization_name=request.organization_name,
                first_name=request.first_name,
                last_name=request.last_name,
                sector=request.sector,
                country=request.country,
            )
        )
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    organization = result.organization
    return TokenResponse(
        access_token=create_access_token(result.user.id, organization.id),
        user_id=result.user.id,
        role=result.user.role.value,
        organization_id=organization.id,
        organization_status=organization.status.value,
        next_step=redirect_path_for_status(organization.status),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    session: SessionDep,
):
    """Login with email and password."""
    result = await session.execute(
        select(User).where(func.lower(User.email) == request.email.lower())
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    organization = (
        await session.get(Organization, user.organization_id)
        if user.organization_id
        else None
    )

    if organization is not None:
        next_step = redirect_path_for_status(organization.status)
    else:
        next_step = role_landing(user.role)

    return TokenResponse(
        access_token=create_access_token(user.id, user.organization_id),
        user_id=user.id,
        role=user.role.value,
        organization_id=user.organization_id,
        organization_status=organization.status.value if organization else None,
        next_step=next_step,
    )


@router.post("/resend-verification", response_model=ResendVerificationResponse)
async def resend_verification(
    request: ResendVerificationRequest,
    session: SessionDep,
):
    """Send a new verification link to a partner that has not verified yet."""
    service = OnboardingService(session)
    try:
        result = await service.resend_verification(request.email, request.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
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

    return ResendVerificationResponse(
        organization_id=result.organization_id,
        notification_delivered=result.notification_delivered,
        warning=result.warning,
    )
