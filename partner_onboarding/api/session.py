"""Session API routes: caller context and access gate evaluation."""

from fastapi import APIRouter, HTTPException, status

from ..core import CurrentUserDep, OptionalUserDep, SessionDep
from ..models import OrgStatus, Role
from ..schemas import (
    AccessRequest,
    AccessResponse,
    QueueSummaryResponse,
    SessionOrganization,
    SessionResponse,
    SessionUser,
)
from ..services import (
    Destination,
    ReviewQueue,
    SessionContext,
    evaluate_access,
    get_destination,
    get_review_tier,
    redirect_path_for_status,
    role_landing,
)

router = APIRouter(prefix="/session", tags=["session"])


@router.get("", response_model=SessionResponse)
async def get_session_info(
    current_user: CurrentUserDep,
    session: SessionDep,
):
    """
    Return the caller's identity, organization status and next step.

    Reviewers also receive their queue summary.
    """
    user = current_user.user
    organization = current_user.organization

    if current_user.is_partner:
        next_step = redirect_path_for_status(organization.status if organization else None)
        onboarding_locked = organization is None or organization.status != OrgStatus.FINALIZED
    else:
        next_step = role_landing(user.role)
        onboarding_locked = False

    reviewer = None
    if get_review_tier(user.role) is not None:
        summary = await ReviewQueue(session).summary(user.role)
        reviewer = QueueSummaryResponse.model_validate(summary)

    return SessionResponse(
        user=SessionUser(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.value,
            email_verified=user.email_verified,
            organization_id=user.organization_id,
        ),
        organization=SessionOrganization(
            id=organization.id,
            name=organization.name,
            status=organization.status.value,
        ) if organization else None,
        next_step=next_step,
        onboarding_locked=onboarding_locked,
        reviewer=reviewer,
    )


@router.post("/access", response_model=AccessResponse)
async def check_access(
    request: AccessRequest,
    current_user: OptionalUserDep,
):
    """
    Evaluate whether the caller may reach a destination.

    Works without a token: unauthenticated callers are sent to login.
    """
    destination = get_destination(request.path)
    if destination is None:
        try:
            required_role = Role.parse(request.required_role) if request.required_role else None
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(e),
            )
        destination = Destination(
            path=request.path,
            required_role=required_role,
            requires_email_verified=request.requires_email_verified,
            required_status=(
                frozenset(request.required_status)
                if request.required_status is not None
                else None
            ),
            partner_area=request.partner_area,
        )

    context = (
        current_user.session_context()
        if current_user
        else SessionContext(authenticated=False)
    )
    decision = evaluate_access(context, destination)

    return AccessResponse(allowed=decision.allowed, redirect_to=decision.redirect_to)
