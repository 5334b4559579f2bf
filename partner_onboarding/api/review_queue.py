"""
Review Queue API Routes: reviewer listings and decisions.

1. GET /queue/{role} - organizations awaiting the role, with aging summary
2. GET /queue/{role}/{organization_id} - one organization in that queue
3. POST /queue/{role}/{organization_id}/decision - approve, request changes, reject
"""

from dataclasses import asdict
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..core import CurrentUser, CurrentUserDep, SessionDep
from ..schemas import (
    DecisionRequest,
    DecisionResponse,
    QueueItemResponse,
    QueueResponse,
    QueueSummaryResponse,
)
from ..services import (
    DecisionProcessor,
    ForbiddenError,
    InvalidStateError,
    OrganizationNotFoundError,
    PersistenceUnavailableError,
    QueueItem,
    ReviewQueue,
    ReviewTier,
    UnknownQueueError,
)

router = APIRouter(prefix="/queue", tags=["review"])


def get_review_queue(session: SessionDep) -> ReviewQueue:
    return ReviewQueue(session)


def get_decision_processor(session: SessionDep) -> DecisionProcessor:
    return DecisionProcessor(session)


ReviewQueueDep = Annotated[ReviewQueue, Depends(get_review_queue)]
DecisionProcessorDep = Annotated[DecisionProcessor, Depends(get_decision_processor)]


def resolve_reviewer(queue: ReviewQueue, role: str, current_user: CurrentUser) -> ReviewTier:
    """Resolve the queue for a path role and check the caller reviews it."""
    try:
        tier = queue.resolve_tier(role)
    except UnknownQueueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    if current_user.role != tier.role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the {tier.label} may access this queue",
        )
    return tier


def build_item_response(item: QueueItem) -> QueueItemResponse:
    data = asdict(item)
    data["status"] = item.status.value
    return QueueItemResponse(**data)


@router.get("/{role}", response_model=QueueResponse)
async def list_queue(
    role: str,
    current_user: CurrentUserDep,
    queue: ReviewQueueDep,
    order: Literal["oldest_first", "newest_first"] = Query("oldest_first"),
):
    """List organizations awaiting this reviewer, oldest first by default."""
    tier = resolve_reviewer(queue, role, current_user)

    try:
        snapshot = await queue.list_queue(tier.role, order=order)
    except PersistenceUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return QueueResponse(
        role=tier.role.value,
        items=[build_item_response(item) for item in snapshot.items],
        summary=QueueSummaryResponse.model_validate(snapshot.summary),
    )


@router.get("/{role}/{organization_id}", response_model=QueueItemResponse)
async def get_queue_item(
    role: str,
    organization_id: UUID,
    current_user: CurrentUserDep,
    queue: ReviewQueueDep,
):
    """Fetch one organization currently awaiting this reviewer."""
    tier = resolve_reviewer(queue, role, current_user)

    try:
        item = await queue.get_item(tier.role, organization_id)
    except OrganizationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except PersistenceUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return build_item_response(item)


@router.post("/{role}/{organization_id}/decision", response_model=DecisionResponse)
async def decide(
    role: str,
    organization_id: UUID,
    request: DecisionRequest,
    current_user: CurrentUserDep,
    queue: ReviewQueueDep,
    processor: DecisionProcessorDep,
):
    """
    Record a decision on an organization.

    A 409 means the organization is no longer awaiting this reviewer,
    typically because another decision landed first.
    """
    tier = resolve_reviewer(queue, role, current_user)

    try:
        result = await processor.decide(
            organization_id,
            tier.role,
            request.decision,
            actor_user_id=current_user.id,
            reason=request.reason,
            sections=request.sections,
        )
    except OrganizationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Organization {organization_id} not found",
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

    return DecisionResponse(
        organization_id=result.organization_id,
        previous_status=result.previous_status.value,
        status=result.new_status.value,
        decided_at=result.decided_at,
        notification_delivered=result.notification_delivered,
        warning=result.warning,
    )
