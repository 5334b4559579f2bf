"""API routes for the organization audit trail."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from ..core import SessionDep, StaffDep
from ..schemas import AuditEntryResponse, AuditHistoryResponse, PaginationParams
from ..services import AuditService

router = APIRouter(prefix="/audit", tags=["audit"])


def get_audit_service(session: SessionDep) -> AuditService:
    return AuditService(session)


AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]


@router.get("/organizations/{organization_id}", response_model=AuditHistoryResponse)
async def get_organization_history(
    organization_id: UUID,
    current_user: StaffDep,  # Admins and reviewers only
    service: AuditServiceDep,
    pagination: Annotated[PaginationParams, Depends()],
):
    """Status transition history of one organization, oldest first."""
    entries, total = await service.get_history(
        organization_id=organization_id,
        limit=pagination.page_size,
        offset=pagination.offset,
    )

    return AuditHistoryResponse(
        items=[
            AuditEntryResponse(
                id=e.id,
                organization_id=e.organization_id,
                actor_user_id=e.actor_user_id,
                actor_role=e.actor_role,
                action=e.action.value,
                previous_status=e.previous_status,
                new_status=e.new_status,
                details=e.details or {},
                created_at=e.created_at,
            )
            for e in entries
        ],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=(total + pagination.page_size - 1) // pagination.page_size,
    )
