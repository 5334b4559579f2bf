"""Audit service: transition trail for organizations."""

from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditAction, AuditLog, OrgStatus, Role


class AuditService:
    """Service for the append-only organization audit trail."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def log_transition(
        self,
        organization_id: UUID,
        action: AuditAction,
        new_status: OrgStatus,
        previous_status: OrgStatus | None = None,
        actor_user_id: UUID | None = None,
        actor_role: Role | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Stage an audit row in the caller's transaction."""
        entry = AuditLog(
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            actor_role=actor_role.value if actor_role else None,
            action=action,
            previous_status=previous_status.value if previous_status else None,
            new_status=new_status.value,
            details=details or {},
        )
        self.session.add(entry)
        return entry

    async def get_history(
        self,
        organization_id: UUID,
        action: AuditAction | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[AuditLog], int]:
        """Query an organization's audit trail, oldest first."""
        query = select(AuditLog).where(AuditLog.organization_id == organization_id)

        if action:
            query = query.where(AuditLog.action == action)

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        query = query.order_by(AuditLog.created_at.asc()).limit(limit).offset(offset)
        result = await self.session.execute(query)

        return result.scalars().all(), total
