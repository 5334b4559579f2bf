"""FastAPI dependencies for authentication, authorization, and context."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Organization, Role, User
from ..services.access_gate import SessionContext
from .database import get_session
from .security import decode_token

logger = logging.getLogger(__name__)

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser:
    """Represents the authenticated user and, for partners, their organization.

    The organization row is loaded fresh for every request so that gate
    decisions always see the latest status.
    """

    def __init__(self, user: User, organization: Organization | None = None):
        self.user = user
        self.organization = organization

    @property
    def id(self) -> UUID:
        return self.user.id

    @property
    def role(self) -> Role:
        return self.user.role

    @property
    def organization_id(self) -> UUID | None:
        return self.organization.id if self.organization else None

    @property
    def organization_status(self) -> str | None:
        return self.organization.status.value if self.organization else None

    @property
    def is_partner(self) -> bool:
        return self.user.role == Role.PARTNER_USER

    def session_context(self) -> SessionContext:
        return SessionContext(
            authenticated=True,
            role=self.user.role,
            organization_status=self.organization_status,
            email_verified=self.user.email_verified,
        )


async def _load_current_user(session: AsyncSession, token: str) -> CurrentUser | None:
    payload = decode_token(token)
    if not payload or payload.type != "access":
        return None

    try:
        user_id = UUID(payload.sub)
    except ValueError:
        return None

    result = await session.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        return None

    organization = None
    if user.organization_id:
        result = await session.execute(
            select(Organization)
            .where(Organization.id == user.organization_id)
            .execution_options(populate_existing=True)
        )
        organization = result.scalar_one_or_none()

    return CurrentUser(user=user, organization=organization)


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CurrentUser:
    """Dependency to get the current authenticated user."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    current_user = await _load_current_user(session, credentials.credentials)
    if not current_user:
        logger.info("Rejected request with invalid or expired access token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return current_user


async def get_current_user_optional(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CurrentUser | None:
    """Optional authentication - returns None if not authenticated."""
    if not credentials:
        return None
    return await _load_current_user(session, credentials.credentials)


def require_partner(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Require a partner user attached to an organization."""
    if not current_user.is_partner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Partner access required",
        )
    if not current_user.organization:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No organization is attached to this account",
        )
    return current_user


def require_staff(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Require an admin or reviewer role."""
    if current_user.role not in (
        Role.ADMIN,
        Role.GRANTS_MANAGER,
        Role.CHIEF_OPERATIONS_OFFICER,
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff privileges required",
        )
    return current_user


# Type aliases for cleaner dependency injection
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
OptionalUserDep = Annotated[CurrentUser | None, Depends(get_current_user_optional)]
PartnerDep = Annotated[CurrentUser, Depends(require_partner)]
StaffDep = Annotated[CurrentUser, Depends(require_staff)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]
