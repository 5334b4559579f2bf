"""Partner Onboarding API Schemas.

Schemas are organized by domain:
- base: Common types, pagination, errors
- auth: Registration and login
- session: Session context and access gate
- onboarding: Partner stage progression
- review: Review queues and decisions
- audit: Transition history
"""

from .base import (
    ErrorDetail,
    ErrorResponse,
    OnboardingBaseModel,
    PaginatedResponse,
    PaginationParams,
)
from .auth import (
    LoginRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResendVerificationResponse,
    TokenResponse,
)
from .review import (
    DecisionRequest,
    DecisionResponse,
    QueueItemResponse,
    QueueResponse,
    QueueSummaryResponse,
    SectorCountResponse,
)
from .session import (
    AccessRequest,
    AccessResponse,
    SessionOrganization,
    SessionResponse,
    SessionUser,
)
from .onboarding import ProgressResponse, ReviewStatusResponse, VerifyEmailRequest
from .audit import AuditEntryResponse, AuditHistoryResponse

__all__ = [
    # Base
    "OnboardingBaseModel",
    "PaginationParams",
    "PaginatedResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Auth
    "RegisterRequest",
    "LoginRequest",
    "TokenResponse",
    "ResendVerificationRequest",
    "ResendVerificationResponse",
    # Session
    "SessionUser",
    "SessionOrganization",
    "SessionResponse",
    "AccessRequest",
    "AccessResponse",
    # Onboarding
    "VerifyEmailRequest",
    "ProgressResponse",
    "ReviewStatusResponse",
    # Review
    "QueueItemResponse",
    "QueueSummaryResponse",
    "SectorCountResponse",
    "QueueResponse",
    "DecisionRequest",
    "DecisionResponse",
    # Audit
    "AuditEntryResponse",
    "AuditHistoryResponse",
]
