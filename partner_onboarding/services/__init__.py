"""Business logic services for Partner Onboarding."""

from .workflow import (
    DEFAULT_TRANSITIONS,
    REVIEW_TIERS,
    UNDER_REVIEW,
    DecisionOutcome,
    ForbiddenError,
    InvalidStateError,
    NotificationDeliveryError,
    OrganizationNotFoundError,
    PersistenceUnavailableError,
    ReviewTier,
    UnreachableError,
    WorkflowError,
    WorkflowEvent,
    build_transition_table,
    get_review_tier,
    normalize_status,
    transition,
)
from .access_gate import (
    ROUTE_CATALOG,
    AccessDecision,
    Destination,
    SessionContext,
    evaluate_access,
    get_destination,
    redirect_path_for_status,
    role_landing,
)
from .audit import AuditService
from .notification_service import (
    LoggingChannel,
    NotificationChannel,
    NotificationService,
    WebhookChannel,
    build_channel,
)
from .organizations import OrganizationStore, TransitionResult
from .review_queue import (
    QueueItem,
    QueueSummary,
    ReviewQueue,
    ReviewQueueSnapshot,
    UnknownQueueError,
)
from .decision_processor import DecisionProcessor, DecisionResult
from .onboarding import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
    OnboardingService,
    ProgressResult,
    RegistrationInput,
    RegistrationResult,
    ReviewStatus,
    VerificationResent,
)

__all__ = [
    # Workflow
    "WorkflowError",
    "OrganizationNotFoundError",
    "InvalidStateError",
    "ForbiddenError",
    "UnreachableError",
    "PersistenceUnavailableError",
    "NotificationDeliveryError",
    "WorkflowEvent",
    "DecisionOutcome",
    "ReviewTier",
    "REVIEW_TIERS",
    "UNDER_REVIEW",
    "DEFAULT_TRANSITIONS",
    "build_transition_table",
    "get_review_tier",
    "normalize_status",
    "transition",
    # Access gate
    "AccessDecision",
    "Destination",
    "SessionContext",
    "ROUTE_CATALOG",
    "evaluate_access",
    "get_destination",
    "redirect_path_for_status",
    "role_landing",
    # Persistence
    "AuditService",
    "OrganizationStore",
    "TransitionResult",
    # Notifications
    "NotificationChannel",
    "LoggingChannel",
    "WebhookChannel",
    "NotificationService",
    "build_channel",
    # Review
    "ReviewQueue",
    "ReviewQueueSnapshot",
    "QueueItem",
    "QueueSummary",
    "UnknownQueueError",
    "DecisionProcessor",
    "DecisionResult",
    # Onboarding
    "OnboardingService",
    "RegistrationInput",
    "RegistrationResult",
    "ProgressResult",
    "ReviewStatus",
    "VerificationResent",
    "EmailAlreadyRegisteredError",
    "InvalidCredentialsError",
    "InvalidVerificationTokenError",
]
