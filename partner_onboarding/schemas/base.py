"""Base schemas and common types for the Partner Onboarding API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class OnboardingBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
    )


# =============================================================================
# PAGINATION
# =============================================================================


class PaginationParams(BaseModel):
    """Query parameters for pagination."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(
        default=50, ge=1, le=200, description="Items per page"
    )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginatedResponse(OnboardingBaseModel):
    """Wrapper for paginated responses."""

    items: list[Any]
    total: int
    page: int
    page_size: int
    total_pages: int


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(OnboardingBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(OnboardingBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []
