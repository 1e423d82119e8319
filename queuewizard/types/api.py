"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator

from queuewizard.constants import DEFAULT_PRIORITY, HttpMethod, JobStatus


class CreateJobRequest(BaseModel):
    """Request body for creating a new job."""

    method: HttpMethod = Field(..., description="HTTP method of the outbound request")
    url: HttpUrl = Field(..., description="Target URL")
    priority: int = Field(default=DEFAULT_PRIORITY, description="Lower values run first")
    headers: dict[str, str] = Field(default_factory=dict, description="Request headers")
    body: Any | None = Field(default=None, description="JSON request body")


class JobResponse(BaseModel):
    """Full job details response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: str
    priority: int
    method: HttpMethod
    url: str
    headers: str
    body: str | None
    status: JobStatus
    attempts: int
    result: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    jobs: list[JobResponse]
    total: int
    page: int
    page_size: int
    has_next: bool


class QueueStatusResponse(BaseModel):
    """Queue counts and engine utilization."""

    pending_count: int
    processing_count: int
    completed_today: int
    failed_count: int
    in_flight: int
    max_concurrent: int


class SignupRequest(BaseModel):
    """Request body for creating an account."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, description="At least 6 characters")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return value


class SigninRequest(BaseModel):
    """Request body for signing in."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    created_at: datetime


class TokenResponse(BaseModel):
    """JWT token response, returned by sign-in."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error body returned with 4xx responses."""

    detail: str
