"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the portal.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from shared.models.models import RequestStatus, ServiceStatus, UserRole


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class PartialUpdate(BaseSchema):
    """Update body: fields may be left out, but never set to null."""

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data):
        if isinstance(data, dict):
            nulls = sorted(k for k, v in data.items() if v is None)
            if nulls:
                raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return data


def _require_text(v: str) -> str:
    if not v.strip():
        raise ValueError("Please fill in both question and answer")
    return v.strip()


# ── User ──────────────────────────────────────────────────────

class UserResponse(BaseSchema):
    id: str
    email: str
    display_name: str
    photo_url: str = ""
    role: UserRole
    created_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None


class UserUpdateRequest(BaseSchema):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    photo_url: Optional[str] = Field(None, max_length=2000)


class UserStatsResponse(BaseSchema):
    total_requests: int
    pending_requests: int
    in_progress_requests: int
    resolved_requests: int


# ── Auth ──────────────────────────────────────────────────────

class SignUpRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    display_name: str = Field(..., min_length=1, max_length=255)


class SignInRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    remember_me: bool = True


class ForgotPasswordRequest(BaseSchema):
    # Validated by hand so invalid addresses map to a friendly message
    email: str = Field(..., max_length=255)


class ResetPasswordRequest(BaseSchema):
    token: str
    new_password: str = Field(..., min_length=1, max_length=128)


class AuthResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # inactivity window in seconds
    user: UserResponse


class SessionStatusResponse(BaseSchema):
    expires_in: int
    warning: bool
    timeout_seconds: int
    warning_seconds: int


# ── Service ───────────────────────────────────────────────────

class ServiceCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    status: ServiceStatus = ServiceStatus.AVAILABLE
    order: int = 0


class ServiceUpdate(PartialUpdate):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[ServiceStatus] = None
    order: Optional[int] = None


class ServiceResponse(BaseSchema):
    id: str
    title: str
    description: str
    status: ServiceStatus
    order: int
    created_at: datetime
    updated_at: datetime


class CatalogServiceResponse(ServiceResponse):
    can_request: bool = False


# ── Service Request ───────────────────────────────────────────

class ServiceRequestCreate(BaseSchema):
    service_id: str
    message: Optional[str] = Field(None, max_length=2000)


class ServiceRequestStatusUpdate(BaseSchema):
    status: RequestStatus
    admin_notes: Optional[str] = Field(None, max_length=5000)
    estimated_time: Optional[str] = Field(None, max_length=100)


class ServiceRequestResponse(BaseSchema):
    id: str
    user_id: str
    user_email: str
    user_name: str
    service_id: str
    service_name: str
    message: str
    status: RequestStatus
    requested_at: datetime
    resolved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    estimated_time: Optional[str] = None
    seen_by_admin: bool


class DashboardResponse(BaseSchema):
    stats: UserStatsResponse
    requests: List[ServiceRequestResponse]


# ── FAQ ───────────────────────────────────────────────────────

class FAQCreate(BaseSchema):
    question: str = Field(..., min_length=1, max_length=2000)
    answer: str = Field(..., min_length=1, max_length=10000)
    order: int = 0

    @field_validator("question", "answer")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _require_text(v)


class FAQUpdate(PartialUpdate):
    question: Optional[str] = Field(None, min_length=1, max_length=2000)
    answer: Optional[str] = Field(None, min_length=1, max_length=10000)
    order: Optional[int] = None

    @field_validator("question", "answer")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v) if v is not None else v


class FAQResponse(BaseSchema):
    id: str
    question: str
    answer: str
    order: int
    created_at: datetime
    updated_at: datetime


# ── Testimonial ───────────────────────────────────────────────

class TestimonialCreate(BaseSchema):
    client_name: str = Field(..., min_length=1, max_length=255)
    client_role: str = Field("", max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    rating: int = Field(..., ge=1, le=5)


class TestimonialUpdate(PartialUpdate):
    client_name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_role: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = Field(None, min_length=1, max_length=5000)
    rating: Optional[int] = Field(None, ge=1, le=5)
    order: Optional[int] = None
    is_visible: Optional[bool] = None


class TestimonialResponse(BaseSchema):
    id: str
    client_name: str
    client_role: str
    message: str
    rating: int
    order: int
    is_visible: bool


# ── Pages ─────────────────────────────────────────────────────

class HomeResponse(BaseSchema):
    name: str
    services: List[CatalogServiceResponse]
    testimonials: List[TestimonialResponse]
    faqs: List[FAQResponse]


class AdminOverviewResponse(BaseSchema):
    total_requests: int
    pending: int
    in_progress: int
    resolved: int
    unseen: int
    requests_by_service: Dict[str, int]
    total_services: int
    available_services: int


# ── Notifications ─────────────────────────────────────────────

class NotificationRequest(BaseModel):
    """Body of the legacy notification endpoint (camelCase on the wire)."""
    type: str
    service: str = ""
    userName: str = ""
    userEmail: str = ""
    requestId: str = ""


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class SignOutResponse(MessageResponse):
    redirect: str = "/"
