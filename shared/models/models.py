"""
shared/models/models.py
All SQLAlchemy ORM models for the practice portal.
Each table mirrors one document collection: identities, users, services,
service_requests, faqs, testimonials. UUID string primary keys throughout.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from config.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _values(enum_cls):
    return [member.value for member in enum_cls]


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always reads back in UTC.
    SQLite drops the offset on storage, so naive values are taken as UTC.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ── Enumerations ──────────────────────────────────────────────

class UserRole(str, PyEnum):
    USER = "user"
    ADMIN = "admin"


class IdentityProvider(str, PyEnum):
    PASSWORD = "password"
    GOOGLE = "google"


class ServiceStatus(str, PyEnum):
    AVAILABLE = "available"
    STARTING_SOON = "starting_soon"
    NOT_AVAILABLE = "not_available"


class RequestStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


# ── Models ────────────────────────────────────────────────────

class Identity(Base):
    """
    Sign-in record owned by the identity layer (password or Google).
    The matching User profile shares its id.
    """
    __tablename__ = "identities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provider: Mapped[IdentityProvider] = mapped_column(
        Enum(IdentityProvider, values_callable=_values), nullable=False
    )
    provider_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="User")
    photo_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("provider", "provider_subject", name="uq_identity_provider_subject"),
    )

    def __repr__(self) -> str:
        return f"<Identity {self.email} ({self.provider})>"


class User(Base):
    """Profile record: one per authenticated identity, never deleted by the app."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="User")
    photo_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=_values), nullable=False, default=UserRole.USER
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    last_active_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_users_email", "email"),
        Index("ix_users_role", "role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class Service(TimestampMixin, Base):
    """Catalog entry offered by the practice. Admin-managed."""
    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[ServiceStatus] = mapped_column(
        Enum(ServiceStatus, values_callable=_values),
        nullable=False,
        default=ServiceStatus.AVAILABLE,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_services_order", "order"),)

    @property
    def is_requestable(self) -> bool:
        return self.status == ServiceStatus.AVAILABLE


class ServiceRequest(Base):
    """
    A user's request for a service.
    service_name is denormalized and may outlive the Service it names,
    so service_id deliberately carries no foreign key.
    """
    __tablename__ = "service_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    service_id: Mapped[str] = mapped_column(String(36), nullable=False)
    service_name: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, values_callable=_values),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    requested_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_time: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    seen_by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_service_requests_user_id", "user_id"),
        Index("ix_service_requests_status", "status"),
        Index("ix_service_requests_requested_at", "requested_at"),
    )


class FAQ(TimestampMixin, Base):
    """Admin-managed question/answer pair, independent of services."""
    __tablename__ = "faqs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Testimonial(TimestampMixin, Base):
    """Client quote shown on the home page when visible."""
    __tablename__ = "testimonials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_role: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    message: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_testimonial_rating_range"),
    )
