"""
services/admin/router.py
Admin-only endpoints: dashboard overview, service catalog, request triage,
FAQs, testimonials and users.

Requests are marked seen when an admin opens them; the seen flip and every
status change notify the requester through the entity-changed handlers.
"""

import asyncio
import logging
from collections import Counter
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.database import get_db, get_session_factory
from shared.crud import faqs as faqs_crud
from shared.crud import requests as requests_crud
from shared.crud import services as services_crud
from shared.crud import testimonials as testimonials_crud
from shared.crud import users as users_crud
from shared.middleware.auth import require_admin
from shared.models.models import RequestStatus, ServiceStatus, User
from shared.schemas.schemas import (
    AdminOverviewResponse,
    FAQCreate,
    FAQResponse,
    FAQUpdate,
    MessageResponse,
    ServiceCreate,
    ServiceRequestResponse,
    ServiceRequestStatusUpdate,
    ServiceResponse,
    ServiceUpdate,
    TestimonialCreate,
    TestimonialResponse,
    TestimonialUpdate,
    UserResponse,
    UserStatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Overview ──────────────────────────────────────────────────

async def _load_requests(factory: async_sessionmaker):
    async with factory() as db:
        return await requests_crud.list_all_requests(db)


async def _load_services(factory: async_sessionmaker):
    async with factory() as db:
        return await services_crud.list_services(db)


async def _count_requests(factory: async_sessionmaker):
    async with factory() as db:
        return await requests_crud.count_requests_by_status(db)


@router.get("/overview", response_model=AdminOverviewResponse)
async def overview(
    current_user: User = Depends(require_admin),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Dashboard counters. Status counts, requests and services are read
    concurrently, each in its own session.
    """
    by_status, requests, services = await asyncio.gather(
        _count_requests(session_factory),
        _load_requests(session_factory),
        _load_services(session_factory),
    )
    return AdminOverviewResponse(
        total_requests=len(requests),
        pending=by_status[RequestStatus.PENDING],
        in_progress=by_status[RequestStatus.IN_PROGRESS],
        resolved=by_status[RequestStatus.RESOLVED],
        unseen=sum(1 for r in requests if not r.seen_by_admin),
        requests_by_service=dict(Counter(r.service_name for r in requests)),
        total_services=len(services),
        available_services=sum(1 for s in services if s.is_requestable),
    )


# ── Services ──────────────────────────────────────────────────

@router.get("/services", response_model=list[ServiceResponse])
async def list_services(
    status_filter: Optional[ServiceStatus] = Query(None, alias="status"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    services = await services_crud.list_services(db, status=status_filter)
    return [ServiceResponse.model_validate(s) for s in services]


@router.post("/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    service = await services_crud.create_service(db, **data.model_dump())
    logger.info(f"Service {service.id} created by {current_user.email}")
    return ServiceResponse.model_validate(service)


@router.put("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Partial update: fields left out of the body keep their values."""
    service = await services_crud.update_service(db, service_id, **data.model_dump(exclude_unset=True))
    return ServiceResponse.model_validate(service)


@router.delete("/services/{service_id}", response_model=MessageResponse)
async def delete_service(
    service_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Existing requests keep their copy of the service name."""
    await services_crud.delete_service(db, service_id)
    logger.info(f"Service {service_id} deleted by {current_user.email}")
    return MessageResponse(message="Service deleted")


# ── Requests ──────────────────────────────────────────────────

@router.get("/requests", response_model=list[ServiceRequestResponse])
async def list_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    requests = await requests_crud.list_all_requests(db, status=status_filter)
    return [ServiceRequestResponse.model_validate(r) for r in requests]


@router.get("/requests/{request_id}", response_model=ServiceRequestResponse)
async def open_request(
    request_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Opening a request marks it seen."""
    request = await requests_crud.mark_request_seen(db, request_id)
    return ServiceRequestResponse.model_validate(request)


@router.post("/requests/{request_id}/seen", response_model=ServiceRequestResponse)
async def mark_seen(
    request_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    request = await requests_crud.mark_request_seen(db, request_id)
    return ServiceRequestResponse.model_validate(request)


@router.patch("/requests/{request_id}", response_model=ServiceRequestResponse)
async def update_request(
    request_id: str,
    data: ServiceRequestStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a request to any status. Notes and estimate are stored only
    when non-empty; resolved_at is stamped on every move to resolved.
    """
    request = await requests_crud.update_request_status(
        db,
        request_id,
        status=data.status,
        admin_notes=(data.admin_notes or "").strip() or None,
        estimated_time=(data.estimated_time or "").strip() or None,
    )
    logger.info(f"Request {request_id} set to {data.status} by {current_user.email}")
    return ServiceRequestResponse.model_validate(request)


# ── FAQs ──────────────────────────────────────────────────────

@router.get("/faqs", response_model=list[FAQResponse])
async def list_faqs(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return [FAQResponse.model_validate(f) for f in await faqs_crud.list_faqs(db)]


@router.post("/faqs", response_model=FAQResponse, status_code=status.HTTP_201_CREATED)
async def create_faq(
    data: FAQCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    faq = await faqs_crud.create_faq(db, **data.model_dump())
    return FAQResponse.model_validate(faq)


@router.put("/faqs/{faq_id}", response_model=FAQResponse)
async def update_faq(
    faq_id: str,
    data: FAQUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    faq = await faqs_crud.update_faq(db, faq_id, **data.model_dump(exclude_unset=True))
    return FAQResponse.model_validate(faq)


@router.delete("/faqs/{faq_id}", response_model=MessageResponse)
async def delete_faq(
    faq_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await faqs_crud.delete_faq(db, faq_id)
    return MessageResponse(message="FAQ deleted")


# ── Testimonials ──────────────────────────────────────────────

@router.get("/testimonials", response_model=list[TestimonialResponse])
async def list_testimonials(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All testimonials, hidden ones included."""
    testimonials = await testimonials_crud.list_testimonials(db)
    return [TestimonialResponse.model_validate(t) for t in testimonials]


@router.post("/testimonials", response_model=TestimonialResponse, status_code=status.HTTP_201_CREATED)
async def create_testimonial(
    data: TestimonialCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    testimonial = await testimonials_crud.create_testimonial(db, **data.model_dump())
    return TestimonialResponse.model_validate(testimonial)


@router.put("/testimonials/{testimonial_id}", response_model=TestimonialResponse)
async def update_testimonial(
    testimonial_id: str,
    data: TestimonialUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    testimonial = await testimonials_crud.update_testimonial(
        db, testimonial_id, **data.model_dump(exclude_unset=True)
    )
    return TestimonialResponse.model_validate(testimonial)


@router.delete("/testimonials/{testimonial_id}", response_model=MessageResponse)
async def delete_testimonial(
    testimonial_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await testimonials_crud.delete_testimonial(db, testimonial_id)
    return MessageResponse(message="Testimonial deleted")


# ── Users ─────────────────────────────────────────────────────

@router.get("/users", response_model=list[UserResponse])
async def list_users(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return [UserResponse.model_validate(u) for u in await users_crud.list_users(db)]


@router.get("/users/{user_id}/stats", response_model=UserStatsResponse)
async def user_stats(
    user_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await users_crud.get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return UserStatsResponse(**await users_crud.get_user_stats(db, user_id))
