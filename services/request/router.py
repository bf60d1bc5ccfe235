"""
services/request/router.py
Service requests from the signed-in user's side: submit, list, view.
Emails about the request are sent by the entity-changed handlers,
not from here.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.crud import requests as requests_crud
from shared.crud import services as services_crud
from shared.middleware.auth import require_user
from shared.models.models import RequestStatus, User
from shared.schemas.schemas import ServiceRequestCreate, ServiceRequestResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["Requests"])


def default_request_message(user_name: str, service_title: str) -> str:
    return f"User {user_name} has requested the service: {service_title}"


@router.post("", response_model=ServiceRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: ServiceRequestCreate,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Request a service. Only AVAILABLE services accept requests.
    A blank message is replaced by a generated one.
    """
    service = await services_crud.get_service(db, data.service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    if not service.is_requestable:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This service is not available for requests right now",
        )

    message = (data.message or "").strip() or default_request_message(
        current_user.display_name, service.title
    )
    request = await requests_crud.create_service_request(
        db,
        user_id=current_user.id,
        user_email=current_user.email,
        user_name=current_user.display_name,
        service_id=service.id,
        service_name=service.title,
        message=message,
    )
    logger.info(f"Request {request.id} created by {current_user.email} for {service.title}")
    return ServiceRequestResponse.model_validate(request)


@router.get("", response_model=list[ServiceRequestResponse])
async def list_my_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's requests, newest first, optionally filtered by status."""
    requests = await requests_crud.list_user_requests(db, current_user.id, status=status_filter)
    return [ServiceRequestResponse.model_validate(r) for r in requests]


@router.get("/{request_id}", response_model=ServiceRequestResponse)
async def get_my_request(
    request_id: str,
    current_user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    request = await requests_crud.get_request(db, request_id)
    # Other users' requests are reported as missing
    if not request or request.user_id != current_user.id:
        raise HTTPException(status_code=404, detail="Request not found")
    return ServiceRequestResponse.model_validate(request)
