"""
services/site/router.py
Public pages: home, service catalog, FAQ and testimonials.
Signed-in visitors see which services they can request.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from shared.crud import faqs as faqs_crud
from shared.crud import services as services_crud
from shared.crud import testimonials as testimonials_crud
from shared.middleware.auth import get_optional_user
from shared.models.models import Service, ServiceStatus, User
from shared.schemas.schemas import (
    CatalogServiceResponse,
    FAQResponse,
    HomeResponse,
    TestimonialResponse,
)

router = APIRouter(tags=["Site"])

HOME_SERVICE_PREVIEW = 6
HOME_FAQ_PREVIEW = 4


def _catalog_item(service: Service, user: Optional[User]) -> CatalogServiceResponse:
    item = CatalogServiceResponse.model_validate(service)
    item.can_request = user is not None and service.is_requestable
    return item


@router.get("/home", response_model=HomeResponse)
async def home(
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Landing page: available services, visible testimonials and the first few FAQs."""
    services = await services_crud.list_services(db, status=ServiceStatus.AVAILABLE)
    testimonials = await testimonials_crud.list_visible_testimonials(db)
    faqs = await faqs_crud.list_faqs(db)
    return HomeResponse(
        name=settings.APP_NAME,
        services=[_catalog_item(s, user) for s in services[:HOME_SERVICE_PREVIEW]],
        testimonials=[TestimonialResponse.model_validate(t) for t in testimonials],
        faqs=[FAQResponse.model_validate(f) for f in faqs[:HOME_FAQ_PREVIEW]],
    )


@router.get("/services", response_model=list[CatalogServiceResponse])
async def list_catalog(
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    services = await services_crud.list_services(db)
    return [_catalog_item(s, user) for s in services]


@router.get("/services/{service_id}", response_model=CatalogServiceResponse)
async def get_catalog_service(
    service_id: str,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    service = await services_crud.get_service(db, service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return _catalog_item(service, user)


@router.get("/faqs", response_model=list[FAQResponse])
async def list_faqs(db: AsyncSession = Depends(get_db)):
    return [FAQResponse.model_validate(f) for f in await faqs_crud.list_faqs(db)]


@router.get("/testimonials", response_model=list[TestimonialResponse])
async def list_testimonials(db: AsyncSession = Depends(get_db)):
    """Visible testimonials only."""
    testimonials = await testimonials_crud.list_visible_testimonials(db)
    return [TestimonialResponse.model_validate(t) for t in testimonials]
