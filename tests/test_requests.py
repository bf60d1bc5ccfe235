"""
tests/test_requests.py
Tests for submitting and tracking service requests.
"""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.crud import requests as requests_crud
from shared.crud import services as services_crud
from shared.models.models import RequestStatus, ServiceStatus, User
from tests.conftest import auth_headers, create_signed_in_user


def _parse(ts: str) -> datetime:
    value = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_request_tax_filing(client: AsyncClient, db: AsyncSession, user: User, outbox: list):
    """A request references the service and sends the admin alert plus the user confirmation."""
    service = await services_crud.create_service(db, "Tax Filing", "Income tax returns")

    response = await client.post(
        "/requests",
        json={"service_id": service.id, "message": "Please review my FY24 filing"},
        headers=auth_headers(user),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["service_id"] == service.id
    assert data["service_name"] == "Tax Filing"
    assert data["message"] == "Please review my FY24 filing"
    assert data["user_id"] == user.id
    assert data["user_email"] == user.email
    assert data["status"] == "pending"
    assert data["seen_by_admin"] is False
    assert data["resolved_at"] is None
    assert _parse(data["requested_at"]) <= datetime.now(timezone.utc)

    assert [m.to for m in outbox] == ["admin@example.com", user.email]
    assert outbox[0].subject == "New Service Request: Tax Filing"
    assert data["id"] in outbox[0].html
    assert outbox[1].subject == "We received your request: Tax Filing"


@pytest.mark.asyncio
async def test_blank_message_gets_default(client: AsyncClient, db: AsyncSession, user: User):
    service = await services_crud.create_service(db, "Tax Filing", "Income tax returns")
    response = await client.post(
        "/requests", json={"service_id": service.id, "message": "   "}, headers=auth_headers(user)
    )
    assert response.status_code == 201
    assert response.json()["message"] == "User Priya Shah has requested the service: Tax Filing"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [ServiceStatus.NOT_AVAILABLE, ServiceStatus.STARTING_SOON])
async def test_cannot_request_unavailable_service(
    client: AsyncClient, db: AsyncSession, user: User, outbox: list, status: ServiceStatus
):
    service = await services_crud.create_service(db, "Audit", "Statutory audit", status)
    response = await client.post(
        "/requests", json={"service_id": service.id}, headers=auth_headers(user)
    )
    assert response.status_code == 409
    assert await requests_crud.list_all_requests(db) == []
    assert outbox == []


@pytest.mark.asyncio
async def test_cannot_request_unknown_service(client: AsyncClient, user: User):
    response = await client.post(
        "/requests", json={"service_id": "missing"}, headers=auth_headers(user)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_anonymous_cannot_request(client: AsyncClient, db: AsyncSession):
    service = await services_crud.create_service(db, "Tax Filing", "Income tax returns")
    response = await client.post("/requests", json={"service_id": service.id})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_status_filter_partitions_requests(client: AsyncClient, db: AsyncSession, user: User):
    """Each status filter returns exactly its subset; together they cover the full list."""
    service = await services_crud.create_service(db, "Tax Filing", "Income tax returns")
    created = []
    for _ in range(5):
        created.append(await requests_crud.create_service_request(
            db, user.id, user.email, user.display_name, service.id, service.title, "hello"
        ))
    await requests_crud.update_request_status(db, created[0].id, RequestStatus.IN_PROGRESS)
    await requests_crud.update_request_status(db, created[1].id, RequestStatus.RESOLVED)
    await requests_crud.update_request_status(db, created[2].id, RequestStatus.IN_PROGRESS)

    headers = auth_headers(user)
    everything = (await client.get("/requests", headers=headers)).json()
    assert len(everything) == 5

    union = set()
    for status in ("pending", "in_progress", "resolved"):
        subset = (await client.get(f"/requests?status={status}", headers=headers)).json()
        assert all(r["status"] == status for r in subset)
        assert len(subset) == sum(1 for r in everything if r["status"] == status)
        union |= {r["id"] for r in subset}

    assert union == {r["id"] for r in everything}


@pytest.mark.asyncio
async def test_unknown_status_filter_rejected(client: AsyncClient, user: User):
    response = await client.get("/requests?status=closed", headers=auth_headers(user))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_requests_newest_first(client: AsyncClient, db: AsyncSession, user: User):
    service = await services_crud.create_service(db, "Tax Filing", "Income tax returns")
    first = await requests_crud.create_service_request(
        db, user.id, user.email, user.display_name, service.id, service.title, "first"
    )
    second = await requests_crud.create_service_request(
        db, user.id, user.email, user.display_name, service.id, service.title, "second"
    )
    response = await client.get("/requests", headers=auth_headers(user))
    assert [r["id"] for r in response.json()] == [second.id, first.id]


@pytest.mark.asyncio
async def test_users_only_see_their_own_requests(
    client: AsyncClient, db: AsyncSession, redis, user: User
):
    other = await create_signed_in_user(db, redis, "other@example.com", "Other Client")
    service = await services_crud.create_service(db, "Tax Filing", "Income tax returns")
    mine = await requests_crud.create_service_request(
        db, user.id, user.email, user.display_name, service.id, service.title, "mine"
    )

    listing = await client.get("/requests", headers=auth_headers(other))
    assert listing.json() == []

    detail = await client.get(f"/requests/{mine.id}", headers=auth_headers(other))
    assert detail.status_code == 404

    own = await client.get(f"/requests/{mine.id}", headers=auth_headers(user))
    assert own.status_code == 200
    assert own.json()["message"] == "mine"
