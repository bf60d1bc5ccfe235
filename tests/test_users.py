"""
tests/test_users.py
Tests for the signed-in user's profile and dashboard.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.crud import requests as requests_crud
from shared.crud import services as services_crud
from shared.models.models import RequestStatus, User
from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_get_profile(client: AsyncClient, user: User):
    response = await client.get("/users/me", headers=auth_headers(user))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "client@example.com"
    assert data["display_name"] == "Priya Shah"
    assert data["role"] == "user"


@pytest.mark.asyncio
async def test_update_profile_partial(client: AsyncClient, db: AsyncSession, user: User):
    headers = auth_headers(user)
    response = await client.put(
        "/users/me", json={"photo_url": "https://example.com/me.png"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["photo_url"] == "https://example.com/me.png"
    assert response.json()["display_name"] == "Priya Shah"

    renamed = await client.put("/users/me", json={"display_name": "Priya S."}, headers=headers)
    assert renamed.json()["display_name"] == "Priya S."
    assert renamed.json()["photo_url"] == "https://example.com/me.png"


@pytest.mark.asyncio
async def test_profile_update_cannot_change_role(client: AsyncClient, user: User):
    response = await client.put(
        "/users/me", json={"display_name": "Priya", "role": "admin"}, headers=auth_headers(user)
    )
    assert response.status_code == 200
    assert response.json()["role"] == "user"


@pytest.mark.asyncio
async def test_dashboard_counts_and_filter(client: AsyncClient, db: AsyncSession, user: User):
    """Counts always cover every request; ?status= narrows only the list."""
    service = await services_crud.create_service(db, "Tax Filing", "Returns")
    ids = []
    for _ in range(3):
        request = await requests_crud.create_service_request(
            db, user.id, user.email, user.display_name, service.id, service.title, "hello"
        )
        ids.append(request.id)
    await requests_crud.update_request_status(db, ids[0], RequestStatus.RESOLVED)
    await requests_crud.update_request_status(db, ids[1], RequestStatus.IN_PROGRESS)

    headers = auth_headers(user)
    response = await client.get("/users/me/dashboard", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["stats"] == {
        "total_requests": 3,
        "pending_requests": 1,
        "in_progress_requests": 1,
        "resolved_requests": 1,
    }
    assert len(data["requests"]) == 3

    resolved = await client.get("/users/me/dashboard?status=resolved", headers=headers)
    assert resolved.json()["stats"]["total_requests"] == 3
    assert [r["id"] for r in resolved.json()["requests"]] == [ids[0]]


@pytest.mark.asyncio
async def test_dashboard_for_new_user_is_empty(client: AsyncClient, user: User):
    response = await client.get("/users/me/dashboard", headers=auth_headers(user))
    assert response.json() == {
        "stats": {
            "total_requests": 0,
            "pending_requests": 0,
            "in_progress_requests": 0,
            "resolved_requests": 0,
        },
        "requests": [],
    }


@pytest.mark.asyncio
async def test_dashboard_requires_sign_in(client: AsyncClient):
    response = await client.get("/users/me/dashboard")
    assert response.status_code == 401
