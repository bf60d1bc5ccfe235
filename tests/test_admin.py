"""
tests/test_admin.py
Tests for admin endpoints: role gating, request triage and the notification
side effects, overview counters, catalog/FAQ/testimonial management, users.
"""

from datetime import datetime

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.crud import requests as requests_crud
from shared.crud import services as services_crud
from shared.models.models import RequestStatus, ServiceStatus, User
from tests.conftest import auth_headers


async def _request(db: AsyncSession, user: User, service_title: str = "Tax Filing"):
    service = await services_crud.create_service(db, service_title, "Returns")
    return await requests_crud.create_service_request(
        db, user.id, user.email, user.display_name, service.id, service.title, "Please review my FY24 filing"
    )


# ── Access ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_endpoints_reject_regular_users(client: AsyncClient, user: User):
    for path in ("/admin/overview", "/admin/requests", "/admin/services", "/admin/users"):
        response = await client.get(path, headers=auth_headers(user))
        assert response.status_code == 403, path


@pytest.mark.asyncio
async def test_admin_endpoints_require_sign_in(client: AsyncClient):
    response = await client.get("/admin/requests")
    assert response.status_code == 401


# ── Request triage ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_move_to_in_progress_sends_one_status_email(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User, outbox: list
):
    request = await _request(db, user)
    outbox.clear()

    response = await client.patch(
        f"/admin/requests/{request.id}",
        json={"status": "in_progress", "estimated_time": "3 days"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "in_progress"
    assert data["estimated_time"] == "3 days"
    assert data["resolved_at"] is None

    assert len(outbox) == 1
    assert outbox[0].to == user.email
    assert outbox[0].subject == "Status Update: Tax Filing"
    assert "In Progress" in outbox[0].html
    assert "3 days" in outbox[0].html


@pytest.mark.asyncio
async def test_resolve_stamps_resolved_at_and_keeps_it(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User
):
    request = await _request(db, user)
    headers = auth_headers(admin_user)

    resolved = await client.patch(
        f"/admin/requests/{request.id}", json={"status": "resolved"}, headers=headers
    )
    assert resolved.json()["resolved_at"] is not None

    reopened = await client.patch(
        f"/admin/requests/{request.id}", json={"status": "pending"}, headers=headers
    )
    assert reopened.json()["status"] == "pending"
    assert reopened.json()["resolved_at"] == resolved.json()["resolved_at"]


@pytest.mark.asyncio
async def test_empty_notes_do_not_overwrite(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User
):
    request = await _request(db, user)
    headers = auth_headers(admin_user)

    await client.patch(
        f"/admin/requests/{request.id}",
        json={"status": "in_progress", "admin_notes": "Waiting for Form 16"},
        headers=headers,
    )
    response = await client.patch(
        f"/admin/requests/{request.id}",
        json={"status": "in_progress", "admin_notes": "   ", "estimated_time": ""},
        headers=headers,
    )
    assert response.json()["admin_notes"] == "Waiting for Form 16"
    assert response.json()["estimated_time"] is None


@pytest.mark.asyncio
async def test_notes_only_edit_sends_nothing(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User, outbox: list
):
    request = await _request(db, user)
    outbox.clear()

    response = await client.patch(
        f"/admin/requests/{request.id}",
        json={"status": "pending", "admin_notes": "Called the client"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert outbox == []


@pytest.mark.asyncio
async def test_opening_request_marks_it_seen_once(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User, outbox: list
):
    """The first open sends the 'reviewed' email; re-opening does not."""
    request = await _request(db, user)
    outbox.clear()
    headers = auth_headers(admin_user)

    first = await client.get(f"/admin/requests/{request.id}", headers=headers)
    assert first.status_code == 200
    assert first.json()["seen_by_admin"] is True
    assert [m.subject for m in outbox] == ["Update on your request: Tax Filing"]

    await client.get(f"/admin/requests/{request.id}", headers=headers)
    await client.post(f"/admin/requests/{request.id}/seen", headers=headers)
    assert len(outbox) == 1


@pytest.mark.asyncio
async def test_unknown_request_is_404(client: AsyncClient, admin_user: User):
    headers = auth_headers(admin_user)
    assert (await client.get("/admin/requests/nope", headers=headers)).status_code == 404
    patch = await client.patch("/admin/requests/nope", json={"status": "resolved"}, headers=headers)
    assert patch.status_code == 404


@pytest.mark.asyncio
async def test_admin_lists_all_requests_by_status(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User
):
    first = await _request(db, user, "Tax Filing")
    await _request(db, user, "GST Returns")
    await requests_crud.update_request_status(db, first.id, RequestStatus.RESOLVED)

    headers = auth_headers(admin_user)
    everything = await client.get("/admin/requests", headers=headers)
    assert len(everything.json()) == 2

    resolved = await client.get("/admin/requests?status=resolved", headers=headers)
    assert [r["id"] for r in resolved.json()] == [first.id]


@pytest.mark.asyncio
async def test_overview_counts(client: AsyncClient, db: AsyncSession, user: User, admin_user: User):
    first = await _request(db, user, "Tax Filing")
    await _request(db, user, "GST Returns")
    await services_crud.create_service(db, "Audit", "Statutory audit", ServiceStatus.NOT_AVAILABLE)
    await requests_crud.update_request_status(db, first.id, RequestStatus.IN_PROGRESS)
    await requests_crud.mark_request_seen(db, first.id)

    response = await client.get("/admin/overview", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json() == {
        "total_requests": 2,
        "pending": 1,
        "in_progress": 1,
        "resolved": 0,
        "unseen": 1,
        "requests_by_service": {"Tax Filing": 1, "GST Returns": 1},
        "total_services": 3,
        "available_services": 2,
    }


# ── Catalog ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_service_crud(client: AsyncClient, admin_user: User):
    headers = auth_headers(admin_user)

    created = await client.post(
        "/admin/services",
        json={"title": "Company Incorporation", "description": "Private limited setup", "order": 4},
        headers=headers,
    )
    assert created.status_code == 201
    service_id = created.json()["id"]
    assert created.json()["status"] == "available"

    updated = await client.put(
        f"/admin/services/{service_id}", json={"status": "starting_soon"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "starting_soon"
    assert updated.json()["title"] == "Company Incorporation"
    assert updated.json()["order"] == 4

    starting = await client.get("/admin/services?status=starting_soon", headers=headers)
    assert [s["id"] for s in starting.json()] == [service_id]

    deleted = await client.delete(f"/admin/services/{service_id}", headers=headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/services/{service_id}")).status_code == 404


@pytest.mark.asyncio
async def test_service_timestamps_carry_utc_offset(client: AsyncClient, admin_user: User):
    headers = auth_headers(admin_user)
    created = await client.post(
        "/admin/services", json={"title": "Payroll", "description": "Monthly payroll"}, headers=headers
    )
    updated = await client.put(
        f"/admin/services/{created.json()['id']}", json={"order": 2}, headers=headers
    )

    for stamp in (updated.json()["created_at"], updated.json()["updated_at"]):
        parsed = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
        assert parsed.utcoffset() is not None and parsed.utcoffset().total_seconds() == 0


@pytest.mark.asyncio
async def test_null_fields_rejected_on_update(client: AsyncClient, admin_user: User):
    headers = auth_headers(admin_user)
    created = await client.post(
        "/admin/services", json={"title": "Payroll", "description": "Monthly payroll"}, headers=headers
    )
    service_id = created.json()["id"]

    response = await client.put(f"/admin/services/{service_id}", json={"title": None}, headers=headers)
    assert response.status_code == 422

    testimonial = await client.post(
        "/admin/testimonials", json={"client_name": "Rahul", "message": "Great", "rating": 5}, headers=headers
    )
    response = await client.put(
        f"/admin/testimonials/{testimonial.json()['id']}", json={"is_visible": None}, headers=headers
    )
    assert response.status_code == 422

    current = await client.get(f"/services/{service_id}")
    assert current.json()["title"] == "Payroll"


@pytest.mark.asyncio
async def test_deleting_service_keeps_requests(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User
):
    request = await _request(db, user)
    await client.delete(f"/admin/services/{request.service_id}", headers=auth_headers(admin_user))

    response = await client.get(f"/requests/{request.id}", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["service_name"] == "Tax Filing"


@pytest.mark.asyncio
async def test_update_unknown_service_is_404(client: AsyncClient, admin_user: User):
    response = await client.put(
        "/admin/services/missing", json={"title": "X"}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 404


# ── FAQs and testimonials ─────────────────────────────────────

@pytest.mark.asyncio
async def test_faq_crud(client: AsyncClient, admin_user: User):
    headers = auth_headers(admin_user)

    created = await client.post(
        "/admin/faqs",
        json={"question": "Do you file GST?", "answer": "Yes, monthly and quarterly.", "order": 1},
        headers=headers,
    )
    assert created.status_code == 201
    faq_id = created.json()["id"]

    updated = await client.put(f"/admin/faqs/{faq_id}", json={"answer": "Yes."}, headers=headers)
    assert updated.json()["question"] == "Do you file GST?"
    assert updated.json()["answer"] == "Yes."

    public = await client.get("/faqs")
    assert [f["id"] for f in public.json()] == [faq_id]

    await client.delete(f"/admin/faqs/{faq_id}", headers=headers)
    assert (await client.get("/faqs")).json() == []


@pytest.mark.asyncio
async def test_blank_faq_rejected(client: AsyncClient, admin_user: User):
    response = await client.post(
        "/admin/faqs", json={"question": "  ", "answer": "Something"}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_blank_faq_edit_rejected(client: AsyncClient, admin_user: User):
    headers = auth_headers(admin_user)
    created = await client.post(
        "/admin/faqs", json={"question": "Do you file GST?", "answer": "Yes."}, headers=headers
    )
    faq_id = created.json()["id"]

    response = await client.put(f"/admin/faqs/{faq_id}", json={"question": "   "}, headers=headers)
    assert response.status_code == 422

    public = await client.get("/faqs")
    assert public.json()[0]["question"] == "Do you file GST?"


@pytest.mark.asyncio
async def test_testimonial_crud_and_visibility(client: AsyncClient, admin_user: User):
    headers = auth_headers(admin_user)

    created = await client.post(
        "/admin/testimonials",
        json={"client_name": "Rahul", "client_role": "Founder", "message": "Smooth filing", "rating": 5},
        headers=headers,
    )
    assert created.status_code == 201
    testimonial_id = created.json()["id"]
    assert created.json()["is_visible"] is True

    await client.put(
        f"/admin/testimonials/{testimonial_id}", json={"is_visible": False}, headers=headers
    )
    assert (await client.get("/testimonials")).json() == []

    listing = await client.get("/admin/testimonials", headers=headers)
    assert [t["id"] for t in listing.json()] == [testimonial_id]

    await client.delete(f"/admin/testimonials/{testimonial_id}", headers=headers)
    assert (await client.get("/admin/testimonials", headers=headers)).json() == []


@pytest.mark.asyncio
async def test_testimonial_rating_bounds(client: AsyncClient, admin_user: User):
    response = await client.post(
        "/admin/testimonials",
        json={"client_name": "Rahul", "message": "Great", "rating": 6},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 422


# ── Users ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_users_and_stats(
    client: AsyncClient, db: AsyncSession, user: User, admin_user: User
):
    request = await _request(db, user)
    await requests_crud.update_request_status(db, request.id, RequestStatus.RESOLVED)
    await _request(db, user, "GST Returns")
    headers = auth_headers(admin_user)

    users = await client.get("/admin/users", headers=headers)
    assert {u["email"] for u in users.json()} == {user.email, admin_user.email}

    stats = await client.get(f"/admin/users/{user.id}/stats", headers=headers)
    assert stats.json() == {
        "total_requests": 2,
        "pending_requests": 1,
        "in_progress_requests": 0,
        "resolved_requests": 1,
    }

    missing = await client.get("/admin/users/nobody/stats", headers=headers)
    assert missing.status_code == 404
