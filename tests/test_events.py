"""
Tests for event endpoints.
"""

import uuid
from datetime import datetime, timezone, timedelta

import pytest
from httpx import AsyncClient


def _event_payload(**overrides):
    payload = {
        "slug": f"pycon-{uuid.uuid4().hex[:6]}",
        "title": "Python Conference 2026",
        "description": "Annual Python gathering",
        "venue_name": "Convention Center",
        "event_date": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
        "price": "49.50",
        "capacity": 500,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, auth_headers):
    """Authenticated user can create an event."""
    response = await client.post("/api/v1/events/", json=_event_payload(), headers=auth_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Python Conference 2026"
    assert data["capacity"] == 500
    assert data["available_spots"] == 500  # All spots available initially
    assert data["is_published"] is True


@pytest.mark.asyncio
async def test_create_event_unauthenticated(client: AsyncClient):
    """Unauthenticated request returns 401."""
    response = await client.post("/api/v1/events/", json=_event_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_past_date(client: AsyncClient, auth_headers):
    """Event with past date returns 400."""
    past_date = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = await client.post(
        "/api/v1/events/",
        json=_event_payload(event_date=past_date),
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "event_date"


@pytest.mark.asyncio
async def test_create_event_duplicate_slug(client: AsyncClient, auth_headers):
    payload = _event_payload(slug="python-meetup")
    first = await client.post("/api/v1/events/", json=payload, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/events/", json=payload, headers=auth_headers)
    assert second.status_code == 400
    assert second.json()["details"]["field"] == "slug"


@pytest.mark.asyncio
async def test_create_event_invalid_capacity(client: AsyncClient, auth_headers):
    """Negative capacity returns 422."""
    response = await client.post(
        "/api/v1/events/",
        json=_event_payload(capacity=-1),
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_events(client: AsyncClient, test_event, make_event):
    """List returns published upcoming events only."""
    await make_event(is_published=False)
    await make_event(days_ahead=-3)

    response = await client.get("/api/v1/events/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["events"][0]["id"] == str(test_event.id)
    assert data["page"] == 1
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_list_events_pagination(client: AsyncClient, make_event):
    """Pagination parameters work correctly."""
    for days in (10, 20, 30):
        await make_event(days_ahead=days)

    response = await client.get("/api/v1/events/?page=2&page_size=2")
    assert response.status_code == 200
    data = response.json()
    assert data["page_size"] == 2
    assert data["total"] == 3
    assert len(data["events"]) == 1


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, test_event):
    """Get single event by ID."""
    response = await client.get(f"/api/v1/events/{test_event.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(test_event.id)
    assert data["title"] == "Test Workshop"
    assert data["available_spots"] == 10


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    """Non-existent event returns 404."""
    response = await client.get(f"/api/v1/events/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_check_capacity(client: AsyncClient, test_event):
    fits = await client.get(f"/api/v1/events/{test_event.id}/capacity?spots=10")
    assert fits.status_code == 200
    assert fits.json()["available"] is True

    too_many = await client.get(f"/api/v1/events/{test_event.id}/capacity?spots=11")
    assert too_many.json()["available"] is False
    assert too_many.json()["available_spots"] == 10

    invalid = await client.get(f"/api/v1/events/{test_event.id}/capacity?spots=0")
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_event_stats(client: AsyncClient, auth_headers, headers_for, test_event, user_b):
    await client.post(
        "/api/v1/bookings/",
        json={"event_id": str(test_event.id), "attendees": 3},
        headers=auth_headers,
    )
    cancelled = await client.post(
        "/api/v1/bookings/",
        json={"event_id": str(test_event.id), "attendees": 2},
        headers=headers_for(user_b),
    )
    await client.delete(f"/api/v1/bookings/{cancelled.json()['booking_id']}", headers=headers_for(user_b))

    response = await client.get(f"/api/v1/events/{test_event.id}/stats", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {
        "event_id": str(test_event.id),
        "capacity": 10,
        "available_spots": 7,
        "booking_count": 2,
        "active_attendees": 3,
    }
