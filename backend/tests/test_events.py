"""
Tests for event endpoints on PostgreSQL with the SQL membership store.
"""

import asyncio

import pytest
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient

from conftest import future_date, user_headers


async def _create_event(client: AsyncClient, headers: dict, capacity: int = 3, title: str = "Python Meetup") -> dict:
    response = await client.post(
        "/api/v1/events/",
        json={
            "title": title,
            "description": "Monthly meetup",
            "date": future_date(),
            "location": "Community Hall",
            "capacity": capacity,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, organizer_headers):
    """Caller becomes organizer; event starts with every spot open."""
    data = await _create_event(client, organizer_headers, capacity=50)

    assert data["title"] == "Python Meetup"
    assert data["capacity"] == 50
    assert data["organizer_id"] == "organizer"
    assert data["attendees"] == []
    assert data["available_spots"] == 50


@pytest.mark.asyncio
async def test_create_event_without_identity(client: AsyncClient):
    response = await client.post("/api/v1/events/", json={
        "title": "Anonymous Event",
        "date": future_date(),
        "capacity": 10,
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_past_date(client: AsyncClient, organizer_headers):
    past_date = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = await client.post(
        "/api/v1/events/",
        json={"title": "Past Event", "date": past_date, "capacity": 10},
        headers=organizer_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_event_invalid_capacity(client: AsyncClient, organizer_headers):
    response = await client.post(
        "/api/v1/events/",
        json={"title": "No Room", "date": future_date(), "capacity": 0},
        headers=organizer_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_events(client: AsyncClient, organizer_headers):
    await _create_event(client, organizer_headers, title="First")
    await _create_event(client, organizer_headers, title="Second")

    response = await client.get("/api/v1/events/?page=1&page_size=5")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["page_size"] == 5
    assert {e["title"] for e in data["events"]} == {"First", "Second"}


@pytest.mark.asyncio
async def test_get_event_shows_attendees(client: AsyncClient, organizer_headers):
    event = await _create_event(client, organizer_headers, capacity=3)
    await client.post(f"/api/v1/events/{event['id']}/rsvp", json={"action": "join"}, headers=user_headers("alice"))

    response = await client.get(f"/api/v1/events/{event['id']}")

    assert response.status_code == 200
    assert response.json()["attendees"] == ["alice"]
    assert response.json()["available_spots"] == 2


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    response = await client.get("/api/v1/events/ghost-event")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_rsvp_full_cycle(client: AsyncClient, organizer_headers):
    """Fill the event, free a spot, hand it to someone else."""
    event = await _create_event(client, organizer_headers, capacity=3)
    url = f"/api/v1/events/{event['id']}/rsvp"

    for user in ("alice", "bob", "carol"):
        response = await client.post(url, json={"action": "join"}, headers=user_headers(user))
        assert response.status_code == 200

    full = await client.post(url, json={"action": "join"}, headers=user_headers("dave"))
    assert full.status_code == 409
    assert full.json()["reason"] == "capacity_exceeded"

    left = await client.post(url, json={"action": "leave"}, headers=user_headers("bob"))
    assert left.json()["attendees"] == ["alice", "carol"]

    joined = await client.post(url, json={"action": "join"}, headers=user_headers("dave"))
    assert joined.status_code == 200
    assert set(joined.json()["attendees"]) == {"alice", "carol", "dave"}


@pytest.mark.asyncio
async def test_concurrent_rsvps_on_postgres(client: AsyncClient, organizer_headers):
    event = await _create_event(client, organizer_headers, capacity=4)
    url = f"/api/v1/events/{event['id']}/rsvp"

    responses = await asyncio.gather(*(
        client.post(url, json={"action": "join"}, headers=user_headers(f"user-{i}"))
        for i in range(20)
    ))

    assert [r.status_code for r in responses].count(200) == 4
    detail = await client.get(f"/api/v1/events/{event['id']}")
    assert len(detail.json()["attendees"]) == 4


@pytest.mark.asyncio
async def test_delete_event(client: AsyncClient, organizer_headers):
    event = await _create_event(client, organizer_headers)
    await client.post(f"/api/v1/events/{event['id']}/rsvp", json={"action": "join"}, headers=user_headers("alice"))

    response = await client.delete(f"/api/v1/events/{event['id']}", headers=organizer_headers)
    assert response.status_code == 200

    assert (await client.get(f"/api/v1/events/{event['id']}")).status_code == 404
    join = await client.post(f"/api/v1/events/{event['id']}/rsvp", json={"action": "join"}, headers=user_headers("bob"))
    assert join.status_code == 404
    leave = await client.post(f"/api/v1/events/{event['id']}/rsvp", json={"action": "leave"}, headers=user_headers("alice"))
    assert leave.status_code == 200


@pytest.mark.asyncio
async def test_delete_event_by_non_organizer(client: AsyncClient, organizer_headers):
    event = await _create_event(client, organizer_headers)

    response = await client.delete(f"/api/v1/events/{event['id']}", headers=user_headers("mallory"))

    assert response.status_code == 403
