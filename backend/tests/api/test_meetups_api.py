import pytest

import main


HOST = {"X-User-Id": "host-1"}


async def create(api_client, payload, headers=HOST):
	resp = await api_client.post("/api/meetups", json=payload, headers=headers)
	assert resp.status_code == 200, resp.text
	return resp.json()


@pytest.mark.asyncio
async def test_create_and_get(api_client, meetup_payload):
	meetup = await create(api_client, meetup_payload)
	assert meetup["host_id"] == "host-1"
	assert meetup["approved_players"] == ["host-1"]
	assert meetup["current_players"] == 1
	assert meetup["status"] == "active"

	resp = await api_client.get(f"/api/meetups/{meetup['id']}")
	assert resp.status_code == 200
	assert resp.json()["title"] == meetup_payload["title"]


@pytest.mark.asyncio
async def test_create_requires_user(api_client, meetup_payload):
	resp = await api_client.post("/api/meetups", json=meetup_payload)
	assert resp.status_code == 401
	assert resp.json()["message"] == "X-User-Id header is required"


@pytest.mark.asyncio
async def test_create_rejects_invalid_payload(api_client, meetup_payload):
	resp = await api_client.post("/api/meetups", json={**meetup_payload, "max_players": 100}, headers=HOST)
	assert resp.status_code == 422


@pytest.mark.asyncio
async def test_missing_meetup_envelope(api_client):
	resp = await api_client.get("/api/meetups/unknown")
	assert resp.status_code == 404
	body = resp.json()
	assert body == {
		"error": True,
		"status_code": 404,
		"code": "not_found",
		"message": "Meetup not found",
		"path": "/api/meetups/unknown",
	}


@pytest.mark.asyncio
async def test_roster_flow(api_client, meetup_payload):
	meetup = await create(api_client, {**meetup_payload, "max_players": 2})
	mid = meetup["id"]

	resp = await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "A"})
	assert resp.json()["waitlist"] == ["A"]

	resp = await api_client.post(f"/api/meetups/{mid}/players", json={"user_id": "A"}, headers=HOST)
	assert resp.status_code == 200
	assert resp.json()["approved_players"] == ["host-1", "A"]

	await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "B"})
	resp = await api_client.post(f"/api/meetups/{mid}/players", json={"user_id": "B"}, headers=HOST)
	assert resp.status_code == 409
	assert resp.json()["code"] == "meetup_full"

	resp = await api_client.post(f"/api/meetups/{mid}/cancel", json={"reason": "full"}, headers=HOST)
	assert resp.json()["status"] == "cancelled"

	resp = await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "C"})
	assert resp.status_code == 409
	assert resp.json()["code"] == "inactive"


@pytest.mark.asyncio
async def test_distinct_error_codes(api_client, meetup_payload):
	mid = (await create(api_client, meetup_payload))["id"]

	resp = await api_client.post(f"/api/meetups/{mid}/players", json={"user_id": "A"}, headers=HOST)
	assert (resp.status_code, resp.json()["code"]) == (409, "not_waitlisted")

	resp = await api_client.delete(f"/api/meetups/{mid}/players/host-1", headers=HOST)
	assert (resp.status_code, resp.json()["code"]) == (400, "cannot_remove_host")

	await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "A"})
	resp = await api_client.post(f"/api/meetups/{mid}/players", json={"user_id": "A"}, headers={"X-User-Id": "A"})
	assert (resp.status_code, resp.json()["code"]) == (403, "forbidden")

	resp = await api_client.post(f"/api/meetups/{mid}/cancel", json={}, headers={"X-User-Id": "A"})
	assert resp.status_code == 403


@pytest.mark.asyncio
async def test_player_can_leave(api_client, meetup_payload):
	mid = (await create(api_client, meetup_payload))["id"]
	await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "A"})
	await api_client.post(f"/api/meetups/{mid}/players", json={"user_id": "A"}, headers=HOST)

	resp = await api_client.delete(f"/api/meetups/{mid}/players/A", headers={"X-User-Id": "A"})
	assert resp.status_code == 200
	assert resp.json()["approved_players"] == ["host-1"]
	assert resp.json()["current_players"] == 1


@pytest.mark.asyncio
async def test_conflicts_surface_after_retries(api_client, roster, meetup_payload, monkeypatch):
	from errors import VersionConflict

	mid = (await create(api_client, meetup_payload))["id"]
	calls = []

	async def always_conflicts(meetup_id, user_id):
		calls.append(user_id)
		raise VersionConflict(meetup_id)

	monkeypatch.setattr(roster, "request_join", always_conflicts)
	monkeypatch.setattr(main, "ROSTER_RETRY_ATTEMPTS", 2)

	resp = await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "A"})
	assert resp.status_code == 409
	assert resp.json()["code"] == "version_conflict"
	assert calls == ["A", "A"]


@pytest.mark.asyncio
async def test_listing_and_user_meetups(api_client, meetup_payload):
	first = await create(api_client, meetup_payload)
	second = await create(api_client, {**meetup_payload, "title": "Indoor sixes", "court_type": "indoor"}, headers={"X-User-Id": "host-2"})
	await api_client.post(f"/api/meetups/{second['id']}/waitlist", headers=HOST)
	await api_client.post(f"/api/meetups/{second['id']}/players", json={"user_id": "host-1"}, headers={"X-User-Id": "host-2"})

	resp = await api_client.get("/api/meetups")
	assert {m["id"] for m in resp.json()} == {first["id"], second["id"]}

	resp = await api_client.get("/api/users/host-1/meetups")
	body = resp.json()
	assert [m["id"] for m in body["hosted"]] == [first["id"]]
	assert [m["id"] for m in body["joined"]] == [second["id"]]


@pytest.mark.asyncio
async def test_config_and_health(api_client):
	resp = await api_client.get("/api/config")
	assert resp.json()["max_players"] == {"default": 8, "min": 2, "max": 50}
	assert [c["id"] for c in resp.json()["court_types"]] == ["beach", "indoor", "grass"]

	resp = await api_client.get("/api/health")
	assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_overlong_user_id_rejected_at_join(api_client, meetup_payload):
	mid = (await create(api_client, meetup_payload))["id"]

	resp = await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "u" * 129})
	assert resp.status_code == 400
	assert resp.json()["message"] == "X-User-Id must be at most 128 characters"

	resp = await api_client.get(f"/api/meetups/{mid}")
	assert resp.json()["waitlist"] == []


@pytest.mark.asyncio
async def test_longest_user_id_can_be_approved(api_client, meetup_payload):
	mid = (await create(api_client, meetup_payload))["id"]
	user_id = "u" * 128

	resp = await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": user_id})
	assert resp.status_code == 200

	resp = await api_client.post(f"/api/meetups/{mid}/players", json={"user_id": user_id}, headers=HOST)
	assert resp.status_code == 200
	assert resp.json()["approved_players"] == ["host-1", user_id]


@pytest.mark.asyncio
async def test_overlong_user_id_rejected_at_remove(api_client, meetup_payload):
	mid = (await create(api_client, meetup_payload))["id"]
	resp = await api_client.delete(f"/api/meetups/{mid}/players/{'u' * 129}", headers=HOST)
	assert resp.status_code == 422


@pytest.mark.asyncio
async def test_remove_after_cancel_keeps_roster(api_client, meetup_payload):
	mid = (await create(api_client, meetup_payload))["id"]
	await api_client.post(f"/api/meetups/{mid}/waitlist", headers={"X-User-Id": "A"})
	await api_client.post(f"/api/meetups/{mid}/players", json={"user_id": "A"}, headers=HOST)
	await api_client.post(f"/api/meetups/{mid}/cancel", json={"reason": "rain"}, headers=HOST)

	resp = await api_client.delete(f"/api/meetups/{mid}/players/A", headers=HOST)
	assert resp.status_code == 200
	assert resp.json()["approved_players"] == ["host-1", "A"]
	assert resp.json()["current_players"] == 2
