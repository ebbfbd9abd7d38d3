"""API tests for users, suggestions, swipes, and matches."""

from __future__ import annotations

import uuid

import pytest

from tunematch.services import suggestion_service

MUTUAL_PROFILE = {"genres": ["pop", "rock"], "artists": ["X", "Y"], "songs": ["s1", "s2"]}


async def _create_user(client, name: str, *, gender: str, orientation: str, music_profile=MUTUAL_PROFILE) -> dict:
    payload = {
        "email": f"{name.lower()}_{uuid.uuid4().hex[:8]}@example.com",
        "name": name,
        "age": 29,
        "gender": gender,
        "sexual_orientation": orientation,
        "music_profile": music_profile,
    }
    response = await client.post("/api/users", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_and_read_user(client):
    created = await _create_user(
        client,
        "Robin",
        gender="female",
        orientation="both",
        music_profile={"genres": " Indie,  indie , Jazz ", "artists": ["Bon  Iver"], "songs": []},
    )
    assert created["music_profile"]["genres"] == ["Indie", "Jazz"]
    assert created["music_profile"]["artists"] == ["Bon Iver"]

    response = await client.get(f"/api/users/{created['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Robin"

    missing = await client.get(f"/api/users/{uuid.uuid4()}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(client):
    payload = {"email": "dup@example.com", "name": "Dup"}
    assert (await client.post("/api/users", json=payload)).status_code == 201
    assert (await client.post("/api/users", json=payload)).status_code == 400


@pytest.mark.asyncio
async def test_replace_music_profile(client):
    user = await _create_user(client, "Kai", gender="male", orientation="female")

    response = await client.put(
        f"/api/users/{user['id']}/music-profile",
        json={"genres": "techno, house", "artists": ["Daft Punk"], "songs": []},
    )
    assert response.status_code == 200
    assert response.json() == {"genres": ["techno", "house"], "artists": ["Daft Punk"], "songs": []}

    missing = await client.put(f"/api/users/{uuid.uuid4()}/music-profile", json={"genres": []})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_suggestions_flow_with_match(client, enrichment_calls):
    owner = await _create_user(client, "Owner", gender="female", orientation="male")
    candidates = [await _create_user(client, f"Cand{index}", gender="male", orientation="female") for index in range(3)]

    response = await client.get("/api/suggestions", params={"user_id": owner["id"], "count": 2})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "returned"
    assert body["count"] == 2
    assert body["queue_size"] == 3
    assert [user["compatibility_score"] for user in body["users"]] == [100.0, 100.0]
    assert "email" not in body["users"][0]
    assert len(enrichment_calls) == 1

    target = body["users"][0]["id"]
    like = await client.post(f"/api/swipes/{owner['id']}/like/{target}")
    assert like.status_code == 200
    assert like.json() == {"success": True, "is_match": False, "message": "Like recorded"}

    back = await client.post("/api/swipes", json={"from_user_id": target, "to_user_id": owner["id"], "is_like": True})
    assert back.json()["is_match"] is True

    matches = await client.get(f"/api/matches/{owner['id']}")
    assert matches.status_code == 200
    assert [user["id"] for user in matches.json()["matches"]] == [target]

    after = await client.get("/api/suggestions", params={"user_id": owner["id"], "count": 10})
    assert target not in {user["id"] for user in after.json()["users"]}
    assert {user["id"] for user in after.json()["users"]} <= {c["id"] for c in candidates}

    stats = await client.get(f"/api/swipes/stats/{owner['id']}")
    assert stats.json()["likes"] == 1
    assert stats.json()["matches"] == 1


@pytest.mark.asyncio
async def test_suggestions_exhausted_for_lonely_user(client):
    owner = await _create_user(client, "Solo", gender="female", orientation="male")

    response = await client.get("/api/suggestions", params={"user_id": owner["id"]})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "exhausted"
    assert body["users"] == []


@pytest.mark.asyncio
async def test_suggestions_profile_missing_returns_404(client):
    response = await client.get("/api/suggestions", params={"user_id": str(uuid.uuid4())})
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["status"] == "profile_missing"

    no_profile = await client.post("/api/users", json={"email": "np@example.com", "name": "NoProfile"})
    response = await client.get("/api/suggestions", params={"user_id": no_profile.json()["id"]})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_suggestions_internal_failure_is_reported(client, monkeypatch):
    async def _boom(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(suggestion_service, "get_suggestions", _boom)

    response = await client.get("/api/suggestions", params={"user_id": str(uuid.uuid4())})
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["status"] == "failed"


@pytest.mark.asyncio
async def test_swipe_validation_errors(client):
    user = await _create_user(client, "Val", gender="female", orientation="male")

    same = await client.post(f"/api/swipes/{user['id']}/pass/{user['id']}")
    assert same.status_code == 400

    unknown = await client.post(f"/api/swipes/{user['id']}/like/{uuid.uuid4()}")
    assert unknown.status_code == 404

    malformed = await client.post("/api/swipes", json={"from_user_id": "nope", "to_user_id": user["id"]})
    assert malformed.status_code == 422
