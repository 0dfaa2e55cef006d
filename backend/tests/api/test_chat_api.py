import pytest


async def _register(api_client, name: str) -> tuple[str, dict]:
    response = await api_client.post(
        "/auth/register",
        json={"name": name, "email": f"{name.lower()}@example.com", "password": "pw"},
    )
    assert response.status_code == 201
    body = response.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}


@pytest.mark.asyncio
async def test_register_login_and_me(api_client):
    user_id, headers = await _register(api_client, "Alice")

    login = await api_client.post("/auth/login", json={"email": "ALICE@example.com", "password": "pw"})
    me = await api_client.get("/auth/me", headers=headers)

    assert login.status_code == 200
    assert login.json()["user"]["id"] == user_id
    assert me.json()["email"] == "alice@example.com"
    assert (await api_client.post("/auth/logout", headers=headers)).status_code == 204


@pytest.mark.asyncio
async def test_auth_errors_map_to_status_codes(api_client):
    await _register(api_client, "Alice")

    duplicate = await api_client.post(
        "/auth/register", json={"name": "A2", "email": "alice@example.com", "password": "pw"}
    )
    bad_login = await api_client.post("/auth/login", json={"email": "alice@example.com", "password": "nope"})
    anonymous = await api_client.get("/auth/me")
    bad_token = await api_client.get("/auth/me", headers={"Authorization": "Bearer nope"})

    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "duplicate_email"
    assert bad_login.status_code == 401
    assert bad_login.json()["detail"] == "invalid_credentials"
    assert anonymous.status_code == 401
    assert bad_token.status_code == 401
    assert "request_id" in bad_login.json()


@pytest.mark.asyncio
async def test_friend_flow_then_messages_and_reactions(api_client):
    alice_id, alice = await _register(api_client, "Alice")
    bob_id, bob = await _register(api_client, "Bob")

    lookup = await api_client.get("/users/lookup", params={"email": "bob@example.com"}, headers=alice)
    assert lookup.json()["id"] == bob_id

    sent = await api_client.post("/friends/requests", json={"user_id": bob_id}, headers=alice)
    assert sent.json() == {"changed": True}
    incoming = await api_client.get("/friends/requests/incoming", headers=bob)
    assert [u["id"] for u in incoming.json()] == [alice_id]

    accepted = await api_client.post(f"/friends/requests/{alice_id}/accept", headers=bob)
    assert accepted.status_code == 200
    conversation_id = accepted.json()["conversation"]["id"]

    posted = await api_client.post(
        f"/containers/{conversation_id}/messages", json={"content": "hey bob"}, headers=alice
    )
    assert posted.status_code == 201
    message_id = posted.json()["id"]

    react = await api_client.post(f"/messages/{message_id}/reactions", json={"emoji": "👍"}, headers=bob)
    assert react.json()["added"] is True
    assert (await api_client.post(f"/messages/{message_id}/read", headers=bob)).status_code == 204

    page = await api_client.get(f"/containers/{conversation_id}/messages", headers=bob)
    item = page.json()["items"][0]
    assert item["content"] == "hey bob"
    assert item["reactions"] == [{"emoji": "👍", "count": 1, "user_ids": [bob_id]}]
    assert sorted(item["read_by"]) == sorted([alice_id, bob_id])

    listed = await api_client.get("/conversations", headers=alice)
    assert [c["id"] for c in listed.json()] == [conversation_id]


@pytest.mark.asyncio
async def test_group_endpoints_enforce_admin_rights(api_client):
    alice_id, alice = await _register(api_client, "Alice")
    bob_id, bob = await _register(api_client, "Bob")
    carol_id, _ = await _register(api_client, "Carol")

    created = await api_client.post("/groups", json={"name": "Team", "member_ids": [bob_id]}, headers=alice)
    assert created.status_code == 201
    group_id = created.json()["id"]

    denied = await api_client.post(f"/groups/{group_id}/members", json={"user_id": carol_id}, headers=bob)
    assert denied.status_code == 403
    assert denied.json()["detail"] == "not_admin"

    promoted = await api_client.post(f"/groups/{group_id}/admins", json={"user_id": bob_id}, headers=alice)
    assert promoted.json()["changed"] is True
    added = await api_client.post(f"/groups/{group_id}/members", json={"user_id": carol_id}, headers=bob)
    assert added.json()["changed"] is True

    group = await api_client.get(f"/groups/{group_id}", headers=alice)
    assert sorted(group.json()["member_ids"]) == sorted([alice_id, bob_id, carol_id])

    missing = await api_client.get("/groups/nope", headers=alice)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_dev_header_and_request_id(api_client):
    user_id, _ = await _register(api_client, "Dana")

    response = await api_client.get("/auth/me", headers={"X-User-Id": user_id, "X-Request-Id": "req-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-Id"] == "req-123"


@pytest.mark.asyncio
async def test_validation_errors_are_422(api_client):
    _, headers = await _register(api_client, "Eve")

    response = await api_client.post("/containers/any/messages", json={"content": ""}, headers=headers)

    assert response.status_code == 422
    assert response.json()["detail"] == "validation_error"
