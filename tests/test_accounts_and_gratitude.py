from conftest import auth_headers


async def _register(client, email="jordan@example.com", password="correct-horse"):
    return await client.post(
        "/api/auth/register",
        json={"username": "jordan", "email": email, "password": password},
    )


async def test_register_then_login(client):
    registered = await _register(client)
    assert registered.status_code == 201
    body = registered.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["user"]["email"] == "jordan@example.com"
    assert body["user"]["currentStreak"] == 0

    login = await client.post(
        "/api/auth/login", json={"email": "Jordan@Example.com", "password": "correct-horse"}
    )
    assert login.status_code == 200
    token = login.json()["access_token"]

    profile = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["username"] == "jordan"


async def test_duplicate_registration_conflicts(client):
    await _register(client)
    response = await _register(client)
    assert response.status_code == 409


async def test_login_with_wrong_password(client):
    await _register(client)
    response = await client.post(
        "/api/auth/login", json={"email": "jordan@example.com", "password": "wrong-horse"}
    )
    assert response.status_code == 401


async def test_gratitude_today_is_empty_before_saving(client, user):
    response = await client.get("/api/gratitude/today", headers=auth_headers(user.id))
    assert response.status_code == 200
    assert response.json()["entries"] == []


async def test_gratitude_save_replaces_todays_list(client, user):
    headers = auth_headers(user.id)
    first = await client.post("/api/gratitude", json={"entries": ["coffee", "  "]}, headers=headers)
    assert first.status_code == 200
    assert first.json()["entries"] == [{"content": "coffee"}]

    second = await client.post(
        "/api/gratitude", json={"entries": ["sunshine", "a call with mum"]}, headers=headers
    )
    assert second.json()["id"] == first.json()["id"]

    today = (await client.get("/api/gratitude/today", headers=headers)).json()
    assert [item["content"] for item in today["entries"]] == ["sunshine", "a call with mum"]

    recent = (await client.get("/api/gratitude/recent", headers=headers)).json()
    assert len(recent) == 1


async def test_gratitude_rejects_empty_list(client, user):
    headers = auth_headers(user.id)
    assert (await client.post("/api/gratitude", json={"entries": []}, headers=headers)).status_code == 422
    assert (await client.post("/api/gratitude", json={"entries": [" "]}, headers=headers)).status_code == 422


async def test_gratitude_is_per_user(client, user, other_user):
    await client.post("/api/gratitude", json={"entries": ["tea"]}, headers=auth_headers(user.id))
    response = await client.get("/api/gratitude/today", headers=auth_headers(other_user.id))
    assert response.json()["entries"] == []
