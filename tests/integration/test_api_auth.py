from fastapi.testclient import TestClient


def _register(client: TestClient, **overrides):
    payload = {"username": "grace", "password": "cobol-1959", "email": "grace@example.com", "name": "Grace Hopper"}
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def test_register_opens_session_and_masks_keys(client: TestClient) -> None:
    resp = _register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["username"] == "grace"
    assert body["gmail_connected"] is False
    assert body["llm_api_key_set"] is False
    assert "password_hash" not in body

    me = client.get("/api/auth/user")
    assert me.status_code == 200
    assert me.json()["id"] == body["id"]


def test_register_rejects_duplicates_and_short_fields(client: TestClient) -> None:
    assert _register(client).status_code == 201

    duplicate_name = _register(client, email="other@example.com")
    assert duplicate_name.status_code == 400
    assert duplicate_name.json()["detail"] == "Username already exists"

    duplicate_email = _register(client, username="grace2", email="GRACE@example.com")
    assert duplicate_email.status_code == 400

    assert _register(client, username="gh", email="gh@example.com").status_code == 422
    assert _register(client, username="ghopper", password="123").status_code == 422


def test_login_logout_cycle(client: TestClient, user) -> None:
    bad = client.post("/api/auth/login", json={"username": "ada", "password": "wrong-password"})
    assert bad.status_code == 401

    assert client.get("/api/auth/user").status_code == 401

    ok = client.post("/api/auth/login", json={"username": "ada", "password": "hunter22"})
    assert ok.status_code == 200
    assert ok.json()["llm_api_key_set"] is True
    assert client.get("/api/auth/user").status_code == 200

    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/user").status_code == 401


def test_protected_routes_require_session(client: TestClient) -> None:
    for path in ("/api/applications", "/api/templates", "/api/resumes", "/api/analytics"):
        assert client.get(path).status_code == 401
    assert client.post("/api/parse-job", json={"job_description": "x"}).status_code == 401


def test_update_user_connects_mailbox_and_sets_keys(client: TestClient) -> None:
    _register(client)

    resp = client.patch(
        "/api/user",
        json={
            "title": "Rear Admiral",
            "llm_api_key": "AIza-new",
            "gmail_access_token": "access",
            "gmail_refresh_token": "refresh",
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "Rear Admiral"
    assert body["llm_api_key_set"] is True
    assert body["gmail_connected"] is True

    disconnected = client.patch("/api/user", json={"gmail_refresh_token": None})
    assert disconnected.json()["gmail_connected"] is False


def test_update_user_rejects_email_owned_by_someone_else(client: TestClient, user) -> None:
    _register(client)

    resp = client.patch("/api/user", json={"email": user.email})
    assert resp.status_code == 400
