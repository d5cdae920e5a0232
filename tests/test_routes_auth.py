from models import AuditLog, User


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"]


def test_register_signs_the_user_in(client):
    resp = client.post(
        "/api/auth/register",
        json={
            "email": "Fresh@Example.com",
            "password": "password",
            "first_name": "Fresh",
            "last_name": "Member",
        },
    )
    assert resp.status_code == 201
    body = resp.get_json()["user"]
    assert body["email"] == "fresh@example.com"
    assert body["relationship"] == "self"

    me = client.get("/api/me")
    assert me.status_code == 200
    assert me.get_json()["user"]["has_requests"] is False


def test_register_returns_field_errors(client, create_user):
    create_user(email="taken@example.com")
    resp = client.post(
        "/api/auth/register",
        json={"email": "TAKEN@example.com", "password": "pw", "first_name": "A", "last_name": "Member"},
    )
    assert resp.status_code == 422
    errors = resp.get_json()["errors"]
    assert errors["email"] == ["has already been taken"]
    assert errors["password"] == ["is too short (minimum is 7 characters)"]
    assert errors["first_name"] == ["is too short (minimum is 2 characters)"]


def test_login_and_logout(client, create_user, login):
    user, password = create_user(email="member@example.com")

    bad = login(user.email, "not-the-password")
    assert bad.status_code == 401
    assert bad.get_json()["error"] == "invalid_credentials"

    good = login("MEMBER@example.com", password)
    assert good.status_code == 200
    assert good.get_json()["user"]["id"] == user.id

    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/me").status_code == 401


def test_login_events_are_audited(client, create_user, login):
    user, password = create_user(email="audit@example.com")
    login(user.email, "wrong-password")
    login(user.email, password)

    actions = [entry.action for entry in AuditLog.query.order_by(AuditLog.id)]
    assert actions == ["login_failed", "login"]
    assert AuditLog.query.filter_by(action="login").one().user_id == user.id


def test_protected_routes_return_json_401(client):
    resp = client.get("/api/friends")
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "authentication_required"}


def test_update_password_requires_current_password(client, create_user, login):
    user, password = create_user(email="change@example.com")
    login(user.email, password)

    resp = client.patch("/api/me", json={"password": "brand-new-pw", "current_password": "nope"})
    assert resp.status_code == 422
    assert resp.get_json()["errors"] == {"current_password": ["is invalid"]}

    resp = client.patch("/api/me", json={"password": "brand-new-pw", "current_password": password})
    assert resp.status_code == 200

    client.post("/api/auth/logout")
    assert login(user.email, "brand-new-pw").status_code == 200


def test_update_profile_validation(client, create_user, login):
    user, password = create_user(email="names@example.com")
    login(user.email, password)

    resp = client.patch("/api/me", json={"last_name": "x" * 41})
    assert resp.status_code == 422
    assert resp.get_json()["errors"] == {"last_name": ["is too long (maximum is 40 characters)"]}

    resp = client.patch("/api/me", json={"first_name": "Grace"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["first_name"] == "Grace"


def test_delete_account(client, create_user, login):
    user, password = create_user(email="leaving@example.com")
    login(user.email, password)
    client.post("/api/posts", json={"content": "goodbye"})

    resp = client.delete("/api/me")
    assert resp.status_code == 200
    assert resp.get_json()["removed"]["posts"] == 1
    assert client.get("/api/me").status_code == 401
    assert User.query.filter_by(email="leaving@example.com").count() == 0


def test_unknown_user_is_404(client, create_user, login):
    user, password = create_user()
    login(user.email, password)

    assert client.get("/api/users/9999").status_code == 404
    bad = client.get("/api/users/abc")
    assert bad.status_code == 400
    assert bad.get_json()["field"] == "user_id"


def test_register_rejects_non_text_fields(client):
    resp = client.post(
        "/api/auth/register",
        json={"email": "typed@example.com", "password": 12345678, "first_name": 12, "last_name": ["Yiv"]},
    )
    assert resp.status_code == 422
    assert resp.get_json()["errors"] == {
        "password": ["is invalid"],
        "first_name": ["is invalid"],
        "last_name": ["is invalid"],
    }

    resp = client.post(
        "/api/auth/register",
        json={"email": 5, "password": "password", "first_name": "Typed", "last_name": "Member"},
    )
    assert resp.status_code == 422
    assert resp.get_json()["errors"] == {"email": ["is invalid"]}
    assert User.query.count() == 0


def test_login_with_non_text_credentials(client, create_user, login):
    user, _ = create_user(email="typed@example.com")

    resp = client.post("/api/auth/login", json={"email": user.email, "password": 12345678})
    assert resp.status_code == 401
    resp = client.post("/api/auth/login", json={"email": ["typed@example.com"], "password": "password123"})
    assert resp.status_code == 401


def test_profile_update_rejects_non_text_fields(client, create_user, login):
    user, password = create_user(email="typed@example.com")
    login(user.email, password)

    resp = client.patch("/api/me", json={"first_name": 12, "email": True})
    assert resp.status_code == 422
    assert resp.get_json()["errors"] == {"email": ["is invalid"], "first_name": ["is invalid"]}
