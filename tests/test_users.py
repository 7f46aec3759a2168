from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from conftest import auth, register
from models import RefreshToken, User, utcnow
from schemas import UserCreate
from services import ErrorKind


def test_register_rejects_short_username(client):
    resp = client.post("/api/users/register", json={"username": "ab"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Username must be between 3 and 50 characters"


def test_register_rejects_long_username(client):
    resp = client.post("/api/users/register", json={"username": "x" * 51})
    assert resp.status_code == 400


def test_register_rejects_short_password(client):
    resp = client.post("/api/users/register", json={"username": "alice", "password": "123"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Password must be at least 6 characters if provided"


def test_first_call_registers_user(client):
    resp = client.post("/api/users/register", json={"username": "alice", "password": "secret1"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    data = body["data"]
    assert data["user"]["username"] == "alice"
    assert data["user"]["role"] == "USER"
    assert data["user"]["status"] == "ACTIVE"
    assert "passwordHash" not in data["user"]
    assert "password" not in data["user"]
    assert data["accessToken"]
    assert data["refreshToken"]


def test_role_is_never_taken_from_input(client, session):
    client.post(
        "/api/users/register",
        json={"username": "mallory", "password": "secret1", "role": "ADMIN"},
    )
    user = session.exec(select(User).where(User.username == "mallory")).one()
    assert user.role == "USER"


def test_password_is_stored_hashed(client, session):
    register(client, "alice", "secret1")
    user = session.exec(select(User).where(User.username == "alice")).one()
    assert user.password_hash
    assert user.password_hash != "secret1"


def test_same_call_with_correct_password_logs_in(client):
    register(client, "alice", "secret1")
    resp = client.post("/api/users/register", json={"username": "alice", "password": "secret1"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Login successful"


def test_wrong_password_is_rejected(client):
    register(client, "alice", "secret1")
    resp = client.post("/api/users/register", json={"username": "alice", "password": "wrong-pass"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid username or password"


def test_password_required_when_account_has_one(client):
    register(client, "alice", "secret1")
    resp = client.post("/api/users/register", json={"username": "alice"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Password is required for this account"


def test_passwordless_account_logs_in_without_password(client):
    register(client, "bob", password=None)
    resp = client.post("/api/users/register", json={"username": "bob"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Login successful"


def test_username_is_trimmed(client):
    data = register(client, "  carol  ")
    assert data["user"]["username"] == "carol"
    resp = client.post("/api/users/register", json={"username": "carol", "password": "secret1"})
    assert resp.json()["message"] == "Login successful"


def test_disabled_account_cannot_log_in(client, session):
    register(client, "dave")
    user = session.exec(select(User).where(User.username == "dave")).one()
    user.status = "DISABLED"
    session.add(user)
    session.commit()

    resp = client.post("/api/users/register", json={"username": "dave", "password": "secret1"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Account is disabled. Please contact administrator"


def test_refresh_token_persisted_for_seven_days(client, session):
    data = register(client, "alice")
    row = session.exec(
        select(RefreshToken).where(RefreshToken.token == data["refreshToken"])
    ).one()
    assert row.user_id == data["user"]["id"]
    remaining = row.expires_at - utcnow()
    assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)


def test_contact_number_validated(client):
    resp = client.post(
        "/api/users/register",
        json={"username": "erin", "password": "secret1", "contactNumber": "call me"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"


def test_duplicate_create_race_reports_username_exists(services, session, monkeypatch):
    register_data = UserCreate(username="newuser", password="secret1")
    first = services.users.register_or_login(session, register_data)
    assert first.success
    assert first.message == "User registered successfully"

    # the racing request did its lookup before the first insert committed
    monkeypatch.setattr(services.users.user_dao, "find_by_username", lambda s, name: None)
    second = services.users.register_or_login(session, register_data)
    assert second.success is False
    assert second.error == "Username already exists"


def test_refresh_token_store_failure_is_not_a_duplicate_username(services, session, monkeypatch):
    def failing_create(*args, **kwargs):
        raise IntegrityError("INSERT INTO refreshtoken", {}, Exception("token collision"))

    monkeypatch.setattr(services.users.refresh_token_dao, "create", failing_create)
    result = services.users.register_or_login(session, UserCreate(username="newuser", password="secret1"))
    assert result.success is False
    assert result.error == "Failed to register user"
    assert result.kind is ErrorKind.INTERNAL


def test_me_requires_bearer_token(client):
    resp = client.get("/api/users/me")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "User not authenticated"}


def test_me_rejects_garbage_token(client):
    resp = client.get("/api/users/me", headers=auth("not-a-token"))
    assert resp.status_code == 401


def test_me_returns_current_user(client):
    data = register(client, "alice", contactNumber="+94 77 123 4567")
    resp = client.get("/api/users/me", headers=auth(data["accessToken"]))
    assert resp.status_code == 200
    me = resp.json()["data"]
    assert me["username"] == "alice"
    assert me["contactNumber"] == "+94 77 123 4567"


def test_refresh_issues_new_access_token(client):
    data = register(client, "alice")
    resp = client.post("/api/users/refresh", json={"refreshToken": data["refreshToken"]})
    assert resp.status_code == 200
    token = resp.json()["data"]["accessToken"]
    assert client.get("/api/users/me", headers=auth(token)).status_code == 200


def test_refresh_rejects_access_token(client):
    data = register(client, "alice")
    resp = client.post("/api/users/refresh", json={"refreshToken": data["accessToken"]})
    assert resp.status_code == 401


def test_logout_revokes_refresh_token(client):
    data = register(client, "alice")
    resp = client.post("/api/users/logout", json={"refreshToken": data["refreshToken"]})
    assert resp.status_code == 200

    resp = client.post("/api/users/refresh", json={"refreshToken": data["refreshToken"]})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired refresh token"


def test_logout_unknown_token_is_not_found(client):
    resp = client.post("/api/users/logout", json={"refreshToken": "nope"})
    assert resp.status_code == 404
