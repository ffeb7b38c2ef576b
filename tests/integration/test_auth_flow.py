"""End-to-end account lifecycle through the HTTP API."""

from safezone.models.audit import AuthEventType

from conftest import STRONG_PASSWORD

NEW_PASSWORD = "An0ther!Pass"


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _sessions(client, access_token):
    return client.get("/api/user/sessions", headers=_bearer(access_token)).json()["sessions"]


def _refresh(client, refresh_token):
    return client.post("/api/auth/refresh-token", json={"refresh_token": refresh_token})


def test_account_lifecycle(client, stores):
    """Register, sign in twice, rotate, change password and delete the account."""
    registered = client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": STRONG_PASSWORD},
    )
    assert registered.status_code == 201
    user_id = registered.json()["user"]["id"]

    # Sign in by email on a second device
    login = client.post(
        "/api/auth/login", json={"identifier": "alice@example.com", "password": STRONG_PASSWORD}
    )
    assert login.status_code == 200
    phone = login.json()

    assert len(_sessions(client, phone["access_token"])) == 2

    rotated = _refresh(client, phone["refresh_token"])
    assert rotated.status_code == 200
    phone = rotated.json()
    assert len(_sessions(client, phone["access_token"])) == 2

    changed = client.put(
        "/api/user/change-password",
        json={"current_password": STRONG_PASSWORD, "new_password": NEW_PASSWORD},
        headers=_bearer(phone["access_token"]),
    )
    assert changed.status_code == 200
    assert _sessions(client, phone["access_token"]) == []

    for tokens in (registered.json(), phone):
        assert _refresh(client, tokens["refresh_token"]).status_code == 401

    old = client.post("/api/auth/login", json={"identifier": "alice", "password": STRONG_PASSWORD})
    assert old.status_code == 401
    fresh = client.post("/api/auth/login", json={"identifier": "alice", "password": NEW_PASSWORD})
    assert fresh.status_code == 200

    deleted = client.request(
        "DELETE",
        "/api/user/account",
        json={"password": NEW_PASSWORD},
        headers=_bearer(fresh.json()["access_token"]),
    )
    assert deleted.status_code == 200

    gone = client.post("/api/auth/login", json={"identifier": "alice", "password": NEW_PASSWORD})
    assert gone.status_code == 401
    availability = client.get(
        "/api/auth/check-availability", params={"username": "alice", "email": "alice@example.com"}
    )
    assert availability.json() == {"username": True, "email": True}

    # The audit trail outlives the account
    deletion = stores.auth_logs.of_type(AuthEventType.ACCOUNT_DELETION)[0]
    assert deletion.user_id is None
    assert deletion.metadata.extra["user_id"] == user_id
    assert deletion.metadata.username == "alice"


def test_lockout_scenario(client, clock, stores):
    """Five wrong passwords lock the account; the right one is refused until it expires."""
    client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@x.com", "password": "Str0ng!Pw"},
    )

    for attempt in range(1, 6):
        response = client.post("/api/auth/login", json={"identifier": "alice", "password": "nope"})
        assert response.status_code == (423 if attempt == 5 else 401)

    locked = client.post("/api/auth/login", json={"identifier": "alice", "password": "Str0ng!Pw"})
    assert locked.status_code == 423

    clock.advance(minutes=15, seconds=1)
    unlocked = client.post("/api/auth/login", json={"identifier": "alice", "password": "Str0ng!Pw"})
    assert unlocked.status_code == 200

    failures = stores.auth_logs.of_type(AuthEventType.FAILED_LOGIN)
    assert len(failures) == 6
    assert all(not event.success for event in failures)
    assert [event.metadata.reason for event in failures][-1] == "locked"

    user = next(iter(stores.users.users.values()))
    assert user.failed_login_attempts == 0
    assert user.locked_until is None
