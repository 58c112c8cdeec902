import pytest
from fastapi import status

from app.adapters.storage import EMPLOYEES, storage_key
from app.core.config import settings
from app.schemas.auth import Account


def sign_in(client):
    """Run the login redirect and the callback; returns the callback response."""
    redirect = client.get("/api/auth/login", follow_redirects=False)
    assert redirect.status_code == status.HTTP_302_FOUND
    return client.get("/api/auth/callback", params={"code": "abc", "state": "s1"})


def test_login_redirects_to_identity_provider(client):
    response = client.get("/api/auth/login", follow_redirects=False)
    assert response.status_code == status.HTTP_302_FOUND
    assert response.headers["location"].startswith("https://login.example.com/authorize")
    assert settings.flow_cookie_name in response.cookies


def test_first_sign_in_bootstraps_hr(client, store, identity):
    response = sign_in(client)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["outcome"] == "bootstrap_admin"
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "hr"
    assert data["user"]["id"].startswith("ADM-")
    assert settings.session_cookie_name in response.cookies
    assert store.get(EMPLOYEES, storage_key("alice@example.com")) is not None

    # The session cookie alone authenticates follow-up requests
    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "alice@example.com"


def test_unregistered_account_is_denied_after_bootstrap(client, identity):
    assert sign_in(client).status_code == 200
    client.cookies.clear()

    identity.account = Account(email="bob@example.com", name="Bob")
    response = sign_in(client)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    error = response.json()["errors"][0]
    assert error["code"] == "ACCOUNT_NOT_REGISTERED"
    assert error["details"]["logout_url"] == identity.LOGOUT_URL


def test_disabled_account_cannot_sign_in(client, seed, hr_user, employee_user, identity):
    seed(employees=[hr_user, employee_user.model_copy(update={"is_disabled": True})])
    identity.account = Account(email="erin@example.com", name="Erin Engineer")
    response = sign_in(client)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["code"] == "ACCOUNT_DISABLED"


def test_malformed_record_signs_in_as_unregistered(client, roster, store, identity):
    store.write(EMPLOYEES, storage_key("bob@example.com"), {"name": "Bob"})
    identity.account = Account(email="bob@example.com", name="Bob")
    response = sign_in(client)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["code"] == "ACCOUNT_NOT_REGISTERED"


def test_member_sign_in_returns_existing_role(client, roster, identity):
    identity.account = Account(email="Mark@Example.com", name="Mark Manager")
    response = sign_in(client)
    assert response.status_code == 200
    assert response.json()["outcome"] == "member"
    assert response.json()["user"]["role"] == "manager"


def test_callback_without_started_flow_is_rejected(client):
    response = client.get("/api/auth/callback", params={"code": "abc", "state": "s1"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["errors"][0]["code"] == "AUTH_FAILED"


def test_callback_with_mismatched_state_is_rejected(client):
    client.get("/api/auth/login", follow_redirects=False)
    response = client.get("/api/auth/callback", params={"code": "abc", "state": "forged"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_identity_timeout_fails_sign_in(client, store, monkeypatch):
    import time
    monkeypatch.setattr(settings, "identity_timeout_seconds", 0.05)

    def slow_get(collection, key):
        time.sleep(0.5)
        return None

    monkeypatch.setattr(store, "get", slow_get)
    response = sign_in(client)
    assert response.status_code == status.HTTP_504_GATEWAY_TIMEOUT
    assert response.json()["errors"][0]["code"] == "IDENTITY_TIMEOUT"


def test_token_exchange(client, roster, monkeypatch):
    from app.routers import auth as auth_router
    seen = {}

    def fake_fetch_account(access_token, base_url, timeout):
        seen["token"] = access_token
        return Account(email="erin@example.com", name="Erin Engineer")

    monkeypatch.setattr(auth_router, "fetch_account", fake_fetch_account)
    response = client.post("/api/auth/token", json={"access_token": "graph-token"})
    assert response.status_code == 200
    assert seen["token"] == "graph-token"
    assert response.json()["user"]["email"] == "erin@example.com"


def test_token_exchange_rejects_bad_graph_token(client, monkeypatch):
    from app.adapters.ms365 import MS365AdapterError
    from app.routers import auth as auth_router

    def fake_fetch_account(access_token, base_url, timeout):
        raise MS365AdapterError("Graph API error 401: Unauthorized", status_code=401)

    monkeypatch.setattr(auth_router, "fetch_account", fake_fetch_account)
    response = client.post("/api/auth/token", json={"access_token": "expired"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_me_requires_authentication(client):
    response = client.get("/api/auth/me")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_me_with_bearer_token(client, roster, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers(roster["employee"]))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "erin@example.com"
    assert data["managerEmail"] == "mark@example.com"


def test_disabled_user_loses_access_with_valid_token(client, roster, auth_headers, store, state):
    headers = auth_headers(roster["employee"])
    store.update(EMPLOYEES, storage_key("erin@example.com"), {"isDisabled": True})
    state.load(store)

    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["code"] == "ACCOUNT_DISABLED"


def test_deleted_user_loses_access(client, roster, auth_headers, store, state):
    headers = auth_headers(roster["employee"])
    store.remove(EMPLOYEES, storage_key("erin@example.com"))
    state.load(store)
    assert client.get("/api/auth/me", headers=headers).status_code == status.HTTP_401_UNAUTHORIZED


def test_logout_clears_session(client, identity):
    sign_in(client)
    response = client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["logout_url"] == identity.LOGOUT_URL
    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == status.HTTP_401_UNAUTHORIZED
