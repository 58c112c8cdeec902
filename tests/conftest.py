import pytest
import os
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from cryptography.fernet import Fernet

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["STORAGE_BACKEND"] = "sql"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ.pop("MSAL_CLIENT_SECRET", None)
os.environ.pop("MAIL_SENDER", None)

from app.database import Base
from app.main import app
from app.adapters.ms365 import MS365AdapterError
from app.adapters.storage import EMPLOYEES, REVIEWS, storage_key
from app.adapters.storage.sql import SqlStore
from app.dependencies import get_identity_provider, get_notifier, get_state, get_store
from app.schemas.auth import Account
from app.schemas.employee import Employee, Role
from app.services.auth import create_access_token
from app.services.state import AppState
from fastapi.testclient import TestClient

FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class FakeIdentityProvider:
    """Stands in for MSAL: the signed-in account is whatever the test sets."""

    LOGOUT_URL = "https://login.example.com/logout"

    def __init__(self):
        self.account = Account(email="alice@example.com", name="Alice Admin")
        self.flows = []

    def initiate_login(self):
        flow = {"auth_uri": "https://login.example.com/authorize?state=s1", "state": "s1"}
        self.flows.append(flow)
        return flow

    def complete_login(self, flow, auth_response):
        if auth_response.get("state") != flow.get("state"):
            raise MS365AdapterError("state mismatch")
        return "graph-token", self.account

    def acquire_app_token(self):
        return "app-token"

    def logout_url(self):
        return self.LOGOUT_URL


class RecordingNotifier:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    @property
    def enabled(self):
        return True

    def send_welcome(self, employee):
        self.sent.append(employee.email)
        return self.result


@pytest.fixture(scope="function")
def store():
    """SQL store on a private in-memory database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield SqlStore(TestingSessionLocal)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def state(store):
    state = AppState()
    state.load(store)
    return state


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def seed(store, state):
    """Write employees/reviews to the store and reload the state cache."""
    def _seed(employees=(), reviews=()):
        for employee in employees:
            store.write(EMPLOYEES, storage_key(employee.email), employee.to_record())
        for review in reviews:
            store.write(REVIEWS, review.id, review.to_record())
        state.load(store)
    return _seed


@pytest.fixture
def hr_user():
    return Employee(id="ADM-1", name="Alice Admin", email="alice@example.com", role=Role.HR,
                    department="Administration", position="System Administrator")


@pytest.fixture
def manager_user():
    return Employee(id="EMP-2", name="Mark Manager", email="mark@example.com", role=Role.MANAGER,
                    department="Engineering", position="Team Lead", manager_email="alice@example.com")


@pytest.fixture
def employee_user():
    return Employee(id="EMP-3", name="Erin Engineer", email="erin@example.com", role=Role.EMPLOYEE,
                    department="Engineering", position="Developer", manager_email="Mark@Example.com")


@pytest.fixture
def roster(seed, hr_user, manager_user, employee_user):
    seed(employees=[hr_user, manager_user, employee_user])
    return {"hr": hr_user, "manager": manager_user, "employee": employee_user}


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create session tokens."""
    def _get_token(user):
        return create_access_token(data={"sub": user.email, "role": user.role.value})
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(store, state, identity, notifier):
    """Get a TestClient wired to the test store and state via dependency overrides."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_state] = lambda: state
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
