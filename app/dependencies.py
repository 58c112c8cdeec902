"""
Request-scoped access to the objects the application owns.

The lifespan in app.main builds the store, state cache, identity provider and
notifier once and parks them on ``app.state``. Routers depend on these
providers rather than on module globals, so tests can swap any of them with
``app.dependency_overrides``.
"""
from fastapi import Depends, Request

from app.adapters.ms365 import IdentityProvider
from app.adapters.storage import StorageBackend
from app.core.exceptions import StorageUnavailableError
from app.services.employees import EmployeeService
from app.services.notification import NotificationService
from app.services.reviews import ReviewService
from app.services.state import AppState


def get_store(request: Request) -> StorageBackend:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StorageUnavailableError("Storage backend is not initialised")
    return store


def get_state(request: Request) -> AppState:
    return request.app.state.reviews


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity


def get_notifier(request: Request) -> NotificationService:
    return getattr(request.app.state, "notifier", None) or NotificationService()


def get_employee_service(
    store: StorageBackend = Depends(get_store),
    state: AppState = Depends(get_state),
    notifier: NotificationService = Depends(get_notifier),
) -> EmployeeService:
    return EmployeeService(store, state, notifier)


def get_review_service(
    store: StorageBackend = Depends(get_store),
    state: AppState = Depends(get_state),
) -> ReviewService:
    return ReviewService(store, state)


__all__ = [
    "get_store",
    "get_state",
    "get_identity_provider",
    "get_notifier",
    "get_employee_service",
    "get_review_service",
]
