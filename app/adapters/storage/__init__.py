"""
Remote stores for the employees and reviews collections.

The backend is chosen by ``STORAGE_BACKEND``:
- firebase: realtime database with push updates
- onedrive: one JSON document on OneDrive
- sql: local SQL table (development, tests)
"""
import logging

from app.adapters.storage.base import StorageBackend, Subscription, as_mapping
from app.adapters.storage.collections import EMPLOYEES, REVIEWS, normalize_email, storage_key
from app.core.config import Config
from app.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


def build_store(config: Config, identity=None) -> StorageBackend:
    """
    Create the configured backend.

    Args:
        identity: IdentityProvider supplying app-only Graph tokens (onedrive only)

    Raises:
        StorageUnavailableError: If the backend is unknown or cannot be initialised
    """
    backend = config.storage_backend
    logger.info(f"Initialising {backend} store")

    if backend == "sql":
        from app.adapters.storage.sql import SqlStore
        from app.database import SessionLocal, init_db
        init_db()
        return SqlStore(SessionLocal)

    if backend == "firebase":
        from app.adapters.storage.firebase import FirebaseStore
        return FirebaseStore.from_settings(config.firebase, timeout=config.graph.request_timeout)

    if backend == "onedrive":
        from app.adapters.ms365 import DriveFile, GraphClient
        from app.adapters.storage.onedrive import OneDriveStore
        if identity is None or not config.msal.client_secret:
            raise StorageUnavailableError("OneDrive store requires MSAL_CLIENT_ID and MSAL_CLIENT_SECRET.")
        if not config.graph.drive_owner:
            raise StorageUnavailableError("OneDrive store requires DRIVE_OWNER.")
        client = GraphClient(
            identity.acquire_app_token,
            base_url=config.graph.base_url,
            timeout=config.graph.request_timeout,
        )
        return OneDriveStore(DriveFile(client, config.graph.drive_file_path, owner=config.graph.drive_owner))

    raise StorageUnavailableError(f"Unknown STORAGE_BACKEND '{backend}'")


__all__ = [
    "StorageBackend",
    "Subscription",
    "as_mapping",
    "build_store",
    "EMPLOYEES",
    "REVIEWS",
    "normalize_email",
    "storage_key",
]
