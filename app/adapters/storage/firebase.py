"""
Firebase Realtime Database backend.

Records live at ``{collection}/{key}``. Subscriptions keep a local mirror of
the collection up to date from the listener's put/patch events and hand the
mirror to the callback after every event.
"""
import copy
import logging
import threading
from typing import Any, Callable, Dict, Optional

from app.adapters.storage.base import (
    CollectionCallback,
    Record,
    StorageBackend,
    Subscription,
    as_mapping,
)
from app.core.config import FirebaseSettings
from app.core.exceptions import NotFoundError, StorageError, StorageUnavailableError

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "performance-review"


def _segments(path: str):
    return [p for p in (path or "").split("/") if p]


def _set_path(target: Dict[str, Any], parts, value):
    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = value


class CollectionMirror:
    """Applies realtime-database events to an in-memory copy of one collection."""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def apply(self, event_type: str, path: str, data: Any) -> Dict[str, Record]:
        parts = _segments(path)
        with self._lock:
            if event_type == "put":
                if not parts:
                    self.data = copy.deepcopy(data) if isinstance(data, dict) else dict(as_mapping(data))
                else:
                    _set_path(self.data, parts, copy.deepcopy(data))
            elif event_type == "patch":
                for child, value in (data or {}).items():
                    _set_path(self.data, parts + _segments(child), copy.deepcopy(value))
            else:
                logger.debug(f"Ignoring firebase event type {event_type}")
            return as_mapping(self.data)


class _ListenerSubscription(Subscription):
    def __init__(self, registration):
        self._registration = registration

    def close(self) -> None:
        self._registration.close()


class FirebaseStore(StorageBackend):
    name = "firebase"
    supports_push = True

    def __init__(self, reference: Callable[[str], Any]):
        """
        Args:
            reference: factory returning a firebase_admin.db.Reference for a path
        """
        self._reference = reference
        self._subscriptions = []

    @classmethod
    def from_settings(cls, config: FirebaseSettings, timeout: Optional[float] = None) -> "FirebaseStore":
        if not config.database_url:
            raise StorageUnavailableError("FIREBASE_DATABASE_URL is not configured.")
        try:
            import firebase_admin
            from firebase_admin import credentials, db
        except ImportError as e:
            raise StorageUnavailableError(f"Firebase SDK is not installed: {e}") from e

        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            try:
                cred = (
                    credentials.Certificate(config.credentials_path)
                    if config.credentials_path
                    else credentials.ApplicationDefault()
                )
                options = {"databaseURL": config.database_url}
                if timeout:
                    options["httpTimeout"] = timeout
                app = firebase_admin.initialize_app(cred, options, name=FIREBASE_APP_NAME)
            except (ValueError, OSError) as e:
                raise StorageUnavailableError(f"Firebase initialisation failed: {e}") from e

        logger.info(f"Firebase store connected to {config.database_url}")
        return cls(lambda path: db.reference(path, app=app))

    def _call(self, action: str, path: str, fn):
        try:
            return fn()
        except (StorageError, NotFoundError):
            raise
        except Exception as e:
            logger.error(f"Firebase {action} failed at {path}: {e}")
            raise StorageError(f"Could not {action} {path}", details={"reason": str(e)}) from e

    def read(self, collection: str) -> Dict[str, Record]:
        value = self._call("read", collection, lambda: self._reference(collection).get())
        return as_mapping(value)

    def get(self, collection: str, key: str) -> Optional[Record]:
        path = f"{collection}/{key}"
        value = self._call("read", path, lambda: self._reference(path).get())
        return value if isinstance(value, dict) else None

    def write(self, collection: str, key: str, record: Record) -> None:
        path = f"{collection}/{key}"
        self._call("write", path, lambda: self._reference(path).set(record))

    def update(self, collection: str, key: str, patch: Record) -> None:
        path = f"{collection}/{key}"

        # Patches an existing node only; ref.update() would recreate a deleted one
        def merge(current):
            if not isinstance(current, dict):
                raise NotFoundError(f"No {collection} record at {key}")
            return {**current, **patch}

        self._call("update", path, lambda: self._reference(path).transaction(merge))

    def remove(self, collection: str, key: str) -> None:
        path = f"{collection}/{key}"
        self._call("remove", path, lambda: self._reference(path).delete())

    def ping(self) -> None:
        # Shallow read of the root returns only top-level keys
        self._call("ping", "/", lambda: self._reference("/").get(shallow=True))

    def subscribe(self, collection: str, callback: CollectionCallback) -> Subscription:
        mirror = CollectionMirror()

        def on_event(event):
            try:
                snapshot = mirror.apply(event.event_type, event.path, event.data)
                callback(snapshot)
            except Exception:
                # Runs on the SDK listener thread
                logger.exception(f"Failed to apply firebase event on {collection}")

        registration = self._call("subscribe", collection, lambda: self._reference(collection).listen(on_event))
        subscription = _ListenerSubscription(registration)
        self._subscriptions.append(subscription)
        logger.info(f"Subscribed to firebase collection {collection}")
        return subscription

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
