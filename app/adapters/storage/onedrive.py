"""
OneDrive whole-document backend.

Both collections live in one JSON file, ``{"employees": {...}, "reviews": {...}}``.
The file is loaded once and cached; every mutation rewrites the whole file,
conditional on the eTag of the last load so that a concurrent writer is
detected instead of silently overwritten.
"""
import copy
import logging
import threading
from typing import Any, Dict, Optional

from app.adapters.ms365 import DriveFile, MS365AdapterError, MS365ConflictError
from app.adapters.storage.base import Record, StorageBackend, as_mapping
from app.adapters.storage.collections import COLLECTIONS, EMPLOYEES, REVIEWS, storage_key
from app.core.exceptions import NotFoundError, StorageConflictError, StorageError

logger = logging.getLogger(__name__)


def empty_document() -> Dict[str, Dict[str, Record]]:
    return {name: {} for name in COLLECTIONS}


def normalize_document(raw: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, Record]]:
    """
    Bring a stored document into keyed form.

    Older clients saved the collections as arrays; employees are re-keyed by
    storage key of their email and reviews by id.
    """
    raw = raw or {}
    document = empty_document()

    employees = raw.get(EMPLOYEES)
    if isinstance(employees, list):
        for item in employees:
            if isinstance(item, dict) and item.get("email"):
                document[EMPLOYEES][storage_key(item["email"])] = item
    else:
        document[EMPLOYEES] = as_mapping(employees)

    document[REVIEWS] = as_mapping(raw.get(REVIEWS), key_field="id")
    return document


class OneDriveStore(StorageBackend):
    name = "onedrive"

    def __init__(self, drive_file: DriveFile):
        self._file = drive_file
        self._document: Optional[Dict[str, Dict[str, Record]]] = None
        self._etag: Optional[str] = None
        self._lock = threading.RLock()

    def _load(self) -> None:
        try:
            raw, etag = self._file.download()
            if raw is None:
                logger.info("Database file not found. Creating new one...")
                raw = empty_document()
                etag = self._file.upload(raw)
        except MS365AdapterError as e:
            logger.error(f"Loading drive document failed: {e}")
            raise StorageError("Could not load data from OneDrive", details={"reason": str(e)}) from e
        self._document = normalize_document(raw)
        self._etag = etag

    def _snapshot(self) -> Dict[str, Dict[str, Record]]:
        with self._lock:
            if self._document is None:
                self._load()
            return self._document

    def _save(self, document: Dict[str, Dict[str, Record]]) -> None:
        try:
            etag = self._file.upload(document, if_match=self._etag)
        except MS365ConflictError as e:
            logger.warning("Drive document changed by another session; reloading")
            self._document = None
            raise StorageConflictError() from e
        except MS365AdapterError as e:
            logger.error(f"Saving drive document failed: {e}")
            raise StorageError("Failed to save changes to OneDrive", details={"reason": str(e)}) from e
        self._document = document
        self._etag = etag

    def _mutate(self, collection: str, fn) -> None:
        with self._lock:
            document = copy.deepcopy(self._snapshot())
            fn(document.setdefault(collection, {}))
            self._save(document)

    def read(self, collection: str) -> Dict[str, Record]:
        return copy.deepcopy(self._snapshot().get(collection, {}))

    def get(self, collection: str, key: str) -> Optional[Record]:
        record = self._snapshot().get(collection, {}).get(key)
        return copy.deepcopy(record) if record is not None else None

    def write(self, collection: str, key: str, record: Record) -> None:
        def apply(records):
            records[key] = copy.deepcopy(record)
        self._mutate(collection, apply)

    def update(self, collection: str, key: str, patch: Record) -> None:
        def apply(records):
            if key not in records:
                raise NotFoundError(f"No {collection} record at {key}")
            records[key] = {**records[key], **copy.deepcopy(patch)}
        self._mutate(collection, apply)

    def remove(self, collection: str, key: str) -> None:
        def apply(records):
            records.pop(key, None)
        self._mutate(collection, apply)

    def ping(self) -> None:
        self._snapshot()

    def reload(self) -> None:
        with self._lock:
            self._document = None
            self._load()

    def bootstrap_admin_id(self) -> str:
        return "HR001"
