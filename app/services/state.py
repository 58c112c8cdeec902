"""
Process-wide cache of the employees and reviews collections.

AppState is owned by the application (``app.state.reviews``) and handed to
the services and view builders; nothing reads module globals. It is fed
three ways:

- ``attach``: subscribe to a push store, or load once from any other store
- ``load``: reload both collections
- ``apply``: apply a record the service has just written
"""
import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from app.adapters.storage import EMPLOYEES, REVIEWS, StorageBackend, normalize_email
from app.schemas.employee import Employee
from app.schemas.review import Review

logger = logging.getLogger(__name__)

_MODELS = {EMPLOYEES: Employee, REVIEWS: Review}


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable view of both collections at one version."""
    employees: Mapping[str, Employee] = field(default_factory=dict)
    reviews: Mapping[str, Review] = field(default_factory=dict)
    version: int = 0

    def employee_entry(self, email: str) -> Optional[Tuple[str, Employee]]:
        wanted = normalize_email(email)
        for key, employee in self.employees.items():
            if employee.email == wanted:
                return key, employee
        return None

    def find_employee(self, email: str) -> Optional[Employee]:
        entry = self.employee_entry(email)
        return entry[1] if entry else None

    def find_review(self, review_id: str) -> Optional[Review]:
        review = self.reviews.get(review_id)
        if review is not None:
            return review
        return next((r for r in self.reviews.values() if r.id == review_id), None)

    @property
    def employee_list(self) -> List[Employee]:
        return list(self.employees.values())

    @property
    def review_list(self) -> List[Review]:
        return list(self.reviews.values())


def parse_collection(collection: str, records: Mapping[str, dict]) -> Dict[str, object]:
    """Validate raw records; malformed ones are logged and left out."""
    model = _MODELS[collection]
    parsed = {}
    for key, record in records.items():
        try:
            parsed[key] = model.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Skipping malformed {collection} record {key}: {e.error_count()} error(s)")
    return parsed


class AppState:
    def __init__(self):
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, object]] = {EMPLOYEES: {}, REVIEWS: {}}
        self._version = 0
        self._subscriptions = []

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return StateSnapshot(
                employees=MappingProxyType(dict(self._collections[EMPLOYEES])),
                reviews=MappingProxyType(dict(self._collections[REVIEWS])),
                version=self._version,
            )

    @property
    def version(self) -> int:
        return self._version

    def replace(self, collection: str, records: Mapping[str, dict]) -> None:
        parsed = parse_collection(collection, records)
        with self._lock:
            self._collections[collection] = parsed
            self._version += 1
        logger.info(f"State refreshed: {collection} ({len(parsed)} records)")

    def apply(self, collection: str, key: str, record: Optional[object]) -> None:
        """Insert, replace (record is a model) or drop (record is None) one entry."""
        with self._lock:
            if record is None:
                self._collections[collection].pop(key, None)
            else:
                self._collections[collection][key] = record
            self._version += 1

    def load(self, store: StorageBackend) -> None:
        for collection in (EMPLOYEES, REVIEWS):
            self.replace(collection, store.read(collection))

    def attach(self, store: StorageBackend) -> None:
        if store.supports_push:
            for collection in (EMPLOYEES, REVIEWS):
                subscription = store.subscribe(
                    collection, lambda records, c=collection: self.replace(c, records)
                )
                self._subscriptions.append(subscription)
        else:
            self.load(store)

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
