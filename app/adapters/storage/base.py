"""
Storage capability shared by every backend.

A backend holds named collections of JSON records keyed by string. Two
synchronization styles exist:

- push: the store streams changes (``supports_push``); callers ``subscribe``
  and receive the whole collection mapping after every change.
- load/save: callers ``read`` once and every mutation writes through.
"""
import abc
import logging
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
CollectionCallback = Callable[[Dict[str, Record]], None]


def as_mapping(value: Any, key_field: Optional[str] = None) -> Dict[str, Record]:
    """
    Coerce a collection payload into ``{key: record}``.

    Stores return ``None`` for missing collections and sometimes arrays
    (sparse integer keys, or documents written by older clients). Arrays are
    keyed by ``key_field`` when given, else by position.
    """
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items() if isinstance(v, dict)}
    if isinstance(value, list):
        mapping = {}
        for index, item in enumerate(value):
            if not isinstance(item, dict):
                continue
            key = item.get(key_field) if key_field else None
            mapping[str(key if key else index)] = item
        return mapping
    raise TypeError(f"Unexpected collection payload of type {type(value).__name__}")


class Subscription(abc.ABC):
    @abc.abstractmethod
    def close(self) -> None:
        ...


class StorageBackend(abc.ABC):
    name: str = "abstract"
    supports_push: bool = False

    @abc.abstractmethod
    def read(self, collection: str) -> Dict[str, Record]:
        """Return the whole collection as ``{key: record}``."""

    @abc.abstractmethod
    def get(self, collection: str, key: str) -> Optional[Record]:
        ...

    @abc.abstractmethod
    def write(self, collection: str, key: str, record: Record) -> None:
        """Create or replace one record."""

    @abc.abstractmethod
    def update(self, collection: str, key: str, patch: Record) -> None:
        """
        Merge ``patch`` into an existing record.

        Raises:
            NotFoundError: If there is no record at ``key``
        """

    @abc.abstractmethod
    def remove(self, collection: str, key: str) -> None:
        ...

    @abc.abstractmethod
    def ping(self) -> None:
        """Raise StorageError if the store is unreachable."""

    def subscribe(self, collection: str, callback: CollectionCallback) -> Subscription:
        raise NotImplementedError(f"{self.name} store does not stream changes")

    def reload(self) -> None:
        """Drop any client-side cache so the next read hits the store."""

    def close(self) -> None:
        ...

    def bootstrap_admin_id(self) -> str:
        return f"ADM-{int(time.time() * 1000)}"

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"
