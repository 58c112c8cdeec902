import logging
from typing import Callable, Optional
from datetime import datetime, timezone

from app.adapters.storage import StorageBackend
from app.services.state import AppState, StateSnapshot


class BaseService:
    """
    Common plumbing for services writing through the store.
    Every successful write is applied to the state cache straight away.
    """

    def __init__(self, store: StorageBackend, state: AppState, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.state = state
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._logger = logging.getLogger(type(self).__module__)

    def now(self) -> datetime:
        return self._clock()

    def now_millis(self) -> int:
        return int(self.now().timestamp() * 1000)

    def snapshot(self) -> StateSnapshot:
        return self.state.snapshot()

    def log_info(self, message: str):
        self._logger.info(message)
