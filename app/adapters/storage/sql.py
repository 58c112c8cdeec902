"""
SQL backend: each record is a JSON row in the ``documents`` table.

Used for local development and the test suite. No change feed; callers load
once and write through.
"""
import logging
from contextlib import contextmanager
from typing import Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.adapters.storage.base import Record, StorageBackend
from app.core.exceptions import NotFoundError, StorageError
from app.models.document import StoredDocument

logger = logging.getLogger(__name__)


class SqlStore(StorageBackend):
    name = "sql"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str):
        session: Session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"SQL store {action} failed: {e}", exc_info=True)
            raise StorageError(f"Could not {action} records", details={"reason": str(e)}) from e
        finally:
            session.close()

    @staticmethod
    def _row(session: Session, collection: str, key: str) -> Optional[StoredDocument]:
        return session.query(StoredDocument).filter(
            StoredDocument.collection == collection,
            StoredDocument.key == key,
        ).first()

    def read(self, collection: str) -> Dict[str, Record]:
        with self._session("read") as session:
            rows = session.query(StoredDocument).filter(
                StoredDocument.collection == collection
            ).order_by(StoredDocument.id).all()
            return {row.key: dict(row.data) for row in rows}

    def get(self, collection: str, key: str) -> Optional[Record]:
        with self._session("read") as session:
            row = self._row(session, collection, key)
            return dict(row.data) if row else None

    def write(self, collection: str, key: str, record: Record) -> None:
        with self._session("write") as session:
            row = self._row(session, collection, key)
            if row:
                row.data = dict(record)
            else:
                session.add(StoredDocument(collection=collection, key=key, data=dict(record)))
            session.commit()

    def update(self, collection: str, key: str, patch: Record) -> None:
        with self._session("update") as session:
            row = self._row(session, collection, key)
            if row:
                # Reassign so the JSON column is flagged dirty
                row.data = {**row.data, **patch}
            else:
                raise NotFoundError(f"No {collection} record at {key}")
            session.commit()

    def remove(self, collection: str, key: str) -> None:
        with self._session("remove") as session:
            session.query(StoredDocument).filter(
                StoredDocument.collection == collection,
                StoredDocument.key == key,
            ).delete()
            session.commit()

    def ping(self) -> None:
        with self._session("ping") as session:
            session.execute(text("SELECT 1"))
