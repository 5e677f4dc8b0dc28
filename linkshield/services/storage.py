import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.attributes import flag_modified

from linkshield.database import SessionLocal
from linkshield.models import KeyValueEntry

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the key-value store cannot be read or written"""


class KeyValueStore:
    """
    JSON key-value persistence on top of the ``kv_store`` table.

    Every write is a single transaction on a single row, so each key is
    replaced atomically.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    def get(self, key: str, default: Any = None) -> Any:
        try:
            with self.session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                return entry.value if entry is not None and entry.value is not None else default
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to read key {key!r}: {e}")
            raise StorageError(f"read failed for {key!r}") from e

    def set(self, key: str, value: Any):
        try:
            with self.session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                if entry is None:
                    db.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                    flag_modified(entry, 'value')
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to write key {key!r}: {e}")
            raise StorageError(f"write failed for {key!r}") from e

    def delete(self, key: str) -> bool:
        try:
            with self.session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                if entry is None:
                    return False
                db.delete(entry)
                db.commit()
                return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to delete key {key!r}: {e}")
            raise StorageError(f"delete failed for {key!r}") from e
