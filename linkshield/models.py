from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime

from linkshield.database import Base


class KeyValueEntry(Base):
    """
    Generic key-value record.

    Holds the user whitelist, the interception history, PIN attempt state
    and the last synced denylist document, one row per key.
    """
    __tablename__ = "kv_store"

    key = Column(String(128), primary_key=True)
    value = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
