"""JSON key-value store persisted on this device"""

import json
from datetime import datetime, timezone
from typing import Any, Optional
from sqlmodel import select

from filedrive.database import database
from filedrive.models.local_state import LocalStateEntry
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)


class LocalStoreError(Exception):
    """Raised when a local value cannot be read or written"""
    pass


class LocalStateStore:
    """
    Stores JSON-serialisable values by key in the local database.

    Errors are raised as LocalStoreError; callers decide whether to degrade.
    """

    def get(self, key: str) -> Optional[Any]:
        """Get and decode a value, None if the key is unset"""
        try:
            with database.get_session() as session:
                entry = session.exec(
                    select(LocalStateEntry).where(LocalStateEntry.key == key)
                ).first()
                if entry is None:
                    return None
                raw = entry.value
        except Exception as e:
            raise LocalStoreError(f"Failed to read '{key}': {e}") from e

        try:
            return json.loads(raw)
        except ValueError as e:
            raise LocalStoreError(f"Corrupt JSON stored under '{key}': {e}") from e

    def set(self, key: str, value: Any):
        """Encode and store a value"""
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise LocalStoreError(f"Value for '{key}' is not JSON serialisable: {e}") from e

        try:
            with database.get_session() as session:
                entry = session.get(LocalStateEntry, key)
                if entry is None:
                    entry = LocalStateEntry(key=key, value=raw)
                else:
                    entry.value = raw
                    entry.updated_at = datetime.now(timezone.utc)
                session.add(entry)
                session.commit()
        except Exception as e:
            raise LocalStoreError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str):
        """Remove a key if present"""
        try:
            with database.get_session() as session:
                entry = session.get(LocalStateEntry, key)
                if entry is not None:
                    session.delete(entry)
                    session.commit()
        except Exception as e:
            raise LocalStoreError(f"Failed to delete '{key}': {e}") from e
