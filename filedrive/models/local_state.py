"""Local key-value state model"""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalStateEntry(SQLModel, table=True):
    """A JSON value persisted on this device under a string key"""

    __tablename__ = "localstate"

    key: str = Field(primary_key=True)
    value: str  # JSON text
    updated_at: datetime = Field(default_factory=_utcnow)
