"""Local file activity models"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class ActivityRecord(BaseModel):
    """Per-file view/download recency, best effort and not authoritative"""

    file_id: str
    last_viewed: Optional[datetime] = None
    last_downloaded: Optional[datetime] = None
    view_count: int = Field(default=0, ge=0)

    @field_validator("last_viewed", "last_downloaded", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        # Older payloads stored "" for unset timestamps
        if v == "":
            return None
        return v

    @field_validator("last_viewed", "last_downloaded")
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class DownloadHistoryEntry(BaseModel):
    """One completed download, newest entries first in the history list"""

    id: str
    name: str
    date: datetime

    @field_validator("date")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        return _as_utc(v)
