"""File metadata record as stored in the remote metadata table"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

# Valid values for the type column
VALID_FILE_TYPES = ["image", "document", "other"]


class FileRecord(BaseModel):
    """Read-only cached copy of a remote file row"""

    id: str
    name: str
    size: int = Field(default=0, ge=0)
    type: str = "other"
    url: str
    path: str
    folder: str = "documents"
    created_at: datetime
    user_id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Row ids may come back as integers or UUIDs"""
        return str(v) if v is not None else v

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if v not in VALID_FILE_TYPES:
            return "other"
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC"""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
