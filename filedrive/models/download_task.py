"""In-memory download progress tracking"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

# Valid values for DownloadTask.status
VALID_TASK_STATUSES = ["pending", "downloading", "complete", "error"]


class DownloadTask(BaseModel):
    """Progress of one active or recently finished download"""

    file_id: str
    file_name: str
    progress: int = Field(default=0, ge=0, le=100)
    status: str = "pending"
    error: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_TASK_STATUSES:
            raise ValueError(f"Invalid status: {v}. Valid values: {VALID_TASK_STATUSES}")
        return v
