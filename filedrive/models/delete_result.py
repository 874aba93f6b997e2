"""Outcome of a delete batch"""

from typing import List

from pydantic import BaseModel, Field


class DeleteResult(BaseModel):
    """Per-item and aggregate result of deleting a set of files"""

    deleted_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.deleted_ids)

    @property
    def failure_count(self) -> int:
        return len(self.failed_ids)
