"""Models module"""

from filedrive.models.file_record import FileRecord, VALID_FILE_TYPES
from filedrive.models.download_task import DownloadTask, VALID_TASK_STATUSES
from filedrive.models.activity import ActivityRecord, DownloadHistoryEntry
from filedrive.models.delete_result import DeleteResult
from filedrive.models.local_state import LocalStateEntry

__all__ = [
    "FileRecord",
    "VALID_FILE_TYPES",
    "DownloadTask",
    "VALID_TASK_STATUSES",
    "ActivityRecord",
    "DownloadHistoryEntry",
    "DeleteResult",
    "LocalStateEntry",
]
