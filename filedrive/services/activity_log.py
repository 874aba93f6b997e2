"""Activity log - best-effort local history of file views and downloads"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from filedrive.config import settings
from filedrive.models.activity import ActivityRecord, DownloadHistoryEntry
from filedrive.services.local_store import LocalStateStore
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)

HISTORY_KEY = "downloadHistory"
ACTIVITY_KEY = "fileActivity"


class ActivityLogService:
    """
    Tracks per-file recency in the local key-value store.

    The data is not authoritative: any storage failure (unreadable store,
    corrupt JSON, quota) is logged as a warning and the persistence step is
    skipped. Callers never see an exception. The in-memory table always
    reflects the latest update.
    """

    def __init__(self, store: Optional[Any] = None, history_limit: Optional[int] = None):
        self.store = store if store is not None else LocalStateStore()
        self.history_limit = history_limit or settings.download_history_limit
        self._activity: Dict[str, ActivityRecord] = {}
        self._history: List[DownloadHistoryEntry] = []

    @property
    def activity(self) -> Dict[str, ActivityRecord]:
        """Snapshot of the activity table keyed by file id"""
        return dict(self._activity)

    @property
    def history(self) -> List[DownloadHistoryEntry]:
        """Snapshot of the download history, newest first"""
        return list(self._history)

    def get_activity(self, file_id: str) -> Optional[ActivityRecord]:
        return self._activity.get(file_id)

    # --- storage helpers ---

    def _load_history(self) -> List[DownloadHistoryEntry]:
        raw = self.store.get(HISTORY_KEY)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ValueError(f"{HISTORY_KEY} is not a list")
        return [DownloadHistoryEntry.model_validate(item) for item in raw]

    def _load_activity(self) -> Dict[str, ActivityRecord]:
        raw = self.store.get(ACTIVITY_KEY)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"{ACTIVITY_KEY} is not an object")
        return {
            file_id: ActivityRecord.model_validate({**item, "file_id": file_id})
            for file_id, item in raw.items()
        }

    def _save(self, key: str, value: Any):
        try:
            self.store.set(key, value)
        except Exception as e:
            logger.warning(f"Failed to persist {key}: {e}")

    def _save_history(self, history: List[DownloadHistoryEntry]):
        self._save(HISTORY_KEY, [entry.model_dump(mode="json") for entry in history])

    def _save_activity(self, activity: Dict[str, ActivityRecord]):
        self._save(
            ACTIVITY_KEY,
            {file_id: record.model_dump(mode="json") for file_id, record in activity.items()},
        )

    def _read_history(self) -> List[DownloadHistoryEntry]:
        """Stored history, or the in-memory copy if the store is unreadable"""
        try:
            return self._load_history()
        except Exception as e:
            logger.warning(f"Failed to load {HISTORY_KEY}: {e}")
            return list(self._history)

    def _read_activity(self) -> Dict[str, ActivityRecord]:
        """Stored activity table, or the in-memory copy if the store is unreadable"""
        try:
            return self._load_activity()
        except Exception as e:
            logger.warning(f"Failed to load {ACTIVITY_KEY}: {e}")
            return dict(self._activity)

    # --- operations ---

    @staticmethod
    def reconcile(
        activity: Dict[str, ActivityRecord],
        history: List[DownloadHistoryEntry],
    ) -> Dict[str, ActivityRecord]:
        """
        Fill last_downloaded gaps from the download history.

        A record's last_downloaded only ever moves forward to the newest
        history date for that file, so replaying the same history again is a
        no-op.
        """
        result = dict(activity)
        for entry in history:
            record = result.get(entry.id)
            if record is None:
                result[entry.id] = ActivityRecord(
                    file_id=entry.id,
                    last_viewed=None,
                    last_downloaded=entry.date,
                    view_count=0,
                )
            elif record.last_downloaded is None or record.last_downloaded < entry.date:
                result[entry.id] = record.model_copy(update={"last_downloaded": entry.date})
        return result

    async def initialize(self):
        """Load persisted history and activity, then reconcile them"""
        activity = self._read_activity()
        history = self._read_history()

        reconciled = self.reconcile(activity, history)
        self._history = history
        self._activity = reconciled

        if reconciled != activity:
            self._save_activity(reconciled)

        logger.debug(
            f"Activity log loaded: {len(self._activity)} records, {len(self._history)} history entries"
        )

    async def record_download(
        self,
        file_id: str,
        file_name: str,
        now: Optional[datetime] = None,
    ):
        """Append to the download history and stamp last_downloaded"""
        try:
            now = now or datetime.now(timezone.utc)

            history = self._read_history()
            history.insert(0, DownloadHistoryEntry(id=file_id, name=file_name, date=now))
            history = history[: self.history_limit]
            self._history = history
            self._save_history(history)

            activity = self._read_activity()
            existing = activity.get(file_id)
            if existing is None:
                activity[file_id] = ActivityRecord(
                    file_id=file_id,
                    last_viewed=now,
                    last_downloaded=now,
                    view_count=0,
                )
            else:
                activity[file_id] = existing.model_copy(update={"last_downloaded": now})
            self._activity = activity
            self._save_activity(activity)
        except Exception as e:
            logger.warning(f"Failed to log download to history: {e}", file_id=file_id)

    async def record_view(self, file_id: str, now: Optional[datetime] = None):
        """Stamp last_viewed and bump the view count"""
        try:
            now = now or datetime.now(timezone.utc)

            activity = self._read_activity()
            existing = activity.get(file_id)
            if existing is None:
                activity[file_id] = ActivityRecord(file_id=file_id, last_viewed=now, view_count=1)
            else:
                activity[file_id] = existing.model_copy(
                    update={"last_viewed": now, "view_count": existing.view_count + 1}
                )
            self._activity = activity
            self._save_activity(activity)
        except Exception as e:
            logger.warning(f"Failed to log file view: {e}", file_id=file_id)
