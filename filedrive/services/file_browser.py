"""File browser - listing, filtering, sorting and selection over the file drive"""

import asyncio
import calendar
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from filedrive.models.activity import ActivityRecord
from filedrive.models.delete_result import DeleteResult
from filedrive.models.file_record import FileRecord
from filedrive.services.delete_coordinator import DeleteInProgressError
from filedrive.services.notifications import Notifier
from filedrive.services.upload_service import FileTooLargeError
from filedrive.utils.file_utils import total_size
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)

VALID_FOLDERS = ["my-drive", "recent", "images", "documents"]
VALID_VIEW_MODES = ["list", "grid"]
VALID_RECENT_MODES = ["accessed", "modified", "downloaded"]
VALID_TIMEFRAMES = ["day", "week", "month"]

FOLDER_FILE_TYPES = {"images": "image", "documents": "document"}

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def subtract_month(moment: datetime) -> datetime:
    """Same day one calendar month earlier, clamped to that month's last day"""
    if moment.month == 1:
        year, month = moment.year - 1, 12
    else:
        year, month = moment.year, moment.month - 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def recent_threshold(timeframe: str, now: datetime) -> datetime:
    """Oldest timestamp still counted as recent for a timeframe"""
    if timeframe == "day":
        return now - timedelta(days=1)
    if timeframe == "month":
        return subtract_month(now)
    return now - timedelta(days=7)


def matches_search(file: FileRecord, query: str) -> bool:
    return query.lower() in file.name.lower()


def is_recent(
    file: FileRecord,
    activity: Optional[ActivityRecord],
    mode: str,
    threshold: datetime,
) -> bool:
    """Whether a file belongs in the recent view for a mode"""
    if mode == "modified":
        return file.created_at >= threshold
    if mode == "downloaded":
        return (
            activity is not None
            and activity.last_downloaded is not None
            and activity.last_downloaded >= threshold
        )
    # accessed: created or viewed within the window
    viewed_recently = (
        activity is not None
        and activity.last_viewed is not None
        and activity.last_viewed >= threshold
    )
    return file.created_at >= threshold or viewed_recently


def recent_sort_key(file: FileRecord, activity: Optional[ActivityRecord], mode: str) -> datetime:
    if mode == "modified":
        return file.created_at
    if mode == "downloaded":
        if activity is not None and activity.last_downloaded is not None:
            return activity.last_downloaded
        return EPOCH
    if activity is not None and activity.last_viewed is not None:
        return activity.last_viewed
    return file.created_at


def filter_and_sort(
    files: Iterable[FileRecord],
    folder: str,
    query: str,
    activity: Dict[str, ActivityRecord],
    recent_mode: str = "accessed",
    timeframe: str = "week",
    now: Optional[datetime] = None,
) -> List[FileRecord]:
    """
    Files visible in a folder view, newest first.

    my-drive matches on name only; images/documents also require the file
    type; recent requires the mode's timestamp within the timeframe and sorts
    by that same timestamp.
    """
    now = now or datetime.now(timezone.utc)
    visible = [file for file in files if matches_search(file, query)]

    if folder in FOLDER_FILE_TYPES:
        visible = [file for file in visible if file.type == FOLDER_FILE_TYPES[folder]]
    elif folder == "recent":
        threshold = recent_threshold(timeframe, now)
        visible = [
            file for file in visible
            if is_recent(file, activity.get(file.id), recent_mode, threshold)
        ]
        return sorted(
            visible,
            key=lambda file: recent_sort_key(file, activity.get(file.id), recent_mode),
            reverse=True,
        )

    return sorted(visible, key=lambda file: file.created_at, reverse=True)


class FileBrowser:
    """
    Headless state of one user's drive view.

    Composes the transfer engine, delete coordinator, upload service and
    activity log. No single operation failure leaves the browser unusable:
    failures become notifications and the current state is kept.
    """

    def __init__(
        self,
        owner_id: str,
        metadata_store: Any,
        transfer_engine: Any,
        delete_coordinator: Any,
        activity_log: Any,
        notifier: Notifier,
        upload_service: Optional[Any] = None,
    ):
        self.owner_id = owner_id
        self.metadata_store = metadata_store
        self.transfer_engine = transfer_engine
        self.delete_coordinator = delete_coordinator
        self.activity_log = activity_log
        self.notifier = notifier
        self.upload_service = upload_service

        self.files: List[FileRecord] = []
        self.loading = False
        self.active_folder = "my-drive"
        self.view_mode = "list"
        self.search_query = ""
        self.recent_mode = "accessed"
        self.recent_timeframe = "week"
        self._selected: Set[str] = set()

    # --- view state ---

    def set_folder(self, folder: str):
        if folder not in VALID_FOLDERS:
            raise ValueError(f"Invalid folder: {folder}. Valid values: {VALID_FOLDERS}")
        self.active_folder = folder

    def set_view_mode(self, view_mode: str):
        if view_mode not in VALID_VIEW_MODES:
            raise ValueError(f"Invalid view mode: {view_mode}. Valid values: {VALID_VIEW_MODES}")
        self.view_mode = view_mode

    def set_recent_mode(self, mode: str):
        if mode not in VALID_RECENT_MODES:
            raise ValueError(f"Invalid recent mode: {mode}. Valid values: {VALID_RECENT_MODES}")
        self.recent_mode = mode

    def set_recent_timeframe(self, timeframe: str):
        if timeframe not in VALID_TIMEFRAMES:
            raise ValueError(f"Invalid timeframe: {timeframe}. Valid values: {VALID_TIMEFRAMES}")
        self.recent_timeframe = timeframe

    def set_search(self, query: str):
        self.search_query = query or ""

    def visible_files(self, now: Optional[datetime] = None) -> List[FileRecord]:
        return filter_and_sort(
            self.files,
            self.active_folder,
            self.search_query,
            self.activity_log.activity,
            self.recent_mode,
            self.recent_timeframe,
            now=now,
        )

    def get_file(self, file_id: str) -> Optional[FileRecord]:
        return next((file for file in self.files if file.id == file_id), None)

    def used_storage(self) -> str:
        return total_size(file.size for file in self.files)

    # --- selection ---

    @property
    def selected_ids(self) -> Set[str]:
        return set(self._selected)

    def selected_files(self) -> List[FileRecord]:
        """Selected files in list order"""
        return [file for file in self.files if file.id in self._selected]

    def toggle_selection(self, file_id: str):
        if file_id in self._selected:
            self._selected.discard(file_id)
        else:
            self._selected.add(file_id)

    def select_all(self, now: Optional[datetime] = None):
        """Select every visible file, or clear if they are all selected already"""
        visible_ids = {file.id for file in self.visible_files(now=now)}
        if self._selected == visible_ids:
            self._selected = set()
        else:
            self._selected = visible_ids

    def clear_selection(self):
        self._selected = set()

    def _evict(self, file_ids: Iterable[str]):
        removed = set(file_ids)
        self.files = [file for file in self.files if file.id not in removed]
        self._selected -= removed

    # --- remote operations ---

    async def refresh(self) -> List[FileRecord]:
        """Reload the owner's files from the metadata table"""
        self.loading = True
        try:
            self.files = await self.metadata_store.list_by_owner(self.owner_id)
            self._selected &= {file.id for file in self.files}
            logger.debug(f"Loaded {len(self.files)} files for {self.owner_id}")
        except Exception as e:
            logger.error(f"Error fetching files: {e}")
            self.notifier.error("Error", "Error fetching files")
        finally:
            self.loading = False
        return self.files

    async def open_file(self, file_id: str):
        """Mark a file as viewed"""
        await self.activity_log.record_view(file_id)

    async def download_file(self, file_id: str) -> Optional[Path]:
        file = self.get_file(file_id)
        if file is None:
            logger.warning(f"Download requested for unknown file {file_id}")
            return None
        return await self.transfer_engine.start_download(file.id, file.url, file.name)

    async def download_selected(self) -> List[asyncio.Task]:
        """Download the selection: one file immediately, several staggered"""
        return await self.transfer_engine.start_bulk_download(self.selected_files())

    def cancel_download(self, file_id: str) -> bool:
        return self.transfer_engine.cancel(file_id)

    async def _delete(self, files: List[FileRecord]) -> Optional[DeleteResult]:
        if not files:
            return None
        try:
            result = await self.delete_coordinator.delete_files(files)
        except DeleteInProgressError:
            self.notifier.info("Delete in progress", "Please wait for the current delete to finish")
            return None
        except Exception as e:
            logger.error(f"Delete operation error: {e}", exc_info=True)
            self.notifier.error("Error", "An unexpected error occurred")
            return None

        self._evict(result.deleted_ids)
        return result

    async def delete_file(self, file_id: str) -> Optional[DeleteResult]:
        file = self.get_file(file_id)
        if file is None:
            logger.warning(f"Delete requested for unknown file {file_id}")
            return None
        return await self._delete([file])

    async def delete_selected(self) -> Optional[DeleteResult]:
        return await self._delete(self.selected_files())

    async def upload(self, data: bytes, file_name: str, folder: Optional[str] = None) -> Optional[FileRecord]:
        """Upload a file and reload the listing"""
        if self.upload_service is None:
            logger.error(f"Upload of {file_name} requested without an upload service")
            self.notifier.error("Upload failed", "Uploads are not available")
            return None
        try:
            record = await self.upload_service.upload(self.owner_id, data, file_name, folder=folder)
        except FileTooLargeError:
            return None
        except Exception as e:
            logger.error(f"Upload failed for {file_name}: {e}")
            self.notifier.error("Upload failed", str(e))
            return None

        await self.refresh()
        self.notifier.success("File uploaded successfully")
        return record

    async def close(self):
        await self.transfer_engine.close()
