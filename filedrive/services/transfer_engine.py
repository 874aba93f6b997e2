"""File transfer engine - streamed downloads with progress, cancellation and retry"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, List, Optional, Sequence, Set

from filedrive.config import settings
from filedrive.models.download_task import DownloadTask
from filedrive.models.file_record import FileRecord
from filedrive.services.notifications import Notifier
from filedrive.services.save_target import SaveTarget
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)

TaskListener = Callable[[str, Optional[DownloadTask]], None]


class DownloadCancelledError(Exception):
    """Raised inside a transfer once its cancel token has been triggered"""
    pass


class CancelToken:
    """Cooperative cancellation flag, checked before every chunk is consumed"""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def raise_if_cancelled(self):
        if self._cancelled:
            raise DownloadCancelledError("Download was cancelled")


def stagger_delays(count: int, stagger: float) -> List[float]:
    """Start offsets for a bulk download: 0, stagger, 2*stagger, ..."""
    return [index * stagger for index in range(count)]


def compute_progress(received: int, total: int) -> int:
    """Whole percent received, floored and capped at 100"""
    if total <= 0:
        return 0
    return min(received * 100 // total, 100)


class FileTransferEngine:
    """
    Downloads remote files into a save target while tracking DownloadTask state.

    Collaborators are injected:
        fetcher: object with an async context manager ``fetch(url)`` yielding a
            FetchStream (declared total length and an async chunk iterator)
        save_target: receives the joined bytes and the suggested file name
        notifier: user notifications ("Download cancelled")
        activity_log: records completed downloads (optional)

    At most one task is tracked per file id. Every live transfer owns a
    CancelToken registered under its file id; only the transfer whose token is
    currently registered may change that file's task entry.
    """

    def __init__(
        self,
        fetcher: Any,
        save_target: SaveTarget,
        notifier: Notifier,
        activity_log: Optional[Any] = None,
        on_task_change: Optional[TaskListener] = None,
        on_download: Optional[Callable[[str], None]] = None,
        complete_linger: Optional[float] = None,
        retry_delay: Optional[float] = None,
        auto_retries: Optional[int] = None,
        bulk_stagger: Optional[float] = None,
    ):
        self.fetcher = fetcher
        self.save_target = save_target
        self.notifier = notifier
        self.activity_log = activity_log
        self.on_task_change = on_task_change
        self.on_download = on_download
        self.complete_linger = settings.download_complete_linger if complete_linger is None else complete_linger
        self.retry_delay = settings.download_retry_delay if retry_delay is None else retry_delay
        self.auto_retries = settings.download_auto_retries if auto_retries is None else auto_retries
        self.bulk_stagger = settings.bulk_download_stagger if bulk_stagger is None else bulk_stagger

        self._tasks: Dict[str, DownloadTask] = {}
        self._tokens: Dict[str, CancelToken] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._fetches: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()
        self._closed = False

    # --- task collection ---

    @property
    def tasks(self) -> List[DownloadTask]:
        """Snapshot of tracked downloads"""
        return list(self._tasks.values())

    def get_task(self, file_id: str) -> Optional[DownloadTask]:
        return self._tasks.get(file_id)

    def is_active(self, file_id: str) -> bool:
        """Whether a download is in flight or waiting for its automatic retry"""
        return file_id in self._tokens

    def _notify_listener(self, file_id: str, task: Optional[DownloadTask]):
        if self.on_task_change is None:
            return
        try:
            self.on_task_change(file_id, task)
        except Exception as e:
            logger.warning(f"Download listener failed: {e}")

    def _put_task(self, task: DownloadTask):
        # Entries are replaced whole, never mutated in place
        self._tasks[task.file_id] = task
        self._notify_listener(task.file_id, task)

    def _update_task(self, file_id: str, **changes) -> Optional[DownloadTask]:
        current = self._tasks.get(file_id)
        if current is None:
            return None
        updated = DownloadTask.model_validate({**current.model_dump(), **changes})
        self._put_task(updated)
        return updated

    def _remove_task(self, file_id: str):
        if self._tasks.pop(file_id, None) is not None:
            self._notify_listener(file_id, None)

    def _is_current(self, file_id: str, token: CancelToken) -> bool:
        return self._tokens.get(file_id) is token

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _cancel_timer(self, file_id: str):
        handle = self._timers.pop(file_id, None)
        if handle is not None:
            handle.cancel()

    # --- downloads ---

    async def start_download(self, file_id: str, url: str, file_name: str) -> Optional[Path]:
        """
        Download one file and save it.

        Returns:
            Path of the saved file, or None if the download was cancelled or failed.
            Failures are reported through the task entry, not raised.
        """
        if not file_id or not url:
            raise ValueError("file_id and url are required")
        return await self._download(file_id, url, file_name, self.auto_retries)

    async def _download(
        self,
        file_id: str,
        url: str,
        file_name: str,
        retries_left: int,
    ) -> Optional[Path]:
        if self._closed:
            logger.warning(f"Transfer engine is closed, ignoring download of {file_name}")
            return None

        # A new start supersedes any earlier transfer of the same file
        previous = self._tokens.get(file_id)
        if previous is not None:
            previous.cancel()
        self._abort_fetch(file_id)
        self._cancel_timer(file_id)

        token = CancelToken()
        self._tokens[file_id] = token
        self._put_task(DownloadTask(file_id=file_id, file_name=file_name, progress=0, status="downloading"))

        logger.info(f"Starting download: {file_name}", file_id=file_id)

        # The body is read in its own task so cancel() and close() can
        # interrupt a read that is waiting on the network
        fetch = asyncio.create_task(self._fetch_bytes(file_id, url, token))
        self._fetches[file_id] = fetch

        try:
            data = await fetch
            token.raise_if_cancelled()
            saved_path = await self.save_target.save(data, file_name)
        except DownloadCancelledError:
            self._discard_cancelled(file_id, token)
            return None
        except asyncio.CancelledError:
            if not token.cancelled:
                raise
            self._discard_cancelled(file_id, token)
            return None
        except Exception as e:
            if not self._is_current(file_id, token):
                return None
            message = str(e) or "Failed to download"
            logger.error(f"Download error for {file_name}: {message}", file_id=file_id)
            self._update_task(file_id, status="error", error=message)
            if retries_left > 0:
                self._schedule_retry(file_id, url, file_name, token, retries_left - 1)
            else:
                # Terminal failure: the error entry stays listed until dismissed
                del self._tokens[file_id]
            return None
        finally:
            if self._fetches.get(file_id) is fetch:
                del self._fetches[file_id]

        if not self._is_current(file_id, token):
            return None

        del self._tokens[file_id]
        completed = self._update_task(file_id, progress=100, status="complete", error=None)
        self._schedule_removal(file_id, completed)
        logger.info(f"✅ Download complete: {file_name} ({len(data)} bytes)", file_id=file_id)

        await self._record_activity(file_id, file_name)
        if self.on_download is not None:
            try:
                self.on_download(file_id)
            except Exception as e:
                logger.warning(f"on_download callback failed: {e}")

        return saved_path

    def _discard_cancelled(self, file_id: str, token: CancelToken):
        logger.info("Download was cancelled", file_id=file_id)
        if self._is_current(file_id, token):
            del self._tokens[file_id]
            self._remove_task(file_id)

    def _abort_fetch(self, file_id: str):
        fetch = self._fetches.pop(file_id, None)
        if fetch is not None and not fetch.done():
            fetch.cancel()

    async def _fetch_bytes(self, file_id: str, url: str, token: CancelToken) -> bytes:
        """Stream the body into memory, reporting progress when the length is known"""
        chunks: List[bytes] = []
        received = 0

        token.raise_if_cancelled()
        async with self.fetcher.fetch(url) as stream:
            total = stream.total or 0
            async for chunk in stream.chunks:
                token.raise_if_cancelled()
                chunks.append(chunk)
                received += len(chunk)
                if total > 0:
                    self._report_progress(file_id, token, compute_progress(received, total))

        return b"".join(chunks)

    def _report_progress(self, file_id: str, token: CancelToken, progress: int):
        if not self._is_current(file_id, token):
            return
        current = self._tasks.get(file_id)
        if current is None or progress <= current.progress:
            return
        self._update_task(file_id, progress=progress)

    def _schedule_removal(self, file_id: str, completed: Optional[DownloadTask]):
        loop = asyncio.get_running_loop()

        def expire():
            self._timers.pop(file_id, None)
            if completed is not None and self._tasks.get(file_id) is completed:
                self._remove_task(file_id)

        self._timers[file_id] = loop.call_later(self.complete_linger, expire)

    def _schedule_retry(
        self,
        file_id: str,
        url: str,
        file_name: str,
        token: CancelToken,
        retries_left: int,
    ):
        async def retry_later():
            await asyncio.sleep(self.retry_delay)
            # Skip if the user cancelled or another start took over meanwhile
            if self._is_current(file_id, token):
                logger.info(f"Retrying download: {file_name}", file_id=file_id)
                await self._download(file_id, url, file_name, retries_left)

        self._spawn(retry_later())

    async def _record_activity(self, file_id: str, file_name: str):
        if self.activity_log is None:
            return
        try:
            await self.activity_log.record_download(file_id, file_name)
        except Exception as e:
            logger.warning(f"Failed to record download activity: {e}", file_id=file_id)

    def cancel(self, file_id: str) -> bool:
        """
        Cancel a tracked download.

        Returns:
            True if a download was cancelled or a failed entry dismissed
        """
        token = self._tokens.pop(file_id, None)
        if token is None:
            task = self._tasks.get(file_id)
            if task is not None and task.status == "error":
                # Dismiss a download that failed for good
                self._remove_task(file_id)
                return True
            return False
        token.cancel()
        self._abort_fetch(file_id)
        self._remove_task(file_id)
        self.notifier.info("Download cancelled")
        logger.info("Download cancelled by user", file_id=file_id)
        return True

    async def _start_after(self, delay: float, file: FileRecord):
        if delay > 0:
            await asyncio.sleep(delay)
        await self.start_download(file.id, file.url, file.name)

    async def start_bulk_download(self, files: Sequence[FileRecord]) -> List[asyncio.Task]:
        """
        Schedule downloads for several files.

        A single file starts immediately. Several files start staggered by
        ``bulk_stagger`` seconds each; once started they run concurrently.

        Returns:
            The scheduled asyncio tasks
        """
        if not files:
            return []
        if len(files) == 1:
            file = files[0]
            return [self._spawn(self.start_download(file.id, file.url, file.name))]

        delays = stagger_delays(len(files), self.bulk_stagger)
        logger.info(f"Starting bulk download of {len(files)} files")
        return [self._spawn(self._start_after(delay, file)) for delay, file in zip(delays, files)]

    async def wait_idle(self):
        """Wait for scheduled bulk starts and retries to finish"""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self):
        """Abort every outstanding transfer and drop all state"""
        self._closed = True

        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()

        fetches = list(self._fetches.values())
        self._fetches.clear()
        for fetch in fetches:
            fetch.cancel()
        if fetches:
            await asyncio.gather(*fetches, return_exceptions=True)

        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        pending = list(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._background.clear()

        self._tasks.clear()
        logger.debug("Transfer engine closed")
