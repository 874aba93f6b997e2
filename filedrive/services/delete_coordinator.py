"""Delete coordinator - removes files from blob storage and the metadata table"""

from typing import Any, Sequence

from filedrive.models.delete_result import DeleteResult
from filedrive.models.file_record import FileRecord
from filedrive.services.notifications import Notifier
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)


class DeleteInProgressError(Exception):
    """Raised when a delete batch is requested while another is running"""
    pass


class FileDeleteCoordinator:
    """
    Deletes files one at a time: blob first, then the metadata row.

    The metadata row is only removed after its blob was removed, so a row
    never points at content that is already gone. A removed blob whose row
    could not be deleted is logged and left as is.
    """

    def __init__(self, object_store: Any, metadata_store: Any, notifier: Notifier):
        self.object_store = object_store
        self.metadata_store = metadata_store
        self.notifier = notifier
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def _delete_one(self, file: FileRecord) -> bool:
        if not await self.object_store.delete(file.path):
            logger.error(f"Storage delete error for {file.name}", file_id=file.id, path=file.path)
            return False

        if not await self.metadata_store.delete_by_id(file.id):
            logger.error(
                f"Database delete error for {file.name}; blob already removed",
                file_id=file.id,
                path=file.path,
            )
            return False

        return True

    async def delete_files(self, files: Sequence[FileRecord]) -> DeleteResult:
        """
        Delete a batch of files

        Returns:
            DeleteResult with the ids removed and the ids that failed

        Raises:
            DeleteInProgressError: If another batch is still running
        """
        if self._busy:
            logger.warning("Delete batch rejected: another batch is in progress")
            raise DeleteInProgressError("A delete operation is already in progress")

        result = DeleteResult()
        if not files:
            return result

        self._busy = True
        try:
            logger.info(f"Deleting {len(files)} file(s)")
            for file in files:
                try:
                    deleted = await self._delete_one(file)
                except Exception as e:
                    logger.error(f"Error deleting file {file.name}: {e}", exc_info=True)
                    deleted = False

                if deleted:
                    result.deleted_ids.append(file.id)
                else:
                    result.failed_ids.append(file.id)
        finally:
            self._busy = False

        self._report(result)
        return result

    def _report(self, result: DeleteResult):
        if result.success_count > 0:
            if result.success_count == 1:
                message = "File deleted successfully"
            else:
                message = f"{result.success_count} files deleted successfully"
            self.notifier.success(message)

        if result.failure_count > 0:
            if result.failure_count == 1:
                message = "Failed to delete 1 file"
            else:
                message = f"Failed to delete {result.failure_count} files"
            self.notifier.error("Error", message)

        logger.info(
            "delete_batch_finished",
            deleted=result.success_count,
            failed=result.failure_count,
        )
