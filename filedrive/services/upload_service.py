"""Upload service - blob write followed by metadata insert"""

import mimetypes
from typing import Any, Optional

from filedrive.config import settings
from filedrive.models.file_record import FileRecord
from filedrive.services.notifications import Notifier
from filedrive.utils.file_utils import build_storage_path, detect_file_type
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)


class FileTooLargeError(Exception):
    """Raised when a file exceeds the configured upload limit"""
    pass


class FileUploadService:
    """Uploads a file's bytes to blob storage and registers its metadata row"""

    def __init__(
        self,
        object_store: Any,
        metadata_store: Any,
        notifier: Notifier,
        max_file_size_mb: Optional[int] = None,
        default_folder: Optional[str] = None,
    ):
        self.object_store = object_store
        self.metadata_store = metadata_store
        self.notifier = notifier
        self.max_file_size_mb = max_file_size_mb or settings.upload_max_file_size_mb
        self.default_folder = default_folder or settings.upload_default_folder

    def validate_size(self, size: int):
        """Reject files above the upload limit"""
        if size > self.max_file_size_mb * 1024 * 1024:
            self.notifier.error("File too large", f"Maximum file size is {self.max_file_size_mb}MB")
            raise FileTooLargeError(
                f"File is too large ({size} bytes). Max size is {self.max_file_size_mb}MB."
            )

    async def upload(
        self,
        owner_id: str,
        data: bytes,
        file_name: str,
        folder: Optional[str] = None,
    ) -> FileRecord:
        """
        Upload a file for an owner

        Args:
            owner_id: User the file belongs to
            data: File contents
            file_name: Original file name (kept as the display name)
            folder: Logical folder, defaults to the configured upload folder

        Returns:
            The stored FileRecord

        Raises:
            FileTooLargeError: If the file exceeds the limit
            StorageUploadError: If the blob write fails (no row is inserted)
            MetadataStoreError: If the row insert fails (the blob is removed again)
        """
        folder = folder or self.default_folder
        self.validate_size(len(data))

        path = build_storage_path(owner_id, folder, file_name)
        content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"

        await self.object_store.put(path, data, content_type=content_type)
        public_url = self.object_store.public_url(path)

        row = {
            "name": file_name,
            "size": len(data),
            "type": detect_file_type(file_name),
            "path": path,
            "user_id": owner_id,
            "folder": folder,
            "url": public_url,
        }

        try:
            record = await self.metadata_store.insert(row)
        except Exception:
            logger.error(f"Metadata insert failed for {file_name}, removing uploaded blob", path=path)
            if not await self.object_store.delete(path):
                logger.warning(f"Orphaned blob left in storage: {path}")
            raise

        logger.info(f"Uploaded {file_name} ({len(data)} bytes) as {path}", file_id=record.id)
        return record
