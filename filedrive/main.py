"""Wiring of the drive services for one signed-in user"""

from typing import Optional

from filedrive.config import settings
from filedrive.database import database
from filedrive.services.activity_log import ActivityLogService
from filedrive.services.backend_client import BackendClient
from filedrive.services.delete_coordinator import FileDeleteCoordinator
from filedrive.services.file_browser import FileBrowser
from filedrive.services.metadata_store import MetadataStoreService
from filedrive.services.notifications import LoggingNotifier, Notifier
from filedrive.services.object_store import ObjectStoreService
from filedrive.services.save_target import DirectorySaveTarget, SaveTarget
from filedrive.services.transfer_engine import FileTransferEngine
from filedrive.services.upload_service import FileUploadService
from filedrive.utils.logger import get_logger, log_backend_config

logger = get_logger(__name__)


class FileDrive:
    """
    Owns the backend session and every service of a drive session.

    Usage:
        drive = FileDrive(owner_id="user-1", access_token=token)
        browser = await drive.start()
        ...
        await drive.stop()
    """

    def __init__(
        self,
        owner_id: str,
        access_token: Optional[str] = None,
        notifier: Optional[Notifier] = None,
        save_target: Optional[SaveTarget] = None,
    ):
        self.owner_id = owner_id
        self.notifier = notifier or LoggingNotifier()
        self.client = BackendClient(access_token=access_token)
        self.object_store = ObjectStoreService(self.client)
        self.metadata_store = MetadataStoreService(self.client)
        self.activity_log = ActivityLogService()
        self.transfer_engine = FileTransferEngine(
            fetcher=self.object_store,
            save_target=save_target or DirectorySaveTarget(),
            notifier=self.notifier,
            activity_log=self.activity_log,
        )
        self.delete_coordinator = FileDeleteCoordinator(self.object_store, self.metadata_store, self.notifier)
        self.upload_service = FileUploadService(self.object_store, self.metadata_store, self.notifier)
        self.browser = FileBrowser(
            owner_id=owner_id,
            metadata_store=self.metadata_store,
            transfer_engine=self.transfer_engine,
            delete_coordinator=self.delete_coordinator,
            activity_log=self.activity_log,
            notifier=self.notifier,
            upload_service=self.upload_service,
        )

    async def start(self) -> FileBrowser:
        """Initialize local state and load the file listing"""
        log_backend_config(logger, settings)

        if database.engine is None:
            database.initialize()

        await self.activity_log.initialize()
        await self.browser.refresh()
        logger.info(f"File drive started for {self.owner_id}")
        return self.browser

    async def stop(self):
        """Abort transfers and release the backend session"""
        await self.browser.close()
        await self.client.close()
        logger.info(f"File drive stopped for {self.owner_id}")
