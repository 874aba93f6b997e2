"""Metadata table client for file records"""

import aiohttp
import asyncio
from typing import Any, Dict, List, Optional

from filedrive.config import settings
from filedrive.models.file_record import FileRecord
from filedrive.services.backend_client import BackendClient
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)


class MetadataStoreError(Exception):
    """Raised when the metadata table rejects a read or write"""
    pass


class MetadataStoreService:
    """Row-level access to the files table over the backend's REST interface"""

    def __init__(self, client: BackendClient, table: Optional[str] = None):
        self.client = client
        self.table = table or settings.files_table

    @property
    def table_url(self) -> str:
        return f"{self.client.rest_url}/{self.table}"

    async def insert(self, row: Dict[str, Any]) -> FileRecord:
        """
        Insert a file row and return the stored record

        Raises:
            MetadataStoreError: If the insert fails
        """
        try:
            session = await self.client.get_session()
            async with session.post(
                self.table_url,
                headers=self.client.headers({"Prefer": "return=representation"}),
                json=row,
            ) as response:
                if response.status in (200, 201):
                    data = await response.json()
                    stored = data[0] if isinstance(data, list) else data
                    logger.info(f"Inserted file record {stored.get('id')} ({row.get('name')})")
                    return FileRecord.model_validate(stored)
                error_text = await response.text()
                logger.error(f"Database insert error: {response.status} - {error_text}")
                raise MetadataStoreError(f"Insert failed: HTTP {response.status}")
        except MetadataStoreError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to insert file record: {e}")
            raise MetadataStoreError(f"Insert error: {str(e)}") from e

    async def delete_by_id(self, file_id: str) -> bool:
        """
        Delete one file row

        Returns:
            True if deleted
        """
        try:
            session = await self.client.get_session()
            async with session.delete(
                self.table_url,
                headers=self.client.headers(),
                params={"id": f"eq.{file_id}"},
            ) as response:
                if response.status in (200, 204):
                    logger.info(f"✅ File record deleted: {file_id}")
                    return True
                error_text = await response.text()
                logger.error(f"Database delete error for {file_id}: {response.status} - {error_text}")
                return False
        except Exception as e:
            logger.error(f"Failed to delete file record {file_id}: {e}")
            return False

    async def list_by_owner(self, owner_id: str) -> List[FileRecord]:
        """
        List an owner's files, newest first

        Raises:
            MetadataStoreError: If the query fails
        """
        params = {
            "select": "*",
            "user_id": f"eq.{owner_id}",
            "order": "created_at.desc",
        }
        try:
            session = await self.client.get_session()
            async with session.get(
                self.table_url,
                headers=self.client.headers(),
                params=params,
            ) as response:
                if response.status == 200:
                    rows = await response.json()
                    return [FileRecord.model_validate(row) for row in rows or []]
                error_text = await response.text()
                logger.error(f"Failed to list files: {response.status} - {error_text}")
                raise MetadataStoreError(f"List failed: HTTP {response.status}")
        except MetadataStoreError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to list files for {owner_id}: {e}")
            raise MetadataStoreError(f"List error: {str(e)}") from e
