"""Blob storage client - put, delete, public URLs and streamed fetches"""

import aiohttp
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote

from filedrive.config import settings
from filedrive.services.backend_client import BackendClient
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)


class StorageUploadError(Exception):
    """Raised when writing a blob fails"""
    pass


class TransferError(Exception):
    """Raised when a remote file cannot be fetched"""
    pass


@dataclass
class FetchStream:
    """An open streamed response body"""

    total: Optional[int]
    chunks: AsyncIterator[bytes]


class ObjectStoreService:
    """
    Client for the backend's blob storage bucket.

    Paths are bucket-relative keys such as "user-files/<owner>/documents/x.pdf".
    """

    def __init__(
        self,
        client: BackendClient,
        bucket: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ):
        self.client = client
        self.bucket = bucket or settings.storage_bucket
        self.chunk_size = chunk_size or settings.download_chunk_size

    def _object_url(self, path: str) -> str:
        return f"{self.client.storage_url}/object/{self.bucket}/{quote(path)}"

    def public_url(self, path: str) -> str:
        """Publicly fetchable address of a blob"""
        return f"{self.client.storage_url}/object/public/{self.bucket}/{quote(path)}"

    async def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cache_control: str = "3600",
    ) -> Dict[str, Any]:
        """
        Write a new blob (never overwrites an existing key)

        Args:
            path: Bucket-relative key
            data: File contents
            content_type: MIME type stored with the blob

        Returns:
            Dict with 'path' and 'size'

        Raises:
            StorageUploadError: If the backend rejects the write
        """
        session = await self.client.get_session()
        headers = self.client.headers({
            "Content-Type": content_type,
            "cache-control": f"max-age={cache_control}",
            "x-upsert": "false",
        })

        logger.info(f"Uploading {len(data)} bytes to {self.bucket}/{path}")

        try:
            async with session.post(self._object_url(path), headers=headers, data=data) as response:
                if response.status in (200, 201):
                    logger.info(f"✅ Blob uploaded: {path}")
                    return {"path": path, "size": len(data)}
                error_text = await response.text()
                logger.error(f"Upload failed: {response.status} - {error_text}")
                raise StorageUploadError(f"HTTP {response.status}: {error_text}")
        except StorageUploadError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to upload blob {path}: {e}")
            raise StorageUploadError(f"Upload error: {str(e)}") from e

    async def delete(self, path: str) -> bool:
        """
        Remove a blob

        Returns:
            True if the backend confirmed the removal
        """
        try:
            session = await self.client.get_session()
            async with session.delete(
                f"{self.client.storage_url}/object/{self.bucket}",
                headers=self.client.headers(),
                json={"prefixes": [path]},
            ) as response:
                if response.status in (200, 204):
                    logger.info(f"✅ Blob deleted: {path}")
                    return True
                error_text = await response.text()
                logger.error(f"Storage delete error for {path}: {response.status} - {error_text}")
                return False
        except Exception as e:
            logger.error(f"Failed to delete blob {path}: {e}")
            return False

    @asynccontextmanager
    async def fetch(self, url: str) -> AsyncIterator[FetchStream]:
        """
        Open a streamed GET of a public file URL

        Yields:
            FetchStream with the declared Content-Length (or None) and a chunk iterator

        Raises:
            TransferError: On a non-success HTTP status
        """
        session = await self.client.get_session()
        # Long downloads are bounded per read rather than in total
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self.client.timeout)
        async with session.get(url, timeout=timeout) as response:
            if response.status != 200:
                raise TransferError(f"HTTP error! status: {response.status}")
            yield FetchStream(
                total=response.content_length,
                chunks=response.content.iter_chunked(self.chunk_size),
            )
