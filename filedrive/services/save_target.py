"""Save-to-device targets for downloaded bytes"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from filedrive.config import settings
from filedrive.utils.file_utils import safe_file_name
from filedrive.utils.logger import get_logger

logger = get_logger(__name__)


class SaveTarget(ABC):
    """Where completed downloads end up"""

    @abstractmethod
    async def save(self, data: bytes, file_name: str) -> Path:
        """
        Persist downloaded bytes under a suggested name

        Returns:
            Path of the saved file
        """


class DirectorySaveTarget(SaveTarget):
    """Writes downloads into a local directory without overwriting"""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory or settings.download_dir)

    def _unique_path(self, file_name: str) -> Path:
        candidate = self.directory / file_name
        if not candidate.exists():
            return candidate
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while True:
            candidate = self.directory / f"{stem} ({counter}){suffix}"
            if not candidate.exists():
                return candidate
            counter += 1

    async def save(self, data: bytes, file_name: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        destination = self._unique_path(safe_file_name(file_name))
        destination.write_bytes(data)
        logger.info(f"Saved download to {destination} ({len(data)} bytes)")
        return destination
