"""User-facing notification sink"""

from abc import ABC, abstractmethod
from typing import Optional

from filedrive.utils.logger import get_logger

logger = get_logger(__name__)

# Valid notification kinds
VALID_KINDS = ["success", "error", "info"]


class Notifier(ABC):
    """Fire-and-forget sink for short user notifications"""

    @abstractmethod
    def notify(self, kind: str, title: str, description: Optional[str] = None) -> None:
        """Deliver one notification"""

    def success(self, title: str, description: Optional[str] = None) -> None:
        self.notify("success", title, description)

    def error(self, title: str, description: Optional[str] = None) -> None:
        self.notify("error", title, description)

    def info(self, title: str, description: Optional[str] = None) -> None:
        self.notify("info", title, description)


class LoggingNotifier(Notifier):
    """Notifier that writes notifications to the structured log"""

    def notify(self, kind: str, title: str, description: Optional[str] = None) -> None:
        if kind not in VALID_KINDS:
            raise ValueError(f"Invalid notification kind: {kind}. Valid values: {VALID_KINDS}")
        if kind == "error":
            logger.warning("notification", kind=kind, title=title, description=description)
        else:
            logger.info("notification", kind=kind, title=title, description=description)
