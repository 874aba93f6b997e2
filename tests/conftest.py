"""Pytest configuration and shared fixtures"""

import asyncio
import json
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import patch

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from filedrive.models.file_record import FileRecord
from filedrive.services.notifications import Notifier
from filedrive.services.object_store import FetchStream
from filedrive.services.save_target import SaveTarget


@pytest.fixture(autouse=True)
def reset_env_vars() -> Generator[None, None, None]:
    """Reset environment variables before each test"""
    original_env = os.environ.copy()

    backend_vars = [
        "ENVIRONMENT",
        "LOG_LEVEL",
        "BACKEND_URL",
        "BACKEND_API_KEY",
        "BACKEND_ACCESS_TOKEN",
        "BACKEND_TIMEOUT",
        "STORAGE_BUCKET",
        "FILES_TABLE",
        "DOWNLOAD_AUTO_RETRIES",
        "DOWNLOAD_HISTORY_LIMIT",
        "UPLOAD_MAX_FILE_SIZE_MB",
    ]

    for var in backend_vars:
        os.environ.pop(var, None)

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def memory_database():
    """Point the local state store at a fresh in-memory SQLite database"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with patch("filedrive.services.local_store.database") as mock_db:
        mock_db.get_session = lambda: Session(engine)
        yield engine
    engine.dispose()


class RecordingNotifier(Notifier):
    """Keeps every notification for assertions"""

    def __init__(self):
        self.messages: List[tuple] = []

    def notify(self, kind: str, title: str, description: Optional[str] = None) -> None:
        self.messages.append((kind, title, description))

    def of_kind(self, kind: str) -> List[tuple]:
        return [m for m in self.messages if m[0] == kind]


class MemorySaveTarget(SaveTarget):
    """Keeps saved downloads in memory"""

    def __init__(self):
        self.saved: Dict[str, bytes] = {}

    async def save(self, data: bytes, file_name: str) -> Path:
        self.saved[file_name] = data
        return Path(file_name)


class MemoryStore:
    """Key-value store that round-trips values through JSON like the real one"""

    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self.data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any):
        self.data[key] = json.dumps(value)


class BrokenStore:
    """Key-value store whose every call fails"""

    def get(self, key: str):
        raise OSError("storage unavailable")

    def set(self, key: str, value: Any):
        raise OSError("quota exceeded")


@dataclass
class FetchPlan:
    """Scripted behaviour for one fetch of a URL"""

    chunks: List[bytes] = field(default_factory=list)
    total: Optional[int] = None
    error: Optional[Exception] = None
    fail_after: Optional[int] = None
    gate_after: Optional[int] = None
    gate: Optional[asyncio.Event] = None


class FakeFetcher:
    """Serves scripted streamed responses; the last plan for a URL repeats"""

    def __init__(self):
        self.plans: Dict[str, List[FetchPlan]] = {}
        self.calls: List[str] = []
        self.call_times: List[float] = []

    def add(self, url: str, *plans: FetchPlan):
        self.plans.setdefault(url, []).extend(plans)

    def _next_plan(self, url: str) -> FetchPlan:
        plans = self.plans[url]
        return plans.pop(0) if len(plans) > 1 else plans[0]

    @asynccontextmanager
    async def fetch(self, url: str):
        self.calls.append(url)
        self.call_times.append(asyncio.get_running_loop().time())
        plan = self._next_plan(url)
        if plan.error is not None:
            raise plan.error

        async def chunks():
            for index, chunk in enumerate(plan.chunks):
                if plan.fail_after is not None and index == plan.fail_after:
                    raise ConnectionError("connection reset")
                if plan.gate is not None and index == plan.gate_after:
                    await plan.gate.wait()
                await asyncio.sleep(0)
                yield chunk

        yield FetchStream(total=plan.total, chunks=chunks())


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def make_file(
    file_id: str,
    name: Optional[str] = None,
    type: str = "document",
    size: int = 1024,
    created_at: Optional[datetime] = None,
    path: Optional[str] = None,
) -> FileRecord:
    name = name or f"{file_id}.pdf"
    return FileRecord(
        id=file_id,
        name=name,
        size=size,
        type=type,
        url=f"https://cdn.example.com/{file_id}",
        path=path or f"user-files/user-1/documents/{file_id}",
        folder="documents",
        created_at=created_at or NOW - timedelta(hours=1),
        user_id="user-1",
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def save_target() -> MemorySaveTarget:
    return MemorySaveTarget()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()
