"""Unit tests for FileDeleteCoordinator"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from filedrive.services.delete_coordinator import DeleteInProgressError, FileDeleteCoordinator

from conftest import make_file


def make_stores(blob_results=None, row_results=None):
    object_store = MagicMock()
    object_store.delete = AsyncMock(side_effect=lambda path: (blob_results or {}).get(path, True))
    metadata_store = MagicMock()
    metadata_store.delete_by_id = AsyncMock(side_effect=lambda file_id: (row_results or {}).get(file_id, True))
    return object_store, metadata_store


class TestDeleteFiles:
    """Test batch deletes"""

    @pytest.mark.asyncio
    async def test_single_file_success(self, notifier):
        object_store, metadata_store = make_stores()
        coordinator = FileDeleteCoordinator(object_store, metadata_store, notifier)
        file = make_file("a")

        result = await coordinator.delete_files([file])

        assert result.deleted_ids == ["a"]
        assert result.failed_ids == []
        object_store.delete.assert_awaited_once_with(file.path)
        metadata_store.delete_by_id.assert_awaited_once_with("a")
        assert notifier.messages == [("success", "File deleted successfully", None)]

    @pytest.mark.asyncio
    async def test_partial_failure(self, notifier):
        a, b, c = make_file("a"), make_file("b"), make_file("c")
        object_store, metadata_store = make_stores(
            blob_results={b.path: False},
            row_results={"c": False},
        )
        coordinator = FileDeleteCoordinator(object_store, metadata_store, notifier)

        result = await coordinator.delete_files([a, b, c])

        assert result.deleted_ids == ["a"]
        assert result.failed_ids == ["b", "c"]
        deleted_rows = [call.args[0] for call in metadata_store.delete_by_id.await_args_list]
        assert "b" not in deleted_rows
        assert deleted_rows == ["a", "c"]
        assert ("success", "File deleted successfully", None) in notifier.messages
        assert ("error", "Error", "Failed to delete 2 files") in notifier.messages

    @pytest.mark.asyncio
    async def test_exception_marks_file_failed_and_continues(self, notifier):
        a, b = make_file("a"), make_file("b")
        object_store, metadata_store = make_stores()

        async def delete(path):
            if path == a.path:
                raise ConnectionError("network down")
            return True

        object_store.delete = AsyncMock(side_effect=delete)
        coordinator = FileDeleteCoordinator(object_store, metadata_store, notifier)

        result = await coordinator.delete_files([a, b])

        assert result.failed_ids == ["a"]
        assert result.deleted_ids == ["b"]
        assert ("error", "Error", "Failed to delete 1 file") in notifier.messages
        assert not coordinator.is_busy

    @pytest.mark.asyncio
    async def test_multiple_successes_message(self, notifier):
        object_store, metadata_store = make_stores()
        coordinator = FileDeleteCoordinator(object_store, metadata_store, notifier)

        await coordinator.delete_files([make_file("a"), make_file("b"), make_file("c")])

        assert notifier.messages == [("success", "3 files deleted successfully", None)]

    @pytest.mark.asyncio
    async def test_empty_batch_does_nothing(self, notifier):
        object_store, metadata_store = make_stores()
        coordinator = FileDeleteCoordinator(object_store, metadata_store, notifier)

        result = await coordinator.delete_files([])

        assert result.success_count == 0
        assert result.failure_count == 0
        assert notifier.messages == []
        object_store.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_batch_rejected_while_busy(self, notifier):
        release = asyncio.Event()
        object_store, metadata_store = make_stores()

        async def slow_delete(path):
            await release.wait()
            return True

        object_store.delete = AsyncMock(side_effect=slow_delete)
        coordinator = FileDeleteCoordinator(object_store, metadata_store, notifier)

        first = asyncio.create_task(coordinator.delete_files([make_file("a")]))
        await asyncio.sleep(0)
        assert coordinator.is_busy

        with pytest.raises(DeleteInProgressError):
            await coordinator.delete_files([make_file("b")])

        release.set()
        result = await first
        assert result.deleted_ids == ["a"]
        assert not coordinator.is_busy
