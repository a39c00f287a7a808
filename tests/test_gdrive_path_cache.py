"""
Unit tests for remote_lsf.gdrive_path_cache module.

Tests cover:
- Root resolution (My Drive, a configured folder, a shared drive)
- Segment-by-segment resolution from the deepest cached folder
- IDs remembered from listings
- Invalidation (including descendants) and clearing
- Path normalization
- Query escaping and shared drive parameters
- API errors reaching the caller
"""

import time
from unittest.mock import MagicMock

import pytest

from remote_lsf.gdrive_path_cache import PathCache


@pytest.fixture
def mock_service():
    """Creates a mocked Google Drive API service."""
    return MagicMock()


@pytest.fixture
def path_cache(mock_service):
    """Creates a PathCache rooted at My Drive."""
    return PathCache(mock_service, ttl_seconds=60)


def _queue_responses(mock_service, *file_ids):
    """Make successive files().list() calls find the given IDs (None = not found)."""
    mock_service.files().list().execute.side_effect = [
        {"files": [{"id": fid, "name": "x"}]} if fid else {"files": []} for fid in file_ids
    ]


def _queries(mock_service):
    return [c[1]["q"] for c in mock_service.files().list.call_args_list if c[1]]


class TestRoot:
    def test_my_drive(self, path_cache, mock_service):
        assert path_cache.resolve("/") == "root"
        mock_service.files().list().execute.assert_not_called()

    def test_configured_folder(self, mock_service):
        cache = PathCache(mock_service, root_id="folder_abc")
        assert cache.resolve("/") == "folder_abc"
        assert cache.root_id == "folder_abc"

    def test_shared_drive_overrides_root_folder(self, mock_service):
        cache = PathCache(mock_service, shared_drive_id="sd1", root_id="folder_abc")
        assert cache.resolve("/") == "sd1"
        assert cache.shared_drive_id == "sd1"


class TestResolve:
    def test_walks_each_segment_from_root(self, path_cache, mock_service):
        _queue_responses(mock_service, "docs_id", "notes_id")

        assert path_cache.resolve("/Documents/notes.txt") == "notes_id"

        queries = _queries(mock_service)
        assert queries == [
            "name='Documents' and 'root' in parents and trashed=false",
            "name='notes.txt' and 'docs_id' in parents and trashed=false",
        ]

    def test_missing_segment_returns_none(self, path_cache, mock_service):
        _queue_responses(mock_service, "a_id", None)

        assert path_cache.resolve("/a/missing/deeper") is None
        assert len(_queries(mock_service)) == 2

    def test_intermediate_segments_cached(self, path_cache, mock_service):
        _queue_responses(mock_service, "a_id", "b_id")
        path_cache.resolve("/a/b")

        assert path_cache.resolve("/a") == "a_id"
        assert path_cache.resolve("/a/b") == "b_id"
        assert len(_queries(mock_service)) == 2

    def test_starts_from_deepest_known_folder(self, path_cache, mock_service):
        path_cache.remember("/a/b", "b_id")
        _queue_responses(mock_service, "c_id")

        assert path_cache.resolve("/a/b/c") == "c_id"
        assert _queries(mock_service) == ["name='c' and 'b_id' in parents and trashed=false"]

    def test_entries_expire(self, mock_service):
        cache = PathCache(mock_service, ttl_seconds=0)
        _queue_responses(mock_service, "first", "second")

        assert cache.resolve("/folder") == "first"
        time.sleep(0.01)
        assert cache.resolve("/folder") == "second"

    def test_api_errors_propagate(self, path_cache, mock_service):
        mock_service.files().list().execute.side_effect = OSError("connection reset")

        with pytest.raises(OSError, match="connection reset"):
            path_cache.resolve("/broken")


class TestRemember:
    def test_remembered_id_skips_api(self, path_cache, mock_service):
        path_cache.remember("/Docs/report.pdf", "report_id")

        assert path_cache.resolve("/Docs/report.pdf") == "report_id"
        assert _queries(mock_service) == []

    def test_remembered_path_is_normalized(self, path_cache):
        path_cache.remember("Docs/sub/", "sub_id")
        assert path_cache.resolve("/Docs/sub") == "sub_id"


class TestInvalidation:
    def test_invalidate_forces_lookup(self, path_cache, mock_service):
        path_cache.remember("/file.txt", "old_id")
        path_cache.invalidate("/file.txt")
        _queue_responses(mock_service, "new_id")

        assert path_cache.resolve("/file.txt") == "new_id"

    def test_invalidate_drops_descendants(self, path_cache):
        path_cache.remember("/a", "1")
        path_cache.remember("/a/b", "2")
        path_cache.remember("/ab", "3")

        path_cache.invalidate("/a")

        assert len(path_cache) == 1
        assert path_cache.resolve("/ab") == "3"

    def test_clear(self, path_cache):
        path_cache.remember("/a", "1")
        path_cache.remember("/b", "2")

        path_cache.clear()

        assert len(path_cache) == 0


class TestNormalization:
    @pytest.mark.parametrize("path", ["folder", "/folder/", "/folder", "folder/"])
    def test_variants_share_one_entry(self, path_cache, mock_service, path):
        path_cache.remember("/folder", "folder_id")
        assert path_cache.resolve(path) == "folder_id"


class TestQuery:
    def test_quotes_and_backslashes_escaped(self, path_cache, mock_service):
        _queue_responses(mock_service, "file_id")

        assert path_cache.resolve("/it's a\\b") == "file_id"

        # One segment: the backslash belongs to the name
        assert _queries(mock_service) == [
            "name='it\\'s a\\\\b' and 'root' in parents and trashed=false"
        ]

    def test_shared_drive_parameters(self, mock_service):
        cache = PathCache(mock_service, shared_drive_id="shared123")
        _queue_responses(mock_service, "file_id")

        cache.resolve("/file.txt")

        kwargs = mock_service.files().list.call_args[1]
        assert kwargs["corpora"] == "drive"
        assert kwargs["driveId"] == "shared123"
        assert kwargs["includeItemsFromAllDrives"] is True
        assert kwargs["supportsAllDrives"] is True
        assert "'shared123' in parents" in kwargs["q"]
