"""
Path to file ID resolution for Google Drive.

Drive addresses everything by ID. A path such as "/Documents/notes.txt"
is resolved one segment at a time, starting from the deepest ancestor
already known, and every ID learned is kept in a TTL cache.
"""

import logging
import threading

from cachetools import TTLCache

logger = logging.getLogger(__name__)

FOLDER_MIME = "application/vnd.google-apps.folder"


def normalize_path(path: str) -> str:
    """One leading slash, no trailing slash. Drive names may contain backslashes."""
    return "/" + path.strip("/")


def drive_list_kwargs(shared_drive_id: str | None) -> dict:
    """Extra files().list() arguments needed inside a shared drive."""
    if not shared_drive_id:
        return {}
    return {
        "corpora": "drive",
        "driveId": shared_drive_id,
        "includeItemsFromAllDrives": True,
        "supportsAllDrives": True,
    }


class PathCache:
    """Thread-safe path to ID cache that queries Drive on a miss."""

    def __init__(
        self,
        drive_service,
        ttl_seconds: int = 120,
        shared_drive_id: str | None = None,
        root_id: str = "root",
        maxsize: int = 10000,
    ):
        """
        Args:
            drive_service: Drive v3 service from googleapiclient.
            ttl_seconds: Lifetime of a cached ID.
            shared_drive_id: Resolve inside this shared drive instead of My Drive.
            root_id: Folder "/" stands for when no shared drive is set.
            maxsize: Maximum number of cached paths.
        """
        self._service = drive_service
        self._shared_drive_id = shared_drive_id
        self._lock = threading.Lock()
        self._ids: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self.root_id = shared_drive_id or root_id

    @property
    def shared_drive_id(self) -> str | None:
        return self._shared_drive_id

    def _known_ancestor(self, segments: list[str]) -> tuple[int, str]:
        """Return (segments already resolved, ID of that ancestor)."""
        with self._lock:
            for depth in range(len(segments), 0, -1):
                file_id = self._ids.get("/" + "/".join(segments[:depth]))
                if file_id is not None:
                    return depth, file_id
        return 0, self.root_id

    def resolve(self, path: str) -> str | None:
        """
        Return the file ID for path, or None if some segment doesn't exist.

        Drive API errors propagate so the client can retry them.
        """
        segments = [s for s in normalize_path(path).split("/") if s]
        depth, current_id = self._known_ancestor(segments)

        while depth < len(segments):
            name = segments[depth]
            child_id = self._find_child(current_id, name)
            if child_id is None:
                logger.debug("'%s' not found in folder %s", name, current_id)
                return None
            depth += 1
            self.remember("/" + "/".join(segments[:depth]), child_id)
            current_id = child_id

        return current_id

    def remember(self, path: str, file_id: str) -> None:
        """Store an ID learned elsewhere, e.g. from a directory listing."""
        with self._lock:
            self._ids[normalize_path(path)] = file_id

    def _find_child(self, parent_id: str, name: str) -> str | None:
        """First non-trashed child of parent_id called name (Drive allows duplicates)."""
        quoted = name.replace("\\", "\\\\").replace("'", "\\'")
        response = (
            self._service.files()
            .list(
                q=f"name='{quoted}' and '{parent_id}' in parents and trashed=false",
                fields="files(id, name)",
                pageSize=1,
                **drive_list_kwargs(self._shared_drive_id),
            )
            .execute()
        )
        files = response.get("files", [])
        return files[0]["id"] if files else None

    def invalidate(self, path: str) -> None:
        """Forget path and everything below it."""
        path = normalize_path(path)
        prefix = path.rstrip("/") + "/"
        with self._lock:
            for key in [k for k in self._ids if k == path or k.startswith(prefix)]:
                self._ids.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._ids.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)
