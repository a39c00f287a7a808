"""
Google Drive client.

Lists My Drive, a folder or a shared drive through the Drive API v3.
Checksums arrive with each listing, so hashing never downloads content.
"""

import logging
import threading
import time
from collections.abc import Iterator
from datetime import datetime

from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import ConnectionConfig, GoogleDriveConfig
from .gdrive_auth import get_or_refresh_credentials
from .gdrive_path_cache import FOLDER_MIME, PathCache, drive_list_kwargs, normalize_path
from .hashing import HashKind
from .remote_client import FileStats, join_path

logger = logging.getLogger(__name__)

SHORTCUT_MIME = "application/vnd.google-apps.shortcut"

CHECKSUM_FIELDS = {
    HashKind.MD5: "md5Checksum",
    HashKind.SHA1: "sha1Checksum",
    HashKind.SHA256: "sha256Checksum",
}

FILE_FIELDS = "id, name, mimeType, size, modifiedTime, " + ", ".join(CHECKSUM_FIELDS.values())
LIST_FIELDS = f"nextPageToken, files({FILE_FIELDS})"
PAGE_SIZE = 1000


def stats_from_metadata(meta: dict) -> FileStats:
    """
    Build FileStats from a Drive file resource.

    Google Workspace documents have neither size nor checksums; their
    hashes are recorded as "" (available, but empty).
    """
    is_dir = meta.get("mimeType") == FOLDER_MIME

    mtime = None
    if meta.get("modifiedTime"):
        # RFC 3339, e.g. "2024-06-15T10:30:00.000Z"
        mtime = datetime.fromisoformat(meta["modifiedTime"].replace("Z", "+00:00"))

    if is_dir:
        return FileStats(name=meta.get("name", ""), size=0, mtime=mtime, is_dir=True)

    return FileStats(
        name=meta.get("name", ""),
        size=int(meta.get("size") or 0),
        mtime=mtime,
        is_dir=False,
        hashes={kind: meta.get(field, "") for kind, field in CHECKSUM_FIELDS.items()},
    )


def _is_rate_limited(error: HttpError) -> bool:
    if error.resp.status == 429:
        return True
    text = str(error).lower().replace(" ", "")
    return error.resp.status == 403 and "ratelimitexceeded" in text


class GoogleDriveClient:
    """Google Drive client implementing the RemoteClient interface."""

    supported_hashes = frozenset(CHECKSUM_FIELDS)

    def __init__(self, gdrive_config: GoogleDriveConfig, conn_config: ConnectionConfig):
        self.gdrive_config = gdrive_config
        self.conn_config = conn_config
        self._service = None
        self._path_cache: PathCache | None = None
        self._lock = threading.Lock()
        self._connected = False

    def connect(self) -> None:
        """
        Authorize and build the Drive service.

        Raises:
            ValueError: No cached token and no client secrets, or an
                unknown shared drive name.
            FileNotFoundError: The client secrets file doesn't exist.
            ConnectionError: Anything else went wrong.
        """
        with self._lock:
            try:
                creds = get_or_refresh_credentials(
                    client_secrets_file=self.gdrive_config.client_secrets_file,
                    token_file=self.gdrive_config.token_file,
                )
                self._service = build("drive", "v3", credentials=creds, cache_discovery=False)
                self._path_cache = PathCache(
                    self._service,
                    ttl_seconds=120,
                    shared_drive_id=self._resolve_shared_drive(),
                    root_id=self.gdrive_config.root_folder_id,
                )
            except (ValueError, FileNotFoundError):
                raise
            except Exception as e:
                logger.error("Failed to connect to Google Drive: %s", e)
                raise ConnectionError(f"Google Drive connection failed: {e}") from e

            self._connected = True
            logger.info("Connected to Google Drive")

    def _resolve_shared_drive(self) -> str | None:
        """Turn the configured shared drive name into its ID."""
        wanted = self.gdrive_config.shared_drive
        if not wanted:
            return None

        # Drive IDs are long and never contain spaces
        if len(wanted) > 20 and " " not in wanted:
            return wanted

        escaped = wanted.replace("\\", "\\\\").replace("'", "\\'")
        try:
            found = self._service.drives().list(q=f"name='{escaped}'", pageSize=1).execute()
        except HttpError as e:
            raise ConnectionError(f"Failed to list shared drives: {e}") from e

        drives = found.get("drives", [])
        if not drives:
            raise ValueError(f"Shared drive not found: {wanted}")

        logger.info("Resolved shared drive '%s' -> %s", wanted, drives[0]["id"])
        return drives[0]["id"]

    def disconnect(self) -> None:
        with self._lock:
            if self._path_cache is not None:
                self._path_cache.clear()
            self._path_cache = None
            self._service = None
            self._connected = False
            logger.debug("Google Drive connection closed")

    def _with_retry(self, operation: str, func):
        """
        Run func, backing off on rate limits and retrying server errors.

        404 becomes FileNotFoundError and 403 (other than rate limiting)
        becomes PermissionError, both raised at once.
        """
        attempts = self.conn_config.retry_attempts
        delay = self.conn_config.retry_delay_seconds
        last_exception: Exception | None = None

        for attempt in range(attempts):
            try:
                with self._lock:
                    return func()
            except (FileNotFoundError, PermissionError):
                raise
            except HttpError as e:
                if e.resp.status == 404:
                    raise FileNotFoundError(f"Not found: {operation}") from e
                last_exception = e
                if _is_rate_limited(e):
                    backoff = (2**attempt) * delay
                    logger.warning(
                        "%s rate limited (attempt %d/%d), waiting %ds",
                        operation,
                        attempt + 1,
                        attempts,
                        backoff,
                    )
                    time.sleep(backoff)
                    continue
                if e.resp.status == 403:
                    raise PermissionError(f"Access denied: {operation}") from e
                logger.warning(
                    "%s failed (attempt %d/%d): HTTP %d",
                    operation,
                    attempt + 1,
                    attempts,
                    e.resp.status,
                )
            except RefreshError as e:
                raise PermissionError(f"Google Drive token refresh failed: {e}") from e
            except (TransportError, OSError) as e:
                last_exception = e
                logger.warning("%s failed (attempt %d/%d): %s", operation, attempt + 1, attempts, e)

            if attempt < attempts - 1:
                time.sleep(delay)

        logger.error("%s failed after %d attempts", operation, attempts)
        raise OSError(f"{operation} failed: {last_exception}") from last_exception

    def _file_id(self, path: str) -> str:
        file_id = self._path_cache.resolve(path)
        if file_id is None:
            raise FileNotFoundError(f"No such file or directory: {path}")
        return file_id

    def _iter_children(self, folder_id: str) -> Iterator[dict]:
        """Yield every non-trashed child resource of a folder, page by page."""
        kwargs = {
            "q": f"'{folder_id}' in parents and trashed=false",
            "fields": LIST_FIELDS,
            "pageSize": PAGE_SIZE,
            "orderBy": "name",
            **drive_list_kwargs(self._path_cache.shared_drive_id),
        }
        while True:
            page = self._service.files().list(**kwargs).execute()
            yield from page.get("files", [])
            token = page.get("nextPageToken")
            if not token:
                return
            kwargs["pageToken"] = token

    def list_dir(self, path: str) -> list[FileStats]:
        path = normalize_path(path)
        logger.debug("Listing directory: %s", path)

        def _list() -> list[FileStats]:
            results = []
            for meta in self._iter_children(self._file_id(path)):
                if meta.get("mimeType") == SHORTCUT_MIME:
                    continue
                stats = stats_from_metadata(meta)
                if "id" in meta:
                    # Saves a lookup per entry when the walk descends or hashes
                    self._path_cache.remember(join_path(path, stats.name), meta["id"])
                results.append(stats)
            logger.debug("Listed %d entries in %s", len(results), path)
            return results

        return self._with_retry(f"list_dir({path})", _list)

    def get_file_info(self, path: str) -> FileStats:
        path = normalize_path(path)
        logger.debug("Getting file info: %s", path)

        if path.rstrip("/") == "":
            return FileStats(name="/", size=0, mtime=None, is_dir=True)

        def _info() -> FileStats:
            kwargs = {"fileId": self._file_id(path), "fields": FILE_FIELDS}
            if self.gdrive_config.shared_drive:
                kwargs["supportsAllDrives"] = True
            return stats_from_metadata(self._service.files().get(**kwargs).execute())

        return self._with_retry(f"get_file_info({path})", _info)

    def hash_file(self, path: str, kind: HashKind) -> str:
        """Read a checksum from the file's metadata."""
        if kind not in CHECKSUM_FIELDS:
            raise ValueError(f"Unsupported hash kind for Google Drive: {kind}")
        return self.get_file_info(path).hashes.get(kind, "")
