"""
FTP/FTPS client.

Lists directories with MLSD when the server advertises it and falls back
to parsing LIST output (Unix "ls -l" and Windows/IIS styles) otherwise.
MLSD/MLST times are UTC; LIST times are whatever the server prints and
are returned naive.
"""

import ftplib
import logging
import re
import socket
import threading
import time
from datetime import datetime, timedelta, timezone

from .config import ConnectionConfig, FTPConfig
from .hashing import HashKind
from .remote_client import FileStats

logger = logging.getLogger(__name__)

# drwxr-xr-x  2 user group 4096 Dec 10 12:34 name
UNIX_LIST_RE = re.compile(
    r"^(?P<mode>[dl-]\S{9})\S*\s+\d+\s+\S+\s+\S+\s+(?P<size>\d+)\s+"
    r"(?P<month>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+(?P<when>\d{1,2}:\d{2}|\d{4})\s+"
    r"(?P<name>.+)$"
)

# 12-10-20  12:34PM  <DIR>  name
WINDOWS_LIST_RE = re.compile(
    r"^(?P<date>\d{2}-\d{2}-(?:\d{4}|\d{2}))\s+(?P<time>\d{1,2}:\d{2}\s*[AaPp][Mm])\s+"
    r"(?P<size><DIR>|\d+)\s+(?P<name>.+)$"
)

DIR_TYPES = ("dir", "cdir", "pdir")


def parse_modify_fact(value: str) -> datetime | None:
    """Parse an MLSD/MLST modify fact (YYYYMMDDHHMMSS[.sss], UTC)."""
    if not value:
        return None
    try:
        parsed = datetime.strptime(value.split(".", 1)[0], "%Y%m%d%H%M%S")
    except ValueError:
        logger.warning("Unparseable modify fact: %s", value)
        return None
    return parsed.replace(tzinfo=timezone.utc)


def _facts_to_stats(name: str, facts: dict[str, str]) -> FileStats:
    is_dir = facts.get("type", "").lower() in DIR_TYPES
    return FileStats(
        name=name,
        size=0 if is_dir else int(facts.get("size", 0)),
        mtime=parse_modify_fact(facts.get("modify", "")),
        is_dir=is_dir,
    )


def _unix_list_time(month: str, day: str, when: str) -> datetime | None:
    try:
        if ":" in when:
            # Recent files show a time instead of a year
            now = datetime.now()
            parsed = datetime.strptime(f"{now.year} {month} {day} {when}", "%Y %b %d %H:%M")
            if parsed > now + timedelta(days=1):
                parsed = parsed.replace(year=now.year - 1)
            return parsed
        return datetime.strptime(f"{when} {month} {day}", "%Y %b %d")
    except ValueError:
        return None


def _windows_list_time(date: str, clock: str) -> datetime | None:
    year_code = "%Y" if len(date) == 10 else "%y"
    try:
        return datetime.strptime(
            f"{date} {clock.replace(' ', '').upper()}", f"%m-%d-{year_code} %I:%M%p"
        )
    except ValueError:
        return None


def parse_list_line(line: str) -> FileStats | None:
    """
    Parse one line of LIST output.

    Returns:
        FileStats, or None for lines that aren't entries ("total 12",
        banners, unknown formats).
    """
    line = line.rstrip("\r\n")

    m = UNIX_LIST_RE.match(line)
    if m:
        kind = m["mode"][0]
        name = m["name"]
        if kind == "l" and " -> " in name:
            name = name.split(" -> ", 1)[0]
        is_dir = kind == "d"
        return FileStats(
            name=name,
            size=0 if is_dir else int(m["size"]),
            mtime=_unix_list_time(m["month"], m["day"], m["when"]),
            is_dir=is_dir,
        )

    m = WINDOWS_LIST_RE.match(line.strip())
    if m:
        is_dir = m["size"] == "<DIR>"
        return FileStats(
            name=m["name"],
            size=0 if is_dir else int(m["size"]),
            mtime=_windows_list_time(m["date"], m["time"]),
            is_dir=is_dir,
        )

    logger.debug("Skipping unrecognised LIST line: %r", line)
    return None


def parse_mlst_response(response: str, path: str) -> FileStats:
    """
    Parse a multi-line MLST reply.

        250-Listing /pub/file.txt
         type=file;size=1234;modify=20201210123456; /pub/file.txt
        250 End
    """
    for line in response.splitlines():
        if not line.startswith(" "):
            continue
        facts_str, _, pathname = line.strip().partition("; ")
        facts = {}
        for fact in facts_str.split(";"):
            key, sep, value = fact.partition("=")
            if sep:
                facts[key.lower()] = value
        name = (pathname or path).rstrip("/").rsplit("/", 1)[-1] or "/"
        return _facts_to_stats(name, facts)

    raise FileNotFoundError(f"Could not parse MLST response for {path}")


def translate_ftp_error(error: ftplib.error_perm) -> Exception:
    """Map a permanent FTP reply to a builtin exception."""
    text = str(error)
    code = text[:3]
    if code == "550":
        lowered = text.lower()
        if "permission" in lowered or "denied" in lowered:
            return PermissionError(text)
        return FileNotFoundError(text)
    if code == "553":
        return PermissionError(text)
    if code == "530":
        return PermissionError(f"Authentication required: {text}")
    return OSError(text)


class FTPClient:
    """
    Read-only listing client over ftplib.FTP (or FTP_TLS) with reconnect
    and retry.

    FTP has no portable way to ask the server for a checksum, so no
    hash kinds are supported.
    """

    supported_hashes: frozenset[HashKind] = frozenset()

    def __init__(self, ftp_config: FTPConfig, conn_config: ConnectionConfig):
        self.ftp_config = ftp_config
        self.conn_config = conn_config
        self._ftp: ftplib.FTP | None = None
        self._lock = threading.Lock()
        self._connected = False
        self._supports_mlsd: bool | None = None
        self._supports_mlst: bool | None = None

    def connect(self) -> None:
        """Connect, log in (anonymously without a username) and probe FEAT."""
        with self._lock:
            self._open()

    def _open(self) -> None:
        """Connect without taking the lock."""
        cfg = self.ftp_config
        self._ftp = ftplib.FTP_TLS() if cfg.secure else ftplib.FTP()
        self._ftp.encoding = cfg.encoding

        try:
            logger.debug("Connecting to FTP server %s:%d", cfg.host, cfg.port)
            timeout = self.conn_config.timeout_seconds
            self._ftp.connect(host=cfg.host, port=cfg.port, timeout=timeout)

            if cfg.username:
                logger.debug("Logging in as user: %s", cfg.username)
                self._ftp.login(user=cfg.username, passwd=cfg.password or "")
            else:
                logger.debug("Logging in anonymously")
                self._ftp.login()

            if cfg.secure:
                self._ftp.prot_p()
            self._ftp.set_pasv(cfg.passive_mode)
        except (ftplib.error_perm, ftplib.error_temp) as e:
            self._reset()
            logger.error("FTP login failed: %s", e)
            raise PermissionError(f"FTP login failed: {e}") from e
        except TimeoutError as e:
            self._reset()
            logger.error("Connection timeout: %s", e)
            raise TimeoutError(f"Connection timeout: {e}") from e
        except OSError as e:
            self._reset()
            logger.error("Connection failed: %s", e)
            raise ConnectionError(f"Connection failed: {e}") from e

        self._connected = True
        logger.info("Connected to FTP server %s:%d", cfg.host, cfg.port)
        self._probe_features()

    def _probe_features(self) -> None:
        try:
            features = self._ftp.sendcmd("FEAT").upper().split()
        except (ftplib.error_perm, ftplib.error_temp) as e:
            logger.debug("FEAT refused, using LIST: %s", e)
            features = []

        self._supports_mlsd = "MLSD" in features
        self._supports_mlst = "MLST" in features
        logger.debug("MLSD: %s, MLST: %s", self._supports_mlsd, self._supports_mlst)

    def _reset(self) -> None:
        self._ftp = None
        self._connected = False

    def disconnect(self) -> None:
        with self._lock:
            self._close()

    def _close(self) -> None:
        """Close without taking the lock."""
        ftp = self._ftp
        self._reset()
        if ftp is None:
            return
        try:
            ftp.quit()
            logger.debug("FTP connection closed")
        except (OSError, EOFError, ftplib.Error) as e:
            logger.debug("FTP quit failed, closing socket: %s", e)
            ftp.close()

    def _ensure_connected(self) -> None:
        """Reconnect if the session is gone or NOOP fails. Caller holds the lock."""
        if self._connected and self._ftp:
            try:
                self._ftp.voidcmd("NOOP")
                return
            except (OSError, EOFError, ftplib.Error) as e:
                logger.debug("Connection lost, reconnecting: %s", e)
                self._close()
        else:
            logger.debug("Not connected, reconnecting")
        self._open()

    def _normalize_path(self, path: str) -> str:
        # Backslash is an ordinary name character on the server
        return path if path.startswith("/") else "/" + path

    def _with_retry(self, operation: str, func):
        """
        Run func under the lock, reconnecting and retrying transient failures.

        Permanent replies are translated and raised at once; so are
        FileNotFoundError and PermissionError.
        """
        attempts = self.conn_config.retry_attempts
        last_exception: Exception | None = None

        for attempt in range(attempts):
            try:
                with self._lock:
                    self._ensure_connected()
                    return func()
            except ftplib.error_perm as e:
                raise translate_ftp_error(e) from e
            except (ftplib.error_reply, ftplib.error_proto) as e:
                raise OSError(f"{operation}: unexpected server reply: {e}") from e
            except (FileNotFoundError, PermissionError):
                raise
            except (ftplib.error_temp, EOFError, OSError) as e:
                last_exception = e
                logger.warning("%s failed (attempt %d/%d): %s", operation, attempt + 1, attempts, e)

            if attempt < attempts - 1:
                time.sleep(self.conn_config.retry_delay_seconds)
                with self._lock:
                    self._close()

        logger.error("%s failed after %d attempts", operation, attempts)
        if isinstance(last_exception, socket.timeout):
            raise TimeoutError(f"{operation} timed out") from last_exception
        raise OSError(f"{operation} failed: {last_exception}") from last_exception

    def list_dir(self, path: str) -> list[FileStats]:
        """
        List contents of a directory.

        Raises:
            FileNotFoundError: If path does not exist.
            PermissionError: If access denied.
        """
        path = self._normalize_path(path)
        logger.debug("Listing directory: %s", path)

        def _list() -> list[FileStats]:
            if self._supports_mlsd:
                return self._list_mlsd(path)
            return self._list_list(path)

        return self._with_retry(f"list_dir({path})", _list)

    def _list_mlsd(self, path: str) -> list[FileStats]:
        results = [
            _facts_to_stats(name, facts)
            for name, facts in self._ftp.mlsd(path)
            if name not in (".", "..") and facts.get("type", "").lower() not in ("cdir", "pdir")
        ]
        logger.debug("MLSD listed %d entries in %s", len(results), path)
        return results

    def _list_list(self, path: str) -> list[FileStats]:
        lines: list[str] = []
        self._ftp.cwd(path)
        self._ftp.retrlines("LIST", lines.append)

        results = []
        for line in lines:
            stats = parse_list_line(line)
            if stats is not None and stats.name not in (".", ".."):
                results.append(stats)

        logger.debug("LIST listed %d entries in %s", len(results), path)
        return results

    def get_file_info(self, path: str) -> FileStats:
        """Get metadata for a single file or directory."""
        path = self._normalize_path(path)
        logger.debug("Getting file info: %s", path)

        def _info() -> FileStats:
            if self._supports_mlst:
                return parse_mlst_response(self._ftp.sendcmd(f"MLST {path}"), path)
            return self._info_from_parent(path)

        return self._with_retry(f"get_file_info({path})", _info)

    def _info_from_parent(self, path: str) -> FileStats:
        path = path.rstrip("/")
        if not path:
            return FileStats(name="/", size=0, mtime=None, is_dir=True)

        parent, _, name = path.rpartition("/")
        for stats in self._list_list(parent or "/"):
            if stats.name == name:
                return stats
        raise FileNotFoundError(f"File not found: {path}")

    def hash_file(self, path: str, kind: HashKind) -> str:
        """FTP servers don't report hashes."""
        raise OSError(f"hash {kind} not available over FTP: {path}")
