"""
Shared pytest fixtures for remote-lsf tests.
"""

import ftplib
from collections.abc import Callable, Generator
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from remote_lsf.config import ConnectionConfig, FTPConfig
from remote_lsf.ftp_client import FTPClient
from remote_lsf.hashing import HashKind
from remote_lsf.remote_client import FileStats


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a temporary INI configuration file for config tests.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[general]
root = ftp://testserver.local:2121/pub

[ftp]
username = testuser
password = testpass
passive_mode = true
encoding = utf-8

[connection]
timeout_seconds = 45
retry_attempts = 5
retry_delay_seconds = 2
keepalive_interval_seconds = 90

[logging]
level = DEBUG
file = test.log
console = false

[listing]
format = tsp
separator = |
dir_slash = false
hash = SHA-1
recursive = true
max_depth = 3
"""
    config_path = tmp_path / "test_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path


@pytest.fixture
def minimal_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a minimal INI configuration file with only required fields.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[general]
root = sftp://minimal.server.com/home
"""
    config_path = tmp_path / "minimal_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path


@pytest.fixture
def mock_ftp() -> Generator[MagicMock, None, None]:
    """
    Creates a mocked ftplib.FTP instance.

    Returns:
        Mocked FTP object with common methods stubbed.
    """
    mock = MagicMock(spec=ftplib.FTP)
    mock.encoding = "utf-8"

    # Default responses
    mock.sendcmd.return_value = "200 OK"
    mock.voidcmd.return_value = None
    mock.login.return_value = "230 Login successful"
    mock.cwd.return_value = "250 OK"
    mock.pwd.return_value = "/"
    mock.quit.return_value = "221 Goodbye"

    yield mock


@pytest.fixture
def ftp_config() -> FTPConfig:
    """Creates a standard FTPConfig for testing."""
    return FTPConfig(
        host="test.ftp.local",
        port=2121,
        username="testuser",
        password="testpass",
        passive_mode=True,
        encoding="utf-8",
    )


@pytest.fixture
def conn_config() -> ConnectionConfig:
    """Creates a ConnectionConfig with no retry delay for testing."""
    return ConnectionConfig(
        timeout_seconds=30,
        retry_attempts=3,
        retry_delay_seconds=0,
        keepalive_interval_seconds=60,
    )


@pytest.fixture
def ftp_client(
    ftp_config: FTPConfig, conn_config: ConnectionConfig, mock_ftp: MagicMock
) -> Generator[FTPClient, None, None]:
    """
    Creates an FTPClient with a mocked FTP connection.

    Returns:
        FTPClient instance with mocked underlying FTP.
    """
    with patch("remote_lsf.ftp_client.ftplib.FTP", return_value=mock_ftp):
        client = FTPClient(ftp_config, conn_config)
        client._ftp = mock_ftp
        client._connected = True
        client._supports_mlsd = True
        client._supports_mlst = True
        yield client


@pytest.fixture
def sample_file_stats() -> FileStats:
    """Creates sample FileStats for testing."""
    return FileStats(
        name="testfile.txt",
        size=12345,
        mtime=datetime(2024, 1, 15, 10, 30, 0),
        is_dir=False,
    )


@pytest.fixture
def sample_dir_stats() -> FileStats:
    """Creates sample directory FileStats for testing."""
    return FileStats(
        name="testdir",
        size=0,
        mtime=datetime(2024, 1, 15, 10, 30, 0),
        is_dir=True,
    )


class FakeRemoteClient:
    """
    In-memory RemoteClient.

    tree maps absolute directory paths to their listings. Paths in
    failing raise PermissionError when listed; paths in hash_errors raise
    OSError when hashed.
    """

    def __init__(
        self,
        tree: dict[str, list[FileStats]],
        failing: set[str] | None = None,
        hashes: dict[str, str] | None = None,
        hash_errors: set[str] | None = None,
        supported_hashes: frozenset[HashKind] = frozenset({HashKind.MD5}),
    ):
        self.tree = tree
        self.failing = failing or set()
        self.hashes = hashes or {}
        self.hash_errors = hash_errors or set()
        self.supported_hashes = supported_hashes
        self.listed: list[str] = []
        self.hashed: list[tuple[str, HashKind]] = []

    def connect(self) -> None:
        pass

    def disconnect(self) -> None:
        pass

    def list_dir(self, path: str) -> list[FileStats]:
        self.listed.append(path)
        if path in self.failing:
            raise PermissionError(f"Permission denied: {path}")
        if path not in self.tree:
            raise FileNotFoundError(f"No such directory: {path}")
        return list(self.tree[path])

    def get_file_info(self, path: str) -> FileStats:
        if path in self.tree or path in self.failing:
            return FileStats(name=path.rsplit("/", 1)[-1] or "/", size=0, mtime=None, is_dir=True)
        parent, _, name = path.rstrip("/").rpartition("/")
        for stats in self.tree.get(parent or "/", []):
            if stats.name == name:
                return stats
        raise FileNotFoundError(f"No such file or directory: {path}")

    def hash_file(self, path: str, kind: HashKind) -> str:
        self.hashed.append((path, kind))
        if path in self.hash_errors:
            raise OSError(f"read failed: {path}")
        return self.hashes.get(path, "")


@pytest.fixture
def make_fake_client() -> Callable[..., FakeRemoteClient]:
    """Factory for in-memory clients."""
    return FakeRemoteClient


@pytest.fixture
def sample_tree() -> dict[str, list[FileStats]]:
    """
    A small remote tree.

        /
        +-- a.txt          (10 bytes)
        +-- sub/
        |   +-- b.txt      (20 bytes)
        |   +-- deeper/
        |       +-- c.txt  (30 bytes)
        +-- empty/
    """
    when = datetime(2020, 1, 1, 0, 0, 0)
    return {
        "/": [
            FileStats(name="sub", size=0, mtime=when, is_dir=True),
            FileStats(name="a.txt", size=10, mtime=when, is_dir=False),
            FileStats(name="empty", size=0, mtime=when, is_dir=True),
        ],
        "/sub": [
            FileStats(name="deeper", size=0, mtime=when, is_dir=True),
            FileStats(name="b.txt", size=20, mtime=when, is_dir=False),
        ],
        "/sub/deeper": [
            FileStats(name="c.txt", size=30, mtime=when, is_dir=False),
        ],
        "/empty": [],
    }


@pytest.fixture
def local_tree(tmp_path: Path) -> Path:
    """
    A small local directory tree.

        root/
        +-- hello.txt      ("hello")
        +-- docs/
            +-- notes.md   ("# notes")
    """
    root = tmp_path / "root"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello")
    docs = root / "docs"
    docs.mkdir()
    (docs / "notes.md").write_bytes(b"# notes")
    return root
