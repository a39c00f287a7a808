"""
Integration tests for remote-lsf using pyftpdlib as a real FTP server.

These tests run FTPClient, Walker and the listing driver against a real
FTP server running in-process. This catches issues that unit tests with
mocks cannot detect (MLSD/MLST parsing, path quoting, passive transfers).

Test categories:
- FTPClient: connect, list, file info, missing paths
- Listing: formatted recursive listings over FTP
- CLI: the full command against an ftp:// locator
"""

import io
import threading
import time
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from pyftpdlib.authorizers import DummyAuthorizer
from pyftpdlib.handlers import FTPHandler
from pyftpdlib.servers import FTPServer

from remote_lsf.__main__ import EXIT_ERROR, EXIT_OK, main
from remote_lsf.config import ConnectionConfig, FTPConfig
from remote_lsf.ftp_client import FTPClient
from remote_lsf.list_format import RenderConfig, compile_format
from remote_lsf.lsf import FilterMode, lsf
from remote_lsf.walk import Walker

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="module")
def ftp_root(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """
    Create a temporary directory structure for the FTP server root.

    Structure:
        /
        +-- test.txt                    (contains "Hello World")
        +-- folder with spaces/
        |   +-- file.txt                (contains "Nested")
        +-- special-chars/
        |   +-- file's name.txt         (contains "Special")
        +-- empty_folder/
    """
    root_dir = tmp_path_factory.mktemp("ftp_root")

    (root_dir / "test.txt").write_text("Hello World", encoding="utf-8")

    folder_spaces = root_dir / "folder with spaces"
    folder_spaces.mkdir()
    (folder_spaces / "file.txt").write_text("Nested", encoding="utf-8")

    special_folder = root_dir / "special-chars"
    special_folder.mkdir()
    (special_folder / "file's name.txt").write_text("Special", encoding="utf-8")

    (root_dir / "empty_folder").mkdir()

    return root_dir


@pytest.fixture(scope="module")
def ftp_server(ftp_root: Path) -> Generator[dict[str, Any], None, None]:
    """
    Start a real read-only FTP server on 127.0.0.1 and a random port.

    Yields:
        Dict with host, port and root of the server.
    """
    authorizer = DummyAuthorizer()
    authorizer.add_anonymous(str(ftp_root), perm="elr")

    handler = FTPHandler
    handler.authorizer = authorizer
    handler.passive_ports = range(60000, 60100)

    server = FTPServer(("127.0.0.1", 0), handler)
    port = server.socket.getsockname()[1]

    server_thread = threading.Thread(target=server.serve_forever)
    server_thread.daemon = True
    server_thread.start()

    # Small delay to ensure server is ready
    time.sleep(0.1)

    yield {"host": "127.0.0.1", "port": port, "root": ftp_root}

    server.close_all()


@pytest.fixture
def conn_config_fast() -> ConnectionConfig:
    return ConnectionConfig(
        timeout_seconds=10,
        retry_attempts=2,
        retry_delay_seconds=0,
        keepalive_interval_seconds=30,
    )


@pytest.fixture
def integration_ftp_client(
    ftp_server: dict[str, Any], conn_config_fast: ConnectionConfig
) -> Generator[FTPClient, None, None]:
    """Create an FTPClient connected anonymously to the test FTP server."""
    ftp_config = FTPConfig(host=ftp_server["host"], port=ftp_server["port"])
    client = FTPClient(ftp_config, conn_config_fast)
    client.connect()
    yield client
    client.disconnect()


# =============================================================================
# FTPClient
# =============================================================================


class TestFTPClientIntegration:
    def test_list_root(self, integration_ftp_client: FTPClient) -> None:
        entries = {e.name: e for e in integration_ftp_client.list_dir("/")}

        assert set(entries) == {"test.txt", "folder with spaces", "special-chars", "empty_folder"}
        assert entries["test.txt"].size == 11
        assert entries["test.txt"].is_dir is False
        assert entries["test.txt"].mtime is not None
        assert entries["empty_folder"].is_dir is True

    def test_list_folder_with_spaces(self, integration_ftp_client: FTPClient) -> None:
        names = [e.name for e in integration_ftp_client.list_dir("/folder with spaces")]
        assert names == ["file.txt"]

    def test_file_info(self, integration_ftp_client: FTPClient) -> None:
        info = integration_ftp_client.get_file_info("/special-chars/file's name.txt")

        assert info.name == "file's name.txt"
        assert info.size == 7
        assert info.is_dir is False

    def test_root_is_directory(self, integration_ftp_client: FTPClient) -> None:
        assert integration_ftp_client.get_file_info("/").is_dir is True

    def test_missing_directory(self, integration_ftp_client: FTPClient) -> None:
        with pytest.raises(FileNotFoundError):
            integration_ftp_client.list_dir("/does-not-exist")

    def test_connect_refused(self, conn_config_fast: ConnectionConfig) -> None:
        # Port 1 on localhost is not listening
        client = FTPClient(FTPConfig(host="127.0.0.1", port=1), conn_config_fast)
        with pytest.raises(ConnectionError):
            client.connect()


# =============================================================================
# Listing over FTP
# =============================================================================


class TestListingIntegration:
    def test_recursive_listing(self, integration_ftp_client: FTPClient) -> None:
        out = io.StringIO()
        stats = lsf(
            Walker(integration_ftp_client, "/"),
            compile_format("hsp"),
            RenderConfig(),
            FilterMode.ALL,
            True,
            out,
        )

        assert out.getvalue().splitlines() == [
            ";0;empty_folder/",
            ";0;folder with spaces/",
            ";0;special-chars/",
            "UNSUPPORTED;11;test.txt",
            "UNSUPPORTED;6;folder with spaces/file.txt",
            "UNSUPPORTED;7;special-chars/file's name.txt",
        ]
        assert stats.errors == 0
        assert stats.listed == 6

    def test_sub_root_files_only(self, integration_ftp_client: FTPClient) -> None:
        out = io.StringIO()
        lsf(
            Walker(integration_ftp_client, "/folder with spaces"),
            compile_format("p"),
            RenderConfig(),
            FilterMode.FILES_ONLY,
            False,
            out,
        )

        assert out.getvalue() == "file.txt\n"

    def test_missing_root_is_fatal(self, integration_ftp_client: FTPClient) -> None:
        out = io.StringIO()
        with pytest.raises(FileNotFoundError):
            lsf(
                Walker(integration_ftp_client, "/does-not-exist"),
                compile_format("p"),
                RenderConfig(),
                FilterMode.ALL,
                True,
                out,
            )
        assert out.getvalue() == ""


# =============================================================================
# CLI
# =============================================================================


class TestCLIIntegration:
    @pytest.fixture(autouse=True)
    def no_global_logging(self):
        with patch("remote_lsf.__main__.setup_logging"):
            yield

    def test_dirs_only(self, ftp_server: dict[str, Any], capsys) -> None:
        locator = f"ftp://{ftp_server['host']}:{ftp_server['port']}/"

        assert main(["--dirs-only", "-R", locator]) == EXIT_OK

        assert capsys.readouterr().out.splitlines() == [
            "empty_folder/",
            "folder with spaces/",
            "special-chars/",
        ]

    def test_missing_root(self, ftp_server: dict[str, Any], capsys) -> None:
        locator = f"ftp://{ftp_server['host']}:{ftp_server['port']}/nope"

        assert main([locator]) == EXIT_ERROR
        assert capsys.readouterr().out == ""
