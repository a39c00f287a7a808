__version__ = "0.1.0"

# Public API exports
from .cache import HashCache
from .config import (
    AppConfig,
    ConnectionConfig,
    FTPConfig,
    GoogleDriveConfig,
    ListConfig,
    LogConfig,
    SSHConfig,
    load_config,
)
from .entries import Directory, Entry, File, HashUnsupportedError
from .ftp_client import FTPClient
from .hashing import HashKind
from .list_format import FormatError, FormatSpec, RenderConfig, compile_format, render_line
from .local_client import LocalClient
from .locator import Locator, parse_locator
from .lsf import FilterMode, ListingStats, lsf
from .remote_client import FileStats, RemoteClient
from .sftp_client import SFTPClient
from .walk import Walker, WalkStep


def get_google_drive_client():
    """Lazy loader for GoogleDriveClient.

    Returns the GoogleDriveClient class, importing it on first use so that
    importing remote_lsf does not require google-api-python-client.
    """
    from .gdrive_client import GoogleDriveClient

    return GoogleDriveClient


__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "FTPConfig",
    "SSHConfig",
    "GoogleDriveConfig",
    "ListConfig",
    "ConnectionConfig",
    "LogConfig",
    "load_config",
    "Locator",
    "parse_locator",
    # Entries
    "Entry",
    "File",
    "Directory",
    "HashKind",
    "HashUnsupportedError",
    # Formatting
    "FormatError",
    "FormatSpec",
    "RenderConfig",
    "compile_format",
    "render_line",
    # Listing
    "FilterMode",
    "ListingStats",
    "Walker",
    "WalkStep",
    "lsf",
    # Clients
    "RemoteClient",
    "LocalClient",
    "FTPClient",
    "SFTPClient",
    "get_google_drive_client",
    "FileStats",
    # Cache
    "HashCache",
]
