"""
Root locator parsing.

The single positional argument names what to list:

    ftp://[user[:password]@]host[:port]/path
    ftps://...                     FTP over TLS
    sftp://[user[:password]@]host[:port]/path
    gdrive:path                    Google Drive (also gdrive://path)
    anything else                  a local directory
"""

from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

DEFAULT_PORTS = {
    "ftp": 21,
    "ftps": 21,
    "sftp": 22,
}

URL_SCHEMES = ("ftp://", "ftps://", "sftp://")
GDRIVE_PREFIX = "gdrive:"


@dataclass
class Locator:
    protocol: str
    path: str
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None

    def __str__(self) -> str:
        if self.protocol == "local":
            return self.path
        if self.protocol == "gdrive":
            return f"gdrive:{self.path.lstrip('/')}"
        netloc = self.host or ""
        if self.username:
            netloc = f"{self.username}@{netloc}"
        if self.port:
            netloc = f"{netloc}:{self.port}"
        return f"{self.protocol}://{netloc}{self.path}"


def parse_locator(text: str) -> Locator:
    """
    Parse a root locator string.

    Raises:
        ValueError: If the locator is empty or a URL has no host.
    """
    if not text or not text.strip():
        raise ValueError("Root locator must not be empty")

    lowered = text.lower()

    if lowered.startswith(URL_SCHEMES):
        parts = urlsplit(text)
        if not parts.hostname:
            raise ValueError(f"Missing host in locator: {text}")
        try:
            port = parts.port
        except ValueError:
            raise ValueError(f"Invalid port in locator: {text}") from None
        return Locator(
            protocol=parts.scheme.lower(),
            path=unquote(parts.path) or "/",
            host=parts.hostname,
            port=port,
            username=unquote(parts.username) if parts.username else None,
            password=unquote(parts.password) if parts.password else None,
        )

    if lowered.startswith(GDRIVE_PREFIX):
        path = text[len(GDRIVE_PREFIX) :]
        if path.startswith("//"):
            path = path[2:]
        path = "/" + path.strip("/")
        return Locator(protocol="gdrive", path=path)

    return Locator(protocol="local", path=text)
