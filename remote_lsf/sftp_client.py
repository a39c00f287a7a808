"""
SFTP client using paramiko.

Listing goes through the SFTP subsystem. Hashes are computed on the server
by running md5sum/sha1sum over the same SSH connection, so files are
never downloaded.

paramiko reports a missing path or a denied one as IOError with
ENOENT/EACCES, which Python already raises as FileNotFoundError and
PermissionError; those are never retried.
"""

import logging
import os
import re
import shlex
import stat
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

import paramiko

from .cache import HashCache
from .config import ConnectionConfig, SSHConfig
from .hashing import HashKind
from .remote_client import FileStats

logger = logging.getLogger(__name__)

KNOWN_HOSTS = Path.home() / ".ssh" / "known_hosts"

HASH_COMMANDS = {
    HashKind.MD5: "md5sum",
    HashKind.SHA1: "sha1sum",
}

HEX_DIGEST_RE = re.compile(r"[0-9a-f]+")


class RemoteCommandError(Exception):
    """A command run over SSH exited with an error."""


class TrustOnFirstUsePolicy(paramiko.MissingHostKeyPolicy):
    """
    Accept and remember unknown host keys, reject changed ones.

    This is what OpenSSH does with StrictHostKeyChecking=accept-new.
    """

    def __init__(self, known_hosts_path: Path = KNOWN_HOSTS):
        self._known_hosts_path = known_hosts_path

    def missing_host_key(self, client, hostname, key):
        host_keys = client.get_host_keys()
        known = host_keys.lookup(hostname)
        if known is not None:
            previous = known.get(key.get_name())
            if previous is not None and previous != key:
                raise paramiko.SSHException(
                    f"Host key for {hostname} has CHANGED. Refusing to connect. "
                    f"If the change is expected, remove the old entry from "
                    f"{self._known_hosts_path}."
                )

        logger.info("Adding host key for %s to %s", hostname, self._known_hosts_path)
        host_keys.add(hostname, key.get_name(), key)
        try:
            self._known_hosts_path.parent.mkdir(parents=True, exist_ok=True)
            host_keys.save(str(self._known_hosts_path))
        except OSError as e:
            logger.warning("Could not save known_hosts: %s", e)


class SFTPClient:
    """
    Read-only listing client over paramiko SSH/SFTP with reconnect and
    retry, plus server-side hashing.
    """

    supported_hashes = frozenset(HASH_COMMANDS)

    def __init__(
        self,
        ssh_config: SSHConfig,
        conn_config: ConnectionConfig,
        hash_cache: HashCache | None = None,
    ):
        self.ssh_config = ssh_config
        self.conn_config = conn_config
        self._ssh: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None
        self._lock = threading.Lock()
        self._connected = False
        self._hash_cache = hash_cache or HashCache()

    def _connect_kwargs(self) -> dict:
        """
        Arguments for SSHClient.connect.

        Auth order: key file, then password, then agent and default keys.
        """
        cfg = self.ssh_config
        kwargs = {
            "hostname": cfg.host,
            "port": cfg.port,
            "timeout": self.conn_config.timeout_seconds,
            "allow_agent": cfg.use_agent,
            "look_for_keys": True,
        }
        if cfg.username:
            kwargs["username"] = cfg.username

        if cfg.key_file:
            kwargs["key_filename"] = os.path.expanduser(cfg.key_file)
            if cfg.key_passphrase:
                kwargs["passphrase"] = cfg.key_passphrase
            method = f"key file {kwargs['key_filename']}"
        elif cfg.password:
            kwargs["password"] = cfg.password
            kwargs["look_for_keys"] = False
            method = "password"
        else:
            method = "agent/default keys"

        logger.debug("Connecting to SSH %s:%d with %s", cfg.host, cfg.port, method)
        return kwargs

    def connect(self) -> None:
        """Open the SSH connection and the SFTP session."""
        with self._lock:
            self._open()

    def _open(self) -> None:
        """Connect without taking the lock."""
        self._ssh = paramiko.SSHClient()
        self._ssh.load_system_host_keys()
        if KNOWN_HOSTS.exists():
            self._ssh.load_host_keys(str(KNOWN_HOSTS))
        self._ssh.set_missing_host_key_policy(TrustOnFirstUsePolicy())

        try:
            self._ssh.connect(**self._connect_kwargs())
            self._sftp = self._ssh.open_sftp()
        except paramiko.AuthenticationException as e:
            self._close()
            logger.error("SSH authentication failed: %s", e)
            raise PermissionError(f"SSH authentication failed: {e}") from e
        except TimeoutError as e:
            self._close()
            logger.error("SSH connection timeout: %s", e)
            raise TimeoutError(f"SSH connection timeout: {e}") from e
        except (OSError, paramiko.SSHException) as e:
            self._close()
            logger.error("SSH connection failed: %s", e)
            raise ConnectionError(f"SSH connection failed: {e}") from e

        self._connected = True
        logger.info("Connected to SSH server %s:%d", self.ssh_config.host, self.ssh_config.port)

    def disconnect(self) -> None:
        with self._lock:
            self._close()

    def _close(self) -> None:
        """Close the SFTP session and SSH connection. Caller holds the lock."""
        for name in ("_sftp", "_ssh"):
            handle = getattr(self, name)
            setattr(self, name, None)
            if handle is None:
                continue
            try:
                handle.close()
            except (OSError, EOFError, paramiko.SSHException) as e:
                logger.debug("Error closing %s: %s", name.lstrip("_"), e)
        self._connected = False

    def _ensure_connected(self) -> None:
        """Reconnect if the transport is gone. Caller holds the lock."""
        if self._connected and self._sftp and self._ssh:
            transport = self._ssh.get_transport()
            if transport is not None and transport.is_active():
                return
            logger.debug("SSH transport lost, reconnecting")
            self._close()
        self._open()

    def _normalize_path(self, path: str) -> str:
        # Backslash is an ordinary name character on the server
        return path if path.startswith("/") else "/" + path

    def _with_retry(self, operation: str, func):
        """Run func under the lock, reconnecting and retrying transport failures."""
        attempts = self.conn_config.retry_attempts
        last_exception: Exception | None = None

        for attempt in range(attempts):
            try:
                with self._lock:
                    self._ensure_connected()
                    return func()
            except (FileNotFoundError, PermissionError):
                raise
            except (OSError, EOFError, paramiko.SSHException) as e:
                last_exception = e
                logger.warning("%s failed (attempt %d/%d): %s", operation, attempt + 1, attempts, e)

            if attempt < attempts - 1:
                time.sleep(self.conn_config.retry_delay_seconds)
                with self._lock:
                    self._close()

        logger.error("%s failed after %d attempts", operation, attempts)
        raise OSError(f"{operation} failed: {last_exception}") from last_exception

    @staticmethod
    def _to_stats(name: str, attr: paramiko.SFTPAttributes) -> FileStats:
        is_dir = bool(attr.st_mode) and stat.S_ISDIR(attr.st_mode)
        mtime = None
        if attr.st_mtime:
            mtime = datetime.fromtimestamp(attr.st_mtime, tz=timezone.utc)
        return FileStats(
            name=name,
            size=0 if is_dir else (attr.st_size or 0),
            mtime=mtime,
            is_dir=is_dir,
        )

    def list_dir(self, path: str) -> list[FileStats]:
        path = self._normalize_path(path)
        logger.debug("Listing directory: %s", path)

        def _list() -> list[FileStats]:
            results = [
                self._to_stats(attr.filename, attr)
                for attr in self._sftp.listdir_attr(path)
                if attr.filename not in (".", "..")
            ]
            logger.debug("Listed %d entries in %s", len(results), path)
            return results

        return self._with_retry(f"list_dir({path})", _list)

    def get_file_info(self, path: str) -> FileStats:
        path = self._normalize_path(path)
        logger.debug("Getting file info: %s", path)
        name = path.rstrip("/").rsplit("/", 1)[-1] or "/"

        return self._with_retry(
            f"get_file_info({path})", lambda: self._to_stats(name, self._sftp.stat(path))
        )

    def _remote_digest(self, path: str, kind: HashKind) -> str:
        """Run md5sum/sha1sum on the server and return the digest. Caller holds the lock."""
        program = HASH_COMMANDS[kind]
        command = f"{program} {shlex.quote(path)}"
        logger.debug("Running remote hash command: %s", command)

        timeout = self.conn_config.timeout_seconds
        _, stdout, stderr = self._ssh.exec_command(command, timeout=timeout)
        encoding = self.ssh_config.encoding
        output = stdout.read().decode(encoding, errors="replace")
        status = stdout.channel.recv_exit_status()
        if status != 0:
            message = stderr.read().decode(encoding, errors="replace").strip()
            raise RemoteCommandError(f"{program} exited with status {status}: {message}")

        # "<digest>  <path>", with a leading backslash when the name had to be escaped
        fields = output.split(maxsplit=1)
        if not fields:
            raise RemoteCommandError(f"{program} returned no output for {path}")
        digest = fields[0].removeprefix("\\").lower()
        if not HEX_DIGEST_RE.fullmatch(digest):
            raise RemoteCommandError(f"{program} returned an unexpected digest: {fields[0]!r}")
        return digest

    def hash_file(self, path: str, kind: HashKind) -> str:
        """
        Hash a file on the server.

        Raises:
            ValueError: If the kind has no remote command.
            RemoteCommandError: If the command fails (not retried).
        """
        path = self._normalize_path(path)
        if kind not in HASH_COMMANDS:
            raise ValueError(f"Unsupported hash kind for SFTP: {kind}")

        return self._hash_cache.get_or_compute(
            path,
            kind,
            lambda: self._with_retry(
                f"hash_file({path})", lambda: self._remote_digest(path, kind)
            ),
        )
