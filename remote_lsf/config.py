import configparser
from dataclasses import dataclass, field
from pathlib import Path

from .hashing import HashKind
from .locator import DEFAULT_PORTS, parse_locator

TRUE_VALUES = ("true", "1", "yes")


@dataclass
class FTPConfig:
    host: str
    port: int = 21
    username: str | None = None
    password: str | None = None
    passive_mode: bool = True
    encoding: str = "utf-8"
    secure: bool = False  # FTPS (FTP over TLS)


@dataclass
class SSHConfig:
    host: str
    port: int = 22
    username: str | None = None
    password: str | None = None
    key_file: str | None = None  # Path to SSH private key
    key_passphrase: str | None = None  # Passphrase for encrypted keys
    use_agent: bool = True  # Try SSH agent for auth
    encoding: str = "utf-8"


@dataclass
class GoogleDriveConfig:
    client_secrets_file: str | None = None
    token_file: str | None = None
    root_folder_id: str = "root"
    shared_drive: str | None = None  # Name or ID of a shared drive


@dataclass
class ConnectionConfig:
    timeout_seconds: int = 30
    retry_attempts: int = 3
    retry_delay_seconds: int = 1
    keepalive_interval_seconds: int = 60


@dataclass
class LogConfig:
    level: str = "WARNING"
    file: str = ""
    console: bool = True


@dataclass
class ListConfig:
    format: str = "p"
    separator: str = ";"
    dir_slash: bool = True
    hash_kind: HashKind = HashKind.MD5
    files_only: bool = False
    dirs_only: bool = False
    recursive: bool = False
    max_depth: int = -1  # Only used when recursive, -1 is unlimited


@dataclass
class AppConfig:
    protocol: str  # "local", "ftp", "sftp" or "gdrive"
    root: str
    listing: ListConfig = field(default_factory=ListConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    logging: LogConfig = field(default_factory=LogConfig)
    ftp: FTPConfig | None = None
    ssh: SSHConfig | None = None
    gdrive: GoogleDriveConfig | None = None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


def _parse_int(section: configparser.SectionProxy, key: str, label: str = "") -> int:
    value = section.get(key)
    try:
        return int(value)
    except ValueError:
        raise ValueError(
            f"Invalid {label or key} value in config: '{value}' - must be an integer"
        ) from None


def _parse_hash_kind(value: str) -> HashKind:
    return HashKind.parse(value)


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file, the root locator and CLI arguments.
    CLI arguments take precedence over the locator, which takes precedence
    over the config file.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments.

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If the locator is missing or a value is invalid.
    """
    # Initialize with defaults
    ftp_config = {
        "host": None,
        "port": None,
        "username": None,
        "password": None,
        "passive_mode": True,
        "encoding": "utf-8",
        "secure": False,
    }
    ssh_config = {
        "host": None,
        "port": None,
        "username": None,
        "password": None,
        "key_file": None,
        "key_passphrase": None,
        "use_agent": True,
        "encoding": "utf-8",
    }
    gdrive_config = {
        "client_secrets_file": None,
        "token_file": None,
        "root_folder_id": "root",
        "shared_drive": None,
    }
    connection_config = {
        "timeout_seconds": 30,
        "retry_attempts": 3,
        "retry_delay_seconds": 1,
        "keepalive_interval_seconds": 60,
    }
    log_config = {
        "level": "WARNING",
        "file": "",
        "console": True,
    }
    list_config = {
        "format": "p",
        "separator": ";",
        "dir_slash": True,
        "hash_kind": HashKind.MD5,
        "files_only": False,
        "dirs_only": False,
        "recursive": False,
        "max_depth": -1,
    }
    locator_text = None

    # Parse INI file if provided
    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        # Interpolation off so separators and passwords may contain '%'
        parser = configparser.ConfigParser(interpolation=None)
        parser.read(config_file, encoding="utf-8")

        # Load [general] section
        if parser.has_section("general"):
            general_section = parser["general"]
            if general_section.get("root"):
                locator_text = general_section.get("root")

        # Load [ftp] section
        if parser.has_section("ftp"):
            ftp_section = parser["ftp"]
            if ftp_section.get("port"):
                ftp_config["port"] = _parse_int(ftp_section, "port")
            if ftp_section.get("username"):
                ftp_config["username"] = ftp_section.get("username") or None
            if ftp_section.get("password"):
                ftp_config["password"] = ftp_section.get("password") or None
            if ftp_section.get("passive_mode"):
                ftp_config["passive_mode"] = _parse_bool(ftp_section.get("passive_mode"))
            if ftp_section.get("encoding"):
                ftp_config["encoding"] = ftp_section.get("encoding")

        # Load [ssh] section
        if parser.has_section("ssh"):
            ssh_section = parser["ssh"]
            if ssh_section.get("port"):
                ssh_config["port"] = _parse_int(ssh_section, "port", "SSH port")
            if ssh_section.get("username"):
                ssh_config["username"] = ssh_section.get("username") or None
            if ssh_section.get("password"):
                ssh_config["password"] = ssh_section.get("password") or None
            if ssh_section.get("key_file"):
                ssh_config["key_file"] = ssh_section.get("key_file") or None
            if ssh_section.get("key_passphrase"):
                ssh_config["key_passphrase"] = ssh_section.get("key_passphrase") or None
            if ssh_section.get("use_agent"):
                ssh_config["use_agent"] = _parse_bool(ssh_section.get("use_agent"))
            if ssh_section.get("encoding"):
                ssh_config["encoding"] = ssh_section.get("encoding")

        # Load [gdrive] section
        if parser.has_section("gdrive"):
            gdrive_section = parser["gdrive"]
            for key in ("client_secrets_file", "token_file", "root_folder_id", "shared_drive"):
                if gdrive_section.get(key):
                    gdrive_config[key] = gdrive_section.get(key)

        # Load [connection] section
        if parser.has_section("connection"):
            conn_section = parser["connection"]
            for key in connection_config:
                if conn_section.get(key):
                    connection_config[key] = _parse_int(conn_section, key)

        # Load [logging] section
        if parser.has_section("logging"):
            log_section = parser["logging"]
            if log_section.get("level"):
                log_config["level"] = log_section.get("level")
            if log_section.get("file"):
                log_config["file"] = log_section.get("file")
            if log_section.get("console"):
                log_config["console"] = _parse_bool(log_section.get("console"))

        # Load [listing] section
        if parser.has_section("listing"):
            list_section = parser["listing"]
            if list_section.get("format"):
                list_config["format"] = list_section.get("format")
            # An explicitly empty separator is valid
            if "separator" in list_section:
                list_config["separator"] = list_section.get("separator")
            if list_section.get("hash"):
                list_config["hash_kind"] = _parse_hash_kind(list_section.get("hash"))
            if list_section.get("max_depth"):
                list_config["max_depth"] = _parse_int(list_section, "max_depth")
            for key in ("dir_slash", "files_only", "dirs_only", "recursive"):
                if list_section.get(key):
                    list_config[key] = _parse_bool(list_section.get(key))

    # Root locator (CLI positional wins over [general] root)
    if cli_args.get("locator") is not None:
        locator_text = cli_args["locator"]
    if not locator_text:
        raise ValueError("Missing required configuration fields: root")
    locator = parse_locator(locator_text)
    protocol = locator.protocol

    if protocol in ("ftp", "ftps"):
        target = ftp_config
    elif protocol == "sftp":
        target = ssh_config
    else:
        target = None

    if target is not None:
        target["host"] = locator.host
        if locator.port is not None:
            target["port"] = locator.port
        if locator.username is not None:
            target["username"] = locator.username
        if locator.password is not None:
            target["password"] = locator.password

        # Override with CLI arguments (cli_args take precedence)
        if cli_args.get("port") is not None:
            target["port"] = int(cli_args["port"])
        if cli_args.get("username") is not None:
            target["username"] = cli_args["username"] or None
        if cli_args.get("password") is not None:
            target["password"] = cli_args["password"] or None
        if target["port"] is None:
            target["port"] = DEFAULT_PORTS[protocol]

    if cli_args.get("key_file") is not None:
        ssh_config["key_file"] = cli_args["key_file"]
    if cli_args.get("key_passphrase") is not None:
        ssh_config["key_passphrase"] = cli_args["key_passphrase"]
    if cli_args.get("client_secrets") is not None:
        gdrive_config["client_secrets_file"] = cli_args["client_secrets"]
    if cli_args.get("token_file") is not None:
        gdrive_config["token_file"] = cli_args["token_file"]
    if cli_args.get("shared_drive") is not None:
        gdrive_config["shared_drive"] = cli_args["shared_drive"]
    if cli_args.get("root_folder") is not None:
        gdrive_config["root_folder_id"] = cli_args["root_folder"]

    if cli_args.get("format") is not None:
        list_config["format"] = cli_args["format"]
    if cli_args.get("separator") is not None:
        list_config["separator"] = cli_args["separator"]
    if cli_args.get("dir_slash") is not None:
        list_config["dir_slash"] = bool(cli_args["dir_slash"])
    if cli_args.get("hash") is not None:
        list_config["hash_kind"] = _parse_hash_kind(cli_args["hash"])
    if cli_args.get("files_only"):
        list_config["files_only"] = True
    if cli_args.get("dirs_only"):
        list_config["dirs_only"] = True
    if cli_args.get("recursive"):
        list_config["recursive"] = True
    if cli_args.get("max_depth") is not None:
        list_config["max_depth"] = int(cli_args["max_depth"])

    if cli_args.get("debug"):
        log_config["level"] = "DEBUG"
        log_config["console"] = True

    # Validate listing options
    if list_config["files_only"] and list_config["dirs_only"]:
        raise ValueError("files_only and dirs_only are mutually exclusive")
    if list_config["max_depth"] < -1 or list_config["max_depth"] == 0:
        raise ValueError(
            f"Invalid max_depth: {list_config['max_depth']} - must be -1 or a positive integer"
        )

    # Handle protocol normalization (ftps sets secure flag on FTP)
    if protocol == "ftps":
        ftp_config["secure"] = True
        protocol = "ftp"

    ftp_obj = None
    ssh_obj = None
    gdrive_obj = None
    if protocol == "ftp":
        ftp_obj = FTPConfig(**ftp_config)
    elif protocol == "sftp":
        ssh_obj = SSHConfig(**ssh_config)
    elif protocol == "gdrive":
        gdrive_obj = GoogleDriveConfig(**gdrive_config)

    # Build and return AppConfig
    return AppConfig(
        protocol=protocol,
        root=locator.path,
        listing=ListConfig(**list_config),
        connection=ConnectionConfig(**connection_config),
        logging=LogConfig(**log_config),
        ftp=ftp_obj,
        ssh=ssh_obj,
        gdrive=gdrive_obj,
    )
