"""Account configuration stored as YAML."""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .errors import NotConfiguredError


CONFIG_DIR = Path.home() / ".maildisk"
CONFIG_FILE = "config.yaml"
CONFIG_ENV = "MAILDISK_CONFIG"

DEFAULT_TAG = "[MAIL-DISK]"
DEFAULT_MAILBOX = "INBOX"
DEFAULT_TIMEOUT = 10.0
TRANSPORTS = ("smtp", "append")
MASKED_PASSWORD = "********"


@dataclass
class ServerConfig:
    host: str
    port: int
    ssl: bool = True

    def to_dict(self) -> dict:
        return {"host": self.host, "port": self.port, "ssl": self.ssl}


@dataclass
class AccountConfig:
    """Mailbox credentials plus the store's settings."""
    user: str
    password: str
    imap: ServerConfig | None = None
    smtp: ServerConfig | None = None
    mailbox: str = DEFAULT_MAILBOX
    tag: str = DEFAULT_TAG
    transport: str = "smtp"
    connect_timeout: float = DEFAULT_TIMEOUT
    auth_timeout: float = DEFAULT_TIMEOUT

    def masked(self) -> dict:
        data = config_to_dict(self)
        if data.get("password"):
            data["password"] = MASKED_PASSWORD
        return data


PRESETS: dict[str, dict] = {
    "qq": {
        "name": "QQ Mail",
        "imap": ServerConfig("imap.qq.com", 993),
        "smtp": ServerConfig("smtp.qq.com", 465),
    },
    "163": {
        "name": "NetEase 163",
        "imap": ServerConfig("imap.163.com", 993),
        "smtp": ServerConfig("smtp.163.com", 465),
    },
    "gmail": {
        "name": "Gmail",
        "imap": ServerConfig("imap.gmail.com", 993),
        "smtp": ServerConfig("smtp.gmail.com", 587, ssl=False),
    },
    "outlook": {
        "name": "Outlook",
        "imap": ServerConfig("outlook.office365.com", 993),
        "smtp": ServerConfig("smtp.office365.com", 587, ssl=False),
    },
}


def get_preset(name: str) -> dict | None:
    preset = PRESETS.get(name)
    if not preset:
        return None
    # Copies, so callers can't mutate the shared presets
    return {
        "name": preset["name"],
        "imap": ServerConfig(**preset["imap"].to_dict()),
        "smtp": ServerConfig(**preset["smtp"].to_dict()),
    }


def get_config_path() -> Path:
    """Config path: $MAILDISK_CONFIG, else ~/.maildisk/config.yaml."""
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return CONFIG_DIR / CONFIG_FILE


def _server(data: dict | None, default_port: int) -> ServerConfig | None:
    if not data or not data.get("host"):
        return None
    return ServerConfig(
        host=data["host"],
        port=int(data.get("port", default_port)),
        ssl=bool(data.get("ssl", True)),
    )


def config_from_dict(data: dict) -> AccountConfig:
    transport = data.get("transport", "smtp")
    if transport not in TRANSPORTS:
        raise ValueError(f"Unknown transport {transport!r} (expected one of {', '.join(TRANSPORTS)})")
    return AccountConfig(
        user=data.get("user", "") or "",
        password=str(data.get("password", "") or ""),
        imap=_server(data.get("imap"), 993),
        smtp=_server(data.get("smtp"), 465),
        mailbox=data.get("mailbox", DEFAULT_MAILBOX),
        tag=data.get("tag", DEFAULT_TAG),
        transport=transport,
        connect_timeout=float(data.get("connect_timeout", DEFAULT_TIMEOUT)),
        auth_timeout=float(data.get("auth_timeout", DEFAULT_TIMEOUT)),
    )


def config_to_dict(config: AccountConfig) -> dict:
    data: dict = {"user": config.user, "password": config.password}
    if config.imap:
        data["imap"] = config.imap.to_dict()
    if config.smtp:
        data["smtp"] = config.smtp.to_dict()
    if config.mailbox != DEFAULT_MAILBOX:
        data["mailbox"] = config.mailbox
    if config.tag != DEFAULT_TAG:
        data["tag"] = config.tag
    if config.transport != "smtp":
        data["transport"] = config.transport
    if config.connect_timeout != DEFAULT_TIMEOUT:
        data["connect_timeout"] = config.connect_timeout
    if config.auth_timeout != DEFAULT_TIMEOUT:
        data["auth_timeout"] = config.auth_timeout
    return data


def load_config(path: Path | None = None) -> AccountConfig | None:
    """Load config, or None if no config file exists."""
    path = path or get_config_path()
    if not path.exists():
        return None
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return config_from_dict(data)


def save_config(config: AccountConfig, path: Path | None = None) -> Path:
    """Save config to YAML. Returns the path written."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config_to_dict(config), f, default_flow_style=False, sort_keys=False)
    return path


def require_account(config: AccountConfig | None, smtp: bool = False) -> AccountConfig:
    """Check credentials are present before any session is attempted."""
    if not config or not config.user or not config.password:
        raise NotConfiguredError("No mail account configured. Run 'maildisk config set' first.")
    if not config.imap:
        raise NotConfiguredError("No IMAP server configured.")
    if smtp and not config.smtp:
        raise NotConfiguredError("No SMTP server configured.")
    return config
