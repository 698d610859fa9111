"""Configuration loading — merges settings.toml and .env."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from tradejournal.shell.contract import DATE_FORMATS


PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"


@dataclass
class NotificationDefaults:
    """Initial alert toggles written into a fresh journal."""
    goal_reached: bool = True
    loss_streak: int = 3
    max_trades_exceeded: bool = True


@dataclass
class JournalDefaults:
    usd_to_brl_rate: float = 5.50
    date_format: str = "DD/MM/YYYY"
    history_weeks: int = 4
    recent_trades_limit: int = 10
    notifications: NotificationDefaults = field(default_factory=NotificationDefaults)


@dataclass
class StorageConfig:
    db_path: str = ""
    snapshot_key: str = "forex_master_v2_data"


@dataclass
class ApiConfig:
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class Config:
    log_level: str = "INFO"
    timezone: str = "America/Sao_Paulo"
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    journal: JournalDefaults = field(default_factory=JournalDefaults)


def load_config(config_dir: Path | None = None) -> Config:
    """Load configuration from settings.toml and environment variables."""
    config_dir = config_dir or CONFIG_DIR
    load_dotenv(PROJECT_ROOT / ".env")

    config = Config()
    config.storage.db_path = str(PROJECT_ROOT / "data" / "journal.db")

    settings_path = config_dir / "settings.toml"
    if settings_path.exists():
        with open(settings_path, "rb") as f:
            settings = tomllib.load(f)

        general = settings.get("general", {})
        config.log_level = general.get("log_level", config.log_level)
        config.timezone = general.get("timezone", config.timezone)

        storage = settings.get("storage", {})
        config.storage.db_path = storage.get("db_path", config.storage.db_path)
        config.storage.snapshot_key = storage.get("snapshot_key", config.storage.snapshot_key)

        api = settings.get("api", {})
        config.api.enabled = api.get("enabled", config.api.enabled)
        config.api.host = api.get("host", config.api.host)
        config.api.port = api.get("port", config.api.port)

        journal = settings.get("journal", {})
        config.journal.usd_to_brl_rate = journal.get("usd_to_brl_rate", config.journal.usd_to_brl_rate)
        config.journal.date_format = journal.get("date_format", config.journal.date_format)
        config.journal.history_weeks = journal.get("history_weeks", config.journal.history_weeks)
        config.journal.recent_trades_limit = journal.get(
            "recent_trades_limit", config.journal.recent_trades_limit)

        notif = journal.get("notifications", {})
        for key in vars(config.journal.notifications):
            if key in notif:
                setattr(config.journal.notifications, key, notif[key])

    # Environment overrides
    config.storage.db_path = os.getenv("TJ_DB_PATH", config.storage.db_path)
    config.api.host = os.getenv("TJ_API_HOST", config.api.host)
    if os.getenv("TJ_API_PORT"):
        config.api.port = int(os.environ["TJ_API_PORT"])
    config.log_level = os.getenv("LOG_LEVEL", config.log_level)

    _validate_config(config)

    return config


def _validate_config(config: Config) -> None:
    """Validate config values are within sane ranges."""
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

    errors = []

    if config.journal.usd_to_brl_rate <= 0:
        errors.append(f"usd_to_brl_rate must be > 0, got {config.journal.usd_to_brl_rate}")
    if config.journal.date_format not in DATE_FORMATS:
        errors.append(f"date_format must be one of {DATE_FORMATS}, got '{config.journal.date_format}'")
    if config.journal.history_weeks < 1:
        errors.append(f"history_weeks must be >= 1, got {config.journal.history_weeks}")
    if config.journal.recent_trades_limit < 1:
        errors.append(f"recent_trades_limit must be >= 1, got {config.journal.recent_trades_limit}")
    if config.journal.notifications.loss_streak < 0:
        errors.append(f"loss_streak must be >= 0, got {config.journal.notifications.loss_streak}")
    if not config.storage.snapshot_key:
        errors.append("snapshot_key must not be empty")
    if config.api.enabled and not (1 <= config.api.port <= 65535):
        errors.append(f"api.port must be 1-65535, got {config.api.port}")

    try:
        ZoneInfo(config.timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        errors.append(f"Invalid timezone: '{config.timezone}'")

    if errors:
        raise ValueError("Config validation failed:\n  " + "\n  ".join(errors))
