"""Unified configuration loaded from .daylog.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.

The ``[ai]`` section holds the global settings shared with other tools
(provider, model, credentials). The ``[pipeline]`` section holds the
settings that belong to this pipeline only.
"""

from __future__ import annotations

import logging
import os
import tomllib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from daylog.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".daylog.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "daylog" / "config.toml"

DEFAULT_INTERVAL_SECONDS = 60
DEFAULT_CONTENT_TYPE = "ocr"


class AIProvider(str, Enum):
    """Supported language-model providers."""

    OPENAI = "openai"
    CUSTOM = "custom"
    NATIVE_OLLAMA = "native-ollama"
    SCREENPIPE_CLOUD = "screenpipe-cloud"
    CLAUDE_CLI = "claude-cli"

    @property
    def requires_user_token(self) -> bool:
        return self is AIProvider.SCREENPIPE_CLOUD


class ChannelFailurePolicy(str, Enum):
    """What a failed notification channel does to the run."""

    FATAL = "fatal"
    ISOLATED = "isolated"


class AISectionConfig(BaseModel):
    """[ai] section."""

    provider: AIProvider = AIProvider.OPENAI
    model: str = "gpt-4o"
    url: str = ""
    api_key: str = ""
    user_token: str = ""
    timeout: int = 120


class PipelineSectionConfig(BaseModel):
    """[pipeline] section."""

    interval: int | None = None
    summary_frequency: str | int = "daily"
    email_time: str = "11:00"
    email_address: str = ""
    email_password: str = ""
    custom_prompt: str = ""
    dailylog_prompt: str = ""
    window_name: str = ""
    page_size: int = 100
    content_type: str = ""
    channel_failure_policy: ChannelFailurePolicy = ChannelFailurePolicy.FATAL
    max_welcome_attempts: int = 5
    use_run_lock: bool = True
    lock_stale_seconds: int = 3600

    @property
    def interval_seconds(self) -> int:
        """Polling interval, falling back to the default when unset or zero."""
        if not self.interval or self.interval <= 0:
            return DEFAULT_INTERVAL_SECONDS
        return self.interval

    @property
    def effective_content_type(self) -> str:
        return self.content_type or DEFAULT_CONTENT_TYPE

    @property
    def email_enabled(self) -> bool:
        return bool(self.email_address and self.email_password)

    def schedule_description(self) -> str:
        """Describe when the pipeline runs, for the welcome message."""
        frequency = str(self.summary_frequency)
        if frequency == "daily":
            return f"It will run at {self.email_time} every day."
        return f"It will run every {frequency} hours."


class ScreenpipeSectionConfig(BaseModel):
    """[screenpipe] section."""

    url: str = "http://localhost:3030"
    inbox_url: str = "http://localhost:11435/inbox"
    timeout: int = 30


class SmtpSectionConfig(BaseModel):
    """[smtp] section."""

    host: str = "smtp.gmail.com"
    port: int = 465
    starttls: bool = False
    timeout: int = 30


class StorageSectionConfig(BaseModel):
    """[storage] section."""

    directory: str = "./daylog-data"

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class ServerSectionConfig(BaseModel):
    """[server] section."""

    host: str = "127.0.0.1"
    port: int = 8000


class LoggingSectionConfig(BaseModel):
    """[logging] section."""

    level: str = "INFO"


class DaylogConfig(BaseModel):
    """Top-level configuration model for the daylog pipeline."""

    ai: AISectionConfig = Field(default_factory=AISectionConfig)
    pipeline: PipelineSectionConfig = Field(default_factory=PipelineSectionConfig)
    screenpipe: ScreenpipeSectionConfig = Field(default_factory=ScreenpipeSectionConfig)
    smtp: SmtpSectionConfig = Field(default_factory=SmtpSectionConfig)
    storage: StorageSectionConfig = Field(default_factory=StorageSectionConfig)
    server: ServerSectionConfig = Field(default_factory=ServerSectionConfig)
    logging: LoggingSectionConfig = Field(default_factory=LoggingSectionConfig)


def load_config(path: str | Path | None = None) -> DaylogConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .daylog.toml in CWD
    3. ~/.config/daylog/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged DaylogConfig.

    Raises:
        ConfigurationError: If a value fails validation.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = _validate(data) if data else DaylogConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: DaylogConfig, **cli_kwargs: object) -> DaylogConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "storage_directory": ("storage", "directory"),
        "interval": ("pipeline", "interval"),
        "channel_failure_policy": ("pipeline", "channel_failure_policy"),
        "model": ("ai", "model"),
        "provider": ("ai", "provider"),
        "host": ("server", "host"),
        "port": ("server", "port"),
        "log_level": ("logging", "level"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return _validate(data)


def _validate(data: dict[str, object]) -> DaylogConfig:
    try:
        return DaylogConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: DaylogConfig) -> DaylogConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "DAYLOG_AI_PROVIDER": ("ai", "provider"),
        "DAYLOG_AI_MODEL": ("ai", "model"),
        "DAYLOG_AI_URL": ("ai", "url"),
        "OPENAI_API_KEY": ("ai", "api_key"),
        "SCREENPIPE_USER_TOKEN": ("ai", "user_token"),
        "DAYLOG_EMAIL_ADDRESS": ("pipeline", "email_address"),
        "DAYLOG_EMAIL_PASSWORD": ("pipeline", "email_password"),
        "DAYLOG_WINDOW_NAME": ("pipeline", "window_name"),
        "DAYLOG_CONTENT_TYPE": ("pipeline", "content_type"),
        "DAYLOG_CHANNEL_FAILURE_POLICY": ("pipeline", "channel_failure_policy"),
        "SCREENPIPE_URL": ("screenpipe", "url"),
        "DAYLOG_STORAGE_DIR": ("storage", "directory"),
        "DAYLOG_LOG_LEVEL": ("logging", "level"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    interval_raw = os.environ.get("DAYLOG_INTERVAL")
    if interval_raw is not None:
        try:
            data["pipeline"]["interval"] = int(interval_raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid integer value for DAYLOG_INTERVAL: '{interval_raw}'"
            ) from exc

    return _validate(data)
