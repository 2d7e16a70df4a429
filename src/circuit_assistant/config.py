"""Application configuration using Pydantic settings.

The LLM endpoint triple (key, base URL, model) is resolved from four layers,
each one overriding the previous for the fields it supplies a non-empty value
for:

1. hardcoded defaults
2. ``logisim-evolution.properties`` in the working directory, else in the home directory
3. ``.env`` in the working directory
4. process environment variables
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog
from dotenv import dotenv_values
from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"

PROPERTIES_FILENAME = "logisim-evolution.properties"
ENV_FILENAME = ".env"

# properties key -> environment key
PROPERTIES_KEYS = {
    "api.key": "OPENAI_API_KEY",
    "api.base.url": "OPENAI_BASE_URL",
    "api.model": "OPENAI_MODEL",
}
ENV_KEYS = tuple(PROPERTIES_KEYS.values())

_PROPERTIES_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _unescape_property(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            if nxt == "u" and i + 6 <= len(text):
                try:
                    out.append(chr(int(text[i + 2 : i + 6], 16)))
                    i += 6
                    continue
                except ValueError:
                    pass
            out.append(_PROPERTIES_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _split_property(line: str) -> tuple[str, str]:
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=:" or ch.isspace():
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip()
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip()
    return _unescape_property(key), _unescape_property(rest)


def parse_properties(text: str) -> dict[str, str]:
    """Parse Java ``.properties`` text into a dict.

    Supports ``#``/``!`` comments, ``=``/``:``/whitespace separators,
    backslash line continuations and backslash escapes.
    """
    properties: dict[str, str] = {}
    lines = iter(text.splitlines())
    for raw in lines:
        line = raw.lstrip()
        if not line or line[0] in "#!":
            continue
        # An odd number of trailing backslashes continues the logical line
        while (len(line) - len(line.rstrip("\\"))) % 2 == 1:
            line = line[:-1] + next(lines, "").lstrip()
        key, value = _split_property(line)
        properties[key] = value
    return properties


class PropertiesFileSettingsSource(PydanticBaseSettingsSource):
    """Reads the ``api.*`` keys from the first properties file that exists."""

    def __init__(self, settings_cls: type[BaseSettings], paths: Sequence[Path]) -> None:
        super().__init__(settings_cls)
        self._paths = paths

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # Values are produced for the whole file at once in __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        path = next((p for p in self._paths if p.exists()), None)
        if path is None:
            return {}
        try:
            # java.util.Properties reads ISO-8859-1
            properties = parse_properties(path.read_text(encoding="latin-1"))
        except OSError as e:
            logger.warning("config_file_unreadable", path=str(path), error=str(e))
            return {}

        values: dict[str, Any] = {}
        for prop_key, env_key in PROPERTIES_KEYS.items():
            value = properties.get(prop_key, "").strip()
            if value:
                values[env_key] = value
        logger.debug("config_properties_loaded", path=str(path), keys=sorted(values))
        return values


class EnvFileSettingsSource(PydanticBaseSettingsSource):
    """Reads exactly the three ``OPENAI_*`` keys from a dotenv file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self._path = path

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            entries = dotenv_values(self._path, interpolate=False, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("config_file_unreadable", path=str(self._path), error=str(e))
            return {}

        values: dict[str, Any] = {}
        for key in ENV_KEYS:
            value = (entries.get(key) or "").strip()
            if value:
                values[key] = value
        logger.debug("config_env_file_loaded", path=str(self._path), keys=sorted(values))
        return values


class ApiConfig(BaseSettings):
    """Effective endpoint, credential and model for the LLM API."""

    model_config = SettingsConfigDict(
        extra="ignore",
        env_ignore_empty=True,
    )

    api_key: str = Field(
        "", alias="OPENAI_API_KEY",
        description="Credential sent with every chat-completion request. Empty = no credential.",
    )
    base_url: str = Field(
        DEFAULT_BASE_URL, alias="OPENAI_BASE_URL",
        description="Base URL of the OpenAI-compatible API; /chat/completions is appended.",
    )
    model: str = Field(
        DEFAULT_MODEL, alias="OPENAI_MODEL",
        description="Model identifier placed in the request body.",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win
        return (
            init_settings,
            env_settings,
            EnvFileSettingsSource(settings_cls, Path.cwd() / ENV_FILENAME),
            PropertiesFileSettingsSource(
                settings_cls,
                [Path.cwd() / PROPERTIES_FILENAME, Path.home() / PROPERTIES_FILENAME],
            ),
        )

    @property
    def masked_api_key(self) -> str:
        if not self.api_key:
            return ""
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(extra="ignore")

    # HTTP
    connect_timeout: float = Field(
        30.0, alias="LLM_CONNECT_TIMEOUT",
        description="Seconds allowed for establishing the connection to the LLM API.",
    )
    read_timeout: float = Field(
        60.0, alias="LLM_READ_TIMEOUT",
        description="Seconds allowed between two reads of the streamed response.",
    )
    max_tokens: int = Field(
        2048, alias="LLM_MAX_TOKENS",
        description="maxTokens value sent with every request.",
    )

    # Logging
    log_level: str = Field(
        "INFO", alias="LOG_LEVEL",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL.",
    )
    log_file: str = Field(
        "", alias="LOG_FILE",
        description="Path to log file for file-based logging with rotation. Empty = console only.",
    )
    log_file_max_bytes: int = Field(
        10_485_760, alias="LOG_FILE_MAX_BYTES",
        description="Max size in bytes per log file before rotation. Default: 10 MB.",
    )
    log_file_backup_count: int = Field(
        5, alias="LOG_FILE_BACKUP_COUNT",
        description="Number of rotated backup log files to keep.",
    )


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()


_api_config_lock = threading.Lock()
_api_config: ApiConfig | None = None


def init_api_config() -> ApiConfig:
    """Resolve the layered API configuration and install it as the active one."""
    global _api_config
    config = ApiConfig()
    with _api_config_lock:
        _api_config = config
        snapshot = config.model_copy()
    logger.info(
        "api_config_resolved",
        base_url=snapshot.base_url,
        model=snapshot.model,
        has_api_key=bool(snapshot.api_key),
    )
    return snapshot


def get_api_config() -> ApiConfig:
    """Return a snapshot of the active API configuration, resolving it on first use."""
    global _api_config
    with _api_config_lock:
        if _api_config is None:
            _api_config = ApiConfig()
        return _api_config.model_copy()


def override_api_config(
    api_key: str | None = None,
    base_url: str | None = None,
    model: str | None = None,
) -> ApiConfig:
    """Replace fields of the active configuration in place.

    None or empty values leave the field untouched. Last writer wins.
    """
    global _api_config
    updates = {
        name: value
        for name, value in (("api_key", api_key), ("base_url", base_url), ("model", model))
        if value
    }
    with _api_config_lock:
        if _api_config is None:
            _api_config = ApiConfig()
        for name, value in updates.items():
            setattr(_api_config, name, value)
        snapshot = _api_config.model_copy()
    logger.info("api_config_overridden", fields=sorted(updates))
    return snapshot


def reset_api_config() -> None:
    """Drop the active configuration so the next access resolves it again."""
    global _api_config
    with _api_config_lock:
        _api_config = None
