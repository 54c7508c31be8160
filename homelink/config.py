"""
HOMELINK Configuration

Typed configuration for the relay, loaded from YAML with environment
variable overrides.

Resolution order (later wins):
    1. Model defaults
    2. First config file found (explicit path, or get_config_paths())
    3. Environment variables ``HOMELINK_<SECTION>_<KEY>`` and ``HOMELINK_<KEY>``

Usage:
    from homelink.config import load_config

    config = load_config()                 # auto-discover
    config = load_config("homelink.yaml")  # explicit file
    print(config.serial.baud_rate)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from homelink.exceptions import ConfigurationError
from homelink.logging_config import get_logger

__all__ = [
    "DeviceConfig",
    "HomeLinkConfig",
    "SerialConfig",
    "ServerConfig",
    "VoiceAuthConfig",
    "get_config_paths",
    "load_config",
]

logger = get_logger(__name__)

ENV_PREFIX = "HOMELINK_"

STANDARD_BAUD_RATES = (
    1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200, 230400,
)

DEFAULT_TRAINING_PHRASES = [
    "turn on light",
    "turn off fan",
    "turn on tv",
    "turn off everything",
    "hello smart home",
]


# =============================================================================
# Section Models
# =============================================================================


class SerialConfig(BaseModel):
    """Controller link settings."""

    preferred_port: str = "COM3"
    baud_rate: int = 9600
    read_timeout: float = Field(default=1.0, gt=0.0, le=30.0)
    controller_keywords: list[str] = Field(default_factory=lambda: ["arduino"])
    path_fragments: list[str] = Field(default_factory=lambda: ["usbserial", "com"])
    auto_connect: bool = True

    @field_validator("baud_rate")
    @classmethod
    def _standard_baud_rate(cls, value: int) -> int:
        if value not in STANDARD_BAUD_RATES:
            raise ValueError(f"baud_rate must be one of {STANDARD_BAUD_RATES}")
        return value


class DeviceConfig(BaseModel):
    """A single controllable device wired to a controller pin."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    pin: int = Field(ge=0)

    @field_validator("id")
    @classmethod
    def _id_is_single_token(cls, value: str) -> str:
        # Ids are embedded in "<id> <on|off>" wire lines
        if value != value.strip() or " " in value:
            raise ValueError("device id must not contain whitespace")
        return value


def _default_devices() -> list[DeviceConfig]:
    return [
        DeviceConfig(id="light", name="Light", pin=2),
        DeviceConfig(id="fan", name="Fan", pin=3),
        DeviceConfig(id="tv", name="TV", pin=4),
        DeviceConfig(id="device4", name="Device 4", pin=5),
    ]


class ServerConfig(BaseModel):
    """HTTP request surface settings."""

    host: str = "0.0.0.0"
    port: int = Field(default=3001, ge=1, le=65535)
    cors_origin: str = "*"


class VoiceAuthConfig(BaseModel):
    """Voice signature enrollment and matching settings."""

    required: bool = False
    threshold: float = Field(default=0.7, gt=0.0, le=1.0)
    min_signatures: int = Field(default=3, ge=1)
    training_phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_TRAINING_PHRASES))
    store_path: Path = Field(
        default_factory=lambda: Path.home() / ".homelink" / "voice_store.json"
    )

    @field_validator("training_phrases")
    @classmethod
    def _phrases_not_blank(cls, value: list[str]) -> list[str]:
        phrases = [p.strip().lower() for p in value]
        if not phrases or any(not p for p in phrases):
            raise ValueError("training_phrases must be a non-empty list of phrases")
        return phrases


class HomeLinkConfig(BaseModel):
    """Root configuration object."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    serial: SerialConfig = Field(default_factory=SerialConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    voice: VoiceAuthConfig = Field(default_factory=VoiceAuthConfig)
    devices: list[DeviceConfig] = Field(default_factory=_default_devices)

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return value

    @model_validator(mode="after")
    def _unique_device_ids(self) -> "HomeLinkConfig":
        seen: set[str] = set()
        for device in self.devices:
            if device.id in seen:
                raise ValueError(f"duplicate device id: {device.id}")
            seen.add(device.id)
        return self


# =============================================================================
# Loading
# =============================================================================


def get_config_paths() -> list[Path]:
    """Return the config file search list, highest priority first."""
    return [
        Path.cwd() / "homelink.yaml",
        Path.home() / ".homelink" / "config.yaml",
        Path("/etc/homelink/config.yaml"),
    ]


def _coerce(raw: str, current: Any) -> Any:
    """Convert an environment string to the type of the value it replaces."""
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay HOMELINK_* environment variables onto a config dict."""
    defaults = HomeLinkConfig().model_dump()

    for key, default in defaults.items():
        if isinstance(default, dict):
            section = data.setdefault(key, {}) or {}
            data[key] = section
            for field_name, field_default in default.items():
                env_name = f"{ENV_PREFIX}{key}_{field_name}".upper()
                if env_name in os.environ:
                    current = section.get(field_name, field_default)
                    try:
                        section[field_name] = _coerce(os.environ[env_name], current)
                    except ValueError as e:
                        raise ConfigurationError(
                            f"Invalid value for {env_name}: {e}", config_key=env_name
                        ) from e
        elif not isinstance(default, list):
            env_name = f"{ENV_PREFIX}{key}".upper()
            if env_name in os.environ:
                data[key] = _coerce(os.environ[env_name], data.get(key, default) or "")

    return data


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in config file: {e}", config_file=str(path)
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read config file: {e}", config_file=str(path)
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Config file must contain a mapping", config_file=str(path)
        )
    return data


def load_config(path: Optional[str | Path] = None) -> HomeLinkConfig:
    """Load configuration from file and environment.

    Args:
        path: Explicit config file. If omitted, the first existing file from
              get_config_paths() is used, or defaults if none exists.

    Returns:
        Validated HomeLinkConfig

    Raises:
        ConfigurationError: If the explicit file is missing, the file cannot be
            parsed, or validation fails.
    """
    data: dict[str, Any] = {}
    source: Optional[Path] = None

    if path is not None:
        source = Path(path).expanduser()
        if not source.exists():
            raise ConfigurationError("Config file not found", config_file=str(source))
        data = _read_yaml(source)
    else:
        for candidate in get_config_paths():
            if candidate.exists():
                source = candidate
                data = _read_yaml(candidate)
                break

    data = _apply_env_overrides(data)

    try:
        config = HomeLinkConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            config_file=str(source) if source else None,
        ) from e

    logger.debug(f"Configuration loaded from {source or 'defaults'}")
    return config
