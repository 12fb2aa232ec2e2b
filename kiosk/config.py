"""Configuration management for the visitor kiosk service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .directory import StaticDirectory, default_directory
from .models import DirectoryUser

logger = logging.getLogger("kiosk.config")

DEFAULT_PORT = 8080
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024
DEFAULT_ENVIRONMENT = "development"


class ConfigurationError(RuntimeError):
    """Raised when the service is started with invalid settings."""


def _env_int(value: Optional[str], default: int, *, name: str) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value {value!r} for {name}") from exc


def _env_path(value: Optional[str]) -> Optional[Path]:
    if value is None or value.strip() == "":
        return None
    return Path(value).expanduser().resolve(strict=False)


@dataclass(frozen=True)
class ServiceSettings:
    """Runtime settings sourced from the process environment."""

    port: int = DEFAULT_PORT
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    environment: str = DEFAULT_ENVIRONMENT
    directory_path: Optional[Path] = None


def load_settings() -> ServiceSettings:
    """Build :class:`ServiceSettings` from ``PORT`` and the ``KIOSK_*`` variables."""

    port = _env_int(os.getenv("PORT"), DEFAULT_PORT, name="PORT")
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT must be between 1 and 65535, got {port}")

    max_body_bytes = _env_int(
        os.getenv("KIOSK_MAX_BODY_BYTES"), DEFAULT_MAX_BODY_BYTES, name="KIOSK_MAX_BODY_BYTES"
    )
    if max_body_bytes <= 0:
        raise ConfigurationError("KIOSK_MAX_BODY_BYTES must be a positive integer")

    environment = (os.getenv("KIOSK_ENV") or "").strip() or DEFAULT_ENVIRONMENT

    return ServiceSettings(
        port=port,
        max_body_bytes=max_body_bytes,
        environment=environment,
        directory_path=_env_path(os.getenv("KIOSK_DIRECTORY_PATH")),
    )


def load_directory(config_path: Path) -> StaticDirectory:
    """Load directory records from a YAML file."""
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Directory file must contain a mapping with a 'users' key")

    users_raw = raw.get("users")
    if not users_raw:
        raise ValueError("Directory file must define at least one user under the 'users' key")

    users = []
    for item in users_raw:
        if not isinstance(item, dict):
            raise ValueError("Each directory user must be a mapping of field names to values")
        users.append(DirectoryUser.from_dict(item))
    return StaticDirectory(users)


def resolve_directory_path(env_value: Optional[str | Path]) -> Path:
    """Resolve the path to the directory file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "directory.yaml").resolve(strict=False)
    return candidate


def load_configured_directory(path_override: Optional[str | Path] = None) -> StaticDirectory:
    """Return the directory named by ``path_override`` or ``KIOSK_DIRECTORY_PATH``.

    Without an explicit path the bundled ``config/directory.yaml`` is used, and
    when that is absent the built-in records are served instead.
    """

    explicit = path_override or os.getenv("KIOSK_DIRECTORY_PATH") or None
    config_path = resolve_directory_path(explicit)

    if not config_path.is_file():
        if explicit:
            raise ConfigurationError(f"Directory file {config_path} does not exist")
        logger.info("No directory file at %s; using built-in directory records", config_path)
        return default_directory()

    directory = load_directory(config_path)
    logger.info("Loaded %d directory record(s) from %s", len(directory), config_path)
    return directory


__all__ = [
    "ConfigurationError",
    "DEFAULT_MAX_BODY_BYTES",
    "DEFAULT_PORT",
    "ServiceSettings",
    "load_configured_directory",
    "load_directory",
    "load_settings",
    "resolve_directory_path",
]
