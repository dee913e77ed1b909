"""Configuration loading for sfcompose (.sfcompose.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".sfcompose.yml"
DEFAULT_EXTENSION = ".tmpl"
DEFAULT_DOCTYPE = "<!DOCTYPE html>"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class EnvironmentConfig:
    """Jinja environment switches from .sfcompose.yml."""

    autoescape: bool = True
    trim_blocks: bool = False
    lstrip_blocks: bool = False
    strict_undefined: bool = False


@dataclass
class RootConfig:
    """Layout settings for synthesized page roots."""

    doctype: str = DEFAULT_DOCTYPE


@dataclass
class ComposeConfig:
    """Represents the settings defined in .sfcompose.yml."""

    root: Path
    extension: str = DEFAULT_EXTENSION
    exclude_paths: List[str] = field(default_factory=list)
    workers: int = 1
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    page: RootConfig = field(default_factory=RootConfig)


def load_config(config_path: Path) -> ComposeConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ComposeConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    extension = _normalise_extension(_as_str(data.get("extension")))

    workers = _as_int(data.get("workers"))
    if workers is None:
        workers = 1
    if workers < 1:
        raise ConfigError("workers must be a positive integer")

    env_data = _as_dict(data.get("environment"))
    environment = EnvironmentConfig()
    if env_data:
        environment.autoescape = _bool_or(env_data.get("autoescape"), environment.autoescape)
        environment.trim_blocks = _bool_or(env_data.get("trim_blocks"), environment.trim_blocks)
        environment.lstrip_blocks = _bool_or(
            env_data.get("lstrip_blocks"), environment.lstrip_blocks
        )
        environment.strict_undefined = _bool_or(
            env_data.get("strict_undefined"), environment.strict_undefined
        )

    page = RootConfig()
    root_data = _as_dict(data.get("root"))
    if "doctype" in root_data:
        # An explicit null or empty string drops the doctype line.
        page.doctype = _as_str(root_data.get("doctype")) or ""

    return ComposeConfig(
        root=root,
        extension=extension,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        workers=workers,
        environment=environment,
        page=page,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _normalise_extension(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_EXTENSION
    value = value.strip()
    return value if value.startswith(".") else f".{value}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _bool_or(value: Any, default: bool) -> bool:
    parsed = _as_bool(value)
    return default if parsed is None else parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ComposeConfig",
    "ConfigError",
    "EnvironmentConfig",
    "RootConfig",
    "load_config",
]
