"""Runtime settings: module defaults, an optional JSON file, then environment."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

MAX_CSV_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_PAGE_SIZE = 10
PAGE_SIZE_OPTIONS = (10, 20, 30, 50, 100)
TREE_INDENT_PER_LEVEL = 20
PREVIEW_ROW_COUNT = 3
REMOTE_TIMEOUT_SECONDS = 30.0

DEFAULT_CONFIG_NAME = "bom-heatmap.json"
SUPPORTED_CONFIG_SUFFIXES = {".json", ".yml", ".yaml"}

ENV_MAX_FILE_BYTES = "BOM_HEATMAP_MAX_FILE_BYTES"
ENV_PAGE_SIZE = "BOM_HEATMAP_PAGE_SIZE"
ENV_REMOTE_TIMEOUT = "BOM_HEATMAP_REMOTE_TIMEOUT"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    max_file_bytes: int = MAX_CSV_FILE_SIZE
    default_page_size: int = DEFAULT_PAGE_SIZE
    remote_timeout_seconds: float = REMOTE_TIMEOUT_SECONDS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _positive_int(name: str, raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _positive_float(name: str, raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _coerce(values: Mapping[str, Any]) -> dict[str, Any]:
    known = {item.name for item in fields(Settings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    coerced: dict[str, Any] = {}
    if "max_file_bytes" in values:
        coerced["max_file_bytes"] = _positive_int("max_file_bytes", values["max_file_bytes"])
    if "default_page_size" in values:
        page_size = _positive_int("default_page_size", values["default_page_size"])
        if page_size not in PAGE_SIZE_OPTIONS:
            raise ConfigError(
                f"default_page_size must be one of {', '.join(str(size) for size in PAGE_SIZE_OPTIONS)}"
            )
        coerced["default_page_size"] = page_size
    if "remote_timeout_seconds" in values:
        coerced["remote_timeout_seconds"] = _positive_float(
            "remote_timeout_seconds", values["remote_timeout_seconds"]
        )
    return coerced


def load_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigError("Config must be .json, .yml, or .yaml")
    if suffix in {".yml", ".yaml"}:
        raise ConfigError("YAML configs are not supported yet. Use JSON for now.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Could not read config: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a JSON object.")
    return payload


def load_settings(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    values: dict[str, Any] = {}
    if path is not None:
        values.update(_coerce(load_config_file(Path(path))))

    overrides = {
        "max_file_bytes": env.get(ENV_MAX_FILE_BYTES),
        "default_page_size": env.get(ENV_PAGE_SIZE),
        "remote_timeout_seconds": env.get(ENV_REMOTE_TIMEOUT),
    }
    values.update(_coerce({key: raw for key, raw in overrides.items() if raw not in (None, "")}))
    return Settings(**values)


def starter_config() -> dict[str, Any]:
    return Settings().to_dict()
