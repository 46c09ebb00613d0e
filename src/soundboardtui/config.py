from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .models import SortMode
from .paths import config_path

CONFIG_VERSION = 1
DEFAULT_API_BASE_URL = "http://localhost:8080/api"
API_URL_ENV = "SOUNDBOARD_API_URL"


@dataclass
class AppConfig:
    version: int = CONFIG_VERSION
    api_base_url: str | None = None
    page_size: int | None = None
    default_sort: str | None = None
    uploaded_by: str | None = None
    player_command: str | None = None


def load_config(path: Path | None = None) -> tuple[AppConfig, str | None]:
    path = path or config_path()
    if not path.exists():
        return AppConfig(), None
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        return AppConfig(), f"Failed to read config: {path} ({exc})"
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return AppConfig(), f"Config file is not valid JSON: {path}"
    if not isinstance(data, dict):
        return AppConfig(), f"Config file must be a JSON object: {path}"
    return _parse_config_data(data), None


def save_config(config: AppConfig, path: Path | None = None) -> str | None:
    path = path or config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return f"Failed to create config directory: {path.parent} ({exc})"
    payload = _config_to_dict(config)
    try:
        path.write_text(
            json.dumps(payload, ensure_ascii=True, indent=2),
            encoding="utf-8",
        )
    except OSError as exc:
        return f"Failed to write config: {path} ({exc})"
    return None


def resolve_base_url(
    config: AppConfig,
    environ: Mapping[str, str] | None = None,
    override: str | None = None,
) -> str:
    """Pick the API base URL: CLI override, then environment, then config file."""
    environ = os.environ if environ is None else environ
    candidates = (override, environ.get(API_URL_ENV), config.api_base_url)
    for candidate in candidates:
        value = _as_url(candidate)
        if value is not None:
            return value
    return DEFAULT_API_BASE_URL


def resolve_sort(config: AppConfig) -> SortMode:
    if config.default_sort is None:
        return SortMode.RECENT
    return SortMode.parse(config.default_sort) or SortMode.RECENT


def _parse_config_data(data: dict[str, Any]) -> AppConfig:
    return AppConfig(
        version=_as_int(data.get("version")) or CONFIG_VERSION,
        api_base_url=_as_url(data.get("api_base_url")),
        page_size=_as_positive_int(data.get("page_size")),
        default_sort=_as_sort(data.get("default_sort")),
        uploaded_by=_as_str(data.get("uploaded_by")),
        player_command=_as_str(data.get("player_command")),
    )


def _config_to_dict(config: AppConfig) -> dict[str, Any]:
    data: dict[str, Any] = {"version": config.version}
    _set_if(data, "api_base_url", config.api_base_url)
    _set_if(data, "page_size", config.page_size)
    _set_if(data, "default_sort", config.default_sort)
    _set_if(data, "uploaded_by", config.uploaded_by)
    _set_if(data, "player_command", config.player_command)
    return data


def _set_if(data: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        data[key] = value


def _as_str(value: Any) -> str | None:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _as_url(value: Any) -> str | None:
    text = _as_str(value)
    if text is None:
        return None
    if not text.startswith(("http://", "https://")):
        return None
    return text.rstrip("/")


def _as_sort(value: Any) -> str | None:
    text = _as_str(value)
    if text is None:
        return None
    mode = SortMode.parse(text)
    return mode.value if mode else None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_positive_int(value: Any) -> int | None:
    number = _as_int(value)
    if number is None or number <= 0:
        return None
    return number
