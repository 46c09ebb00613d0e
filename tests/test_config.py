from __future__ import annotations

import pytest

from soundboardtui.config import (
    API_URL_ENV,
    DEFAULT_API_BASE_URL,
    AppConfig,
    load_config,
    resolve_base_url,
    resolve_sort,
    save_config,
)
from soundboardtui.models import SortMode


def test_load_config_missing_file(tmp_path) -> None:
    path = tmp_path / "config.json"
    config, error = load_config(path)
    assert error is None
    assert config == AppConfig()


def test_save_and_load_config_roundtrip(tmp_path) -> None:
    path = tmp_path / "nested" / "config.json"
    config = AppConfig(
        api_base_url="https://sounds.example.com/api",
        page_size=50,
        default_sort="popular",
        uploaded_by="sam",
        player_command="mpv --no-video",
    )
    error = save_config(config, path)
    assert error is None
    loaded, error = load_config(path)
    assert error is None
    assert loaded == config


def test_load_config_invalid_json(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not-json", encoding="utf-8")
    config, error = load_config(path)
    assert config == AppConfig()
    assert error is not None


def test_load_config_drops_invalid_values(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        '{"api_base_url": "ftp://nope", "page_size": -3, "default_sort": "newest", "uploaded_by": "  "}',
        encoding="utf-8",
    )
    config, error = load_config(path)
    assert error is None
    assert config == AppConfig()


def test_resolve_base_url_precedence() -> None:
    config = AppConfig(api_base_url="http://from-config/api")
    env = {API_URL_ENV: "http://from-env/api/"}
    assert resolve_base_url(config, env, "http://from-cli/api") == "http://from-cli/api"
    assert resolve_base_url(config, env) == "http://from-env/api"
    assert resolve_base_url(config, {}) == "http://from-config/api"
    assert resolve_base_url(AppConfig(), {}) == DEFAULT_API_BASE_URL


def test_resolve_base_url_skips_invalid_candidates() -> None:
    env = {API_URL_ENV: "not a url"}
    assert resolve_base_url(AppConfig(), env, "  ") == DEFAULT_API_BASE_URL


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, SortMode.RECENT), ("popular", SortMode.POPULAR), ("bogus", SortMode.RECENT)],
)
def test_resolve_sort(value, expected) -> None:
    assert resolve_sort(AppConfig(default_sort=value)) is expected
