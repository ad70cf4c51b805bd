"""Theme token tables and the shared color cache."""

from __future__ import annotations

import pytest

from core.charting.themes import (
    REQUIRED_COLOR_TOKENS,
    ThemeColorCache,
    UnknownThemeError,
    available_themes,
    load_theme_tokens,
)

pytestmark = pytest.mark.unit


def test_installed_themes() -> None:
    assert {"light", "dark"} <= set(available_themes())


def test_light_theme_resolves_every_required_token() -> None:
    mapping = ThemeColorCache().colors("light")

    assert set(mapping) == set(REQUIRED_COLOR_TOKENS)
    assert mapping["--text-color"] == "#333333"
    assert mapping["--error-color"] == mapping["--red"] == "#e6001f"


def test_dark_theme_drops_non_hex_tokens() -> None:
    mapping = ThemeColorCache().colors("dark")

    assert "--purple" not in mapping
    assert "--brown" not in mapping
    assert mapping["--text-color"] == "#f5f5f5"


@pytest.mark.parametrize("theme", ["", "../settings", "missing"])
def test_unknown_theme_names_are_rejected(theme) -> None:
    with pytest.raises(UnknownThemeError):
        load_theme_tokens(theme)


def test_cache_keeps_mapping_until_theme_changes() -> None:
    cache = ThemeColorCache()

    light = cache.colors("light")
    assert cache.colors("light") is light

    dark = cache.colors("dark")
    assert dark is not light
    assert dark["--red"] != light["--red"]
    assert cache.colors("light") is not light
    assert cache.colors("light") == light


def test_invalidate_forces_a_new_resolution() -> None:
    cache = ThemeColorCache()
    first = cache.colors("light")

    cache.invalidate()

    assert cache.colors("light") is not first


def test_theme_directory_comes_from_settings(settings, tmp_path) -> None:
    (tmp_path / "plain.yml").write_text('--red: "#aa0000"\n--green: hsl(1, 2%, 3%)\n', encoding="utf-8")
    (tmp_path / "broken.yml").write_text("- just\n- a list\n", encoding="utf-8")
    settings.COVERAGE_THEME_DIR = tmp_path

    mapping = ThemeColorCache(frozenset({"--red", "--green"})).colors("plain")

    assert available_themes() == ("broken", "plain")
    assert dict(mapping) == {"--red": "#aa0000"}
    with pytest.raises(UnknownThemeError):
        load_theme_tokens("broken")
