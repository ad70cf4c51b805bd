"""Unit tests for theme color resolution and interpolation."""

from __future__ import annotations

import pytest

from analysis.colors import (
    ColorResolver,
    apply_theme,
    format_hex,
    make_interpolator,
    parse_hex,
    relative_luminance,
)

pytestmark = pytest.mark.unit


def test_resolver_keeps_only_strict_hex_values() -> None:
    """Drop HSL, short hex and unknown tokens instead of substituting a fallback."""

    resolver = ColorResolver(
        {
            "--green": "#1ea64b",
            "--purple": "hsl(270, 50%, 50%)",
            "--short": "#fff",
            "--padded": "  #AABBCC  ",
        }
    )

    mapping = resolver.resolve_batch(["--green", "--purple", "--short", "--padded", "--missing"])

    assert dict(mapping) == {"--green": "#1ea64b", "--padded": "#AABBCC"}


def test_resolver_follows_var_references() -> None:
    resolver = ColorResolver({"--red": "#e6001f", "--error-color": "var(--red)", "--alert": "var( --error-color )"})

    assert resolver.resolve("--error-color") == "#e6001f"
    assert resolver.resolve("--alert") == "#e6001f"


def test_resolver_treats_reference_cycles_as_absent() -> None:
    resolver = ColorResolver({"--a": "var(--b)", "--b": "var(--a)", "--self": "var(--self)"})

    assert resolver.resolve("--a") is None
    assert resolver.resolve("--self") is None
    assert dict(resolver.resolve_batch(["--a", "--b"])) == {}


def test_resolve_batch_is_read_only() -> None:
    mapping = ColorResolver({"--red": "#e6001f"}).resolve_batch(["--red"])

    with pytest.raises(TypeError):
        mapping["--red"] = "#000000"  # type: ignore[index]


def test_parse_hex_rejects_invalid_colors() -> None:
    assert parse_hex("#ff0000") == (1.0, 0.0, 0.0)
    with pytest.raises(ValueError):
        parse_hex("red")


def test_format_hex_clamps_channels() -> None:
    assert format_hex((1.2, -0.5, 0.5)) == "#ff0080"


def test_interpolator_hits_anchors_and_midpoint() -> None:
    palette = make_interpolator(["#ff0000", "#ffff00", "#00ff00"])

    assert format_hex(palette(0.0)) == "#ff0000"
    assert format_hex(palette(0.5)) == "#ffff00"
    assert format_hex(palette(1.0)) == "#00ff00"
    assert format_hex(palette(0.25)) == "#ff8000"


def test_interpolator_clamps_ratio() -> None:
    palette = make_interpolator(["#000000", "#ffffff"])

    assert format_hex(palette(-3.0)) == "#000000"
    assert format_hex(palette(7.0)) == "#ffffff"


def test_interpolator_requires_two_anchors() -> None:
    with pytest.raises(ValueError):
        make_interpolator(["#000000"])


def test_relative_luminance_extremes() -> None:
    assert relative_luminance((0.0, 0.0, 0.0)) == 0.0
    assert relative_luminance((1.0, 1.0, 1.0)) == pytest.approx(1.0)


def test_apply_theme_replaces_resolved_tokens_only() -> None:
    """Resolved tokens are replaced anywhere in the payload; others stay verbatim."""

    payload = {"itemStyle": {"color": "--green"}, "label": {"color": "--unknown"}, "data": ["--green", 3]}

    themed = apply_theme(payload, {"--green": "#1ea64b"})

    assert themed == {"itemStyle": {"color": "#1ea64b"}, "label": {"color": "--unknown"}, "data": ["#1ea64b", 3]}
    assert payload["itemStyle"]["color"] == "--green"
