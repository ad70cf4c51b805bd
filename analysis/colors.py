"""Color resolution, interpolation and contrast helpers.

Theme colors are addressed by symbolic tokens (e.g. `--success-color`) whose
concrete values depend on the active theme. Only strict `#rrggbb` values are
accepted; anything else (HSL, short hex, unresolved references) is treated as
absent so callers never receive a color they cannot format.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any, Final

HEX_COLOR_RE: Final = re.compile(r"^#[a-fA-F0-9]{6}$")
VAR_REFERENCE_RE: Final = re.compile(r"^var\(\s*(--[\w-]+)\s*\)$")
MAX_REFERENCE_DEPTH: Final[int] = 8

RGB = tuple[float, float, float]
ColorMapping = Mapping[str, str]
ColorInterpolator = Callable[[float], RGB]


class ColorResolver:
    """Resolve symbolic theme tokens against one theme's computed values.

    Args:
        tokens: Token name to raw value, as declared by the theme. Values may be
            hex colors, other CSS color syntaxes or `var(--other-token)`.
    """

    def __init__(self, tokens: Mapping[str, object]) -> None:
        self._tokens = {str(name): value for name, value in tokens.items()}

    def resolve(self, name: str) -> str | None:
        """Return the `#rrggbb` value of a token, or None when unresolvable."""

        value = self._computed_value(name)
        if value is None or HEX_COLOR_RE.match(value) is None:
            return None
        return value

    def resolve_batch(self, names: Iterable[str]) -> ColorMapping:
        """Resolve many tokens, keeping only the valid subset.

        Args:
            names: Symbolic token names.

        Returns:
            Read-only mapping containing an entry only for resolvable tokens.
        """

        resolved: dict[str, str] = {}
        for name in names:
            value = self.resolve(name)
            if value is not None:
                resolved[name] = value
        return MappingProxyType(resolved)

    def _computed_value(self, name: str) -> str | None:
        seen: set[str] = set()
        current = name
        for _ in range(MAX_REFERENCE_DEPTH):
            if current in seen:
                return None
            seen.add(current)
            raw = self._tokens.get(current)
            if not isinstance(raw, str):
                return None
            value = raw.strip()
            reference = VAR_REFERENCE_RE.match(value)
            if reference is None:
                return value
            current = reference.group(1)
        return None


def parse_hex(color: str) -> RGB:
    """Parse `#rrggbb` into RGB channels in [0, 1].

    Raises:
        ValueError: When the value is not a strict 6-digit hex color.
    """

    if HEX_COLOR_RE.match(color) is None:
        raise ValueError(f"Not a #rrggbb color: {color!r}")
    return (
        int(color[1:3], 16) / 255,
        int(color[3:5], 16) / 255,
        int(color[5:7], 16) / 255,
    )


def format_hex(rgb: RGB) -> str:
    """Format RGB channels in [0, 1] as `#rrggbb`, clamping out-of-range values."""

    channels = (round(min(1.0, max(0.0, channel)) * 255) for channel in rgb)
    return "#" + "".join(f"{channel:02x}" for channel in channels)


def make_interpolator(anchors: Iterable[str]) -> ColorInterpolator:
    """Build a piecewise-linear RGB interpolator through hex anchor colors.

    `ratio` 0 maps to the first anchor and 1 to the last; anchors are spaced
    evenly. Ratios outside [0, 1] are clamped.

    Args:
        anchors: Two or more `#rrggbb` colors.

    Raises:
        ValueError: When fewer than two anchors are given or one is invalid.
    """

    stops = [parse_hex(anchor) for anchor in anchors]
    if len(stops) < 2:
        raise ValueError("An interpolator needs at least two anchor colors.")
    segments = len(stops) - 1

    def interpolate(ratio: float) -> RGB:
        position = min(1.0, max(0.0, float(ratio))) * segments
        index = min(int(position), segments - 1)
        t = position - index
        start, end = stops[index], stops[index + 1]
        return (
            start[0] + (end[0] - start[0]) * t,
            start[1] + (end[1] - start[1]) * t,
            start[2] + (end[2] - start[2]) * t,
        )

    return interpolate


def relative_luminance(rgb: RGB) -> float:
    """Return the WCAG 2 relative luminance of an sRGB color."""

    def linearize(channel: float) -> float:
        if abs(channel) <= 0.04045:
            return channel / 12.92
        return ((abs(channel) + 0.055) / 1.055) ** 2.4

    red, green, blue = (linearize(channel) for channel in rgb)
    return 0.2126 * red + 0.7152 * green + 0.0722 * blue


def apply_theme(payload: Any, mapping: ColorMapping) -> Any:
    """Return a copy of a JSON payload with symbolic colors replaced.

    Every string value equal to a resolved token is replaced with its hex
    value. Unresolved tokens are kept verbatim.
    """

    if isinstance(payload, dict):
        return {key: apply_theme(value, mapping) for key, value in payload.items()}
    if isinstance(payload, list):
        return [apply_theme(value, mapping) for value in payload]
    if isinstance(payload, str):
        return mapping.get(payload, payload)
    return payload
