"""Theme token tables and the shared resolved color mapping.

Each theme is a YAML file mapping symbolic tokens to computed values. The
resolved mapping for the active theme is shared read-mostly state: it is only
rebuilt when the theme changes, and a rebuild replaces it in one assignment.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Final

import yaml
from django.conf import settings

from analysis.colors import ColorMapping, ColorResolver
from analysis.trend import CHART_COLOR_TOKENS, COVERAGE_SERIES_COLORS
from analysis.treemap import COVERAGE_LEVELS, COVERAGE_NOT_AVAILABLE, LABEL_BLACK, LABEL_WHITE

logger = logging.getLogger(__name__)

REQUIRED_COLOR_TOKENS: Final[frozenset[str]] = frozenset(
    {
        LABEL_BLACK,
        LABEL_WHITE,
        "--text-color",
        "--red",
        "--green",
        "--yellow",
        "--orange",
        "--light-green",
        "--error-color",
        "--success-color",
        COVERAGE_NOT_AVAILABLE,
        *(token for _, token in COVERAGE_LEVELS),
        *(token for _, token in COVERAGE_SERIES_COLORS),
        *CHART_COLOR_TOKENS,
    }
)


class UnknownThemeError(LookupError):
    """Raised when no token table exists for a theme name."""


def theme_directory() -> Path:
    return Path(getattr(settings, "COVERAGE_THEME_DIR", Path(__file__).resolve().parent.parent / "themes"))


def available_themes() -> tuple[str, ...]:
    """Return the names of all installed themes, sorted."""

    return tuple(sorted(path.stem for path in theme_directory().glob("*.yml")))


def load_theme_tokens(theme: str) -> dict[str, object]:
    """Load the raw token table of a theme.

    Args:
        theme: Theme name, e.g. `light` or `dark`.

    Returns:
        Token name to raw value.

    Raises:
        UnknownThemeError: When the theme name is invalid or has no table.
    """

    if not theme or not theme.replace("-", "").replace("_", "").isalnum():
        raise UnknownThemeError(f"Invalid theme name: {theme!r}")
    path = theme_directory() / f"{theme}.yml"
    if not path.is_file():
        raise UnknownThemeError(f"Unknown theme: {theme!r}")

    with path.open(encoding="utf-8") as handle:
        tokens = yaml.safe_load(handle) or {}
    if not isinstance(tokens, dict):
        raise UnknownThemeError(f"Theme {theme!r} does not contain a token table.")
    return {str(key): value for key, value in tokens.items()}


def resolver_for_theme(theme: str) -> ColorResolver:
    return ColorResolver(load_theme_tokens(theme))


class ThemeColorCache:
    """Keep the resolved color mapping of the active theme.

    Asking for a different theme than the cached one resolves the required
    tokens again; the previous mapping is never reused across themes.
    """

    def __init__(self, tokens: frozenset[str] = REQUIRED_COLOR_TOKENS) -> None:
        self._tokens = tokens
        self._lock = threading.Lock()
        self._entry: tuple[str, ColorMapping] | None = None

    def colors(self, theme: str) -> ColorMapping:
        """Return the mapping for `theme`, resolving it when the theme changed."""

        entry = self._entry
        if entry is not None and entry[0] == theme:
            return entry[1]
        with self._lock:
            mapping = resolver_for_theme(theme).resolve_batch(self._tokens)
            missing = sorted(self._tokens - set(mapping))
            if missing:
                logger.info("Theme %r leaves %d color tokens unresolved: %s", theme, len(missing), missing)
            self._entry = (theme, mapping)
        return mapping

    def invalidate(self) -> None:
        """Drop the cached mapping so the next request resolves again."""

        self._entry = None
