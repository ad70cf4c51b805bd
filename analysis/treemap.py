"""Coverage tree maps: node model, report conversion and colorization.

A tree map node carries `value = (total, tooltip)`; the first element is the
quantity used for coloring. Colors are stored as symbolic theme tokens (e.g.
`--black`) or `#rrggbb` strings and resolved against the active theme right
before the tree is handed to the renderer.

Colorization runs two independent passes, one over leaves and one over inner
nodes, because files and their aggregates do not share a scale.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from .colors import ColorInterpolator, ColorMapping, format_hex, make_interpolator, parse_hex, relative_luminance
from .metrics import Metric

logger = logging.getLogger(__name__)

LUMINANCE_THRESHOLD: Final[float] = 0.230
LABEL_BLACK: Final[str] = "--black"
LABEL_WHITE: Final[str] = "--white"
INNER_BORDER_WIDTH: Final[int] = 4

LEADING_INTEGER_RE: Final = re.compile(r"^\s*([+-]?\d+)")


@dataclass(slots=True)
class ItemStyle:
    """Fill and border of a tree map rectangle."""

    color: str | None = None
    border_color: str | None = None
    border_width: int | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.color is not None:
            payload["color"] = self.color
        if self.border_color is not None:
            payload["borderColor"] = self.border_color
        if self.border_width is not None:
            payload["borderWidth"] = self.border_width
        return payload


@dataclass(slots=True)
class Label:
    """Text style of a node label or upper label."""

    show: bool = True
    color: str | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"show": self.show}
        if self.color is not None:
            payload["color"] = self.color
        return payload


@dataclass(slots=True)
class CoverageTreeNode:
    """One entity of the coverage hierarchy (root, package, directory, file).

    Args:
        name: Display label.
        value: `(total, tooltip)`; empty when the node carries no value.
        children: Owned child nodes; empty for leaves.
        item_style: Fill and border colors, mutated by colorization.
        label: Label text style, mutated by colorization.
        upper_label: Upper label text style, mutated by colorization.
        id: Optional stable path identifier.
    """

    name: str
    value: tuple[Any, ...] = ()
    children: list[CoverageTreeNode] = field(default_factory=list)
    item_style: ItemStyle | None = field(default_factory=ItemStyle)
    label: Label = field(default_factory=Label)
    upper_label: Label = field(default_factory=Label)
    id: str | None = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def walk(self) -> Iterator[CoverageTreeNode]:
        """Yield this node and all descendants in pre-order."""

        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> CoverageTreeNode:
        """Build a node tree from an ECharts-style JSON object.

        A missing `children` key denotes a leaf. A missing `itemStyle` gives the
        node an empty style that colorization fills in.
        """

        raw_value = payload.get("value")
        if isinstance(raw_value, (list, tuple)):
            value = tuple(raw_value)
        elif raw_value is None:
            value = ()
        else:
            value = (raw_value,)

        raw_style = payload.get("itemStyle")
        item_style = ItemStyle()
        if isinstance(raw_style, Mapping):
            item_style = ItemStyle(
                color=raw_style.get("color"),
                border_color=raw_style.get("borderColor"),
                border_width=raw_style.get("borderWidth"),
            )

        return cls(
            name=str(payload.get("name") or ""),
            value=value,
            children=[cls.from_json(child) for child in payload.get("children") or () if isinstance(child, Mapping)],
            item_style=item_style,
            label=_label_from_json(payload.get("label")),
            upper_label=_label_from_json(payload.get("upperLabel")),
            id=payload.get("id"),
        )

    def to_json(self) -> dict[str, Any]:
        """Serialize to the ECharts tree map data format."""

        payload: dict[str, Any] = {"name": self.name}
        if self.id is not None:
            payload["id"] = self.id
        payload["value"] = list(self.value)
        payload["children"] = [child.to_json() for child in self.children]
        if self.item_style is not None:
            payload["itemStyle"] = self.item_style.to_json()
        payload["label"] = self.label.to_json()
        payload["upperLabel"] = self.upper_label.to_json()
        return payload


def _label_from_json(raw: object) -> Label:
    if not isinstance(raw, Mapping):
        return Label()
    return Label(show=bool(raw.get("show", True)), color=raw.get("color"))


# Colorization ----------------------------------------------------------------


def node_quantity(node: CoverageTreeNode) -> int:
    """Return the integer quantity used to colorize a node.

    The leading integer of `value[0]` is used (`"12 files"` → 12, `4.7` → 4).
    Values without a leading integer count as 0, which widens the range when
    some nodes have no data.
    """

    if not node.value:
        return 0
    raw = node.value[0]
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw == raw and abs(raw) != float("inf") else 0
    match = LEADING_INTEGER_RE.match(str(raw))
    return int(match.group(1)) if match else 0


def is_eligible(node: CoverageTreeNode, *, leaf: bool) -> bool:
    """Return True when a node takes part in the pass targeting `leaf`."""

    return bool(node.value) and node.is_leaf == leaf


def value_range(tree: CoverageTreeNode, *, leaf: bool) -> tuple[int, int] | None:
    """Return `(min, max)` over eligible nodes, or None when there are none."""

    quantities = [node_quantity(node) for node in tree.walk() if is_eligible(node, leaf=leaf)]
    if not quantities:
        return None
    return min(quantities), max(quantities)


def colorization_ratio(quantity: int, low: int, high: int) -> float:
    """Normalize a quantity into [0, 1].

    A degenerate range (`low == high`) maps every node to 0, i.e. to the
    first anchor color of the palette.
    """

    if high == low:
        return 0.0
    return (quantity - low) / (high - low)


def label_color_for(background: tuple[float, float, float]) -> str:
    """Pick black text on light backgrounds and white text otherwise.

    A luminance equal to the threshold picks white.
    """

    if relative_luminance(background) > LUMINANCE_THRESHOLD:
        return LABEL_BLACK
    return LABEL_WHITE


def colorize_pass(tree: CoverageTreeNode, palette: ColorInterpolator, *, leaf: bool) -> int:
    """Colorize the eligible nodes of one pass in place.

    Args:
        tree: Root of the tree to mutate.
        palette: Interpolator mapping a ratio in [0, 1] to an RGB color.
        leaf: True for the leaf pass, False for the aggregate pass.

    Returns:
        Number of nodes that received a color.
    """

    bounds = value_range(tree, leaf=leaf)
    if bounds is None:
        return 0
    low, high = bounds
    logger.debug("Colorizing %s nodes with range [%d, %d]", "leaf" if leaf else "inner", low, high)

    colored = 0
    for node in tree.walk():
        if not is_eligible(node, leaf=leaf):
            continue
        ratio = colorization_ratio(node_quantity(node), low, high)
        try:
            background = palette(ratio)
            color = format_hex(background)
        except (TypeError, ValueError):
            logger.warning("Palette failed for tree map node %r; keeping its previous style", node.name)
            continue

        if node.item_style is None:
            node.item_style = ItemStyle()
        node.item_style.color = color
        node.item_style.border_color = color
        text_color = label_color_for(background)
        node.label.color = text_color
        node.upper_label.color = text_color
        colored += 1
    return colored


def colorize(tree: CoverageTreeNode, palette: ColorInterpolator) -> None:
    """Colorize leaves and inner nodes of a tree, each pass on its own scale."""

    colorize_pass(tree, palette, leaf=True)
    colorize_pass(tree, palette, leaf=False)


def coverage_palette(mapping: ColorMapping, *, larger_is_better: bool) -> ColorInterpolator | None:
    """Build the error → yellow → success interpolator from theme colors.

    The anchors are reversed when smaller values are better. Returns None when
    any anchor token is missing from the mapping.
    """

    low, high = ("--error-color", "--success-color") if larger_is_better else ("--success-color", "--error-color")
    tokens = (low, "--yellow", high)
    if any(token not in mapping for token in tokens):
        logger.warning("Tree map palette unavailable; missing theme colors: %s", [t for t in tokens if t not in mapping])
        return None
    return make_interpolator(mapping[token] for token in tokens)


# Conversion from coverage reports ----------------------------------------------

REPORT_TOP_LEVEL_KINDS: Final[frozenset[str]] = frozenset({"module", "container"})

# Minimum coverage percentage per level, highest first.
COVERAGE_LEVELS: Final[tuple[tuple[float, str], ...]] = (
    (95.0, "--coverage-excellent"),
    (90.0, "--coverage-very-good"),
    (80.0, "--coverage-good"),
    (70.0, "--coverage-satisfactory"),
    (60.0, "--coverage-average"),
    (50.0, "--coverage-insufficient"),
    (0.0, "--coverage-bad"),
)
COVERAGE_NOT_AVAILABLE: Final[str] = "--coverage-na"


@dataclass(frozen=True, slots=True)
class ReportNode:
    """A node of a parsed coverage report.

    Args:
        name: Module, package, directory or file name. Package names may be
            dotted (`com.example.util`).
        kind: One of `module`, `container`, `package`, `directory`, `file`.
        values: Metric tag to either `{"covered": int, "missed": int}` for
            coverage metrics or a plain number for software metrics.
        children: Child report nodes.
    """

    name: str
    kind: str
    values: Mapping[str, Any] = field(default_factory=dict)
    children: tuple[ReportNode, ...] = ()

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> ReportNode:
        return cls(
            name=str(payload.get("name") or ""),
            kind=str(payload.get("kind") or "file").lower(),
            values=dict(payload.get("values") or {}),
            children=tuple(cls.from_json(child) for child in payload.get("children") or ()),
        )


def coverage_level_color(percentage: float | None) -> str:
    """Return the fill token for a coverage percentage (None → not available)."""

    if percentage is None:
        return COVERAGE_NOT_AVAILABLE
    for minimum, token in COVERAGE_LEVELS:
        if percentage >= minimum:
            return token
    return COVERAGE_LEVELS[-1][1]


class TreeMapNodeConverter:
    """Convert a coverage report into a tree map for one metric.

    Args:
        mapping: Resolved theme colors, used to pick readable label colors for
            coverage-level fills. Missing entries fall back to black labels.
    """

    def __init__(self, mapping: ColorMapping | None = None) -> None:
        self._mapping = mapping or {}

    def to_tree_chart_model(self, report: ReportNode, metric: Metric) -> CoverageTreeNode:
        """Return the tree map root for `metric`.

        When skipping single-child top-level nodes ends on a module, that module
        becomes the root and its dotted package names are split into a
        hierarchy. Otherwise the report is converted as is. Single-child package
        chains below the root are collapsed again into dotted names.
        """

        root_report = _merge_packages(report)
        root = self._convert(root_report, metric, path=root_report.name)
        if root is None:
            return CoverageTreeNode(name=report.name, id=report.name)
        for child in root.children:
            collapse_empty_packages(child)
        return root

    def _convert(self, node: ReportNode, metric: Metric, *, path: str) -> CoverageTreeNode | None:
        raw = node.values.get(metric.tag)
        if raw is None:
            return None

        is_file = node.kind == "file"
        if metric.is_coverage:
            covered, missed = _coverage_counts(raw)
            total = covered + missed
            percentage = covered * 100.0 / total if total else None
            fill = coverage_level_color(percentage)
            text = self._label_color(fill)
            tooltip = _coverage_tooltip(metric, covered, total, percentage)
            value: tuple[Any, ...] = (str(total), tooltip)
        else:
            fill = "--light-green" if metric is Metric.TESTS else "--orange"
            text = LABEL_BLACK
            value = (_format_number(raw), f"{metric.display_name}: {_format_number(raw)}")

        style = ItemStyle(color=fill) if is_file else ItemStyle(color=fill, border_color=fill, border_width=INNER_BORDER_WIDTH)
        tree_node = CoverageTreeNode(
            name=node.name,
            value=value,
            item_style=style,
            label=Label(color=text),
            upper_label=Label(color=text),
            id=path,
        )
        if not is_file:
            for child in node.children:
                converted = self._convert(child, metric, path=f"{path}/{child.name}")
                if converted is not None:
                    tree_node.children.append(converted)
        return tree_node

    def _label_color(self, fill_token: str) -> str:
        hex_color = self._mapping.get(fill_token)
        if hex_color is None:
            return LABEL_BLACK
        return label_color_for(parse_hex(hex_color))


def collapse_empty_packages(node: CoverageTreeNode) -> None:
    """Merge chains of single-child inner nodes into one dotted node, in place."""

    while len(node.children) == 1 and not node.children[0].is_leaf:
        child = node.children[0]
        node.name = f"{node.name}.{child.name}"
        node.id = child.id
        node.children = child.children
    for child in node.children:
        collapse_empty_packages(child)


def _merge_packages(report: ReportNode) -> ReportNode:
    node = _skip_empty_modules(report)
    if node.kind == "module":
        return _split_packages(node)
    return report


def _skip_empty_modules(report: ReportNode) -> ReportNode:
    node = report
    while len(node.children) == 1 and node.children[0].kind in REPORT_TOP_LEVEL_KINDS:
        node = node.children[0]
    return node


def _split_packages(node: ReportNode) -> ReportNode:
    """Replace dotted package names with nested package nodes."""

    children: list[ReportNode] = []
    packages: dict[str, list[tuple[list[str], ReportNode]]] = {}
    for child in node.children:
        child = _split_packages(child)
        if child.kind == "package" and "." in child.name:
            head, *rest = child.name.split(".")
            packages.setdefault(head, []).append((rest, child))
        elif child.kind == "package":
            packages.setdefault(child.name, []).append(([], child))
        else:
            children.append(child)

    merged = [_merge_package(name, members) for name, members in packages.items()]
    return ReportNode(name=node.name, kind=node.kind, values=node.values, children=tuple(merged + children))


def _merge_package(name: str, members: list[tuple[list[str], ReportNode]]) -> ReportNode:
    if len(members) == 1 and not members[0][0]:
        package = members[0][1]
        return ReportNode(name=name, kind="package", values=package.values, children=package.children)

    direct: list[ReportNode] = []
    nested: dict[str, list[tuple[list[str], ReportNode]]] = {}
    for rest, package in members:
        if rest:
            nested.setdefault(rest[0], []).append((rest[1:], package))
        else:
            direct.extend(package.children)

    children = [_merge_package(child, group) for child, group in nested.items()]
    all_children = tuple(children + direct)
    return ReportNode(name=name, kind="package", values=_sum_values(all_children), children=all_children)


def _sum_values(nodes: tuple[ReportNode, ...]) -> dict[str, Any]:
    totals: dict[str, Any] = {}
    for node in nodes:
        for tag, raw in node.values.items():
            if isinstance(raw, Mapping):
                covered, missed = _coverage_counts(raw)
                current = totals.setdefault(tag, {"covered": 0, "missed": 0})
                current["covered"] += covered
                current["missed"] += missed
            elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
                totals[tag] = totals.get(tag, 0) + raw
    return totals


def _coverage_counts(raw: object) -> tuple[int, int]:
    if not isinstance(raw, Mapping):
        return 0, 0
    try:
        return max(0, int(raw.get("covered") or 0)), max(0, int(raw.get("missed") or 0))
    except (TypeError, ValueError):
        return 0, 0


def _coverage_tooltip(metric: Metric, covered: int, total: int, percentage: float | None) -> str:
    if percentage is None:
        return f"{metric.display_name}: n/a"
    return f"{metric.display_name}: {percentage:.2f}% ({covered}/{total})"


def _format_number(raw: object) -> str:
    if isinstance(raw, float) and not raw.is_integer():
        return f"{raw:.2f}"
    try:
        return str(int(raw))  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return str(raw)
