"""Deterministic tree layout for visualization.

Leaves are one unit wide; an internal node is exactly as wide as the sum of
its children (its leaf count), and sits centered over them. Siblings are
placed left to right in stored ``children`` order. Depth sets y.

The input may come from a hand-edited document, so descent keeps a visited
set: a child id that is missing from ``nodes`` or was already placed counts as
one unit of width and is not descended into. Traversal is iterative, so a
long linear story deeper than the interpreter's recursion limit still lays
out.
"""

from dataclasses import dataclass
from typing import NamedTuple

from loomtree.models import Tree


@dataclass(frozen=True)
class LayoutConfig:
    horizontal_spacing: float = 250.0  # pixels per unit of subtree width
    vertical_spacing: float = 120.0  # pixels per level of depth
    origin_x: float = 0.0
    origin_y: float = 0.0


class Position(NamedTuple):
    x: float
    y: float


class Extent(NamedTuple):
    left: float
    right: float


def layout(tree: Tree, config: LayoutConfig | None = None) -> dict[str, Position]:
    """Map every node reachable from the root to its (x, y) position."""
    positions, _ = _place(tree, config or LayoutConfig())
    return positions


def subtree_extents(tree: Tree, config: LayoutConfig | None = None) -> dict[str, Extent]:
    """Horizontal [left, right) pixel range occupied by each placed node's subtree."""
    _, extents = _place(tree, config or LayoutConfig())
    return extents


def _spanning_children(tree: Tree) -> tuple[dict[str, list[str | None]], list[str]]:
    """Walk from the root once, recording which children each node may descend into.

    A ``None`` entry stands for a stopped branch (dangling or revisited id):
    it still occupies one unit of width. Returns the child lists and the
    visit order (pre-order).
    """
    nodes = tree.nodes
    kids: dict[str, list[str | None]] = {}
    order: list[str] = []
    if tree.root_id not in nodes:
        return kids, order

    visited = {tree.root_id}
    stack = [tree.root_id]
    while stack:
        node_id = stack.pop()
        order.append(node_id)
        accepted: list[str | None] = []
        for child_id in nodes[node_id].children:
            if child_id in nodes and child_id not in visited:
                visited.add(child_id)
                accepted.append(child_id)
            else:
                accepted.append(None)
        kids[node_id] = accepted
        stack.extend(c for c in reversed(accepted) if c is not None)
    return kids, order


def _place(tree: Tree, config: LayoutConfig) -> tuple[dict[str, Position], dict[str, Extent]]:
    kids, order = _spanning_children(tree)

    # Widths bottom-up: reverse pre-order visits every child before its parent.
    width: dict[str, int] = {}
    for node_id in reversed(order):
        children = kids[node_id]
        if not children:
            width[node_id] = 1
        else:
            width[node_id] = sum(1 if c is None else width[c] for c in children)

    # Offsets top-down, in units of width.
    unit = config.horizontal_spacing
    positions: dict[str, Position] = {}
    extents: dict[str, Extent] = {}
    left_of: dict[str, int] = {}
    depth_of: dict[str, int] = {}
    if order:
        left_of[order[0]] = 0
        depth_of[order[0]] = 0

    for node_id in order:
        left = left_of[node_id]
        depth = depth_of[node_id]
        span = width[node_id]
        # Center of a span [left, left + span) is left + span / 2; shift by half
        # a unit so a lone leaf at offset 0 sits exactly at the origin.
        positions[node_id] = Position(
            x=config.origin_x + (left + span / 2) * unit - unit / 2,
            y=config.origin_y + depth * config.vertical_spacing,
        )
        extents[node_id] = Extent(
            left=config.origin_x + left * unit - unit / 2,
            right=config.origin_x + (left + span) * unit - unit / 2,
        )

        cursor = left
        for child_id in kids[node_id]:
            if child_id is None:
                cursor += 1
                continue
            left_of[child_id] = cursor
            depth_of[child_id] = depth + 1
            cursor += width[child_id]

    return positions, extents
