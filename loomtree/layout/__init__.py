"""Tree layout: pure mapping from tree shape to 2D positions."""

from loomtree.layout.engine import Extent, LayoutConfig, Position, layout, subtree_extents

__all__ = ["Extent", "LayoutConfig", "Position", "layout", "subtree_extents"]
