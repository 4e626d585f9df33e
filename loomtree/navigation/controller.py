"""Navigation over a tree's current-node pointer.

Every move reads a fresh snapshot from the repository and commits with a
single ``set_current_node`` call; the controller keeps no state of its own.

Walk modes
----------
``descendants``
    ``next`` follows the pre-order of the current node's own subtree, so the
    first step is the first child and the walk never leaves the subtree.
    ``prev`` climbs the ancestor chain.
``all``
    ``next``/``prev`` step through the pre-order of the whole tree. After a
    leaf, ``next`` moves laterally to the following sibling (or to an
    ancestor's following sibling); ``prev`` is the exact reverse.

A walk moves along a precomputed sequence of distinct ids, so one invocation
never visits a node twice. It stops early at the end of the sequence and
only raises if it could not move at all.
"""

from enum import StrEnum

from loomtree.errors import AtRootError, OutOfRangeError, ValidationError
from loomtree.models import Tree
from loomtree.trees.repository import TreeRepository, preorder


class Direction(StrEnum):
    NEXT = "next"
    PREV = "prev"


class WalkMode(StrEnum):
    DESCENDANTS = "descendants"
    ALL = "all"


class NavigationController:
    def __init__(self, repository: TreeRepository) -> None:
        self._repository = repository

    def go_to_parent(self, tree_id: str) -> str:
        tree = self._repository.get_tree(tree_id)
        parent_id = tree.nodes[tree.current_node_id].parent_id
        if parent_id is None:
            raise AtRootError(tree_id)
        self._repository.set_current_node(tree_id, parent_id)
        return parent_id

    def go_to_child(self, tree_id: str, index: int = 0) -> str:
        tree = self._repository.get_tree(tree_id)
        children = tree.nodes[tree.current_node_id].children
        if not children:
            raise OutOfRangeError(f"Node {tree.current_node_id} has no children")
        if not 0 <= index < len(children):
            raise OutOfRangeError(
                f"Child index {index} out of range for node {tree.current_node_id} "
                f"with {len(children)} children"
            )
        self._repository.set_current_node(tree_id, children[index])
        return children[index]

    def go_to_sibling(self, tree_id: str, offset: int = 1) -> str:
        """Move ``offset`` places along the parent's children, wrapping around."""
        tree = self._repository.get_tree(tree_id)
        current = tree.nodes[tree.current_node_id]
        if current.parent_id is None:
            raise AtRootError(tree_id)
        siblings = tree.nodes[current.parent_id].children
        target = siblings[(siblings.index(current.id) + offset) % len(siblings)]
        self._repository.set_current_node(tree_id, target)
        return target

    def walk(
        self,
        tree_id: str,
        direction: Direction | str = Direction.NEXT,
        mode: WalkMode | str = WalkMode.DESCENDANTS,
        steps: int = 1,
    ) -> list[str]:
        """Advance up to ``steps`` nodes; return the ids visited, in order."""
        direction = _coerce(Direction, direction)
        mode = _coerce(WalkMode, mode)
        if steps < 1:
            raise OutOfRangeError(f"steps must be at least 1, got {steps}")

        tree = self._repository.get_tree(tree_id)
        route = _route(tree, direction, mode)
        visited = route[:steps]
        if not visited:
            if direction is Direction.PREV and mode is WalkMode.DESCENDANTS:
                raise AtRootError(tree_id)
            raise OutOfRangeError(
                f"Cannot walk {direction} ({mode}) from node {tree.current_node_id}"
            )
        self._repository.set_current_node(tree_id, visited[-1])
        return visited

    def next_bookmark(self, tree_id: str, direction: Direction | str = Direction.NEXT) -> str:
        """Jump to the nearest other bookmarked node in tree pre-order, wrapping."""
        direction = _coerce(Direction, direction)
        tree = self._repository.get_tree(tree_id)
        order = preorder(tree, tree.root_id)
        if direction is Direction.PREV:
            order.reverse()
        start = order.index(tree.current_node_id)
        for node_id in order[start + 1:] + order[:start]:
            if tree.nodes[node_id].bookmark:
                self._repository.set_current_node(tree_id, node_id)
                return node_id
        raise OutOfRangeError(f"No other bookmarked node in tree {tree_id}")


def _route(tree: Tree, direction: Direction, mode: WalkMode) -> list[str]:
    """Distinct ids a walk would pass through, nearest first, excluding the start."""
    current_id = tree.current_node_id
    if mode is WalkMode.DESCENDANTS:
        if direction is Direction.NEXT:
            return preorder(tree, current_id)[1:]
        ancestors: list[str] = []
        parent_id = tree.nodes[current_id].parent_id
        while parent_id is not None:
            ancestors.append(parent_id)
            parent_id = tree.nodes[parent_id].parent_id
        return ancestors

    order = preorder(tree, tree.root_id)
    position = order.index(current_id)
    if direction is Direction.NEXT:
        return order[position + 1:]
    return order[:position][::-1]


def _coerce(enum_cls: type[StrEnum], value: StrEnum | str) -> StrEnum:
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Unknown {enum_cls.__name__.lower()} {value!r}; expected one of: {choices}"
        ) from None
