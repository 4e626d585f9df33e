"""Structural invariant checks for trees arriving from outside the repository.

``check_structure`` raises loomtree's ValidationError naming the first
violated invariant. Checks run in a fixed order so the reported invariant is
deterministic for a given document.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from loomtree.errors import ValidationError
from loomtree.models import Tree


def parse_tree_document(data: dict[str, Any]) -> Tree:
    """Validate the document shape and build a Tree. Structure is not checked here."""
    if not isinstance(data, dict):
        raise ValidationError("Tree document must be a JSON object", invariant="schema")
    try:
        return Tree.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Malformed tree document at {location}: {first['msg']}",
            invariant="schema",
        ) from e


def check_structure(tree: Tree) -> None:
    """Raise ValidationError unless every structural invariant holds."""
    nodes = tree.nodes

    if tree.root_id not in nodes:
        raise ValidationError(
            f"Root {tree.root_id} is not present in nodes", invariant="missing_root"
        )

    for key, node in nodes.items():
        if node.id != key:
            raise ValidationError(
                f"Node stored under key {key} has id {node.id}", invariant="id_mismatch"
            )

    if nodes[tree.root_id].parent_id is not None:
        raise ValidationError(
            f"Root {tree.root_id} has parent {nodes[tree.root_id].parent_id}",
            invariant="root_has_parent",
        )

    for node in nodes.values():
        if node.parent_id is None and node.id != tree.root_id:
            raise ValidationError(
                f"Node {node.id} has no parent but is not the root {tree.root_id}",
                invariant="multiple_roots",
            )
        if node.parent_id is not None and node.parent_id not in nodes:
            raise ValidationError(
                f"Node {node.id} references missing parent {node.parent_id}",
                invariant="dangling_parent",
            )

    claimed_by: dict[str, str] = {}
    for node in nodes.values():
        seen: set[str] = set()
        for child_id in node.children:
            if child_id not in nodes:
                raise ValidationError(
                    f"Node {node.id} references missing child {child_id}",
                    invariant="dangling_child",
                )
            if child_id in seen:
                raise ValidationError(
                    f"Node {node.id} lists child {child_id} more than once",
                    invariant="duplicate_child",
                )
            seen.add(child_id)
            if child_id in claimed_by:
                raise ValidationError(
                    f"Node {child_id} is listed as a child of both "
                    f"{claimed_by[child_id]} and {node.id}",
                    invariant="multiple_parents",
                )
            claimed_by[child_id] = node.id
            if nodes[child_id].parent_id != node.id:
                raise ValidationError(
                    f"Node {child_id} is listed under {node.id} but its parent is "
                    f"{nodes[child_id].parent_id}",
                    invariant="parent_mismatch",
                )

    for node in nodes.values():
        if node.parent_id is not None and node.id not in claimed_by:
            raise ValidationError(
                f"Node {node.id} is not listed in the children of its parent "
                f"{node.parent_id}",
                invariant="orphan_child",
            )

    reached = _reach_from_root(tree)
    if reached < len(nodes):
        raise ValidationError(
            f"Only {reached} of {len(nodes)} nodes are reachable from root "
            f"{tree.root_id} (cycle or disconnected component)",
            invariant="cycle",
        )

    if tree.current_node_id not in nodes:
        raise ValidationError(
            f"Current node {tree.current_node_id} is not present in nodes",
            invariant="dangling_current",
        )


def _reach_from_root(tree: Tree) -> int:
    """Count distinct nodes reachable from the root, bounded by the node count."""
    budget = len(tree.nodes)
    visited: set[str] = set()
    stack = [tree.root_id]
    steps = 0
    while stack:
        steps += 1
        if steps > budget:
            break
        node_id = stack.pop()
        if node_id in visited:
            break
        visited.add(node_id)
        stack.extend(reversed(tree.nodes[node_id].children))
    return len(visited)
