"""Tree repository: sole owner of in-memory trees and their nodes.

Every mutator checks all of its preconditions before touching state and then
applies the change in one synchronous block, so a reader on the event loop
sees either the whole update or none of it. Every read returns a deep copy;
callers hold ids, never live nodes.
"""

import json
import logging
from typing import Any
from uuid import uuid4

from loomtree.errors import ConflictError, InvalidOperationError, NotFoundError, ValidationError
from loomtree.models import GenerationMetadata, Tree, TreeNode, TreeSummary, now_ms
from loomtree.trees.validation import check_structure, parse_tree_document

logger = logging.getLogger(__name__)


class TreeRepository:
    """Owns every Tree and TreeNode for one workspace."""

    def __init__(self) -> None:
        self._trees: dict[str, Tree] = {}

    # -- Trees --

    def create_tree(self, name: str) -> Tree:
        """Create a tree holding a single empty root node, which is also current."""
        now = now_ms()
        root = TreeNode(id=str(uuid4()), text="", created=now, modified=now)
        tree = Tree(
            id=str(uuid4()),
            name=name,
            root_id=root.id,
            nodes={root.id: root},
            current_node_id=root.id,
            created=now,
            modified=now,
        )
        self._trees[tree.id] = tree
        logger.info("Created tree %s (%r)", tree.id, name)
        return tree.model_copy(deep=True)

    def get_tree(self, tree_id: str) -> Tree:
        return self._require_tree(tree_id).model_copy(deep=True)

    def has_tree(self, tree_id: str) -> bool:
        return tree_id in self._trees

    def list_trees(self) -> list[TreeSummary]:
        """Summaries of all trees, most recently modified first."""
        summaries = [
            TreeSummary(
                id=tree.id,
                name=tree.name,
                node_count=len(tree.nodes),
                created=tree.created,
                modified=tree.modified,
            )
            for tree in self._trees.values()
        ]
        summaries.sort(key=lambda s: s.modified, reverse=True)
        return summaries

    def rename_tree(self, tree_id: str, name: str) -> None:
        tree = self._require_tree(tree_id)
        tree.name = name
        tree.modified = now_ms()

    def remove_tree(self, tree_id: str) -> None:
        """Drop a tree and all of its nodes from the workspace."""
        self._require_tree(tree_id)
        del self._trees[tree_id]
        logger.info("Removed tree %s", tree_id)

    # -- Nodes --

    def get_node(self, tree_id: str, node_id: str) -> TreeNode:
        tree = self._require_tree(tree_id)
        return self._require_node(tree, node_id).model_copy(deep=True)

    def add_node(
        self,
        tree_id: str,
        parent_id: str,
        text: str,
        *,
        generation: GenerationMetadata | None = None,
        select: bool = True,
    ) -> str:
        """Append a new child to parent_id and return its id.

        The new node becomes current unless ``select`` is False.
        """
        tree = self._require_tree(tree_id)
        parent = self._require_node(tree, parent_id)

        now = now_ms()
        node = TreeNode(
            id=str(uuid4()),
            text=text,
            parent_id=parent.id,
            created=now,
            modified=now,
            generation=generation,
        )
        tree.nodes[node.id] = node
        parent.children.append(node.id)
        parent.modified = now
        tree.modified = now
        if select:
            tree.current_node_id = node.id
        return node.id

    def edit_node(self, tree_id: str, node_id: str, text: str) -> None:
        tree = self._require_tree(tree_id)
        node = self._require_node(tree, node_id)
        now = now_ms()
        node.text = text
        node.modified = now
        tree.modified = now

    def delete_node(self, tree_id: str, node_id: str) -> list[str]:
        """Delete node_id and its whole subtree. Returns the deleted ids in pre-order.

        If the current node was inside the subtree, the former parent becomes
        current.
        """
        tree = self._require_tree(tree_id)
        node = self._require_node(tree, node_id)
        if node_id == tree.root_id:
            raise InvalidOperationError(f"Cannot delete the root of tree {tree_id}")

        doomed = preorder(tree, node_id)
        parent = tree.nodes[node.parent_id]

        now = now_ms()
        parent.children.remove(node_id)
        parent.modified = now
        for doomed_id in doomed:
            del tree.nodes[doomed_id]
        if tree.current_node_id not in tree.nodes:
            tree.current_node_id = parent.id
        tree.modified = now

        logger.debug("Deleted %d node(s) under %s in tree %s", len(doomed), node_id, tree_id)
        return doomed

    def set_bookmark(self, tree_id: str, node_id: str, value: bool) -> None:
        tree = self._require_tree(tree_id)
        node = self._require_node(tree, node_id)
        now = now_ms()
        node.bookmark = value
        node.modified = now
        tree.modified = now

    def set_current_node(self, tree_id: str, node_id: str) -> None:
        tree = self._require_tree(tree_id)
        self._require_node(tree, node_id)
        tree.current_node_id = node_id

    # -- Traversal helpers --

    def ancestry(self, tree_id: str, node_id: str) -> list[TreeNode]:
        """Nodes on the path root -> node_id, inclusive."""
        tree = self._require_tree(tree_id)
        node = self._require_node(tree, node_id)
        path = [node]
        while node.parent_id is not None:
            node = tree.nodes[node.parent_id]
            path.append(node)
        path.reverse()
        return [n.model_copy(deep=True) for n in path]

    def subtree_ids(self, tree_id: str, node_id: str) -> list[str]:
        """Ids of node_id and all its descendants, in pre-order."""
        tree = self._require_tree(tree_id)
        self._require_node(tree, node_id)
        return preorder(tree, node_id)

    def bookmarked(self, tree_id: str) -> list[str]:
        """Bookmarked node ids in tree pre-order."""
        tree = self._require_tree(tree_id)
        return [nid for nid in preorder(tree, tree.root_id) if tree.nodes[nid].bookmark]

    # -- Import / export --

    def import_tree(self, data: dict[str, Any] | str, *, new_id: bool = False) -> Tree:
        """Accept a persisted tree document after checking every structural invariant.

        With ``new_id`` the tree is stored under a fresh id; otherwise an id
        already present in the repository is a ConflictError.
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Tree document is not valid JSON: {e}", invariant="schema") from e

        tree = parse_tree_document(data)
        check_structure(tree)

        if new_id:
            tree.id = str(uuid4())
        elif tree.id in self._trees:
            raise ConflictError(f"Tree already exists: {tree.id}")

        self._trees[tree.id] = tree
        logger.info("Imported tree %s with %d node(s)", tree.id, len(tree.nodes))
        return tree.model_copy(deep=True)

    def export_tree(self, tree_id: str) -> dict[str, Any]:
        """The persisted document for tree_id; round-trips through import_tree."""
        return self._require_tree(tree_id).model_dump(by_alias=True)

    def export_tree_json(self, tree_id: str, *, indent: int | None = None) -> str:
        return json.dumps(self.export_tree(tree_id), indent=indent)

    # -- Internals --

    def _require_tree(self, tree_id: str) -> Tree:
        try:
            return self._trees[tree_id]
        except KeyError:
            raise NotFoundError("tree", tree_id) from None

    @staticmethod
    def _require_node(tree: Tree, node_id: str) -> TreeNode:
        try:
            return tree.nodes[node_id]
        except KeyError:
            raise NotFoundError("node", node_id) from None


def preorder(tree: Tree, start_id: str) -> list[str]:
    """Pre-order ids of the subtree at start_id. Assumes a structurally valid tree."""
    order: list[str] = []
    stack = [start_id]
    while stack:
        node_id = stack.pop()
        order.append(node_id)
        stack.extend(reversed(tree.nodes[node_id].children))
    return order
