"""Prompt assembly for continuation requests."""

from loomtree.models import TreeNode


def build_prompt(path: list[TreeNode]) -> str:
    """Concatenate node texts along a root -> node path, verbatim.

    Fragments carry their own whitespace (a continuation usually starts with
    a space or newline), so nothing is inserted between them.
    """
    return "".join(node.text for node in path)
