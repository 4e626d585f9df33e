"""Shared test helpers: tree builders, documents, and fake providers."""

import asyncio
import random
from typing import Any

from loomtree.errors import ProviderError
from loomtree.models import GenerationParams, Tree
from loomtree.providers.base import Continuation, ContinuationProvider
from loomtree.trees.repository import TreeRepository
from loomtree.trees.validation import check_structure


def build_branching_tree(repository: TreeRepository) -> dict:
    """Create root -> A -> (B, C), A -> B -> D. Current ends at D.

    Returns {"tree_id": str, "ids": {"root", "A", "B", "C", "D"}}.
    """
    tree = repository.create_tree("Branching")
    root = tree.root_id
    a = repository.add_node(tree.id, root, "Once upon a time")
    b = repository.add_node(tree.id, a, " there was a fox.")
    c = repository.add_node(tree.id, a, " there was a crow.")
    d = repository.add_node(tree.id, b, " It was hungry.")
    return {"tree_id": tree.id, "ids": {"root": root, "A": a, "B": b, "C": c, "D": d}}


def build_random_tree(repository: TreeRepository, seed: int, size: int = 40) -> str:
    """Grow a tree by attaching each new node under a randomly chosen existing node."""
    rng = random.Random(seed)
    tree = repository.create_tree(f"random-{seed}")
    ids = [tree.root_id]
    for i in range(size):
        ids.append(repository.add_node(tree.id, rng.choice(ids), f"node {i}"))
    return tree.id


def assert_invariants(tree: Tree) -> None:
    """Fail the test unless the snapshot satisfies every structural invariant."""
    check_structure(tree)


def tree_document(nodes: dict[str, dict[str, Any]], root_id: str = "r", **overrides: Any) -> dict:
    """A persisted tree document with sensible defaults for every node field."""
    full_nodes = {
        node_id: {
            "id": node_id,
            "text": "",
            "parentId": None,
            "children": [],
            "created": 1700000000000,
            "modified": 1700000000000,
            "bookmark": False,
            **fields,
        }
        for node_id, fields in nodes.items()
    }
    document = {
        "id": "t1",
        "name": "Imported",
        "rootId": root_id,
        "nodes": full_nodes,
        "currentNodeId": root_id,
        "created": 1700000000000,
        "modified": 1700000000000,
    }
    document.update(overrides)
    return document


class ScriptedProvider(ContinuationProvider):
    """Answers the i-th request with script[i]: a text, or an exception to raise.

    ``delays`` maps request index to seconds to sleep first, which fixes the
    arrival order. With ``gate`` set, every request waits on it before
    answering. Cancelled requests are counted in ``cancelled``.
    """

    def __init__(
        self,
        script: list[str | BaseException],
        *,
        delays: dict[int, float] | None = None,
        gate: asyncio.Event | None = None,
        provider_name: str = "fake",
    ) -> None:
        self._script = script
        self._delays = delays or {}
        self._gate = gate
        self._name = provider_name
        self.prompts: list[str] = []
        self.params: list[GenerationParams] = []
        self.cancelled = 0
        self.started = asyncio.Event()

    @property
    def name(self) -> str:
        return self._name

    async def request_continuation(self, prompt: str, params: GenerationParams) -> Continuation:
        index = len(self.prompts)
        self.prompts.append(prompt)
        self.params.append(params)
        self.started.set()
        try:
            if self._gate is not None:
                await self._gate.wait()
            await asyncio.sleep(self._delays.get(index, 0))
        except asyncio.CancelledError:
            self.cancelled += 1
            raise

        outcome = self._script[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return Continuation(
            text=outcome,
            model="fake-model",
            finish_reason="stop",
            usage={"input_tokens": 10, "output_tokens": 5},
            latency_ms=42,
        )


def provider_failure(message: str = "rate limited") -> ProviderError:
    return ProviderError("fake", message)
