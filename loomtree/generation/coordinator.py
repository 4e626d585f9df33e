"""Generation coordinator: turns one generate request into sibling continuations.

Each of the ``count`` provider requests runs as its own asyncio task. When a
request returns, its task inserts the new child with one atomic repository
call before yielding again, so concurrent arrivals never interleave inside a
mutation; they only race for position in the parent's children list, which
therefore follows arrival order rather than dispatch order.

At most one generate call may be in flight per (tree, node). The marker is
set before dispatch and cleared once every sub-request has finished or been
cancelled.
"""

import asyncio
import logging
from collections.abc import Callable

from pydantic import BaseModel, Field, PrivateAttr

from loomtree.config import Settings
from loomtree.errors import ConflictError, GenerationError, NotFoundError, ProviderError, ValidationError
from loomtree.generation.prompt import build_prompt
from loomtree.models import GenerationMetadata, GenerationParams
from loomtree.providers.base import Continuation, ContinuationProvider
from loomtree.providers.registry import get_provider
from loomtree.trees.repository import TreeRepository

logger = logging.getLogger(__name__)


class GenerationFailure(BaseModel):
    """Why one sub-request of a generate call produced no node.

    The original exception is kept in memory as ``cause``; it is never
    serialized.
    """

    index: int  # dispatch slot, 0..count-1
    error_type: str
    message: str
    provider: str | None = None

    _cause: BaseException | None = PrivateAttr(default=None)

    @property
    def cause(self) -> BaseException | None:
        return self._cause

    @classmethod
    def from_exception(cls, index: int, exc: BaseException) -> "GenerationFailure":
        failure = cls(
            index=index,
            error_type=type(exc).__name__,
            message=str(exc),
            provider=getattr(exc, "provider", None),
        )
        failure._cause = exc
        return failure


class GenerationOutcome(BaseModel):
    """Result of a generate call that created at least one node or was cancelled.

    ``created_node_ids`` is in arrival order, which is also the order the
    children were appended under the parent.
    """

    tree_id: str
    node_id: str
    requested: int
    created_node_ids: list[str] = Field(default_factory=list)
    failures: list[GenerationFailure] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def partial(self) -> bool:
        return len(self.created_node_ids) < self.requested


class _Batch:
    """Bookkeeping for one in-flight generate call."""

    def __init__(self) -> None:
        self.tasks: list[asyncio.Task] = []
        self.cancelled = False


def validate_params(params: GenerationParams) -> None:
    if params.count < 1:
        raise ValidationError(f"count must be at least 1, got {params.count}")
    if params.max_tokens < 1:
        raise ValidationError(f"max_tokens must be positive, got {params.max_tokens}")
    if params.temperature < 0:
        raise ValidationError(f"temperature must be non-negative, got {params.temperature}")
    if not 0 <= params.top_p <= 1:
        raise ValidationError(f"top_p must be within [0, 1], got {params.top_p}")


class GenerationCoordinator:
    """Dispatches concurrent continuation requests and merges results into the tree."""

    def __init__(
        self,
        repository: TreeRepository,
        *,
        settings: Settings | None = None,
        resolve_provider: Callable[[str], ContinuationProvider] | None = None,
    ) -> None:
        self._repository = repository
        self._settings = settings or Settings()
        self._resolve_provider = resolve_provider or self._provider_from_registry
        self._batches: dict[tuple[str, str], _Batch] = {}

    def _provider_from_registry(self, model: str) -> ContinuationProvider:
        return get_provider(self._settings.provider_for_model(model))

    def is_generating(self, tree_id: str, node_id: str) -> bool:
        return (tree_id, node_id) in self._batches

    def in_flight(self) -> list[tuple[str, str]]:
        """(tree_id, node_id) pairs with a generate call currently pending."""
        return list(self._batches)

    async def generate(
        self,
        tree_id: str,
        node_id: str,
        params: GenerationParams,
        *,
        provider: ContinuationProvider | None = None,
    ) -> GenerationOutcome:
        """Request ``params.count`` continuations of the path ending at node_id.

        Best effort: failed sub-requests are reported in ``failures`` while the
        successful ones still become children. Raises GenerationError only when
        every sub-request failed and the call was not cancelled.
        """
        validate_params(params)
        key = (tree_id, node_id)
        if key in self._batches:
            raise ConflictError(f"Generation already in progress for node {node_id}")

        prompt = build_prompt(self._repository.ancestry(tree_id, node_id))
        if provider is None:
            provider = self._resolve_provider(params.model)

        batch = _Batch()
        self._batches[key] = batch
        outcome = GenerationOutcome(tree_id=tree_id, node_id=node_id, requested=params.count)
        logger.info(
            "Generating %d continuation(s) for node %s in tree %s via %s/%s",
            params.count, node_id, tree_id, provider.name, params.model,
        )

        try:
            batch.tasks = [
                asyncio.create_task(
                    self._run_one(index, provider, prompt, params, outcome),
                    name=f"continuation-{node_id}-{index}",
                )
                for index in range(params.count)
            ]
            try:
                await asyncio.wait(batch.tasks)
            except asyncio.CancelledError:
                await self._abandon(batch)
                raise
        finally:
            del self._batches[key]

        outcome.cancelled = batch.cancelled
        if outcome.failures:
            logger.warning(
                "%d of %d continuation(s) failed for node %s",
                len(outcome.failures), params.count, node_id,
            )
        if not outcome.created_node_ids and not outcome.cancelled:
            first_cause = outcome.failures[0].cause if outcome.failures else None
            raise GenerationError(node_id, outcome.failures) from first_cause
        return outcome

    async def cancel(self, tree_id: str, node_id: str) -> bool:
        """Abandon the pending sub-requests of an in-flight call.

        Children already inserted stay. Returns False if nothing was in flight.
        """
        batch = self._batches.get((tree_id, node_id))
        if batch is None:
            return False
        logger.info("Cancelling generation for node %s in tree %s", node_id, tree_id)
        await self._abandon(batch)
        return True

    async def _run_one(
        self,
        index: int,
        provider: ContinuationProvider,
        prompt: str,
        params: GenerationParams,
        outcome: GenerationOutcome,
    ) -> None:
        try:
            continuation = await provider.request_continuation(prompt, params)
        except ProviderError as e:
            outcome.failures.append(GenerationFailure.from_exception(index, e))
            logger.warning("Continuation %d for node %s failed: %s", index, outcome.node_id, e)
            return
        except Exception as e:
            # A provider broke its contract; still only this slot fails.
            outcome.failures.append(GenerationFailure.from_exception(index, e))
            logger.exception("Continuation %d for node %s raised unexpectedly", index, outcome.node_id)
            return

        try:
            child_id = self._repository.add_node(
                outcome.tree_id,
                outcome.node_id,
                continuation.text,
                generation=_metadata(continuation, provider.name),
                select=False,
            )
        except NotFoundError as e:
            # Parent (or its tree) was deleted while the request was in flight.
            outcome.failures.append(GenerationFailure.from_exception(index, e))
            logger.warning("Dropping continuation %d: %s", index, e)
            return
        outcome.created_node_ids.append(child_id)

    @staticmethod
    async def _abandon(batch: _Batch) -> None:
        pending = [task for task in batch.tasks if not task.done()]
        if pending:
            batch.cancelled = True
        for task in pending:
            task.cancel()
        await asyncio.gather(*batch.tasks, return_exceptions=True)


def _metadata(continuation: Continuation, provider_name: str) -> GenerationMetadata:
    return GenerationMetadata(
        model=continuation.model,
        provider=provider_name,
        finish_reason=continuation.finish_reason,
        usage=continuation.usage,
        latency_ms=continuation.latency_ms,
        logprobs=continuation.logprobs,
    )
