"""Error taxonomy shared by the repository, coordinator, and navigation layers.

Routers translate these into HTTP status codes; the core never retries or
swallows them.
"""

from typing import Any


class LoomError(Exception):
    """Base class for every error raised by loomtree."""


class NotFoundError(LoomError):
    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} not found: {ident}")


class ValidationError(LoomError):
    """Malformed import document or invalid generation parameters.

    ``invariant`` names the first rule that failed (e.g. "dangling_child").
    """

    def __init__(self, message: str, *, invariant: str | None = None) -> None:
        self.invariant = invariant
        super().__init__(message)


class InvalidOperationError(LoomError):
    pass


class AtRootError(InvalidOperationError):
    def __init__(self, tree_id: str) -> None:
        self.tree_id = tree_id
        super().__init__(f"Already at root of tree {tree_id}")


class OutOfRangeError(LoomError):
    pass


class ConflictError(LoomError):
    pass


class ProviderError(LoomError):
    """Opaque failure from a generation provider. The SDK exception is __cause__."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class GenerationError(LoomError):
    """Every sub-request of a generate call failed.

    ``failures`` are the per-request descriptors; ``causes`` the original
    exceptions behind them, in the same order. ``__cause__`` is the first.
    """

    def __init__(self, node_id: str, failures: list[Any]) -> None:
        self.node_id = node_id
        self.failures = failures
        super().__init__(
            f"All {len(failures)} continuation request(s) failed for node {node_id}"
        )

    @property
    def causes(self) -> list[BaseException]:
        return [f.cause for f in self.failures if getattr(f, "cause", None) is not None]
