"""Canonical data structures for loomtree.

Defined once here, referenced everywhere else. Field names are snake_case in
Python and camelCase on the wire: ``model_dump(by_alias=True)`` of a Tree is
exactly the persisted document shape.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current time as integer epoch milliseconds (the persisted timestamp unit)."""
    return int(datetime.now(UTC).timestamp() * 1000)


# ---------------------------------------------------------------------------
# Generation parameters and metadata
# ---------------------------------------------------------------------------


class GenerationParams(BaseModel):
    """Parameters for one logical generate call.

    Range checks live in the coordinator so that bad values surface as
    loomtree's own ValidationError before any provider is contacted.
    """

    count: int = 4
    max_tokens: int = 150
    temperature: float = 0.8
    top_p: float = 1.0
    model: str = "gpt-4o-mini"
    stop: list[str] = Field(default_factory=list)
    logprobs: int | None = 10


class AlternativeToken(BaseModel):
    token: str
    logprob: float
    linear_prob: float


class TokenLogprob(BaseModel):
    token: str
    logprob: float  # natural log
    linear_prob: float  # exp(logprob), precomputed for display
    top_alternatives: list[AlternativeToken] = Field(default_factory=list)


class LogprobData(BaseModel):
    tokens: list[TokenLogprob]
    provider_format: str  # "openai", "openai-completion", "none"
    top_k_available: int


class GenerationMetadata(BaseModel):
    """Attached to nodes created from a provider response."""

    model: str
    provider: str
    finish_reason: str | None = None
    usage: dict[str, int] | None = None
    latency_ms: int | None = None
    logprobs: LogprobData | None = None


# ---------------------------------------------------------------------------
# Tree structure
# ---------------------------------------------------------------------------


class TreeNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = ""
    parent_id: str | None = Field(default=None, alias="parentId")
    children: list[str] = Field(default_factory=list)
    created: int = Field(default_factory=now_ms)
    modified: int = Field(default_factory=now_ms)
    bookmark: bool = False

    # In-memory only; the persisted document has no slot for it.
    generation: GenerationMetadata | None = Field(default=None, exclude=True)


class Tree(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    root_id: str = Field(alias="rootId")
    nodes: dict[str, TreeNode]
    current_node_id: str = Field(alias="currentNodeId")
    created: int = Field(default_factory=now_ms)
    modified: int = Field(default_factory=now_ms)


class TreeSummary(BaseModel):
    id: str
    name: str
    node_count: int
    created: int
    modified: int
