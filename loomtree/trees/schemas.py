"""Request and response schemas for tree, node, navigation, and generation endpoints."""

from pydantic import BaseModel, Field

from loomtree.generation.coordinator import GenerationFailure
from loomtree.models import GenerationMetadata, GenerationParams, Tree, TreeNode
from loomtree.navigation.controller import Direction, WalkMode

# -- Requests --


class CreateTreeRequest(BaseModel):
    name: str = "Untitled"


class PatchTreeRequest(BaseModel):
    name: str


class CreateNodeRequest(BaseModel):
    """Add a child by hand. Without parent_id the child goes under the current node."""

    parent_id: str | None = None
    text: str = ""


class EditNodeRequest(BaseModel):
    text: str


class BookmarkRequest(BaseModel):
    value: bool = True


class SetCurrentRequest(BaseModel):
    node_id: str


class GenerateRequest(BaseModel):
    """Request body for POST /api/trees/{tree_id}/nodes/{node_id}/generate.

    Omitted fields fall back to the configured generation defaults.
    """

    provider: str | None = None
    model: str | None = None
    count: int | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    stop: list[str] | None = None
    logprobs: int | None = None

    def resolve(self, defaults: GenerationParams) -> GenerationParams:
        overrides = self.model_dump(exclude={"provider"}, exclude_none=True)
        return defaults.model_copy(update=overrides)


class ChildRequest(BaseModel):
    index: int = 0


class SiblingRequest(BaseModel):
    offset: int = 1


class WalkRequest(BaseModel):
    direction: Direction = Direction.NEXT
    mode: WalkMode = WalkMode.DESCENDANTS
    steps: int = Field(default=1, ge=1)


class BookmarkNavRequest(BaseModel):
    direction: Direction = Direction.NEXT


# -- Responses --


class NodeResponse(BaseModel):
    id: str
    tree_id: str
    text: str
    parent_id: str | None = None
    children: list[str]
    bookmark: bool
    created: int
    modified: int
    generation: GenerationMetadata | None = None

    @classmethod
    def from_node(cls, tree_id: str, node: TreeNode) -> "NodeResponse":
        return cls(
            id=node.id,
            tree_id=tree_id,
            text=node.text,
            parent_id=node.parent_id,
            children=list(node.children),
            bookmark=node.bookmark,
            created=node.created,
            modified=node.modified,
            generation=node.generation,
        )


class TreeDetailResponse(BaseModel):
    id: str
    name: str
    root_id: str
    current_node_id: str
    created: int
    modified: int
    nodes: list[NodeResponse]

    @classmethod
    def from_tree(cls, tree: Tree) -> "TreeDetailResponse":
        return cls(
            id=tree.id,
            name=tree.name,
            root_id=tree.root_id,
            current_node_id=tree.current_node_id,
            created=tree.created,
            modified=tree.modified,
            nodes=[NodeResponse.from_node(tree.id, node) for node in tree.nodes.values()],
        )


class GenerateResponse(BaseModel):
    requested: int
    created: list[NodeResponse]
    failures: list[GenerationFailure]
    cancelled: bool = False


class NavigationResponse(BaseModel):
    current_node_id: str
    visited: list[str]


class PositionResponse(BaseModel):
    x: float
    y: float


class LayoutResponse(BaseModel):
    tree_id: str
    positions: dict[str, PositionResponse]
    width: float
    height: float
