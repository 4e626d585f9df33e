"""FastAPI routes for trees, nodes, navigation, layout, and generation."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from loomtree.config import Settings
from loomtree.errors import (
    AtRootError,
    ConflictError,
    GenerationError,
    InvalidOperationError,
    LoomError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
)
from loomtree.generation.coordinator import GenerationCoordinator
from loomtree.layout.engine import layout, subtree_extents
from loomtree.models import TreeSummary
from loomtree.navigation.controller import NavigationController
from loomtree.providers.registry import ProviderNotFoundError, get_provider
from loomtree.trees.repository import TreeRepository
from loomtree.trees.schemas import (
    BookmarkNavRequest,
    BookmarkRequest,
    ChildRequest,
    CreateNodeRequest,
    CreateTreeRequest,
    EditNodeRequest,
    GenerateRequest,
    GenerateResponse,
    LayoutResponse,
    NavigationResponse,
    NodeResponse,
    PatchTreeRequest,
    PositionResponse,
    SetCurrentRequest,
    SiblingRequest,
    TreeDetailResponse,
    WalkRequest,
)
from loomtree.trees.store import TreeStore

router = APIRouter(prefix="/api/trees", tags=["trees"])


def get_repository() -> TreeRepository:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("TreeRepository not initialized")


def get_coordinator() -> GenerationCoordinator:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("GenerationCoordinator not initialized")


def get_navigation() -> NavigationController:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("NavigationController not initialized")


def get_settings() -> Settings:
    return Settings()


def get_tree_store() -> TreeStore | None:
    """Autosave target; None disables persistence."""
    return None


def _http_error(e: LoomError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValidationError):
        detail: Any = str(e)
        if e.invariant:
            detail = {"message": str(e), "invariant": e.invariant}
        return HTTPException(status_code=422, detail=detail)
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, GenerationError):
        return HTTPException(
            status_code=502,
            detail={
                "message": str(e),
                "failures": [f.model_dump() for f in e.failures],
            },
        )
    if isinstance(e, (InvalidOperationError, OutOfRangeError, AtRootError)):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


async def _autosave(store: TreeStore | None, repository: TreeRepository, tree_id: str) -> None:
    if store is None or not repository.has_tree(tree_id):
        return
    await store.save(repository.export_tree(tree_id))


# -- Trees --


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tree(
    request: CreateTreeRequest,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> TreeDetailResponse:
    tree = repository.create_tree(request.name)
    await _autosave(store, repository, tree.id)
    return TreeDetailResponse.from_tree(tree)


@router.get("")
async def list_trees(
    repository: TreeRepository = Depends(get_repository),
) -> list[TreeSummary]:
    return repository.list_trees()


@router.post("/import", status_code=status.HTTP_201_CREATED)
async def import_tree(
    document: dict[str, Any] = Body(...),
    new_id: bool = False,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> TreeDetailResponse:
    try:
        tree = repository.import_tree(document, new_id=new_id)
    except LoomError as e:
        raise _http_error(e) from e
    await _autosave(store, repository, tree.id)
    return TreeDetailResponse.from_tree(tree)


@router.get("/{tree_id}")
async def get_tree(
    tree_id: str,
    repository: TreeRepository = Depends(get_repository),
) -> TreeDetailResponse:
    try:
        return TreeDetailResponse.from_tree(repository.get_tree(tree_id))
    except LoomError as e:
        raise _http_error(e) from e


@router.patch("/{tree_id}")
async def rename_tree(
    tree_id: str,
    request: PatchTreeRequest,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> TreeDetailResponse:
    try:
        repository.rename_tree(tree_id, request.name)
    except LoomError as e:
        raise _http_error(e) from e
    response = TreeDetailResponse.from_tree(repository.get_tree(tree_id))
    await _autosave(store, repository, tree_id)
    return response


@router.delete("/{tree_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_tree(
    tree_id: str,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> None:
    try:
        repository.remove_tree(tree_id)
    except LoomError as e:
        raise _http_error(e) from e
    if store is not None:
        await store.delete(tree_id)


@router.get("/{tree_id}/export")
async def export_tree(
    tree_id: str,
    repository: TreeRepository = Depends(get_repository),
) -> dict[str, Any]:
    try:
        return repository.export_tree(tree_id)
    except LoomError as e:
        raise _http_error(e) from e


@router.get("/{tree_id}/layout")
async def get_layout(
    tree_id: str,
    repository: TreeRepository = Depends(get_repository),
) -> LayoutResponse:
    try:
        tree = repository.get_tree(tree_id)
    except LoomError as e:
        raise _http_error(e) from e
    positions = layout(tree)
    root_extent = subtree_extents(tree)[tree.root_id]
    depth_span = max(p.y for p in positions.values()) - min(p.y for p in positions.values())
    return LayoutResponse(
        tree_id=tree_id,
        positions={nid: PositionResponse(x=p.x, y=p.y) for nid, p in positions.items()},
        width=root_extent.right - root_extent.left,
        height=depth_span,
    )


# -- Nodes --


@router.post("/{tree_id}/nodes", status_code=status.HTTP_201_CREATED)
async def add_node(
    tree_id: str,
    request: CreateNodeRequest,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NodeResponse:
    try:
        parent_id = request.parent_id or repository.get_tree(tree_id).current_node_id
        node_id = repository.add_node(tree_id, parent_id, request.text)
    except LoomError as e:
        raise _http_error(e) from e
    response = NodeResponse.from_node(tree_id, repository.get_node(tree_id, node_id))
    await _autosave(store, repository, tree_id)
    return response


@router.patch("/{tree_id}/nodes/{node_id}")
async def edit_node(
    tree_id: str,
    node_id: str,
    request: EditNodeRequest,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NodeResponse:
    try:
        repository.edit_node(tree_id, node_id, request.text)
    except LoomError as e:
        raise _http_error(e) from e
    response = NodeResponse.from_node(tree_id, repository.get_node(tree_id, node_id))
    await _autosave(store, repository, tree_id)
    return response


@router.delete("/{tree_id}/nodes/{node_id}")
async def delete_node(
    tree_id: str,
    node_id: str,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> dict[str, list[str]]:
    try:
        deleted = repository.delete_node(tree_id, node_id)
    except LoomError as e:
        raise _http_error(e) from e
    await _autosave(store, repository, tree_id)
    return {"deleted": deleted}


@router.put("/{tree_id}/nodes/{node_id}/bookmark")
async def set_bookmark(
    tree_id: str,
    node_id: str,
    request: BookmarkRequest,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NodeResponse:
    try:
        repository.set_bookmark(tree_id, node_id, request.value)
    except LoomError as e:
        raise _http_error(e) from e
    response = NodeResponse.from_node(tree_id, repository.get_node(tree_id, node_id))
    await _autosave(store, repository, tree_id)
    return response


@router.put("/{tree_id}/current")
async def set_current_node(
    tree_id: str,
    request: SetCurrentRequest,
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NavigationResponse:
    try:
        repository.set_current_node(tree_id, request.node_id)
    except LoomError as e:
        raise _http_error(e) from e
    await _autosave(store, repository, tree_id)
    return NavigationResponse(current_node_id=request.node_id, visited=[request.node_id])


# -- Navigation --


async def _moved(
    store: TreeStore | None, repository: TreeRepository, tree_id: str, visited: list[str]
) -> NavigationResponse:
    await _autosave(store, repository, tree_id)
    return NavigationResponse(current_node_id=visited[-1], visited=visited)


@router.post("/{tree_id}/navigate/parent")
async def navigate_parent(
    tree_id: str,
    navigation: NavigationController = Depends(get_navigation),
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NavigationResponse:
    try:
        target = navigation.go_to_parent(tree_id)
    except LoomError as e:
        raise _http_error(e) from e
    return await _moved(store, repository, tree_id, [target])


@router.post("/{tree_id}/navigate/child")
async def navigate_child(
    tree_id: str,
    request: ChildRequest,
    navigation: NavigationController = Depends(get_navigation),
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NavigationResponse:
    try:
        target = navigation.go_to_child(tree_id, request.index)
    except LoomError as e:
        raise _http_error(e) from e
    return await _moved(store, repository, tree_id, [target])


@router.post("/{tree_id}/navigate/sibling")
async def navigate_sibling(
    tree_id: str,
    request: SiblingRequest,
    navigation: NavigationController = Depends(get_navigation),
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NavigationResponse:
    try:
        target = navigation.go_to_sibling(tree_id, request.offset)
    except LoomError as e:
        raise _http_error(e) from e
    return await _moved(store, repository, tree_id, [target])


@router.post("/{tree_id}/navigate/walk")
async def navigate_walk(
    tree_id: str,
    request: WalkRequest,
    navigation: NavigationController = Depends(get_navigation),
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NavigationResponse:
    try:
        visited = navigation.walk(tree_id, request.direction, request.mode, request.steps)
    except LoomError as e:
        raise _http_error(e) from e
    return await _moved(store, repository, tree_id, visited)


@router.post("/{tree_id}/navigate/bookmark")
async def navigate_bookmark(
    tree_id: str,
    request: BookmarkNavRequest,
    navigation: NavigationController = Depends(get_navigation),
    repository: TreeRepository = Depends(get_repository),
    store: TreeStore | None = Depends(get_tree_store),
) -> NavigationResponse:
    try:
        target = navigation.next_bookmark(tree_id, request.direction)
    except LoomError as e:
        raise _http_error(e) from e
    return await _moved(store, repository, tree_id, [target])


# -- Generation --


@router.post("/{tree_id}/nodes/{node_id}/generate", status_code=status.HTTP_201_CREATED)
async def generate(
    tree_id: str,
    node_id: str,
    request: GenerateRequest,
    coordinator: GenerationCoordinator = Depends(get_coordinator),
    repository: TreeRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
    store: TreeStore | None = Depends(get_tree_store),
) -> GenerateResponse:
    provider = None
    if request.provider is not None:
        try:
            provider = get_provider(request.provider)
        except ProviderNotFoundError as e:
            raise HTTPException(status_code=400, detail=str(e))

    params = request.resolve(settings.generation)
    try:
        outcome = await coordinator.generate(tree_id, node_id, params, provider=provider)
    except ProviderNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LoomError as e:
        raise _http_error(e) from e

    # The tree, or a created child, may have been removed by another request.
    try:
        snapshot = repository.get_tree(tree_id)
    except LoomError as e:
        raise _http_error(e) from e
    created = [
        NodeResponse.from_node(tree_id, snapshot.nodes[nid])
        for nid in outcome.created_node_ids
        if nid in snapshot.nodes
    ]
    await _autosave(store, repository, tree_id)
    return GenerateResponse(
        requested=outcome.requested,
        created=created,
        failures=outcome.failures,
        cancelled=outcome.cancelled,
    )


@router.post("/{tree_id}/nodes/{node_id}/generate/cancel")
async def cancel_generation(
    tree_id: str,
    node_id: str,
    coordinator: GenerationCoordinator = Depends(get_coordinator),
) -> dict[str, bool]:
    return {"cancelled": await coordinator.cancel(tree_id, node_id)}
