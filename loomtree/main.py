"""loomtree FastAPI application entry point."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from anthropic import AsyncAnthropic
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loomtree.config import Settings, load_settings
from loomtree.db.connection import Database
from loomtree.errors import LoomError
from loomtree.generation.coordinator import GenerationCoordinator
from loomtree.navigation.controller import NavigationController
from loomtree.providers.anthropic import AnthropicProvider
from loomtree.providers.openai import OpenAIChatProvider, OpenAICompletionProvider
from loomtree.providers.registry import (
    clear_providers,
    get_all_providers,
    register_provider,
)
from loomtree.trees.repository import TreeRepository
from loomtree.trees.router import (
    get_coordinator,
    get_navigation,
    get_repository,
    get_settings,
    get_tree_store,
)
from loomtree.trees.router import router as trees_router
from loomtree.trees.store import TreeStore

logger = logging.getLogger(__name__)


def register_env_providers() -> None:
    """Register a provider for every API key present in the environment."""
    if os.environ.get("OPENAI_API_KEY"):
        api_key = os.environ["OPENAI_API_KEY"]
        base_url = os.environ.get("OPENAI_BASE_URL")
        register_provider(OpenAIChatProvider(api_key=api_key, base_url=base_url))
        register_provider(OpenAICompletionProvider(api_key=api_key, base_url=base_url))

    if os.environ.get("ANTHROPIC_API_KEY"):
        register_provider(AnthropicProvider(AsyncAnthropic()))


async def restore_trees(store: TreeStore, repository: TreeRepository) -> int:
    """Load every stored document into the repository. Returns how many loaded."""
    loaded = 0
    for document in await store.load_all():
        try:
            repository.import_tree(document)
        except LoomError as e:
            logger.warning("Skipping stored tree %s: %s", document.get("id"), e)
            continue
        loaded += 1
    return loaded


def build_workspace(settings: Settings) -> tuple[TreeRepository, GenerationCoordinator, NavigationController]:
    repository = TreeRepository()
    coordinator = GenerationCoordinator(repository, settings=settings)
    return repository, coordinator, NavigationController(repository)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage database lifecycle and service wiring."""
    load_dotenv(Path.cwd() / ".env")
    settings = load_settings()

    db = await Database.connect(settings.db_path)
    store = TreeStore(db)

    repository, coordinator, navigation = build_workspace(settings)
    restored = await restore_trees(store, repository)
    logger.info("Restored %d tree(s) from %s", restored, settings.db_path)

    register_env_providers()

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_navigation] = lambda: navigation
    app.dependency_overrides[get_tree_store] = lambda: store if settings.autosave else None

    app.state.db = db
    yield

    for tree_id, node_id in coordinator.in_flight():
        await coordinator.cancel(tree_id, node_id)
    clear_providers()
    await db.close()


app = FastAPI(
    title="loomtree",
    description="Branching narrative trees with concurrent language-model continuations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(trees_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}


@app.get("/api/providers")
async def providers() -> list[dict]:
    return [
        {"name": p.name, "available": True, "models": p.suggested_models}
        for p in get_all_providers()
    ]
