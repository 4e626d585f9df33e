"""Shared pytest fixtures for loomtree tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from loomtree.config import Settings
from loomtree.db.connection import Database
from loomtree.generation.coordinator import GenerationCoordinator
from loomtree.main import app
from loomtree.navigation.controller import NavigationController
from loomtree.providers.registry import clear_providers
from loomtree.trees.repository import TreeRepository
from loomtree.trees.router import (
    get_coordinator,
    get_navigation,
    get_repository,
    get_settings,
    get_tree_store,
)
from loomtree.trees.store import TreeStore


@pytest.fixture
def repository() -> TreeRepository:
    return TreeRepository()


@pytest.fixture
def coordinator(repository: TreeRepository) -> GenerationCoordinator:
    return GenerationCoordinator(repository)


@pytest.fixture
def navigation(repository: TreeRepository) -> NavigationController:
    return NavigationController(repository)


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture
async def tree_store(db: Database) -> TreeStore:
    return TreeStore(db)


@pytest.fixture
async def client(repository, coordinator, navigation, tree_store):
    """Async test client with an in-memory workspace wired into the app."""
    settings = Settings(db_path=":memory:")
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_navigation] = lambda: navigation
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_tree_store] = lambda: tree_store
    clear_providers()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
    clear_providers()
