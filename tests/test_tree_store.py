"""Tests for the SQLite-backed TreeStore and workspace restore."""

from loomtree.main import restore_trees
from loomtree.trees.repository import TreeRepository
from tests.fixtures import build_branching_tree, tree_document


class TestDatabase:
    async def test_schema_created(self, db):
        rows = await db.fetchall("SELECT name FROM sqlite_master WHERE type='table'")
        assert "trees" in {row["name"] for row in rows}

    async def test_schema_is_idempotent(self, db):
        await db._ensure_schema()
        assert await db.fetchall("SELECT * FROM trees") == []


class TestTreeStore:
    async def test_save_and_load(self, tree_store, repository):
        built = build_branching_tree(repository)
        document = repository.export_tree(built["tree_id"])
        await tree_store.save(document)
        assert await tree_store.load(built["tree_id"]) == document

    async def test_load_missing_returns_none(self, tree_store):
        assert await tree_store.load("nope") is None

    async def test_save_replaces_existing(self, tree_store, repository):
        tree = repository.create_tree("Story")
        await tree_store.save(repository.export_tree(tree.id))
        repository.add_node(tree.id, tree.root_id, "more")
        repository.rename_tree(tree.id, "Renamed")
        await tree_store.save(repository.export_tree(tree.id))

        loaded = await tree_store.load(tree.id)
        assert loaded["name"] == "Renamed"
        assert len(loaded["nodes"]) == 2
        assert len(await tree_store.load_all()) == 1

    async def test_load_all_oldest_first(self, tree_store):
        await tree_store.save(tree_document({"r": {}}, id="newer", created=2000))
        await tree_store.save(tree_document({"r": {}}, id="older", created=1000))
        assert [d["id"] for d in await tree_store.load_all()] == ["older", "newer"]

    async def test_delete(self, tree_store):
        await tree_store.save(tree_document({"r": {}}))
        assert await tree_store.delete("t1") is True
        assert await tree_store.delete("t1") is False
        assert await tree_store.load("t1") is None


class TestRestore:
    async def test_restores_valid_documents(self, tree_store, repository):
        built = build_branching_tree(repository)
        await tree_store.save(repository.export_tree(built["tree_id"]))

        fresh = TreeRepository()
        assert await restore_trees(tree_store, fresh) == 1
        assert fresh.export_tree(built["tree_id"]) == repository.export_tree(built["tree_id"])

    async def test_skips_invalid_documents(self, tree_store):
        await tree_store.save(tree_document({"r": {"children": ["x"]}}, id="broken"))
        await tree_store.save(tree_document({"r": {}}, id="fine"))

        fresh = TreeRepository()
        assert await restore_trees(tree_store, fresh) == 1
        assert fresh.has_tree("fine")
        assert not fresh.has_tree("broken")
