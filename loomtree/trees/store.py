"""Durable store for exported tree documents, backed by SQLite.

The repository stays the in-memory owner; this store only keeps the latest
exported document per tree so a workspace survives restarts.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from loomtree.db.connection import Database

logger = logging.getLogger(__name__)


class TreeStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def save(self, document: dict[str, Any]) -> None:
        """Insert or replace the stored document for document["id"]."""
        await self._db.execute(
            """
            INSERT INTO trees (tree_id, name, document, node_count, created, modified, saved_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(tree_id) DO UPDATE SET
                name = excluded.name,
                document = excluded.document,
                node_count = excluded.node_count,
                modified = excluded.modified,
                saved_at = excluded.saved_at
            """,
            (
                document["id"],
                document["name"],
                json.dumps(document),
                len(document["nodes"]),
                document["created"],
                document["modified"],
                datetime.now(UTC).isoformat(),
            ),
        )

    async def load(self, tree_id: str) -> dict[str, Any] | None:
        row = await self._db.fetchone(
            "SELECT document FROM trees WHERE tree_id = ?", (tree_id,)
        )
        if row is None:
            return None
        return json.loads(row["document"])

    async def load_all(self) -> list[dict[str, Any]]:
        """Every stored document, oldest first."""
        rows = await self._db.fetchall("SELECT document FROM trees ORDER BY created")
        return [json.loads(row["document"]) for row in rows]

    async def delete(self, tree_id: str) -> bool:
        cursor = await self._db.execute("DELETE FROM trees WHERE tree_id = ?", (tree_id,))
        return cursor.rowcount > 0
