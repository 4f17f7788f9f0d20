"""
Document repositories — the persistence collaborator behind the entity store.

The store only needs get/put/delete/count (plus key enumeration for
listing). Documents are plain JSON-compatible dicts; repositories never hand
out references to their internal copies.
"""

import copy
import json
import sqlite3
from typing import Any, Dict, List, Optional, Protocol


class DocumentRepository(Protocol):
    """Key/value document store interface."""

    def get(self, key: Any) -> Optional[dict]: ...

    def put(self, key: Any, document: dict) -> None: ...

    def delete(self, key: Any) -> bool: ...

    def count(self) -> int: ...

    def keys(self) -> List[Any]: ...


class InMemoryRepository:
    """Dict-backed repository."""

    def __init__(self):
        self._documents: Dict[Any, dict] = {}

    def get(self, key: Any) -> Optional[dict]:
        document = self._documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    def put(self, key: Any, document: dict) -> None:
        self._documents[key] = copy.deepcopy(document)

    def delete(self, key: Any) -> bool:
        return self._documents.pop(key, None) is not None

    def count(self) -> int:
        return len(self._documents)

    def keys(self) -> List[Any]:
        return list(self._documents)


class SqliteRepository:
    """
    SQLite-backed repository, one table per collection.
    Keys are stored as JSON so int and str ids round-trip unchanged.
    `keys()` lists keys in first-insertion order; updates keep a key in place.
    """

    def __init__(self, db_path: str = ":memory:", collection: str = "documents"):
        if not collection.isidentifier():
            raise ValueError(f"Invalid collection name: {collection!r}")
        self.db_path = db_path
        self.collection = collection
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute(
            f"CREATE TABLE IF NOT EXISTS {collection} ("
            f"  key TEXT PRIMARY KEY,"
            f"  body TEXT NOT NULL"
            f")"
        )
        self._conn.commit()

    def get(self, key: Any) -> Optional[dict]:
        row = self._conn.execute(
            f"SELECT body FROM {self.collection} WHERE key = ?", (json.dumps(key),)
        ).fetchone()
        return json.loads(row[0]) if row else None

    def put(self, key: Any, document: dict) -> None:
        self._conn.execute(
            f"INSERT INTO {self.collection} (key, body) VALUES (?, ?) "
            f"ON CONFLICT(key) DO UPDATE SET body = excluded.body",
            (json.dumps(key), json.dumps(document)),
        )
        self._conn.commit()

    def delete(self, key: Any) -> bool:
        cursor = self._conn.execute(
            f"DELETE FROM {self.collection} WHERE key = ?", (json.dumps(key),)
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def count(self) -> int:
        row = self._conn.execute(f"SELECT COUNT(*) FROM {self.collection}").fetchone()
        return row[0]

    def keys(self) -> List[Any]:
        rows = self._conn.execute(
            f"SELECT key FROM {self.collection} ORDER BY rowid"
        ).fetchall()
        return [json.loads(r[0]) for r in rows]

    def close(self) -> None:
        self._conn.close()
