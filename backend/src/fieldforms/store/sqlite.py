"""SQLite document store."""

import asyncio
import json
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any

from fieldforms.store.adapter import REPORTS_BY_FREETEXT, freetext_keys


class SQLiteDocumentStore:
    """DocumentStore keeping JSON bodies and freetext keys in SQLite.

    Blocking sqlite3 calls run in the default executor so the event loop is
    never blocked. The connection is shared by those worker threads, so every
    statement runs under one lock.
    """

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Establish database connection and create tables."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS docs (id TEXT PRIMARY KEY, body TEXT NOT NULL)"
        )
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS freetext (key TEXT NOT NULL, doc_id TEXT NOT NULL)"
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS freetext_key ON freetext (key)"
        )
        self.conn.commit()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None

    def _require_conn(self) -> sqlite3.Connection:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn

    def put(self, doc: dict[str, Any]) -> str:
        """Insert or replace a document, returning its id."""
        doc = dict(doc)
        doc_id = doc.setdefault("_id", uuid.uuid4().hex)

        with self._lock:
            conn = self._require_conn()
            conn.execute(
                "INSERT OR REPLACE INTO docs (id, body) VALUES (?, ?)",
                (doc_id, json.dumps(doc)),
            )
            conn.execute("DELETE FROM freetext WHERE doc_id = ?", (doc_id,))
            conn.executemany(
                "INSERT INTO freetext (key, doc_id) VALUES (?, ?)",
                [(key, doc_id) for key in freetext_keys(doc)],
            )
            conn.commit()
        return doc_id

    def _load(self, conn: sqlite3.Connection, doc_id: str) -> dict[str, Any] | None:
        row = conn.execute("SELECT body FROM docs WHERE id = ?", (doc_id,)).fetchone()
        if row is None:
            return None
        return json.loads(row["body"])

    def get(self, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._load(self._require_conn(), doc_id)

    def _query(self, view: str, key: list[str]) -> dict[str, Any]:
        if view != REPORTS_BY_FREETEXT:
            raise ValueError(f"Unknown view: {view}")

        rows = []
        with self._lock:
            conn = self._require_conn()
            for k in key:
                cursor = conn.execute(
                    "SELECT doc_id FROM freetext WHERE key = ? ORDER BY rowid", (k,)
                )
                rows.extend({"id": row["doc_id"], "key": k} for row in cursor.fetchall())
        return {"rows": rows}

    def _all_docs(self, keys: list[str], include_docs: bool) -> dict[str, Any]:
        rows = []
        with self._lock:
            conn = self._require_conn()
            for doc_id in keys:
                doc = self._load(conn, doc_id)
                row: dict[str, Any] = {"id": doc_id, "key": doc_id}
                if doc is None:
                    row["error"] = "not_found"
                if include_docs:
                    row["doc"] = doc
                rows.append(row)
        return {"rows": rows}

    async def query(self, view: str, key: list[str]) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._query, view, key)

    async def all_docs(
        self,
        keys: list[str],
        include_docs: bool = True,
    ) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._all_docs, keys, include_docs)
