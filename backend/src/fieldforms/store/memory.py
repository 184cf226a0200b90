"""In-memory document store."""

import copy
import uuid
from typing import Any

from fieldforms.store.adapter import REPORTS_BY_FREETEXT, freetext_keys


class InMemoryDocumentStore:
    """Dict-backed DocumentStore, used by tests and the ``memory://`` URL."""

    def __init__(self, docs: list[dict[str, Any]] | None = None):
        self._docs: dict[str, dict[str, Any]] = {}
        self._freetext: dict[str, list[str]] = {}
        for doc in docs or []:
            self.put(doc)

    def put(self, doc: dict[str, Any]) -> str:
        """Insert or replace a document, returning its id."""
        doc = copy.deepcopy(doc)
        doc_id = doc.setdefault("_id", uuid.uuid4().hex)

        if doc_id in self._docs:
            self._unindex(doc_id)

        self._docs[doc_id] = doc
        for key in freetext_keys(doc):
            self._freetext.setdefault(key, []).append(doc_id)
        return doc_id

    def get(self, doc_id: str) -> dict[str, Any] | None:
        doc = self._docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def _unindex(self, doc_id: str) -> None:
        for ids in self._freetext.values():
            if doc_id in ids:
                ids.remove(doc_id)

    async def query(self, view: str, key: list[str]) -> dict[str, Any]:
        if view != REPORTS_BY_FREETEXT:
            raise ValueError(f"Unknown view: {view}")

        rows = []
        for k in key:
            for doc_id in self._freetext.get(k, []):
                rows.append({"id": doc_id, "key": k})
        return {"rows": rows}

    async def all_docs(
        self,
        keys: list[str],
        include_docs: bool = True,
    ) -> dict[str, Any]:
        rows = []
        for doc_id in keys:
            doc = self.get(doc_id)
            row: dict[str, Any] = {"id": doc_id, "key": doc_id}
            if doc is None:
                row["error"] = "not_found"
            if include_docs:
                row["doc"] = doc
            rows.append(row)
        return {"rows": rows}
