"""DocumentStore Protocol and the freetext index shared by all stores."""

from typing import Any, Protocol, runtime_checkable

# View used by existence checks. Keys are "<field>:<lowercased value>" and
# "form:<lowercased form code>".
REPORTS_BY_FREETEXT = "reports_by_freetext"

# Top-level report keys that are bookkeeping rather than reported values
_UNINDEXED_KEYS = {"type", "form", "fields", "errors", "reported_date"}


@runtime_checkable
class DocumentStore(Protocol):
    """Interface the validation pipeline uses to read reports.

    Responses follow the shape of a document database's view and bulk-get
    APIs so that a remote database client can implement this directly.
    """

    async def query(self, view: str, key: list[str]) -> dict[str, Any]:
        """Look up a view by key.

        Returns:
            ``{"rows": [{"id": ..., "key": ...}, ...]}``
        """
        ...

    async def all_docs(
        self,
        keys: list[str],
        include_docs: bool = True,
    ) -> dict[str, Any]:
        """Fetch documents by id.

        Returns:
            ``{"rows": [{"id": ..., "doc": {...} | None}, ...]}`` in key
            order; missing ids have ``doc`` set to None.
        """
        ...


def index_value(value: Any) -> str | None:
    """Format a value the way the freetext index stores it, or None if unindexed."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value != "":
        return value.lower()
    return None


def freetext_keys(doc: dict[str, Any]) -> list[str]:
    """Compute the reports_by_freetext index keys for a document.

    Only reports (``type == "data_record"`` with a ``form``) are indexed.
    Scalar top-level values and scalar ``fields`` values are emitted as
    ``<key>:<value>``; the form code is emitted as ``form:<form>``.
    """
    if doc.get("type") != "data_record" or not doc.get("form"):
        return []

    keys: list[str] = []
    sources = [
        {k: v for k, v in doc.items() if not k.startswith("_") and k not in _UNINDEXED_KEYS},
        doc.get("fields") or {},
    ]
    for source in sources:
        for name, value in source.items():
            text = index_value(value)
            if text is None:
                continue
            key = f"{name}:{text}"
            if key not in keys:
                keys.append(key)

    keys.append(f"form:{str(doc['form']).lower()}")
    return keys
