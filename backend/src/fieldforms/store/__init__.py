"""Document stores read by the validation pipeline."""

from fieldforms.store.adapter import (
    REPORTS_BY_FREETEXT,
    DocumentStore,
    freetext_keys,
    index_value,
)
from fieldforms.store.config import StoreConfig, create_store
from fieldforms.store.memory import InMemoryDocumentStore
from fieldforms.store.sqlite import SQLiteDocumentStore

__all__ = [
    "REPORTS_BY_FREETEXT",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "StoreConfig",
    "create_store",
    "freetext_keys",
    "index_value",
]
