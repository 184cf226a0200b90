"""Document store configuration and factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fieldforms.store.adapter import DocumentStore


@dataclass
class StoreConfig:
    """Document store connection configuration.

    Supports sqlite:/// and memory:// URL schemes.
    """

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> StoreConfig:
        """Create config from environment variables.

        Resolution order:
        1. DATABASE_URL env var (standard)
        2. FIELDFORMS_DB_PATH env var (converted to sqlite:/// URL)
        3. Default: sqlite:///{base_path}/data/fieldforms.db
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)

        db_path = os.environ.get("FIELDFORMS_DB_PATH")
        if db_path:
            return cls(url=f"sqlite:///{db_path}")

        if base_path:
            return cls(url=f"sqlite:///{base_path / 'data' / 'fieldforms.db'}")

        return cls(url="sqlite:///fieldforms.db")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.url.startswith("memory")

    @property
    def sqlite_path(self) -> str:
        """Path part of a sqlite:/// URL (":memory:" when empty)."""
        return self.url.replace("sqlite:///", "") or ":memory:"


def create_store(config: StoreConfig) -> DocumentStore:
    """Create a document store based on the URL scheme.

    SQLite stores are returned connected.

    Raises:
        ValueError: For unsupported URL schemes.
    """
    if config.is_memory:
        from fieldforms.store.memory import InMemoryDocumentStore

        return InMemoryDocumentStore()

    if config.is_sqlite:
        from fieldforms.store.sqlite import SQLiteDocumentStore

        db_path = config.sqlite_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        store = SQLiteDocumentStore(db_path)
        store.connect()
        return store

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
