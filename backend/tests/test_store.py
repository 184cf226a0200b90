"""Tests for document stores.

Both stores are run through the same behavioural tests.
"""

import asyncio

import pytest

from fieldforms.store import (
    REPORTS_BY_FREETEXT,
    DocumentStore,
    InMemoryDocumentStore,
    SQLiteDocumentStore,
    StoreConfig,
    create_store,
    freetext_keys,
    index_value,
)


REPORT = {
    "_id": "r1",
    "type": "data_record",
    "form": "R",
    "from": "+254700000001",
    "reported_date": 1700000000000,
    "errors": [],
    "fields": {"patient_id": "12345", "patient_name": "Alice", "visits": 3, "notes": None},
}


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryDocumentStore()
    else:
        sqlite_store = SQLiteDocumentStore(tmp_path / "test.db")
        sqlite_store.connect()
        yield sqlite_store
        sqlite_store.close()


class TestFreetextKeys:
    def test_report_keys(self):
        assert freetext_keys(REPORT) == [
            "from:+254700000001",
            "patient_id:12345",
            "patient_name:alice",
            "visits:3",
            "form:r",
        ]

    def test_non_reports_are_not_indexed(self):
        assert freetext_keys({"type": "person", "name": "Alice"}) == []
        assert freetext_keys({"type": "data_record", "fields": {"a": "b"}}) == []

    @pytest.mark.parametrize(
        "value,expected",
        [("ABC", "abc"), (True, "true"), (False, "false"), (5, "5"), ("", None), (None, None), ([1], None)],
    )
    def test_index_value(self, value, expected):
        assert index_value(value) == expected


class TestDocumentStore:
    def test_implements_protocol(self, store):
        assert isinstance(store, DocumentStore)

    @pytest.mark.asyncio
    async def test_query_freetext(self, store):
        store.put(REPORT)

        result = await store.query(REPORTS_BY_FREETEXT, key=["patient_id:12345"])

        assert result == {"rows": [{"id": "r1", "key": "patient_id:12345"}]}

    @pytest.mark.asyncio
    async def test_query_no_match(self, store):
        store.put(REPORT)

        result = await store.query(REPORTS_BY_FREETEXT, key=["patient_id:00000"])

        assert result["rows"] == []

    @pytest.mark.asyncio
    async def test_unknown_view(self, store):
        with pytest.raises(ValueError):
            await store.query("contacts_by_phone", key=["x"])

    @pytest.mark.asyncio
    async def test_all_docs(self, store):
        store.put(REPORT)

        result = await store.all_docs(keys=["r1", "missing"], include_docs=True)

        assert result["rows"][0]["doc"]["fields"]["patient_id"] == "12345"
        assert result["rows"][1]["doc"] is None
        assert result["rows"][1]["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_put_replaces_index_entries(self, store):
        store.put(REPORT)
        store.put({**REPORT, "fields": {"patient_id": "54321"}})

        old = await store.query(REPORTS_BY_FREETEXT, key=["patient_id:12345"])
        new = await store.query(REPORTS_BY_FREETEXT, key=["patient_id:54321"])

        assert old["rows"] == []
        assert [row["id"] for row in new["rows"]] == ["r1"]

    @pytest.mark.asyncio
    async def test_concurrent_reads(self, store):
        for i in range(10):
            store.put({**REPORT, "_id": f"r{i}", "fields": {"patient_id": str(i % 2)}})

        results = await asyncio.gather(
            *(store.query(REPORTS_BY_FREETEXT, key=[f"patient_id:{i % 2}"]) for i in range(20)),
            store.all_docs(keys=[f"r{i}" for i in range(10)]),
        )

        assert all(len(result["rows"]) == 5 for result in results[:-1])
        assert [row["doc"]["_id"] for row in results[-1]["rows"]] == [f"r{i}" for i in range(10)]

    def test_put_assigns_id(self, store):
        doc_id = store.put({"type": "data_record", "form": "R", "fields": {}})

        assert doc_id
        assert store.get(doc_id)["form"] == "R"


class TestStoreConfig:
    def test_database_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "memory://")
        monkeypatch.setenv("FIELDFORMS_DB_PATH", "/tmp/ignored.db")

        assert StoreConfig.from_env().url == "memory://"

    def test_db_path(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("FIELDFORMS_DB_PATH", "/tmp/reports.db")

        config = StoreConfig.from_env()

        assert config.is_sqlite
        assert config.sqlite_path == "/tmp/reports.db"

    def test_default_under_base_path(self, monkeypatch, tmp_path):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("FIELDFORMS_DB_PATH", raising=False)

        config = StoreConfig.from_env(tmp_path)

        assert config.sqlite_path == str(tmp_path / "data" / "fieldforms.db")

    def test_create_memory_store(self):
        assert isinstance(create_store(StoreConfig("memory://")), InMemoryDocumentStore)

    def test_create_sqlite_store_makes_directory(self, tmp_path):
        path = tmp_path / "nested" / "reports.db"

        store = create_store(StoreConfig(f"sqlite:///{path}"))
        try:
            assert isinstance(store, SQLiteDocumentStore)
            assert path.parent.exists()
        finally:
            store.close()

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError):
            create_store(StoreConfig("couchdb://localhost:5984/medic"))
