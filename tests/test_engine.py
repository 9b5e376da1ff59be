"""Tests for constitution_indexer.indexing.engine (Chroma adapter with a fake client)."""

import pytest
from chromadb.errors import NotFoundError

from constitution_indexer.indexing.engine import (
    SCHEMA_METADATA_KEY,
    ChromaIndexEngine,
    EngineErrorKind,
    IndexEngineConfig,
    UpsertOptions,
    flatten_metadata,
)
from constitution_indexer.indexing.gateway import SearchIndexGateway
from constitution_indexer.indexing.schema import constitution_schema


class FakeCollection:
    def __init__(self, name: str, metadata: dict) -> None:
        self.name = name
        self.metadata = metadata
        self.writes: list[dict] = []
        self.failures_left = 0

    def upsert(self, ids, documents, metadatas) -> None:
        if self.failures_left:
            self.failures_left -= 1
            raise ConnectionError("chroma unavailable")
        self.writes.append({"ids": ids, "documents": documents, "metadatas": metadatas})

    add = upsert


class FakeClient:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str, **kwargs) -> FakeCollection:
        if name not in self.collections:
            raise NotFoundError(f"Collection [{name}] does not exist")
        return self.collections[name]

    def create_collection(self, name: str, metadata=None, **kwargs) -> FakeCollection:
        if name in self.collections:
            raise ValueError(f"Collection {name} already exists")
        self.collections[name] = FakeCollection(name, metadata or {})
        return self.collections[name]


def record(doc_id: str, **overrides) -> dict:
    data = {
        "id": doc_id,
        "type": "Artigo",
        "full_reference": "TÍTULO I, Art. 1º",
        "text": "A República Federativa do Brasil",
        "source_url": "https://example.test/constituicao.htm",
        "last_indexed_at": 1700000000,
        "tags": ["TÍTULO I", "Direitos Fundamentais"],
        "parent_chapter": None,
    }
    data.update(overrides)
    return data


@pytest.fixture
def engine() -> ChromaIndexEngine:
    config = IndexEngineConfig(max_attempts=2, retry_backoff_seconds=0)
    return ChromaIndexEngine(config, client=FakeClient())


class TestRetrieveAndCreate:
    def test_missing_index_is_not_found(self, engine: ChromaIndexEngine) -> None:
        response = engine.retrieve_index("missing")
        assert not response.ok
        assert response.error.kind == EngineErrorKind.NOT_FOUND
        assert isinstance(response.error.cause, NotFoundError)

    def test_create_stores_schema(self, engine: ChromaIndexEngine) -> None:
        schema = constitution_schema("constituicao")
        assert engine.create_index(schema).ok

        metadata = engine.client.collections["constituicao"].metadata
        assert metadata["hnsw:space"] == "cosine"
        assert SCHEMA_METADATA_KEY in metadata
        assert engine.retrieve_index("constituicao").schema == schema

    def test_create_existing_is_transport_error(self, engine: ChromaIndexEngine) -> None:
        schema = constitution_schema("constituicao")
        engine.create_index(schema)
        response = engine.create_index(schema)
        assert response.error.kind == EngineErrorKind.TRANSPORT

    def test_collection_without_schema(self, engine: ChromaIndexEngine) -> None:
        engine.client.collections["bare"] = FakeCollection("bare", {})
        response = engine.retrieve_index("bare")
        assert response.error.kind == EngineErrorKind.SCHEMA

    @pytest.mark.parametrize("payload", ["{", "{}", "[]", '{"name": "x", "fields": [{"bogus": 1}]}'])
    def test_malformed_schema_metadata(self, engine: ChromaIndexEngine, payload: str) -> None:
        engine.client.collections["broken"] = FakeCollection("broken", {SCHEMA_METADATA_KEY: payload})
        response = engine.retrieve_index("broken")
        assert response.error.kind == EngineErrorKind.SCHEMA
        assert "Invalid schema metadata" in response.error.message


class TestUpsertBatch:
    def test_per_record_results(self, engine: ChromaIndexEngine) -> None:
        engine.create_index(constitution_schema("constituicao"))
        bad = record("doc-2")
        del bad["text"]

        response = engine.upsert_batch("constituicao", [record("doc-1"), bad], UpsertOptions())

        assert response.ok
        assert [(r.id, r.success) for r in response.results] == [("doc-1", True), ("doc-2", False)]
        assert "text" in response.results[1].error

        writes = engine.client.collections["constituicao"].writes
        assert len(writes) == 1
        assert writes[0]["ids"] == ["doc-1"]
        assert writes[0]["metadatas"][0]["tags"] == "TÍTULO I,Direitos Fundamentais"
        assert "parent_chapter" not in writes[0]["metadatas"][0]
        assert "A República Federativa do Brasil" in writes[0]["documents"][0]

    def test_transient_failure_retried(self, engine: ChromaIndexEngine) -> None:
        engine.create_index(constitution_schema("constituicao"))
        engine.client.collections["constituicao"].failures_left = 1

        response = engine.upsert_batch("constituicao", [record("doc-1")], UpsertOptions())
        assert response.ok
        assert len(engine.client.collections["constituicao"].writes) == 1

    def test_exhausted_retries_are_transport_error(self, engine: ChromaIndexEngine) -> None:
        engine.create_index(constitution_schema("constituicao"))
        engine.client.collections["constituicao"].failures_left = 5

        response = engine.upsert_batch("constituicao", [record("doc-1")], UpsertOptions())
        assert response.error.kind == EngineErrorKind.TRANSPORT
        assert isinstance(response.error.cause, ConnectionError)

    def test_missing_collection(self, engine: ChromaIndexEngine) -> None:
        response = engine.upsert_batch("missing", [record("doc-1")], UpsertOptions())
        assert response.error.kind == EngineErrorKind.NOT_FOUND

    def test_malformed_schema_metadata(self, engine: ChromaIndexEngine) -> None:
        engine.client.collections["broken"] = FakeCollection("broken", {SCHEMA_METADATA_KEY: "{"})
        response = engine.upsert_batch("broken", [record("doc-1")], UpsertOptions())
        assert response.error.kind == EngineErrorKind.SCHEMA
        assert engine.client.collections["broken"].writes == []

    def test_malformed_schema_is_a_failed_batch(self, engine: ChromaIndexEngine, documents_factory) -> None:
        engine.client.collections["broken"] = FakeCollection("broken", {SCHEMA_METADATA_KEY: "{"})
        report = SearchIndexGateway(engine).bulk_upsert("broken", documents_factory(3), batch_size=2)
        assert report.batches_attempted == [1, 2]
        assert report.batches_failed == [1, 2]
        assert report.documents_not_indexed == 3
        assert "Invalid schema metadata" in report.batch_failures[0].error


class TestOptions:
    def test_defaults(self) -> None:
        options = UpsertOptions()
        assert (options.action, options.batch_size, options.dirty_values) == ("upsert", 200, "coerce_or_drop")

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            UpsertOptions(action="replace")
        with pytest.raises(ValueError):
            UpsertOptions(batch_size=0)


def test_flatten_metadata() -> None:
    flat = flatten_metadata({"a": ["x", "y"], "b": None, "c": 3, "d": {"k": 1}})
    assert flat == {"a": "x,y", "c": 3, "d": "{'k': 1}"}
