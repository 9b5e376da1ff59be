"""Tests for constitution_indexer.indexing.gateway."""

import logging

import pytest

from constitution_indexer.errors import SchemaError
from constitution_indexer.indexing.engine import EngineError, EngineErrorKind
from constitution_indexer.indexing.gateway import SearchIndexGateway, to_record
from constitution_indexer.indexing.schema import constitution_schema

NAME = "brazilian_constitution_v1"


class TestEnsureIndex:
    def test_missing_index_created_once(self, fake_engine) -> None:
        gateway = SearchIndexGateway(fake_engine)
        assert gateway.ensure_index(NAME, constitution_schema(NAME)) is True
        assert len(fake_engine.create_calls) == 1

    def test_existing_index_not_recreated(self, fake_engine) -> None:
        gateway = SearchIndexGateway(fake_engine)
        gateway.ensure_index(NAME, constitution_schema(NAME))
        assert gateway.ensure_index(NAME, constitution_schema(NAME)) is False
        assert len(fake_engine.create_calls) == 1

    def test_schema_name_follows_index_name(self, fake_engine) -> None:
        SearchIndexGateway(fake_engine).ensure_index("constituicao_v2", constitution_schema(NAME))
        assert fake_engine.create_calls[0].name == "constituicao_v2"

    def test_retrieve_failure_is_fatal(self, fake_engine) -> None:
        fake_engine.retrieve_error = EngineError(EngineErrorKind.TRANSPORT, "connection refused")
        with pytest.raises(SchemaError) as excinfo:
            SearchIndexGateway(fake_engine).ensure_index(NAME, constitution_schema(NAME))
        assert excinfo.value.stage == "schema"
        assert fake_engine.create_calls == []

    def test_create_failure_is_fatal(self, fake_engine) -> None:
        fake_engine.create_error = EngineError(EngineErrorKind.TRANSPORT, "disk full")
        with pytest.raises(SchemaError):
            SearchIndexGateway(fake_engine).ensure_index(NAME, constitution_schema(NAME))

    def test_concurrent_creation_accepted(self, fake_engine) -> None:
        fake_engine.create_error = EngineError(EngineErrorKind.TRANSPORT, "already exists")
        fake_engine.create_error_registers = True
        created = SearchIndexGateway(fake_engine).ensure_index(NAME, constitution_schema(NAME))
        assert created is False
        assert len(fake_engine.create_calls) == 1


class TestBulkUpsert:
    def test_all_batches_succeed(self, fake_engine, documents_factory) -> None:
        documents = documents_factory(5)
        report = SearchIndexGateway(fake_engine).bulk_upsert(NAME, documents, batch_size=2)

        assert report.batches_attempted == [1, 2, 3]
        assert report.batches_succeeded == [1, 2, 3]
        assert report.documents_succeeded == 5
        assert report.documents_not_indexed == 0
        assert report.fully_succeeded
        assert [ids for _, ids, _ in fake_engine.upsert_calls] == [
            ["doc-1", "doc-2"],
            ["doc-3", "doc-4"],
            ["doc-5"],
        ]

    def test_options_sent_with_every_batch(self, fake_engine, documents_factory) -> None:
        SearchIndexGateway(fake_engine).bulk_upsert(NAME, documents_factory(3), batch_size=2)
        for _, _, options in fake_engine.upsert_calls:
            assert options.action == "upsert"
            assert options.batch_size == 2
            assert options.dirty_values == "coerce_or_drop"

    def test_partial_batch_failure(self, fake_engine, documents_factory, caplog) -> None:
        fake_engine.failing_batches = {2}
        documents = documents_factory(6)

        with caplog.at_level(logging.ERROR):
            report = SearchIndexGateway(fake_engine).bulk_upsert(NAME, documents, batch_size=2)

        assert report.batches_succeeded == [1, 3]
        assert report.batches_failed == [2]
        assert report.documents_attempted == 6
        assert report.documents_succeeded == 4
        assert report.documents_not_indexed == 2
        assert sorted(fake_engine.stored) == ["doc-1", "doc-2", "doc-5", "doc-6"]
        assert report.batch_failures[0].batch_number == 2
        assert "connection reset" in report.batch_failures[0].error
        assert "batch 2/3" in caplog.text

    def test_rejections_counted(self, fake_engine, documents_factory, caplog) -> None:
        fake_engine.rejected_ids = {"doc-2", "doc-4"}

        with caplog.at_level(logging.ERROR):
            report = SearchIndexGateway(fake_engine).bulk_upsert(NAME, documents_factory(4), batch_size=3)

        assert report.batches_succeeded == [1, 2]
        assert report.documents_rejected == 2
        assert report.documents_succeeded == 2
        assert [r.document_id for r in report.rejection_samples] == ["doc-2", "doc-4"]
        assert "doc-2" in caplog.text
        assert "Document doc-4 rejected" not in caplog.text

    def test_empty_input(self, fake_engine) -> None:
        report = SearchIndexGateway(fake_engine).bulk_upsert(NAME, [], batch_size=10)
        assert report.batches_attempted == []
        assert fake_engine.upsert_calls == []

    def test_invalid_batch_size(self, fake_engine, documents_factory) -> None:
        with pytest.raises(ValueError):
            SearchIndexGateway(fake_engine).bulk_upsert(NAME, documents_factory(1), batch_size=0)

    def test_report_dict(self, fake_engine, documents_factory) -> None:
        fake_engine.failing_batches = {1}
        report = SearchIndexGateway(fake_engine).bulk_upsert(NAME, documents_factory(1))
        data = report.to_dict()
        assert data["batches_failed"] == [1]
        assert data["documents_not_indexed"] == 1
        assert data["batch_failures"][0]["document_count"] == 1


class TestGetSchema:
    def test_returns_schema(self, fake_engine) -> None:
        gateway = SearchIndexGateway(fake_engine)
        gateway.ensure_index(NAME, constitution_schema(NAME))
        assert gateway.get_schema(NAME) == constitution_schema(NAME)

    def test_original_error_propagates(self, fake_engine) -> None:
        cause = ConnectionError("engine down")
        fake_engine.retrieve_error = EngineError(EngineErrorKind.TRANSPORT, "engine down", cause)
        with pytest.raises(ConnectionError) as excinfo:
            SearchIndexGateway(fake_engine).get_schema(NAME)
        assert excinfo.value is cause


def test_to_record(documents_factory) -> None:
    record = to_record(documents_factory(1)[0])
    assert record["type"] == "Artigo"
    assert record["id"] == "doc-1"
    assert "position" not in record
