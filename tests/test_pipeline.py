"""Tests for constitution_indexer.pipeline (fake fetcher and engine)."""

import json

import pytest

from constitution_indexer.config import PipelineConfig
from constitution_indexer.errors import FetchError, SchemaError
from constitution_indexer.indexing.engine import EngineError, EngineErrorKind
from constitution_indexer.indexing.gateway import SearchIndexGateway
from constitution_indexer.pipeline import ConstitutionPipeline

URL = "https://example.test/constituicao.htm"


class FakeFetcher:
    def __init__(self, html: str = "", error: Exception = None) -> None:
        self.html = html
        self.error = error
        self.calls: list[str] = []

    def fetch(self, url=None) -> str:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.html


def make_pipeline(fake_engine, fetcher, streaming: bool = False, batch_size: int = 200) -> ConstitutionPipeline:
    config = PipelineConfig()
    config.fetch.url = URL
    config.indexing.streaming = streaming
    config.indexing.batch_size = batch_size
    config.streaming.chunk_size = 128
    return ConstitutionPipeline(config, fetcher=fetcher, gateway=SearchIndexGateway(fake_engine))


class TestRun:
    def test_full_run(self, fake_engine, sample_html: str) -> None:
        fetcher = FakeFetcher(sample_html)
        report = make_pipeline(fake_engine, fetcher, batch_size=5).run()

        assert report.index_created
        assert report.elements == 18
        assert report.documents == 16
        assert report.upsert.documents_succeeded == 16
        assert report.upsert.batches_attempted == [1, 2, 3, 4]
        assert report.documents_not_indexed == 0
        assert report.kind_counts["Inciso"] == 3
        assert fetcher.calls == [URL]
        assert len(fake_engine.stored) == 16

    def test_second_run_reuses_index(self, fake_engine, sample_html: str) -> None:
        pipeline = make_pipeline(fake_engine, FakeFetcher(sample_html))
        first = pipeline.run()
        second = pipeline.run()

        assert first.index_created and not second.index_created
        assert len(fake_engine.create_calls) == 1
        assert len(fake_engine.stored) == 16

    def test_streaming_run_indexes_same_documents(self, fake_engine, sample_html: str) -> None:
        make_pipeline(fake_engine, FakeFetcher(sample_html)).run()
        single_pass_ids = sorted(fake_engine.stored)

        fake_engine.stored.clear()
        make_pipeline(fake_engine, FakeFetcher(sample_html), streaming=True).run()
        assert sorted(fake_engine.stored) == single_pass_ids

    def test_partial_failure_reported(self, fake_engine, sample_html: str) -> None:
        fake_engine.failing_batches = {2}
        report = make_pipeline(fake_engine, FakeFetcher(sample_html), batch_size=5).run()

        assert report.upsert.batches_failed == [2]
        assert report.documents_not_indexed == 5
        assert report.to_dict()["documents_not_indexed"] == 5

    def test_schema_failure_aborts_before_fetch(self, fake_engine, sample_html: str) -> None:
        fake_engine.retrieve_error = EngineError(EngineErrorKind.TRANSPORT, "connection refused")
        fetcher = FakeFetcher(sample_html)

        with pytest.raises(SchemaError) as excinfo:
            make_pipeline(fake_engine, fetcher).run()
        assert excinfo.value.stage == "schema"
        assert fetcher.calls == []

    def test_fetch_failure_aborts_before_indexing(self, fake_engine) -> None:
        fetcher = FakeFetcher(error=FetchError("timed out"))

        with pytest.raises(FetchError) as excinfo:
            make_pipeline(fake_engine, fetcher).run()
        assert excinfo.value.stage == "fetch"
        assert fake_engine.upsert_calls == []

    def test_nothing_classified(self, fake_engine) -> None:
        report = make_pipeline(fake_engine, FakeFetcher("<html><body></body></html>")).run()
        assert report.documents == 0
        assert fake_engine.upsert_calls == []


class TestDryRun:
    def test_parse_does_not_touch_index(self, fake_engine, sample_html: str) -> None:
        documents = make_pipeline(fake_engine, FakeFetcher(sample_html)).parse()
        assert len(documents) == 16
        assert fake_engine.retrieve_calls == []
        assert fake_engine.upsert_calls == []

    def test_save_documents(self, fake_engine, sample_html: str, tmp_path) -> None:
        pipeline = make_pipeline(fake_engine, FakeFetcher(sample_html))
        documents = pipeline.parse()
        path = pipeline.save_documents(documents, str(tmp_path / "out" / "documents.json"))

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        assert data["total_documents"] == 16
        assert data["documents"][0]["type"] == "Preâmbulo"
        assert data["documents"][0]["id"] == documents[0].id
