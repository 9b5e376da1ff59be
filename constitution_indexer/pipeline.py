"""
Constitution Pipeline - Orchestrates one ingestion run.

Pipeline:
1. Index check → make sure the target collection exists (fatal on failure)
2. Fetch → download the constitution HTML (fatal on failure)
3. Classification → one-pass or streaming, same elements either way
4. Transformation → hierarchical references, context text, tags, ids
5. Indexing → ordered batched upserts with partial-failure reporting
"""

import json
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .config import PipelineConfig
from .indexing.engine import ChromaIndexEngine
from .indexing.gateway import BulkUpsertReport, SearchIndexGateway
from .indexing.schema import constitution_schema
from .ingestion.html_blocks import extract_blocks
from .ingestion.html_cache import HtmlCache
from .ingestion.streaming_parser import StreamingHtmlParser
from .ingestion.web_scraper import ConstitutionFetcher
from .processing.classifier import classify_blocks
from .processing.elements import IndexedDocument, RawElement
from .processing.reference_builder import ReferenceBuilder

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class IngestionReport:
    """Outcome of a completed run."""
    source_url: str
    collection_name: str
    index_created: bool = False
    elements: int = 0
    documents: int = 0
    kind_counts: dict = field(default_factory=dict)
    upsert: Optional[BulkUpsertReport] = None
    duration_seconds: float = 0.0

    @property
    def documents_not_indexed(self) -> int:
        return self.upsert.documents_not_indexed if self.upsert else self.documents

    def to_dict(self) -> dict:
        return {
            "source_url": self.source_url,
            "collection_name": self.collection_name,
            "index_created": self.index_created,
            "elements": self.elements,
            "documents": self.documents,
            "kind_counts": dict(self.kind_counts),
            "upsert": self.upsert.to_dict() if self.upsert else None,
            "documents_not_indexed": self.documents_not_indexed,
            "duration_seconds": round(self.duration_seconds, 2),
        }


class ConstitutionPipeline:
    """
    Fetch, classify, transform and index the constitution.

    Usage:
        pipeline = ConstitutionPipeline(load_config())
        report = pipeline.run()
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        fetcher: Optional[ConstitutionFetcher] = None,
        gateway: Optional[SearchIndexGateway] = None,
        builder: Optional[ReferenceBuilder] = None,
    ):
        self.config = config or PipelineConfig()
        if fetcher is None:
            cache = HtmlCache(self.config.cache) if self.config.cache.enabled else None
            fetcher = ConstitutionFetcher(self.config.fetch, cache=cache)
        self.fetcher = fetcher
        self.gateway = gateway or SearchIndexGateway(ChromaIndexEngine(self.config.engine))
        self.builder = builder or ReferenceBuilder(self.config.reference)

    @property
    def collection_name(self) -> str:
        return self.config.indexing.collection_name

    def classify(
        self,
        html: str,
        source_url: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[RawElement]:
        """Classify the page, chunk by chunk when streaming is enabled."""
        if self.config.indexing.streaming:
            parser = StreamingHtmlParser(self.config.streaming, self.config.classifier)
            return parser.parse(html, source_url, on_progress=on_progress)

        blocks = extract_blocks(html, host_marker=self.config.streaming.host_marker)
        logger.info(f"Extracted {len(blocks)} blocks")
        return classify_blocks(blocks, source_url=source_url, config=self.config.classifier)

    def parse(
        self,
        url: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[IndexedDocument]:
        """Fetch, classify and transform without touching the index."""
        source_url = url or self.config.fetch.url
        html = self.fetcher.fetch(source_url)
        elements = self.classify(html, source_url, on_progress)
        return self.builder.build(elements)

    def run(
        self,
        url: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IngestionReport:
        """
        Run the full ingestion.

        Raises:
            SchemaError: the collection could not be retrieved or created
            FetchError: the source document could not be fetched
        """
        start_time = time.time()
        source_url = url or self.config.fetch.url
        name = self.collection_name
        report = IngestionReport(source_url=source_url, collection_name=name)

        logger.info(f"Starting ingestion of {source_url} into '{name}'")
        report.index_created = self.gateway.ensure_index(name, constitution_schema(name))

        html = self.fetcher.fetch(source_url)
        elements = self.classify(html, source_url, on_progress)
        documents = self.builder.build(elements)

        report.elements = len(elements)
        report.documents = len(documents)
        report.kind_counts = dict(Counter(doc.kind.value for doc in documents))

        if documents:
            report.upsert = self.gateway.bulk_upsert(name, documents, self.config.indexing.batch_size)
        else:
            logger.warning("No documents to index")
            report.upsert = BulkUpsertReport()

        report.duration_seconds = time.time() - start_time
        logger.info(
            f"Ingestion finished in {report.duration_seconds:.1f}s: "
            f"{report.documents} documents, {report.documents_not_indexed} not indexed"
        )
        return report

    @staticmethod
    def save_documents(documents: list[IndexedDocument], path: str) -> Path:
        """Export documents to a JSON file."""
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "exported_at": datetime.now().isoformat(),
            "total_documents": len(documents),
            "documents": [doc.to_dict() for doc in documents],
        }
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

        logger.info(f"Saved {len(documents)} documents to {output_path}")
        return output_path
