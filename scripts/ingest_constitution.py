#!/usr/bin/env python3
"""
Ingest Constitution - Fetch, classify and index the Brazilian Federal Constitution.

Usage:
    python scripts/ingest_constitution.py                         # Full run
    python scripts/ingest_constitution.py --streaming             # Chunked classification
    python scripts/ingest_constitution.py --dry-run --output out.json
    python scripts/ingest_constitution.py --check                 # Index liveness probe
"""

import argparse
import logging
import os
import sys
from collections import Counter
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables from .env
from dotenv import load_dotenv
load_dotenv()

from tqdm import tqdm

from constitution_indexer.config import load_config
from constitution_indexer.errors import IngestionError
from constitution_indexer.indexing import ChromaIndexEngine, SearchIndexGateway
from constitution_indexer.pipeline import ConstitutionPipeline

logger = logging.getLogger(__name__)


class ProgressBar:
    """tqdm bar fed by (processed_bytes, total_bytes) callbacks."""

    def __init__(self, desc: str = "Parsing"):
        self.desc = desc
        self._bar = None

    def __call__(self, processed: int, total: int):
        if self._bar is None:
            self._bar = tqdm(total=total, desc=self.desc, unit="B", unit_scale=True)
        self._bar.update(processed - self._bar.n)

    def close(self):
        if self._bar is not None:
            self._bar.close()


def print_report(report: dict):
    print(f"\n{'='*60}")
    print("INGESTION SUMMARY")
    print(f"{'='*60}")
    for key, value in report.items():
        if isinstance(value, dict):
            print(f"  {key}:")
            for sub_key, sub_value in value.items():
                print(f"    {sub_key}: {sub_value}")
        else:
            print(f"  {key}: {value}")
    print(f"{'='*60}\n")


def check_index(gateway: SearchIndexGateway, name: str) -> int:
    """Liveness probe: read the collection schema."""
    try:
        schema = gateway.get_schema(name)
    except Exception as e:
        logger.error(f"Index '{name}' is not available: {e}")
        return 1
    print(f"Index '{schema.name}' is available ({len(schema.fields)} fields)")
    for schema_field in schema.fields:
        flags = [flag for flag in ("facet", "optional", "sort", "infix") if getattr(schema_field, flag)]
        print(f"  {schema_field.name}: {schema_field.type} {' '.join(flags)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Index the Brazilian Federal Constitution")
    parser.add_argument("--config", type=str, help="Path to config YAML (default: config/config.yaml)")
    parser.add_argument("--url", type=str, help="Source document URL")
    parser.add_argument("--collection", type=str, help="Target collection name")
    parser.add_argument("--batch-size", type=int, help="Documents per upsert batch")
    parser.add_argument("--streaming", action="store_true", help="Classify the page chunk by chunk")
    parser.add_argument("--chunk-size", type=int, help="Streaming chunk size in characters")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not index")
    parser.add_argument("--output", type=str, help="Write parsed documents to JSON (with --dry-run)")
    parser.add_argument("--check", action="store_true", help="Check that the index is reachable")
    parser.add_argument("--no-cache", action="store_true", help="Do not use the HTML cache")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    config = load_config(args.config)
    if args.url:
        config.fetch.url = args.url
    if args.collection:
        config.indexing.collection_name = args.collection
    if args.batch_size:
        config.indexing.batch_size = args.batch_size
    if args.streaming:
        config.indexing.streaming = True
    if args.chunk_size:
        config.streaming.chunk_size = args.chunk_size
    if args.no_cache:
        config.cache.enabled = False

    if args.check:
        gateway = SearchIndexGateway(ChromaIndexEngine(config.engine))
        return check_index(gateway, config.indexing.collection_name)

    pipeline = ConstitutionPipeline(config)
    progress = ProgressBar() if config.indexing.streaming else None

    try:
        if args.dry_run:
            documents = pipeline.parse(on_progress=progress)
            if args.output:
                pipeline.save_documents(documents, args.output)
            print_report({
                "source_url": config.fetch.url,
                "documents": len(documents),
                "kind_counts": dict(Counter(doc.kind.value for doc in documents)),
            })
            return 0

        report = pipeline.run(on_progress=progress)
    except IngestionError as e:
        logger.error(f"Ingestion failed at stage '{e.stage}': {e}")
        return 1
    finally:
        if progress:
            progress.close()

    print_report(report.to_dict())
    if report.documents_not_indexed:
        logger.warning(f"Completed with partial failures: {report.documents_not_indexed} documents not indexed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
