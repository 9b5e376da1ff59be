"""
Search Index Gateway - Index lifecycle and batched, partially fault-tolerant writes.

- ensure_index: retrieve, create only when the index is missing
- bulk_upsert: ordered fixed-size batches; a failed batch is recorded and
  skipped, rejected documents are counted, the run continues
- get_schema: passthrough for liveness probes

IndexedDocument objects are converted to flat engine records here and
nowhere else.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..errors import SchemaError
from ..processing.elements import IndexedDocument
from .engine import EngineErrorKind, IndexEngine, UpsertOptions
from .schema import IndexSchema

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 200
MAX_FAILURE_SAMPLES = 5


@dataclass
class BatchFailure:
    """A batch whose transport call failed."""
    batch_number: int  # 1-based
    document_count: int
    error: str


@dataclass
class DocumentRejection:
    """A document refused by the engine inside a transported batch."""
    batch_number: int
    document_id: Optional[str]
    error: str


@dataclass
class BulkUpsertReport:
    """Aggregate outcome of a bulk upsert."""
    batches_attempted: list[int] = field(default_factory=list)
    batches_succeeded: list[int] = field(default_factory=list)
    batches_failed: list[int] = field(default_factory=list)
    documents_attempted: int = 0
    documents_succeeded: int = 0
    documents_rejected: int = 0
    batch_failures: list[BatchFailure] = field(default_factory=list)
    rejection_samples: list[DocumentRejection] = field(default_factory=list)

    @property
    def documents_not_indexed(self) -> int:
        return self.documents_attempted - self.documents_succeeded

    @property
    def fully_succeeded(self) -> bool:
        return self.documents_not_indexed == 0

    def to_dict(self) -> dict:
        return {
            "batches_attempted": list(self.batches_attempted),
            "batches_succeeded": list(self.batches_succeeded),
            "batches_failed": list(self.batches_failed),
            "documents_attempted": self.documents_attempted,
            "documents_succeeded": self.documents_succeeded,
            "documents_rejected": self.documents_rejected,
            "documents_not_indexed": self.documents_not_indexed,
            "batch_failures": [vars(f) for f in self.batch_failures],
            "rejection_samples": [vars(r) for r in self.rejection_samples],
        }


def to_record(document: IndexedDocument) -> dict:
    """Flatten a document into the engine's record shape."""
    record = document.to_dict()
    record.pop("position", None)
    return record


class SearchIndexGateway:
    """
    Gateway between the pipeline and an IndexEngine.

    Usage:
        gateway = SearchIndexGateway(ChromaIndexEngine())
        gateway.ensure_index(schema.name, schema)
        report = gateway.bulk_upsert(schema.name, documents, batch_size=200)
    """

    def __init__(self, engine: IndexEngine):
        self.engine = engine

    def ensure_index(self, name: str, schema: IndexSchema) -> bool:
        """
        Make sure the index exists.

        Returns:
            True if the index was created by this call

        Raises:
            SchemaError: retrieval failed for a reason other than "not found",
                or creation failed and the index still does not exist
        """
        response = self.engine.retrieve_index(name)
        if response.ok:
            logger.info(f"Index '{name}' already exists")
            return False

        if response.error.kind != EngineErrorKind.NOT_FOUND:
            logger.error(f"Error retrieving index '{name}': {response.error}")
            raise SchemaError(f"Cannot retrieve index '{name}': {response.error.message}") from response.error.cause

        logger.info(f"Index '{name}' not found, creating it")
        if schema.name != name:
            schema = IndexSchema.from_dict({**schema.to_dict(), "name": name})

        created = self.engine.create_index(schema)
        if created.ok:
            logger.info(f"Index '{name}' created successfully")
            return True

        # Another run may have created it in the meantime
        recheck = self.engine.retrieve_index(name)
        if recheck.ok:
            logger.warning(f"Index '{name}' was created concurrently, using it ({created.error})")
            return False

        logger.error(f"Error creating index '{name}': {created.error}")
        raise SchemaError(f"Cannot create index '{name}': {created.error.message}") from created.error.cause

    def bulk_upsert(
        self,
        name: str,
        documents: Sequence[IndexedDocument],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> BulkUpsertReport:
        """
        Upsert documents in ordered batches.

        A batch whose transport call fails is logged, recorded and skipped;
        processing always continues with the next batch.
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        report = BulkUpsertReport()
        options = UpsertOptions(action="upsert", batch_size=batch_size, dirty_values="coerce_or_drop")
        total_batches = (len(documents) + batch_size - 1) // batch_size
        logger.info(f"Upserting {len(documents)} documents to '{name}' in {total_batches} batches")

        for start in range(0, len(documents), batch_size):
            batch_number = start // batch_size + 1
            batch = documents[start:start + batch_size]
            records = [to_record(doc) for doc in batch]

            report.batches_attempted.append(batch_number)
            report.documents_attempted += len(batch)

            response = self.engine.upsert_batch(name, records, options)
            if not response.ok:
                logger.error(f"Error indexing batch {batch_number}/{total_batches}: {response.error}")
                report.batches_failed.append(batch_number)
                report.batch_failures.append(BatchFailure(
                    batch_number=batch_number,
                    document_count=len(batch),
                    error=str(response.error),
                ))
                continue

            report.batches_succeeded.append(batch_number)
            for result in response.results:
                if result.success:
                    report.documents_succeeded += 1
                    continue
                report.documents_rejected += 1
                if report.documents_rejected == 1:
                    logger.error(
                        f"Document {result.id} rejected in batch {batch_number}: {result.error}"
                    )
                if len(report.rejection_samples) < MAX_FAILURE_SAMPLES:
                    report.rejection_samples.append(DocumentRejection(
                        batch_number=batch_number,
                        document_id=result.id,
                        error=result.error or "",
                    ))

            logger.debug(f"Batch {batch_number}/{total_batches} indexed")

        logger.info(
            f"Bulk upsert finished: {report.documents_succeeded}/{report.documents_attempted} documents, "
            f"{len(report.batches_succeeded)}/{len(report.batches_attempted)} batches"
        )
        if report.documents_rejected:
            logger.warning(f"{report.documents_rejected} documents were rejected by the index")
        return report

    def get_schema(self, name: str) -> IndexSchema:
        """Return the index schema; engine failures propagate unchanged."""
        response = self.engine.retrieve_index(name)
        if response.ok:
            return response.schema
        if response.error.cause is not None:
            raise response.error.cause
        raise LookupError(str(response.error))
