"""
Search Index Engine - adapter over the vector database.

The gateway only talks to the IndexEngine interface. Every call returns a
response value carrying either data or an EngineError whose kind tells the
caller what happened (not found, transport failure, schema problem), so no
library exception type crosses this boundary.

ChromaIndexEngine stores the collection schema in the collection metadata,
embeds the schema's embedding source fields through the collection's
embedding function and retries transport calls with exponential backoff.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .schema import IndexSchema, RecordRejected

logger = logging.getLogger(__name__)

SCHEMA_METADATA_KEY = "index_schema"


class EngineErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    SCHEMA = "schema"


@dataclass(frozen=True)
class EngineError:
    """Classified failure reported by an engine call."""
    kind: EngineErrorKind
    message: str
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass
class RetrieveResponse:
    schema: Optional[IndexSchema] = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CreateResponse:
    schema: Optional[IndexSchema] = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DocumentResult:
    """Outcome for one record of an upsert batch."""
    id: Optional[str]
    success: bool
    error: Optional[str] = None


@dataclass
class UpsertResponse:
    results: list[DocumentResult] = field(default_factory=list)
    error: Optional[EngineError] = None  # Whole batch failed in transport

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UpsertOptions:
    """Options sent with every batch."""
    action: str = "upsert"  # insert or replace by id
    batch_size: int = 200
    dirty_values: str = "coerce_or_drop"

    def __post_init__(self):
        if self.action not in ("upsert", "create"):
            raise ValueError(f"Unsupported upsert action: {self.action}")
        if self.dirty_values != "coerce_or_drop":
            raise ValueError(f"Unsupported dirty values policy: {self.dirty_values}")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")


class IndexEngine(ABC):
    """Abstract search index engine."""

    @abstractmethod
    def retrieve_index(self, name: str) -> RetrieveResponse:
        """Return the schema of an existing index."""
        pass

    @abstractmethod
    def create_index(self, schema: IndexSchema) -> CreateResponse:
        """Create an index with the given schema."""
        pass

    @abstractmethod
    def upsert_batch(
        self,
        name: str,
        records: list[dict],
        options: UpsertOptions,
    ) -> UpsertResponse:
        """
        Write one batch of flat records.

        Returns per-record results in input order, or a transport error
        when the batch as a whole could not be written.
        """
        pass


@dataclass
class IndexEngineConfig:
    """Configuration for the Chroma engine."""
    persist_directory: str = "data/vectordb"
    host: Optional[str] = None  # Use a Chroma server instead of local storage
    port: int = 8000
    max_attempts: int = 5
    retry_backoff_seconds: float = 1.0
    distance: str = "cosine"


def flatten_metadata(record: dict) -> dict:
    """Chroma metadata must be flat scalars: lists become comma-separated strings."""
    flat = {}
    for k, v in record.items():
        if v is None:
            continue
        if isinstance(v, list):
            flat[k] = ",".join(str(x) for x in v)
        elif isinstance(v, (str, int, float, bool)):
            flat[k] = v
        else:
            flat[k] = str(v)
    return flat


class ChromaIndexEngine(IndexEngine):
    """
    IndexEngine backed by ChromaDB.

    Usage:
        engine = ChromaIndexEngine(IndexEngineConfig(persist_directory="data/vectordb"))
        response = engine.retrieve_index("brazilian_constitution_v1")
    """

    def __init__(
        self,
        config: Optional[IndexEngineConfig] = None,
        client: Any = None,
        embedding_function: Any = None,
    ):
        self.config = config or IndexEngineConfig()
        self._client = client
        self._embedding_function = embedding_function

    @property
    def client(self):
        if self._client is None:
            self._client = self._init_client()
        return self._client

    def _init_client(self):
        """Initialize the ChromaDB client."""
        try:
            import chromadb
            from chromadb.config import Settings
        except ImportError:
            logger.error("chromadb not installed. Run: pip install chromadb")
            raise

        settings = Settings(anonymized_telemetry=False)
        if self.config.host:
            logger.info(f"Connecting to Chroma server at {self.config.host}:{self.config.port}")
            return chromadb.HttpClient(
                host=self.config.host,
                port=self.config.port,
                settings=settings,
            )

        persist_dir = Path(self.config.persist_directory)
        persist_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Using local Chroma storage at {persist_dir}")
        return chromadb.PersistentClient(path=str(persist_dir), settings=settings)

    @staticmethod
    def _not_found_type() -> type:
        from chromadb.errors import NotFoundError
        return NotFoundError

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=self.config.retry_backoff_seconds, max=30),
            retry=retry_if_not_exception_type(self._not_found_type()),
            before_sleep=lambda state: logger.warning(
                f"Chroma call failed (attempt {state.attempt_number}): "
                f"{state.outcome.exception()}"
            ),
        )

    def _call(self, fn, *args, **kwargs):
        """Run a client call with retries; raises the last underlying exception."""
        try:
            return self._retrying()(fn, *args, **kwargs)
        except RetryError as e:
            raise e.last_attempt.exception()

    def _classify(self, error: BaseException) -> EngineError:
        if isinstance(error, self._not_found_type()):
            return EngineError(EngineErrorKind.NOT_FOUND, str(error), error)
        return EngineError(EngineErrorKind.TRANSPORT, str(error), error)

    def _get_collection(self, name: str):
        kwargs = {"name": name}
        if self._embedding_function is not None:
            kwargs["embedding_function"] = self._embedding_function
        return self._call(self.client.get_collection, **kwargs)

    @staticmethod
    def _schema_of(collection, name: str) -> tuple[Optional[IndexSchema], Optional[EngineError]]:
        """Read the schema stored in collection metadata, or the SCHEMA error."""
        payload = (collection.metadata or {}).get(SCHEMA_METADATA_KEY)
        if not payload:
            return None, EngineError(EngineErrorKind.SCHEMA, f"Collection '{name}' has no schema metadata")
        try:
            return IndexSchema.from_json(payload), None
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            return None, EngineError(EngineErrorKind.SCHEMA, f"Invalid schema metadata: {e}", e)

    def retrieve_index(self, name: str) -> RetrieveResponse:
        try:
            collection = self._get_collection(name)
        except Exception as e:
            return RetrieveResponse(error=self._classify(e))

        schema, error = self._schema_of(collection, name)
        if error is not None:
            return RetrieveResponse(error=error)
        return RetrieveResponse(schema=schema)

    def create_index(self, schema: IndexSchema) -> CreateResponse:
        metadata = {
            "hnsw:space": self.config.distance,
            SCHEMA_METADATA_KEY: schema.to_json(),
        }
        if schema.default_sorting_field:
            metadata["default_sorting_field"] = schema.default_sorting_field

        kwargs = {"name": schema.name, "metadata": metadata}
        if self._embedding_function is not None:
            kwargs["embedding_function"] = self._embedding_function
        try:
            self._call(self.client.create_collection, **kwargs)
        except Exception as e:
            return CreateResponse(error=EngineError(EngineErrorKind.TRANSPORT, str(e), e))
        logger.info(f"Created Chroma collection '{schema.name}' ({len(schema.fields)} fields)")
        return CreateResponse(schema=schema)

    def upsert_batch(
        self,
        name: str,
        records: list[dict],
        options: UpsertOptions,
    ) -> UpsertResponse:
        try:
            collection = self._get_collection(name)
        except Exception as e:
            return UpsertResponse(error=self._classify(e))

        schema, error = self._schema_of(collection, name)
        if error is not None:
            return UpsertResponse(error=error)

        results: list[DocumentResult] = []
        ids, documents, metadatas = [], [], []
        for record in records:
            record_id = record.get("id")
            try:
                coerced = schema.coerce_record(record)
            except RecordRejected as e:
                results.append(DocumentResult(id=record_id, success=False, error=str(e)))
                continue
            ids.append(coerced["id"])
            documents.append(schema.embedding_text(coerced))
            metadatas.append(flatten_metadata({k: v for k, v in coerced.items() if k != "id"}))
            results.append(DocumentResult(id=coerced["id"], success=True))

        write = collection.upsert if options.action == "upsert" else collection.add
        try:
            for start in range(0, len(ids), options.batch_size):
                end = start + options.batch_size
                self._call(
                    write,
                    ids=ids[start:end],
                    documents=documents[start:end],
                    metadatas=metadatas[start:end],
                )
        except Exception as e:
            return UpsertResponse(error=EngineError(EngineErrorKind.TRANSPORT, str(e), e))

        return UpsertResponse(results=results)
