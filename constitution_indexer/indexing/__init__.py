"""
Search index module.

Components:
- IndexSchema: Fixed field set and the coerce_or_drop record policy
- IndexEngine / ChromaIndexEngine: Engine adapter returning classified errors
- SearchIndexGateway: Index lifecycle and batched upserts
"""

from .schema import (
    DEFAULT_COLLECTION_NAME,
    IndexSchema,
    RecordRejected,
    SchemaField,
    constitution_schema,
)
from .engine import (
    ChromaIndexEngine,
    CreateResponse,
    DocumentResult,
    EngineError,
    EngineErrorKind,
    IndexEngine,
    IndexEngineConfig,
    RetrieveResponse,
    UpsertOptions,
    UpsertResponse,
)
from .gateway import BulkUpsertReport, SearchIndexGateway, to_record

__all__ = [
    "DEFAULT_COLLECTION_NAME",
    "IndexSchema",
    "RecordRejected",
    "SchemaField",
    "constitution_schema",
    "ChromaIndexEngine",
    "CreateResponse",
    "DocumentResult",
    "EngineError",
    "EngineErrorKind",
    "IndexEngine",
    "IndexEngineConfig",
    "RetrieveResponse",
    "UpsertOptions",
    "UpsertResponse",
    "BulkUpsertReport",
    "SearchIndexGateway",
    "to_record",
]
