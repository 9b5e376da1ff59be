"""
Index schema for constitution documents.

Declares the fixed field set of the search collection and the
"coerce_or_drop" policy applied to every record before it is written:
- Values are coerced to the declared field type
- Optional fields that cannot be coerced are dropped
- Records missing a required field (or with an uncoercible one) are rejected
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

STRING = "string"
STRING_LIST = "string[]"
INT64 = "int64"

FIELD_TYPES = (STRING, STRING_LIST, INT64)

DEFAULT_COLLECTION_NAME = "brazilian_constitution_v1"


class RecordRejected(ValueError):
    """A record cannot be stored under the schema."""

    def __init__(self, field_name: str, reason: str):
        super().__init__(f"Field '{field_name}': {reason}")
        self.field_name = field_name
        self.reason = reason


class _Uncoercible(Exception):
    pass


@dataclass(frozen=True)
class SchemaField:
    """One declared field of the collection."""
    name: str
    type: str = STRING
    facet: bool = False
    optional: bool = False
    sort: bool = False
    infix: bool = False  # substring-searchable

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unsupported field type: {self.type}")

    def coerce(self, value: Any) -> Any:
        """Convert a value to the declared type or raise _Uncoercible."""
        if self.type == STRING:
            if isinstance(value, (str, int, float, bool)):
                return str(value)
            raise _Uncoercible(type(value).__name__)

        if self.type == INT64:
            if isinstance(value, bool):
                raise _Uncoercible("bool")
            if isinstance(value, int):
                return value
            if isinstance(value, float) and value.is_integer():
                return int(value)
            if isinstance(value, str) and value.strip().lstrip("-").isdigit():
                return int(value.strip())
            raise _Uncoercible(repr(value)[:50])

        # string[]
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple)):
            if all(isinstance(v, (str, int, float, bool)) for v in value):
                return [str(v) for v in value]
        raise _Uncoercible(type(value).__name__)


@dataclass
class IndexSchema:
    """
    Collection name plus its declared fields.

    Usage:
        schema = constitution_schema("brazilian_constitution_v1")
        record = schema.coerce_record(document_dict)
    """
    name: str
    fields: list[SchemaField] = field(default_factory=list)
    default_sorting_field: Optional[str] = None
    token_separators: list[str] = field(default_factory=list)
    embed_from: list[str] = field(default_factory=list)  # Fields concatenated into the embedded text

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[SchemaField]:
        for schema_field in self.fields:
            if schema_field.name == name:
                return schema_field
        return None

    def coerce_record(self, record: dict) -> dict:
        """
        Apply the coerce_or_drop policy to one record.

        Undeclared keys are dropped. Raises RecordRejected when a required
        field is missing or cannot be coerced.
        """
        coerced = {}
        for schema_field in self.fields:
            value = record.get(schema_field.name)
            if value is None:
                if not schema_field.optional:
                    raise RecordRejected(schema_field.name, "required field is missing")
                continue
            try:
                coerced[schema_field.name] = schema_field.coerce(value)
            except _Uncoercible as e:
                if not schema_field.optional:
                    raise RecordRejected(schema_field.name, f"cannot coerce {e} to {schema_field.type}")
        return coerced

    def embedding_text(self, record: dict) -> str:
        """Join the embedding source fields of a (coerced) record."""
        return "\n".join(str(record[name]) for name in self.embed_from if record.get(name))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "IndexSchema":
        return cls(
            name=data["name"],
            fields=[SchemaField(**f) for f in data.get("fields", [])],
            default_sorting_field=data.get("default_sorting_field"),
            token_separators=list(data.get("token_separators", [])),
            embed_from=list(data.get("embed_from", [])),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, payload: str) -> "IndexSchema":
        return cls.from_dict(json.loads(payload))


def constitution_schema(name: str = DEFAULT_COLLECTION_NAME) -> IndexSchema:
    """The fixed field set of the constitution collection."""
    return IndexSchema(
        name=name,
        fields=[
            SchemaField("id", STRING),
            SchemaField("type", STRING, facet=True),
            SchemaField("number", STRING, optional=True, sort=True),
            SchemaField("full_reference", STRING, sort=True, infix=True),
            SchemaField("text", STRING, infix=True),
            SchemaField("hierarchical_text_context", STRING, optional=True, infix=True),
            SchemaField("parent_title", STRING, facet=True, optional=True),
            SchemaField("parent_chapter", STRING, facet=True, optional=True),
            SchemaField("parent_section", STRING, facet=True, optional=True),
            SchemaField("parent_subsection", STRING, facet=True, optional=True),
            SchemaField("parent_article_number", STRING, facet=True, optional=True),
            SchemaField("source_url", STRING),
            SchemaField("last_indexed_at", INT64, sort=True),
            SchemaField("tags", STRING_LIST, facet=True, optional=True),
        ],
        default_sorting_field="full_reference",
        token_separators=[",", ".", "-", "§"],
        embed_from=["text", "full_reference", "hierarchical_text_context"],
    )
