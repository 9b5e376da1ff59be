"""
Fatal ingestion errors.

Only two stages abort a run: fetching the source document and making sure
the target index exists. Everything else (batch transport failures,
rejected documents, unclassifiable text) is reported, not raised.
"""


class IngestionError(Exception):
    """Base class for errors that abort an ingestion run."""

    stage = "ingestion"

    def __init__(self, message: str, stage: str = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class FetchError(IngestionError):
    """The source document could not be retrieved."""

    stage = "fetch"


class SchemaError(IngestionError):
    """The target index could not be retrieved or created."""

    stage = "schema"
