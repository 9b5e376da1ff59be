"""
Constitution indexer.

Fetches the Brazilian Federal Constitution from Planalto, classifies its
HTML blocks into a hierarchy (títulos, capítulos, artigos, parágrafos,
incisos, alíneas), builds addressable search documents and loads them into
a Chroma collection.
"""

from .config import PipelineConfig, load_config
from .errors import FetchError, IngestionError, SchemaError
from .pipeline import ConstitutionPipeline, IngestionReport

__version__ = "0.1.0"

__all__ = [
    "PipelineConfig",
    "load_config",
    "FetchError",
    "IngestionError",
    "SchemaError",
    "ConstitutionPipeline",
    "IngestionReport",
]
