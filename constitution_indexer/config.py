"""
Pipeline configuration.

Each component owns a dataclass config; PipelineConfig aggregates them.
Values come from config/config.yaml (one section per component) and are
then overridden by environment variables.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .indexing.engine import IndexEngineConfig
from .indexing.schema import DEFAULT_COLLECTION_NAME
from .ingestion.html_cache import CacheConfig
from .ingestion.streaming_parser import StreamingConfig
from .ingestion.web_scraper import FetchConfig
from .processing.classifier import ClassifierConfig
from .processing.reference_builder import ReferenceConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"


@dataclass
class IndexingConfig:
    """Configuration for the indexing run."""
    collection_name: str = DEFAULT_COLLECTION_NAME
    batch_size: int = 200
    streaming: bool = False  # Classify the page chunk by chunk


@dataclass
class PipelineConfig:
    """All component configurations for one ingestion run."""
    fetch: FetchConfig = field(default_factory=FetchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    reference: ReferenceConfig = field(default_factory=ReferenceConfig)
    engine: IndexEngineConfig = field(default_factory=IndexEngineConfig)
    indexing: IndexingConfig = field(default_factory=IndexingConfig)


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# (environment variable, section, attribute, converter)
ENV_OVERRIDES = [
    ("CONSTITUTION_URL", "fetch", "url", str),
    ("FETCH_TIMEOUT_SECONDS", "fetch", "timeout_seconds", int),
    ("CONSTITUTION_COLLECTION_NAME", "indexing", "collection_name", str),
    ("INDEXING_BATCH_SIZE", "indexing", "batch_size", int),
    ("STREAMING_CHUNK_SIZE", "streaming", "chunk_size", int),
    ("STREAMING_MAX_MEMORY_BYTES", "streaming", "max_memory_bytes", int),
    ("CHROMA_PERSIST_DIR", "engine", "persist_directory", str),
    ("CHROMA_HOST", "engine", "host", str),
    ("CHROMA_PORT", "engine", "port", int),
    ("HTML_CACHE_ENABLED", "cache", "enabled", _to_bool),
    ("HTML_CACHE_DIR", "cache", "cache_dir", str),
    ("HTML_CACHE_TTL_SECONDS", "cache", "ttl_seconds", int),
]

# YAML uses "index" for the engine section
_YAML_SECTIONS = {
    "fetch": ("fetch", FetchConfig),
    "cache": ("cache", CacheConfig),
    "classifier": ("classifier", ClassifierConfig),
    "streaming": ("streaming", StreamingConfig),
    "reference": ("reference", ReferenceConfig),
    "index": ("engine", IndexEngineConfig),
    "indexing": ("indexing", IndexingConfig),
}


def _build_section(cls, data: Optional[dict]):
    """Instantiate a config dataclass from a YAML mapping, ignoring unknown keys."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
    values = {k: v for k, v in data.items() if k in known}
    for key in ("boilerplate_phrases",):
        if key in values and isinstance(values[key], list):
            values[key] = tuple(values[key])
    return cls(**values)


def apply_env_overrides(config: PipelineConfig, environ: Optional[dict] = None) -> PipelineConfig:
    """Override config values from environment variables that are set."""
    environ = os.environ if environ is None else environ
    for var, section, attribute, convert in ENV_OVERRIDES:
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {var}: {raw!r}")
            continue
        setattr(getattr(config, section), attribute, value)
    return config


def load_config(path: Optional[str] = None, environ: Optional[dict] = None) -> PipelineConfig:
    """
    Load the pipeline configuration.

    Args:
        path: YAML file (defaults to config/config.yaml; missing file means defaults)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        PipelineConfig with environment overrides applied
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    raw = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        logger.debug(f"Loaded configuration from {config_path}")
    elif path:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    sections = {}
    for yaml_key, (attribute, cls) in _YAML_SECTIONS.items():
        sections[attribute] = _build_section(cls, raw.get(yaml_key))

    return apply_env_overrides(PipelineConfig(**sections), environ)
