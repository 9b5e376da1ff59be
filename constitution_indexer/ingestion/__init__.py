"""Source document ingestion: fetch, cache, block extraction, streaming parse."""

from .html_blocks import extract_blocks, block_from_element
from .html_cache import CacheConfig, HtmlCache, cache_key
from .streaming_parser import StreamingConfig, StreamingHtmlParser, iter_html_chunks
from .web_scraper import CONSTITUTION_URL, ConstitutionFetcher, FetchConfig

__all__ = [
    "extract_blocks",
    "block_from_element",
    "CacheConfig",
    "HtmlCache",
    "cache_key",
    "StreamingConfig",
    "StreamingHtmlParser",
    "iter_html_chunks",
    "CONSTITUTION_URL",
    "ConstitutionFetcher",
    "FetchConfig",
]
