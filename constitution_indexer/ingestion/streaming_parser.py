"""
Streaming HTML Parser - Classify a large page chunk by chunk.

Splits the HTML into tag-safe chunks and feeds the blocks of each chunk
into a single ElementClassifier, so the hierarchical context and the block
counter carry across chunk boundaries. The elements produced are the same
as those of the one-pass path; only peak memory differs.

Features:
- Chunks end right before a <p> that sits outside any <table>/<center>
- Progress callback with processed vs. total bytes after every chunk
- Warning when resident memory exceeds the configured ceiling
"""

import logging
import re
import sys
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

try:
    import resource
except ImportError:  # not available on Windows
    resource = None

from ..processing.classifier import ClassifierConfig, ElementClassifier
from ..processing.elements import RawElement
from .html_blocks import DEFAULT_HOST_MARKER, extract_blocks

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<(/?)(p|table|center)\b[^>]*>", re.IGNORECASE)
_CONTAINER_TAGS = ("table", "center")


@dataclass
class StreamingConfig:
    """Configuration for streaming parsing."""
    chunk_size: int = 8192  # 8KB chunks
    max_memory_bytes: int = 50 * 1024 * 1024  # 50MB
    host_marker: str = DEFAULT_HOST_MARKER


def safe_boundaries(html: str) -> list[int]:
    """
    Offsets where the HTML can be cut without splitting a tag or a block.

    A boundary is the start of a <p> opening tag that is not nested in a
    <table> or <center> element.
    """
    boundaries = []
    depth = {name: 0 for name in _CONTAINER_TAGS}
    for match in _TAG_RE.finditer(html):
        closing, name = match.group(1), match.group(2).lower()
        if name in depth:
            if closing:
                depth[name] = max(0, depth[name] - 1)
            else:
                depth[name] += 1
        elif not closing and not any(depth.values()):
            boundaries.append(match.start())
    return boundaries


def iter_html_chunks(html: str, chunk_size: int) -> Iterator[str]:
    """
    Yield consecutive chunks of the HTML, each at least chunk_size long
    (except the last), extended forward to the next safe boundary.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    boundaries = safe_boundaries(html)
    start = 0
    index = 0
    while start < len(html):
        target = start + chunk_size
        while index < len(boundaries) and boundaries[index] < target:
            index += 1
        end = boundaries[index] if index < len(boundaries) else len(html)
        yield html[start:end]
        start = end


def current_memory_bytes() -> int:
    """Peak resident set size of this process, in bytes (0 if unknown)."""
    if resource is None:
        return 0
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes
    return usage if sys.platform == "darwin" else usage * 1024


class StreamingHtmlParser:
    """
    Classify a constitution page chunk by chunk.

    Usage:
        parser = StreamingHtmlParser(StreamingConfig(chunk_size=8192))
        elements = parser.parse(html, source_url, on_progress=print)
    """

    def __init__(
        self,
        config: Optional[StreamingConfig] = None,
        classifier_config: Optional[ClassifierConfig] = None,
        memory_probe: Callable[[], int] = current_memory_bytes,
    ):
        self.config = config or StreamingConfig()
        self.classifier_config = classifier_config or ClassifierConfig()
        self._memory_probe = memory_probe

    def parse(
        self,
        html: str,
        source_url: str,
        on_progress: Optional[Callable[[int, int], None]] = None,
        on_element: Optional[Callable[[RawElement], None]] = None,
    ) -> list[RawElement]:
        """
        Parse the HTML in chunks.

        Args:
            html: Full page HTML
            source_url: Locator stored on every element
            on_progress: Called with (processed_bytes, total_bytes) after each chunk
            on_element: Called with every element as soon as it is classified

        Returns:
            Ordered list of RawElement objects
        """
        logger.info(f"Starting streaming HTML parsing with chunk size {self.config.chunk_size}")

        classifier = ElementClassifier(source_url=source_url, config=self.classifier_config)
        total_bytes = len(html.encode("utf-8"))
        processed_bytes = 0
        next_position = 1
        chunk_count = 0
        results: list[RawElement] = []

        for chunk in iter_html_chunks(html, self.config.chunk_size):
            chunk_count += 1
            blocks = extract_blocks(chunk, start_position=next_position, host_marker=self.config.host_marker)
            next_position += len(blocks)

            for element in classifier.feed(blocks):
                self._emit(element, results, on_element)

            processed_bytes += len(chunk.encode("utf-8"))
            if on_progress:
                on_progress(processed_bytes, total_bytes)
            self._check_memory(chunk_count)

        for element in classifier.finish():
            self._emit(element, results, on_element)

        logger.info(
            f"Streaming HTML parsing completed: {chunk_count} chunks, "
            f"{next_position - 1} blocks, {len(results)} elements"
        )
        return results

    @staticmethod
    def _emit(
        element: RawElement,
        results: list[RawElement],
        on_element: Optional[Callable[[RawElement], None]],
    ):
        if on_element:
            on_element(element)
        results.append(element)

    def _check_memory(self, chunk_number: int):
        used = self._memory_probe()
        if used > self.config.max_memory_bytes:
            logger.warning(
                f"Memory usage ({used} bytes) exceeds limit "
                f"({self.config.max_memory_bytes} bytes) after chunk {chunk_number}"
            )
