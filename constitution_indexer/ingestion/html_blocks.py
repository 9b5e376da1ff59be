"""
HTML block extraction for the Planalto constitution page.

Turns the page (or a tag-safe fragment of it) into an ordered list of
TextBlock objects, one per <p>, with the rendering hints the classifier
relies on:
- centered (align attribute, inline style or a wrapping <center>)
- bold (<b> / <strong> inside the paragraph)
- first hyperlink target
- layout-table membership, links back to the publishing host, seal image
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

from ..processing.elements import TextBlock

logger = logging.getLogger(__name__)

DEFAULT_HOST_MARKER = "planalto.gov.br"
SEAL_IMAGE_MARKER = "brasao"

_CENTER_STYLE_RE = re.compile(r"text-align\s*:\s*center", re.IGNORECASE)


def _is_centered(element: Tag) -> bool:
    if (element.get("align") or "").strip().lower() == "center":
        return True
    if _CENTER_STYLE_RE.search(element.get("style") or ""):
        return True
    parent = element.parent
    return isinstance(parent, Tag) and parent.name == "center"


def _owns(element: Tag, node) -> bool:
    # An unclosed <p> swallows every following <p> under html.parser
    return node.find_parent("p") is element


def _own_tags(element: Tag, names) -> list[Tag]:
    return [tag for tag in element.find_all(names) if _owns(element, tag)]


def _own_text(element: Tag) -> str:
    return "".join(s for s in element.strings if _owns(element, s))


def _first_href(anchors: list[Tag]) -> Optional[str]:
    if not anchors:
        return None
    return anchors[0].get("href") or ""


def block_from_element(
    element: Tag,
    position: int,
    host_marker: str = DEFAULT_HOST_MARKER,
) -> TextBlock:
    """Build a TextBlock from a parsed <p> element."""
    anchors = _own_tags(element, "a")
    href = _first_href(anchors)
    has_host_link = any(host_marker in (a.get("href") or "") for a in anchors)
    has_seal = any(
        SEAL_IMAGE_MARKER in (img.get("src") or "")
        for img in _own_tags(element, "img")
    )

    return TextBlock(
        text=_own_text(element),
        position=position,
        centered=_is_centered(element),
        bold=bool(_own_tags(element, ["b", "strong"])),
        has_link=bool(anchors),
        href=href,
        in_table=element.find_parent("table") is not None,
        has_host_link=has_host_link,
        has_seal=has_seal,
    )


def extract_blocks(
    html: str,
    start_position: int = 1,
    host_marker: str = DEFAULT_HOST_MARKER,
) -> list[TextBlock]:
    """
    Extract every <p> of an HTML document or fragment, in document order.

    Args:
        html: HTML text (whole page or a chunk ending on a block boundary)
        start_position: Position assigned to the first block
        host_marker: Substring identifying links back to the publishing site

    Returns:
        List of TextBlock objects with consecutive positions
    """
    soup = BeautifulSoup(html, "html.parser")
    blocks = []
    for offset, element in enumerate(soup.find_all("p")):
        blocks.append(block_from_element(element, start_position + offset, host_marker))
    return blocks
