"""
Reference Builder - Turn classified elements into indexable documents.

For every RawElement (in order) it derives:
- The full hierarchical reference ("TÍTULO I, CAPÍTULO I, Art. 1º, § 2º")
- The numbering token (article, paragraph, inciso, alínea)
- The hierarchical text context used for contextual search
- Parent fields, keyword tags and a deterministic identifier

Signature blocks and date/place lines are consumed without output.
"""

import logging
import re
import time
import unicodedata
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .classifier import (
    ARTICLE_TOKEN_RE,
    ITEM_TOKEN_RE,
    PARAGRAPH_TOKEN_RE,
    SUBITEM_TOKEN_RE,
    TRANSITIONAL_RE,
    extract_article_token,
    strip_article_token,
)
from .elements import ElementKind, HierarchicalContext, IndexedDocument, RawElement
from .tagging import KeywordTagger

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]+")


@dataclass
class ReferenceConfig:
    """Configuration for reference building."""
    id_prefix: str = "const"
    max_id_length: int = 512
    reference_separator: str = ", "
    context_separator: str = " | "
    unknown_label: str = "Desconhecido"  # Missing ancestor of a boundary


@dataclass
class _ReferenceState:
    """Reference chain carried from one element to the next."""
    base: list[str] = field(default_factory=list)
    paragraph: Optional[str] = None
    item: Optional[str] = None
    subitem: Optional[str] = None
    last_article_number: Optional[str] = None
    article_captions: dict[tuple, str] = field(default_factory=dict)

    def reset(self, parts: list[str]):
        self.base = parts
        self.paragraph = self.item = self.subitem = None
        self.last_article_number = None

    def set_paragraph(self, token: str):
        self.paragraph = token
        self.item = self.subitem = None

    def set_item(self, token: str):
        self.item = token
        self.subitem = None

    def set_subitem(self, token: str):
        self.subitem = token

    def parts(self) -> list[str]:
        return self.base + [p for p in (self.paragraph, self.item, self.subitem) if p]


def make_document_id(
    full_reference: str,
    position: int,
    prefix: str = "const",
    max_length: int = 512,
) -> str:
    """
    Build a stable identifier from the reference and the block position.

    Accents are folded to ASCII, every other non-alphanumeric run becomes a
    single dash and the result is lower-cased. The reference part is cut
    so that the position suffix always survives truncation.
    """
    folded = unicodedata.normalize("NFKD", full_reference).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM_RE.sub("-", folded).strip("-").lower()
    head = f"{prefix}-"
    suffix = f"-{position}"
    room = max(0, max_length - len(head) - len(suffix))
    slug = slug[:room].rstrip("-")
    if not slug:
        return f"{prefix}{suffix}"[:max_length]
    return f"{head}{slug}{suffix}"


def _caption_key(context: HierarchicalContext, article_number: str) -> tuple:
    # Article numbers repeat across the transitional act and amendments
    return (*context.labels(), article_number)


def _in_transitional_act(context: HierarchicalContext) -> bool:
    return bool(context.title and TRANSITIONAL_RE.match(context.title))


class ReferenceBuilder:
    """
    Build IndexedDocument objects from an ordered RawElement sequence.

    Usage:
        builder = ReferenceBuilder()
        documents = builder.build(elements)
    """

    def __init__(
        self,
        config: Optional[ReferenceConfig] = None,
        tagger: Optional[KeywordTagger] = None,
    ):
        self.config = config or ReferenceConfig()
        self.tagger = tagger or KeywordTagger()

    def build(
        self,
        elements: Iterable[RawElement],
        now: Optional[int] = None,
    ) -> list[IndexedDocument]:
        """
        Transform elements into documents, preserving order.

        Args:
            elements: Ordered elements from the classifier
            now: Unix timestamp stored as last_indexed_at (defaults to now)

        Returns:
            Ordered list of IndexedDocument objects
        """
        indexed_at = int(time.time()) if now is None else now
        state = _ReferenceState()
        documents = []
        skipped = 0

        for element in elements:
            document = self._build_one(element, state, indexed_at)
            if document is None:
                skipped += 1
                continue
            documents.append(document)

        logger.info(f"Transformed {len(documents)} documents ({skipped} elements without output)")
        return documents

    def _boundary_parts(self, element: RawElement) -> list[str]:
        ctx = element.context
        unknown = self.config.unknown_label
        # Continuation text keeps the reference of the level it continues
        own = element.text
        if element.continuation:
            own = {
                ElementKind.TITLE: ctx.title,
                ElementKind.CHAPTER: ctx.chapter,
                ElementKind.SECTION: ctx.section,
                ElementKind.SUBSECTION: ctx.subsection,
            }[element.kind] or element.text

        if element.kind == ElementKind.TITLE:
            return [own]
        if element.kind == ElementKind.CHAPTER:
            return [ctx.title or unknown, own]
        if element.kind == ElementKind.SECTION:
            return [ctx.title or unknown, ctx.chapter or unknown, own]
        return [ctx.title or unknown, ctx.chapter or unknown, ctx.section or unknown, own]

    def _build_one(
        self,
        element: RawElement,
        state: _ReferenceState,
        indexed_at: int,
    ) -> Optional[IndexedDocument]:
        kind = element.kind
        ctx = element.context
        text = element.text
        doc_kind = kind
        doc_text = text
        number: Optional[str] = None

        if kind.is_terminal:
            logger.debug(f"Skipping transformation for {kind.value}: {text[:50]}")
            return None

        if kind.is_boundary:
            state.reset(self._boundary_parts(element))

        elif kind.is_declaration:
            state.reset([text])
            if kind == ElementKind.TRANSITIONAL and ARTICLE_TOKEN_RE.match(text):
                doc_kind = ElementKind.TRANSITIONAL_ARTICLE
                number = extract_article_token(text)
                state.base.append(number)
                doc_text = strip_article_token(text)

        elif kind == ElementKind.ARTICLE:
            number = ctx.article_number or extract_article_token(text)
            # Continuation text stays under the open paragraph, item and sub-item
            if number and not element.continuation:
                state.reset([*ctx.labels(), number])
                state.last_article_number = number
                if text != number:
                    state.article_captions.setdefault(_caption_key(ctx, number), text)
            if _in_transitional_act(ctx):
                doc_kind = ElementKind.TRANSITIONAL_ARTICLE

        elif kind == ElementKind.PARAGRAPH:
            match = PARAGRAPH_TOKEN_RE.match(text)
            if match:
                number = match.group(0).rstrip(".").strip()
                state.set_paragraph(number)
                doc_text = text[match.end():].strip()

        elif kind == ElementKind.ITEM:
            match = ITEM_TOKEN_RE.match(text)
            if match:
                number = match.group(1) or match.group(2)
                state.set_item(f"Inciso {number}")
                doc_text = text[match.end():].strip()

        elif kind == ElementKind.SUBITEM:
            match = SUBITEM_TOKEN_RE.match(text)
            if match:
                number = match.group(1)
                state.set_subitem(f"Alínea {number}")
                doc_text = text[match.end():].strip()

        full_reference = self.config.reference_separator.join(
            part for part in state.parts() if part and part.strip()
        )

        is_article = doc_kind in (ElementKind.ARTICLE, ElementKind.TRANSITIONAL_ARTICLE)
        parent_article = None if is_article else (ctx.article_number or state.last_article_number)

        return IndexedDocument(
            id=make_document_id(
                full_reference,
                element.position,
                prefix=self.config.id_prefix,
                max_length=self.config.max_id_length,
            ),
            kind=doc_kind,
            number=number.strip() if number else None,
            full_reference=full_reference,
            text=doc_text,
            hierarchical_text_context=self._context_text(element, state),
            parent_title=ctx.title,
            parent_chapter=ctx.chapter,
            parent_section=ctx.section,
            parent_subsection=ctx.subsection,
            parent_article_number=parent_article,
            source_url=element.source_url,
            last_indexed_at=indexed_at,
            tags=self.tagger.tag(text, ctx),
            position=element.position,
        )

    def _context_text(self, element: RawElement, state: _ReferenceState) -> str:
        """Ancestor captions, the owning article's caption and the element text."""
        ctx = element.context
        parts = ctx.labels()
        if element.kind != ElementKind.ARTICLE and ctx.article_number:
            caption = state.article_captions.get(_caption_key(ctx, ctx.article_number))
            if caption:
                parts.append(caption)
        parts.append(element.text)
        return self.config.context_separator.join(parts)


def transform_elements(
    elements: Iterable[RawElement],
    config: Optional[ReferenceConfig] = None,
    now: Optional[int] = None,
) -> list[IndexedDocument]:
    """Build documents with the default tagger."""
    return ReferenceBuilder(config=config).build(elements, now=now)
