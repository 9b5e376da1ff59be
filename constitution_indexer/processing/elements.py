"""
Element types shared by the classifier and the reference builder.

- ElementKind: closed set of structural kinds (values are the index labels)
- TextBlock: one normalized <p> block with its rendering hints
- HierarchicalContext: active ancestor labels, immutable per step
- RawElement: one classified block
- IndexedDocument: one flat searchable unit
"""

from dataclasses import dataclass, field, replace, asdict
from enum import Enum
from typing import Optional


class ElementKind(str, Enum):
    """Structural kind of a classified block."""
    TITLE = "Título"
    CHAPTER = "Capítulo"
    SECTION = "Seção"
    SUBSECTION = "Subseção"

    PREAMBLE = "Preâmbulo"
    PROMULGATION = "TextoPromulgado"
    AMENDMENT = "EmendaConstitucional"
    TRANSITIONAL = "ADCT"
    TRANSITIONAL_ARTICLE = "ADCTArtigo"

    ARTICLE = "Artigo"
    PARAGRAPH = "Parágrafo"
    ITEM = "Inciso"
    SUBITEM = "Alínea"

    SIGNATURE = "Assinatura"
    DATE_PLACE = "LocalData"

    @property
    def is_boundary(self) -> bool:
        return self in _BOUNDARY_KINDS

    @property
    def is_declaration(self) -> bool:
        return self in _DECLARATION_KINDS

    @property
    def is_content(self) -> bool:
        return self in _CONTENT_KINDS

    @property
    def is_terminal(self) -> bool:
        return self in (ElementKind.SIGNATURE, ElementKind.DATE_PLACE)


_BOUNDARY_KINDS = frozenset({
    ElementKind.TITLE,
    ElementKind.CHAPTER,
    ElementKind.SECTION,
    ElementKind.SUBSECTION,
})

_DECLARATION_KINDS = frozenset({
    ElementKind.PREAMBLE,
    ElementKind.PROMULGATION,
    ElementKind.AMENDMENT,
    ElementKind.TRANSITIONAL,
})

_CONTENT_KINDS = frozenset({
    ElementKind.ARTICLE,
    ElementKind.PARAGRAPH,
    ElementKind.ITEM,
    ElementKind.SUBITEM,
    ElementKind.TRANSITIONAL_ARTICLE,
})


@dataclass(frozen=True)
class TextBlock:
    """A <p> block from the source HTML with rendering hints."""
    text: str
    position: int  # 1-based, counts every <p> in the document
    centered: bool = False
    bold: bool = False
    has_link: bool = False
    href: Optional[str] = None
    in_table: bool = False
    has_host_link: bool = False  # link back to the publishing site
    has_seal: bool = False  # coat of arms image in the page header

    @property
    def emphasized(self) -> bool:
        return self.centered or self.bold


@dataclass(frozen=True)
class HierarchicalContext:
    """
    Labels of the currently open ancestors.

    Every transition returns a new context. Entering a level clears all
    levels below it, so a new chapter drops section, subsection and article.
    """
    title: Optional[str] = None
    chapter: Optional[str] = None
    section: Optional[str] = None
    subsection: Optional[str] = None
    article_number: Optional[str] = None

    def enter_title(self, label: str) -> "HierarchicalContext":
        return HierarchicalContext(title=label)

    def enter_declaration(self, label: str) -> "HierarchicalContext":
        # Preamble, amendments and the transitional act open a new top level
        return HierarchicalContext(title=label)

    def enter_chapter(self, label: str) -> "HierarchicalContext":
        return replace(self, chapter=label, section=None, subsection=None, article_number=None)

    def enter_section(self, label: str) -> "HierarchicalContext":
        return replace(self, section=label, subsection=None, article_number=None)

    def enter_subsection(self, label: str) -> "HierarchicalContext":
        return replace(self, subsection=label, article_number=None)

    def with_article(self, article_number: str) -> "HierarchicalContext":
        return replace(self, article_number=article_number)

    def most_specific_kind(self) -> Optional[ElementKind]:
        """
        Kind of the deepest open level, used for continuation text.

        The article is checked first on purpose: an open article owns the
        running text even inside a subsection.
        """
        if self.article_number:
            return ElementKind.ARTICLE
        if self.subsection:
            return ElementKind.SUBSECTION
        if self.section:
            return ElementKind.SECTION
        if self.chapter:
            return ElementKind.CHAPTER
        if self.title:
            return ElementKind.TITLE
        return None

    def labels(self) -> list[str]:
        """Open boundary captions, outermost first."""
        return [
            label
            for label in (self.title, self.chapter, self.section, self.subsection)
            if label
        ]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RawElement:
    """One classified text block. Never mutated after classification."""
    kind: ElementKind
    text: str
    context: HierarchicalContext
    position: int
    source_url: str
    attributes: dict = field(default_factory=dict)
    continuation: bool = False  # kind guessed from the open context

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "text": self.text,
            "context": self.context.to_dict(),
            "position": self.position,
            "source_url": self.source_url,
            "attributes": dict(self.attributes),
            "continuation": self.continuation,
        }


@dataclass
class IndexedDocument:
    """A flat, uniquely identified unit ready for the search index."""
    id: str
    kind: ElementKind
    full_reference: str
    text: str
    hierarchical_text_context: str
    source_url: str
    last_indexed_at: int
    number: Optional[str] = None
    parent_title: Optional[str] = None
    parent_chapter: Optional[str] = None
    parent_section: Optional[str] = None
    parent_subsection: Optional[str] = None
    parent_article_number: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    position: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "number": self.number,
            "full_reference": self.full_reference,
            "text": self.text,
            "hierarchical_text_context": self.hierarchical_text_context,
            "parent_title": self.parent_title,
            "parent_chapter": self.parent_chapter,
            "parent_section": self.parent_section,
            "parent_subsection": self.parent_subsection,
            "parent_article_number": self.parent_article_number,
            "source_url": self.source_url,
            "last_indexed_at": self.last_indexed_at,
            "tags": list(self.tags),
            "position": self.position,
        }
