"""
Keyword tags for indexed documents.

Tags come from two sources only:
- The first characters of the active Título and Capítulo labels
- Literal, case-insensitive keyword matches from a fixed vocabulary
"""

from dataclasses import dataclass, field
from typing import Optional

from .elements import HierarchicalContext


@dataclass(frozen=True)
class Tag:
    """A controlled-vocabulary tag and the phrases that trigger it."""
    name: str
    keywords: tuple[str, ...] = field(default_factory=tuple)


DEFAULT_VOCABULARY: tuple[Tag, ...] = (
    # Rights
    Tag("Direitos Fundamentais", ("direitos e garantias fundamentais",)),
    Tag("Direitos Sociais", ("direitos sociais",)),
    # Writs
    Tag("Habeas Corpus", ("habeas corpus",)),
    Tag("Habeas Data", ("habeas data",)),
    Tag("Mandado de Segurança", ("mandado de segurança",)),
    Tag("Mandado de Injunção", ("mandado de injunção",)),
    Tag("Ação Popular", ("ação popular",)),
    # Branches of government
    Tag("Poder Legislativo", ("poder legislativo",)),
    Tag("Poder Executivo", ("poder executivo",)),
    Tag("Poder Judiciário", ("poder judiciário",)),
    # Policy domains
    Tag("Ordem Econômica", ("ordem econômica e financeira",)),
    Tag("Meio Ambiente", ("meio ambiente",)),
    Tag("Seguridade Social", ("seguridade social",)),
    Tag("Educação", ("educação",)),
    Tag("Saúde", ("saúde",)),
)


class KeywordTagger:
    """
    Assign tags to a document from its text and hierarchical context.

    Usage:
        tagger = KeywordTagger()
        tags = tagger.tag("conceder-se-á habeas corpus ...", context)
    """

    def __init__(
        self,
        vocabulary: Optional[tuple[Tag, ...]] = None,
        label_chars: int = 50,
    ):
        self.vocabulary = vocabulary if vocabulary is not None else DEFAULT_VOCABULARY
        self.label_chars = label_chars

    def match_keywords(self, text: str) -> list[str]:
        """Return vocabulary tags whose keywords occur literally in the text."""
        text_lower = text.lower()
        return [
            tag.name
            for tag in self.vocabulary
            if any(kw.lower() in text_lower for kw in tag.keywords)
        ]

    def tag(self, text: str, context: HierarchicalContext) -> list[str]:
        tags: dict[str, None] = {}
        for label in (context.title, context.chapter):
            if label:
                tags[label[:self.label_chars]] = None
        for name in self.match_keywords(text):
            tags[name] = None
        return list(tags)

    def __repr__(self) -> str:
        return f"KeywordTagger(tags={len(self.vocabulary)}, label_chars={self.label_chars})"
