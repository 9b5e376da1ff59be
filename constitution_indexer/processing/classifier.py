"""
Element Classifier - Assign a structural kind to each text block.

Walks the <p> blocks of the constitution in order and keeps track of the
open Título / Capítulo / Seção / Subseção and the active article:
- Boilerplate rejection (page headers, layout navigation, seal image)
- Ordered rule table, first match wins
- Article number extraction with single-block lookahead for empty captions
- Continuation fallback for unmatched substantive text

Classification never raises: a block that cannot be classified is logged
at DEBUG level and dropped.
"""

import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from .elements import ElementKind, HierarchicalContext, RawElement, TextBlock

logger = logging.getLogger(__name__)


BOILERPLATE_PHRASES = (
    "PRESIDÊNCIA DA REPÚBLICA",
    "CASA CIVIL",
    "Subchefia para Assuntos Jurídicos",
)

_WHITESPACE_RE = re.compile(r"\s+")

ARTICLE_TOKEN_RE = re.compile(r"^Art\.\s*\d+\s*[º°]?(?:-[A-Z]+)?\.?", re.IGNORECASE)
PARAGRAPH_TOKEN_RE = re.compile(
    r"^§\s*\d+\s*[º°]?(?:-[A-Z]+)?\.?|^(?i:par[áa]grafo\s+[úu]nico)\.?"
)
ITEM_TOKEN_RE = re.compile(r"^([IVXLCDM]+)(?:-[A-Z]+)?\s*[-–—]\s*|^(?i:inciso)\s+([IVXLCDM]+)\b")
SUBITEM_TOKEN_RE = re.compile(r"^([a-z])\)\s*")
DATE_PLACE_RE = re.compile(
    r"^Brasília,\s*(?:em\s+)?\d+\s*(?:º\s*)?de\s*[^\W\d_]+\s*de\s*\d{4}\.?",
    re.IGNORECASE,
)
DATE_PLACE_MARKER = "Brasília"
TRANSITIONAL_RE = re.compile(r"^ATO DAS DISPOSIÇÕES CONSTITUCIONAIS TRANSITÓRIAS", re.IGNORECASE)


@dataclass
class ClassifierConfig:
    """Configuration for the element classifier."""
    min_block_length: int = 3
    continuation_min_length: int = 10  # Shorter unmatched text is noise
    navigation_max_length: int = 100  # Layout-table link rows up to this size are dropped
    signature_lookahead: int = 8  # Blocks searched for the date line after a signature
    boilerplate_phrases: tuple[str, ...] = BOILERPLATE_PHRASES


@dataclass(frozen=True)
class ClassificationRule:
    """
    One entry of the ordered rule table.

    A rule matches when its pattern matches the normalized text, the
    rendering hints it requires are present and its extra predicate (if
    any) accepts the block together with the blocks that follow it.
    """
    kind: ElementKind
    pattern: Optional[re.Pattern] = None
    requires_emphasis: bool = False  # centered or bold
    requires_centered: bool = False
    search: bool = False  # pattern may match anywhere, not just at the start
    extra: Optional[Callable[[str, TextBlock, Sequence[TextBlock], ClassifierConfig], bool]] = None

    def matches(
        self,
        text: str,
        block: TextBlock,
        upcoming: Sequence[TextBlock],
        config: ClassifierConfig,
    ) -> bool:
        if self.requires_emphasis and not block.emphasized:
            return False
        if self.requires_centered and not block.centered:
            return False
        if self.pattern is not None:
            found = self.pattern.search(text) if self.search else self.pattern.match(text)
            if not found:
                return False
        if self.extra is not None and not self.extra(text, block, upcoming, config):
            return False
        return True


def _looks_like_signature(
    text: str,
    block: TextBlock,
    upcoming: Sequence[TextBlock],
    config: ClassifierConfig,
) -> bool:
    """All-caps names of 2-5 words followed shortly by the date line."""
    if text != text.upper() or not any(c.isalpha() for c in text):
        return False
    words = text.split(" ")
    if not 2 <= len(words) <= 5:
        return False
    window = upcoming[:config.signature_lookahead]
    return any(DATE_PLACE_MARKER in normalize_text(b.text) for b in window)


# Order is part of the contract: earlier rules win.
CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        ElementKind.AMENDMENT,
        re.compile(r"^EMENDA CONSTITUCIONAL Nº\s*\d+", re.IGNORECASE),
        requires_emphasis=True,
    ),
    ClassificationRule(ElementKind.TRANSITIONAL, TRANSITIONAL_RE, requires_emphasis=True),
    ClassificationRule(
        ElementKind.PREAMBLE,
        re.compile(r"^PREÂMBULO", re.IGNORECASE),
        requires_emphasis=True,
    ),
    ClassificationRule(ElementKind.TITLE, re.compile(r"^TÍTULO"), requires_emphasis=True),
    ClassificationRule(ElementKind.CHAPTER, re.compile(r"^CAPÍTULO"), requires_emphasis=True),
    ClassificationRule(
        ElementKind.SECTION,
        re.compile(r"^Seção\s", re.IGNORECASE),
        requires_emphasis=True,
    ),
    ClassificationRule(
        ElementKind.SUBSECTION,
        re.compile(r"^Subseção\s", re.IGNORECASE),
        requires_emphasis=True,
    ),
    ClassificationRule(ElementKind.ARTICLE, ARTICLE_TOKEN_RE),
    ClassificationRule(ElementKind.PARAGRAPH, PARAGRAPH_TOKEN_RE),
    # Items are upper-case roman numerals, sub-items lower-case letters,
    # so the two patterns never both match; items are still tried first.
    ClassificationRule(ElementKind.ITEM, ITEM_TOKEN_RE),
    ClassificationRule(ElementKind.SUBITEM, re.compile(r"^[a-z]\)\s+")),
    ClassificationRule(
        ElementKind.SIGNATURE,
        requires_centered=True,
        extra=_looks_like_signature,
    ),
    ClassificationRule(ElementKind.DATE_PLACE, DATE_PLACE_RE, requires_centered=True),
    ClassificationRule(
        ElementKind.PROMULGATION,
        re.compile(
            r"^Nós, representantes do povo brasileiro|A ASSEMBLEIA NACIONAL CONSTITUINTE",
            re.IGNORECASE,
        ),
        search=True,
    ),
)


@dataclass(frozen=True)
class ClassificationStep:
    """Outcome of classifying one block."""
    element: Optional[RawElement]
    context: HierarchicalContext
    absorbed_next: bool = False


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace (including non-breaking spaces)."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def is_boilerplate(block: TextBlock, text: str, config: ClassifierConfig) -> bool:
    """Check whether a normalized block should be dropped without output."""
    if not text or len(text) < config.min_block_length:
        return True
    upper = text.upper()
    if any(phrase.upper() in upper for phrase in config.boilerplate_phrases):
        return True
    if block.in_table and block.has_host_link and len(text) < config.navigation_max_length:
        return True
    if block.has_seal:
        return True
    return False


def match_rule(
    text: str,
    block: TextBlock,
    upcoming: Sequence[TextBlock],
    config: ClassifierConfig,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> Optional[ClassificationRule]:
    """Return the first rule that matches, or None."""
    for rule in rules:
        if rule.matches(text, block, upcoming, config):
            return rule
    return None


def extract_article_token(text: str) -> Optional[str]:
    """Return the leading "Art. Nº" token without its trailing period."""
    match = ARTICLE_TOKEN_RE.match(text)
    if not match:
        return None
    return match.group(0).rstrip(".").strip()


def strip_article_token(text: str) -> str:
    return ARTICLE_TOKEN_RE.sub("", text, count=1).strip()


def advance_context(
    context: HierarchicalContext,
    kind: ElementKind,
    text: str,
) -> HierarchicalContext:
    """Apply the context transition for a matched boundary or declaration."""
    if kind.is_declaration and kind != ElementKind.PROMULGATION:
        return context.enter_declaration(text)
    if kind == ElementKind.TITLE:
        return context.enter_title(text)
    if kind == ElementKind.CHAPTER:
        return context.enter_chapter(text)
    if kind == ElementKind.SECTION:
        return context.enter_section(text)
    if kind == ElementKind.SUBSECTION:
        return context.enter_subsection(text)
    return context


def classify_block(
    block: TextBlock,
    context: HierarchicalContext,
    upcoming: Sequence[TextBlock] = (),
    source_url: str = "",
    config: Optional[ClassifierConfig] = None,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> ClassificationStep:
    """
    Classify a single block against the rule table.

    Args:
        block: Block to classify
        context: Context produced by all previous blocks
        upcoming: Blocks that follow this one (bounded lookahead)
        source_url: Locator stored on the element
        config: Classifier configuration
        rules: Ordered rule table

    Returns:
        ClassificationStep with the element (or None), the next context and
        whether the following block was consumed as article text
    """
    config = config or ClassifierConfig()
    text = normalize_text(block.text)

    if is_boilerplate(block, text, config):
        return ClassificationStep(element=None, context=context)

    attributes = {"href": block.href} if block.has_link and block.href is not None else {}
    absorbed_next = False
    continuation = False

    rule = match_rule(text, block, upcoming, config, rules)
    kind = rule.kind if rule else None

    if kind == ElementKind.ARTICLE:
        token = extract_article_token(text)
        context = context.with_article(token)
        text = strip_article_token(text)
        if not text and upcoming:
            following = upcoming[0]
            following_text = normalize_text(following.text)
            if (
                not is_boilerplate(following, following_text, config)
                and match_rule(following_text, following, upcoming[1:], config, rules) is None
            ):
                text = following_text
                absorbed_next = True
        # The article is always emitted so references reset at every article
        text = text or token
    elif kind is not None:
        context = advance_context(context, kind, text)
    elif len(text) > config.continuation_min_length:
        kind = context.most_specific_kind()
        continuation = kind is not None

    if kind is None or not text:
        if kind is None:
            logger.debug(
                f"Unclassified text (block {block.position}, context: {context.to_dict()}): "
                f"{text[:100]}"
            )
        return ClassificationStep(element=None, context=context, absorbed_next=absorbed_next)

    element = RawElement(
        kind=kind,
        text=text,
        context=context,
        position=block.position,
        source_url=source_url,
        attributes=attributes,
        continuation=continuation,
    )
    return ClassificationStep(element=element, context=context, absorbed_next=absorbed_next)


class ElementClassifier:
    """
    Incremental classification fold.

    Owns the hierarchical context and a bounded window of pending blocks so
    that rules needing lookahead see the same following blocks whether the
    document arrives in one piece or in chunks.

    Usage:
        classifier = ElementClassifier(source_url=url)
        elements = classifier.feed(blocks)
        elements += classifier.finish()
    """

    def __init__(
        self,
        source_url: str = "",
        config: Optional[ClassifierConfig] = None,
        rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
    ):
        self.source_url = source_url
        self.config = config or ClassifierConfig()
        self.rules = rules
        self.context = HierarchicalContext()
        self._lookahead = max(1, self.config.signature_lookahead)
        self._pending: deque[TextBlock] = deque()
        self.blocks_seen = 0
        self.elements_emitted = 0

    def feed(self, blocks: Iterable[TextBlock]) -> list[RawElement]:
        """Queue blocks and classify those whose lookahead window is full."""
        elements = []
        for block in blocks:
            self._pending.append(block)
            self.blocks_seen += 1
            while len(self._pending) > self._lookahead:
                element = self._step()
                if element is not None:
                    elements.append(element)
        return elements

    def finish(self) -> list[RawElement]:
        """Classify the remaining blocks at the end of the document."""
        elements = []
        while self._pending:
            element = self._step()
            if element is not None:
                elements.append(element)
        return elements

    def _step(self) -> Optional[RawElement]:
        block = self._pending.popleft()
        step = classify_block(
            block,
            self.context,
            upcoming=list(self._pending),
            source_url=self.source_url,
            config=self.config,
            rules=self.rules,
        )
        self.context = step.context
        if step.absorbed_next:
            self._pending.popleft()
        if step.element is not None:
            self.elements_emitted += 1
        return step.element


def classify_blocks(
    blocks: Iterable[TextBlock],
    source_url: str = "",
    config: Optional[ClassifierConfig] = None,
) -> list[RawElement]:
    """Classify a complete block sequence in one pass."""
    classifier = ElementClassifier(source_url=source_url, config=config)
    elements = classifier.feed(blocks)
    elements.extend(classifier.finish())
    logger.info(
        f"Classification finished: {classifier.blocks_seen} blocks, "
        f"{len(elements)} elements"
    )
    if not elements:
        logger.warning("Classifier did not extract any elements. Review the source HTML structure.")
    return elements
