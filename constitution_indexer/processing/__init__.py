"""Element classification, reference building and tagging."""

from .elements import (
    ElementKind,
    HierarchicalContext,
    IndexedDocument,
    RawElement,
    TextBlock,
)
from .classifier import (
    CLASSIFICATION_RULES,
    ClassificationRule,
    ClassifierConfig,
    ElementClassifier,
    classify_block,
    classify_blocks,
)
from .reference_builder import (
    ReferenceBuilder,
    ReferenceConfig,
    make_document_id,
    transform_elements,
)
from .tagging import DEFAULT_VOCABULARY, KeywordTagger, Tag

__all__ = [
    "ElementKind",
    "HierarchicalContext",
    "IndexedDocument",
    "RawElement",
    "TextBlock",
    "CLASSIFICATION_RULES",
    "ClassificationRule",
    "ClassifierConfig",
    "ElementClassifier",
    "classify_block",
    "classify_blocks",
    "ReferenceBuilder",
    "ReferenceConfig",
    "make_document_id",
    "transform_elements",
    "DEFAULT_VOCABULARY",
    "KeywordTagger",
    "Tag",
]
