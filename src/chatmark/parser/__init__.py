"""Parser package."""

from .base import (
    CitationNode,
    CodeBlock,
    ElementNode,
    Extraction,
    MathBlock,
    MathNode,
    ReasoningBlock,
    ReasoningNode,
    RenderNode,
    RenderOutput,
    SemanticCitationNode,
    SourceInfo,
    TextNode,
    WidgetNode,
)
from .blocks import classify, extract
from .citations import CitationResolver, cited_sources, number_sources, parse_citations
from .tree import TreeBuilder

__all__ = [
    "CitationNode",
    "CodeBlock",
    "ElementNode",
    "Extraction",
    "MathBlock",
    "MathNode",
    "ReasoningBlock",
    "ReasoningNode",
    "RenderNode",
    "RenderOutput",
    "SemanticCitationNode",
    "SourceInfo",
    "TextNode",
    "WidgetNode",
    "classify",
    "extract",
    "CitationResolver",
    "cited_sources",
    "number_sources",
    "parse_citations",
    "TreeBuilder",
]
