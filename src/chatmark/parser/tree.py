"""Build a RenderNode tree from compiled HTML and the extraction side tables."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .base import (
    ElementNode,
    Extraction,
    MathNode,
    MathRenderer,
    ReasoningNode,
    RenderNode,
    TextNode,
    WidgetNode,
)
from .blocks import CODE_ATTR, MATH_ATTR, THINK_ATTR
from .citations import CitationResolver

logger = logging.getLogger(__name__)

# Citation tokens inside these are code or math, not references.
_LITERAL_TAGS = frozenset({"code", "pre", "kbd", "samp"})
_LITERAL_CLASSES = frozenset({"math"})


class TreeBuilder:
    """Walk compiled HTML depth-first, swapping placeholders for resolved nodes."""

    def __init__(
        self,
        extraction: Extraction,
        *,
        render_math: MathRenderer,
        resolver: CitationResolver | None = None,
    ) -> None:
        self._math = {block.id: block for block in extraction.math_blocks}
        self._reasoning = {block.id: block for block in extraction.reasoning_blocks}
        self._code = {block.id: block for block in extraction.specialized_blocks}
        self._render_math = render_math
        self._resolver = resolver
        self._orphans: set[str] = set()

    def build(self, html: str) -> list[RenderNode]:
        soup = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)
        return self._children(soup, literal=False)

    def _children(self, parent: Tag, *, literal: bool) -> list[RenderNode]:
        nodes: list[RenderNode] = []
        for child in parent.children:
            nodes.extend(self._convert(child, literal=literal))
        return nodes

    def _convert(self, node, *, literal: bool) -> list[RenderNode]:
        if isinstance(node, PreformattedString):
            return []
        if isinstance(node, NavigableString):
            return self._text(str(node), literal=literal)
        if not isinstance(node, Tag):
            return []

        placeholder = self._placeholder(node)
        if placeholder is not None:
            return placeholder

        literal = literal or _is_literal(node)
        return [
            ElementNode(
                tag=node.name,
                attributes=normalize_attributes(node.attrs),
                children=self._children(node, literal=literal),
            )
        ]

    def _text(self, value: str, *, literal: bool) -> list[RenderNode]:
        if not value:
            return []
        if self._resolver is None or literal:
            return [TextNode(value)]
        return self._resolver.resolve(value)

    def _placeholder(self, tag: Tag) -> list[RenderNode] | None:
        if MATH_ATTR in tag.attrs:
            block_id = tag.attrs[MATH_ATTR]
            block = self._math.get(block_id)
            if block is None:
                return self._orphan(block_id)
            try:
                markup = self._render_math(block.latex, block.display)
                return [MathNode(markup=markup, display=block.display)]
            except Exception as exc:
                logger.warning("Math block %s rendered as source: %s", block_id, exc)
                return [TextNode(f"$${block.latex}$$")]

        if THINK_ATTR in tag.attrs:
            block_id = tag.attrs[THINK_ATTR]
            block = self._reasoning.get(block_id)
            if block is None:
                return self._orphan(block_id)
            return [ReasoningNode(content=block.content, is_incomplete=block.is_incomplete)]

        if CODE_ATTR in tag.attrs:
            block_id = tag.attrs[CODE_ATTR]
            block = self._code.get(block_id)
            if block is None:
                return self._orphan(block_id)
            return [
                WidgetNode(
                    code=block.code,
                    specialized_type=block.specialized_type,
                    language=block.language,
                    is_incomplete=block.is_incomplete,
                )
            ]

        return None

    def _orphan(self, block_id: str) -> list[RenderNode]:
        if block_id not in self._orphans:
            self._orphans.add(block_id)
            logger.warning("Placeholder %r has no extracted block; dropping it", block_id)
        return []


def _is_literal(tag: Tag) -> bool:
    if tag.name in _LITERAL_TAGS:
        return True
    classes = tag.attrs.get("class") or ""
    return not _LITERAL_CLASSES.isdisjoint(classes.split())


def normalize_attributes(attrs: dict[str, str]) -> dict[str, str | dict[str, str]]:
    normalized: dict[str, str | dict[str, str]] = {}
    for name, value in attrs.items():
        if isinstance(value, list):
            value = " ".join(value)
        if name == "style":
            normalized[name] = parse_style(value or "")
        else:
            normalized[name] = value if value is not None else ""
    return normalized


def parse_style(style: str) -> dict[str, str]:
    """Split an inline ``style`` string into ``{property: value}``."""
    declarations: dict[str, str] = {}
    for declaration in style.split(";"):
        prop, sep, value = declaration.partition(":")
        prop, value = prop.strip().lower(), value.strip()
        if sep and prop and value:
            declarations[prop] = value
    return declarations
