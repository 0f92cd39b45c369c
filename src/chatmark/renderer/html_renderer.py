"""Paint a RenderOutput as HTML: a fragment, or a standalone chat page."""

from __future__ import annotations

import html
from collections.abc import Callable
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from chatmark.config import RenderOptions
from chatmark.parser.base import (
    CitationNode,
    ElementNode,
    MathNode,
    ReasoningNode,
    RenderNode,
    RenderOutput,
    SemanticCitationNode,
    SourceInfo,
    TextNode,
    WidgetNode,
)
from chatmark.parser.citations import semantic_icon, semantic_tooltip, source_icon, truncate

_VOID_TAGS = frozenset({"area", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr"})

WidgetRenderer = Callable[[WidgetNode], str]


class HTMLRenderer:
    """Render pipeline output into the chat template."""

    def __init__(
        self,
        template_path: Path | None = None,
        *,
        options: RenderOptions | None = None,
        widget_renderer: WidgetRenderer | None = None,
    ) -> None:
        if template_path is None:
            template_path = Path(__file__).resolve().parent.parent / "template" / "chat.html"

        loader = FileSystemLoader(str(template_path.parent))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template_name = template_path.name
        self.options = options or RenderOptions()
        self._widget_renderer = widget_renderer or _source_view

    def render(
        self,
        output: RenderOutput,
        *,
        title: str = "Conversation",
        sources: list[SourceInfo] | None = None,
        dark_mode: bool = False,
    ) -> str:
        template = self._env.get_template(self._template_name)
        return template.render(
            page_title=title,
            body=Markup(self.render_fragment(output)),
            sources=[
                {
                    "ref_number": source.ref_number,
                    "name": truncate(source.name, self.options.source_name_max),
                    "full_name": source.name,
                    "icon": source_icon(source.type),
                    "href": source.external_url or source.internal_path,
                    "external": bool(source.external_url),
                }
                for source in sources or []
            ],
            dark_mode=dark_mode,
            math_engine=self.options.math_engine,
        )

    def render_fragment(self, output: RenderOutput) -> str:
        if output.is_passthrough:
            return output.html
        return self.render_nodes(output.nodes)

    def render_nodes(self, nodes: list[RenderNode]) -> str:
        return "".join(self._render_node(node) for node in nodes)

    def _render_node(self, node: RenderNode) -> str:
        if isinstance(node, TextNode):
            return html.escape(node.value, quote=False)

        if isinstance(node, ElementNode):
            attrs = "".join(f' {name}="{html.escape(_attr_value(value))}"' for name, value in node.attributes.items())
            if node.tag in _VOID_TAGS:
                return f"<{node.tag}{attrs}>"
            return f"<{node.tag}{attrs}>{self.render_nodes(node.children)}</{node.tag}>"

        if isinstance(node, MathNode):
            return node.markup

        if isinstance(node, ReasoningNode):
            state = "incomplete" if node.is_incomplete else "complete"
            open_attr = " open" if node.is_incomplete else ""
            return (
                f'<details class="reasoning reasoning-{state}"{open_attr}>'
                f"<summary>{html.escape(node.summary)}</summary>"
                f'<div class="reasoning-content">{html.escape(node.content)}</div>'
                "</details>"
            )

        if isinstance(node, WidgetNode):
            return self._widget_renderer(node)

        if isinstance(node, CitationNode):
            return self._render_citation(node)

        if isinstance(node, SemanticCitationNode):
            label = node.label
            if node.kind == "document":
                label = truncate(label, self.options.semantic_label_max)
            return (
                f'<span class="semantic-citation semantic-{node.kind}" '
                f'data-icon="{semantic_icon(node.kind)}" title="{html.escape(semantic_tooltip(node))}">'
                f"{html.escape(label)}</span>"
            )

        return ""

    def _render_citation(self, node: CitationNode) -> str:
        source = node.source
        name = truncate(source.name, self.options.source_name_max) if source else f"Source {node.ref_number}"
        icon = source_icon(source.type) if source else "Internet"
        badge = (
            f'<span class="citation" data-ref="{node.ref_number}" data-icon="{icon}">'
            f"{html.escape(name)}</span>"
        )
        if source is None:
            return badge
        title = html.escape(source.name)
        if source.external_url:
            return (
                f'<a class="citation-link" href="{html.escape(source.external_url)}" title="{title}" '
                f'target="_blank" rel="noopener noreferrer">{badge}</a>'
            )
        if source.internal_path:
            return f'<a class="citation-link" href="{html.escape(source.internal_path)}" title="{title}">{badge}</a>'
        return badge


def _attr_value(value: str | dict[str, str]) -> str:
    if isinstance(value, dict):
        return "; ".join(f"{prop}: {val}" for prop, val in value.items())
    return value


def _source_view(node: WidgetNode) -> str:
    language = f' data-language="{html.escape(node.language)}"' if node.language else ""
    incomplete = ' data-incomplete="true"' if node.is_incomplete else ""
    return (
        f'<figure class="widget widget-{node.specialized_type}" data-widget-type="{node.specialized_type}"'
        f"{language}{incomplete}><pre><code>{html.escape(node.code)}</code></pre></figure>"
    )
