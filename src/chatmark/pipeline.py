"""One render cycle: raw content in, RenderOutput out."""

from __future__ import annotations

import logging

from chatmark.config import RenderOptions
from chatmark.parser.base import MarkdownCompiler, MathRenderer, RenderOutput, SourceInfo
from chatmark.parser.blocks import extract, literal_html, prose_text
from chatmark.parser.citations import CitationResolver, has_semantic_citation
from chatmark.parser.tree import TreeBuilder
from chatmark.renderer.markdown_compiler import MarkdownItCompiler
from chatmark.renderer.math import MathMarkupRenderer

logger = logging.getLogger(__name__)


class RenderPipeline:
    """Extract blocks, compile markdown, build the node tree.

    The pipeline holds configuration only; every call to :meth:`render` starts
    from scratch, so the output depends on ``(content, sources)`` alone.
    """

    def __init__(
        self,
        options: RenderOptions | None = None,
        *,
        compile_markdown: MarkdownCompiler | None = None,
        render_math: MathRenderer | None = None,
    ) -> None:
        self.options = options or RenderOptions()
        self.render_math = render_math or MathMarkupRenderer(self.options.math_engine)
        self.compile_markdown = compile_markdown or MarkdownItCompiler(
            self.render_math,
            breaks=self.options.breaks,
            gfm=self.options.gfm,
            allow_html=self.options.allow_html,
        )

    def render(self, content: str, sources: list[SourceInfo] | None = None) -> RenderOutput:
        try:
            return self._render(content, sources or [])
        except Exception:
            logger.exception("Markdown rendering failed; showing content as plain text")
            return RenderOutput(html=literal_html(content))

    def _render(self, content: str, sources: list[SourceInfo]) -> RenderOutput:
        extraction = extract(content)
        html = self.compile_markdown(extraction.text) if extraction.text.strip() else ""
        if extraction.literal_tail is not None:
            html += f'<code class="streaming-fence">{literal_html(extraction.literal_tail)}</code>'

        resolver = None
        # Math and code output may contain brackets; only prose can cite.
        if sources or has_semantic_citation(prose_text(extraction.text)):
            resolver = CitationResolver(sources)

        if not extraction.needs_tree and resolver is None:
            logger.debug("No special content; passing compiled HTML through")
            return RenderOutput(html=html)

        builder = TreeBuilder(extraction, render_math=self.render_math, resolver=resolver)
        return RenderOutput(html=html, nodes=builder.build(html))
