"""Tests for the configured markdown compiler and the default math renderer."""

from __future__ import annotations

import pytest

from chatmark.parser.blocks import INLINE_MATH_MARK
from chatmark.renderer.markdown_compiler import MarkdownItCompiler
from chatmark.renderer.math import MathMarkupRenderer, MathRenderError


# ---------------------------------------------------------------------------
# Math renderer
# ---------------------------------------------------------------------------

def test_math_markup_for_each_engine() -> None:
    assert MathMarkupRenderer("katex")("x^2", False) == (
        '<span class="math math-katex" data-display="false">\\(x^2\\)</span>'
    )
    assert MathMarkupRenderer("mathjax")("a<b", True) == (
        '<div class="math math-mathjax" data-display="true">\\[a&lt;b\\]</div>'
    )
    assert MathMarkupRenderer("none")("x", False) == '<code class="math math-inline">x</code>'


def test_math_renderer_rejects_bad_expressions() -> None:
    render = MathMarkupRenderer()
    with pytest.raises(MathRenderError):
        render("   ", True)
    with pytest.raises(MathRenderError):
        render("\\frac{a}{b", True)
    assert "\\{x" in render("\\{x", False)


# ---------------------------------------------------------------------------
# Compiler configuration
# ---------------------------------------------------------------------------

def test_line_breaks_and_gfm_extensions() -> None:
    compile_markdown = MarkdownItCompiler()

    assert "<br" in compile_markdown("first\nsecond")
    assert "<table>" in compile_markdown("| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert "<s>gone</s>" in compile_markdown("~~gone~~")


def test_placeholders_survive_compilation() -> None:
    html = MarkdownItCompiler()('Text\n\n<div data-code-block-id="code-block-0"></div>\n\nMore')

    assert '<div data-code-block-id="code-block-0"></div>' in html
    assert "<p>More</p>" in html


def test_marked_code_span_renders_inline_math() -> None:
    html = MarkdownItCompiler()(f"x `{INLINE_MATH_MARK}a^2{INLINE_MATH_MARK}` y")

    assert '<span class="math math-katex" data-display="false">\\(a^2\\)</span>' in html
    assert "<code>" not in html


def test_plain_code_span_is_untouched() -> None:
    assert "<code>a^2</code>" in MarkdownItCompiler()("x `a^2` y")


def test_inline_math_failure_falls_back_to_code_span() -> None:
    html = MarkdownItCompiler()(f"x `{INLINE_MATH_MARK}{{a{INLINE_MATH_MARK}` y")

    assert "<code>${a$</code>" in html


def test_untagged_fence_of_display_math_renders_as_math() -> None:
    html = MarkdownItCompiler()("```\n$$x$$\n```\n")

    assert '<div class="math math-katex" data-display="true">\\[x\\]</div>' in html
    assert "<pre>" not in html


def test_tagged_fence_with_dollars_stays_code() -> None:
    html = MarkdownItCompiler()("```python\n$$x$$\n```\n")

    assert '<code class="language-python">$$x$$' in html


def test_fenced_math_failure_falls_back_to_code_block() -> None:
    html = MarkdownItCompiler()("```\n$$\\frac{x$$\n```\n")

    assert "<pre><code>$$\\frac{x$$" in html


def test_custom_math_renderer_is_used() -> None:
    html = MarkdownItCompiler(lambda expr, display: f"<m>{expr}</m>")(f"`{INLINE_MATH_MARK}z{INLINE_MATH_MARK}`")

    assert "<m>z</m>" in html
