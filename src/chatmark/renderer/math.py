"""Default math renderer: wraps TeX in markup for a client-side engine."""

from __future__ import annotations

import html
import re


class MathRenderError(ValueError):
    """Raised when an expression cannot be turned into markup."""


_ESCAPED_BRACE_RE = re.compile(r"\\[{}]")


class MathMarkupRenderer:
    """Emit KaTeX/MathJax-ready markup, or plain ``<code>`` for ``"none"``.

    Typesetting itself happens in the browser; this only validates the
    expression enough to catch the cases that would break the page.
    """

    def __init__(self, engine: str = "katex") -> None:
        self.engine = engine

    def __call__(self, expression: str, display_mode: bool) -> str:
        latex = expression.strip()
        if not latex:
            raise MathRenderError("empty math expression")
        if not _braces_balanced(latex):
            raise MathRenderError(f"unbalanced braces in {latex!r}")

        content = html.escape(latex)
        display = "true" if display_mode else "false"
        if self.engine == "none":
            css = "math-display" if display_mode else "math-inline"
            return f'<code class="math {css}">{content}</code>'

        wrapped = f"\\[{content}\\]" if display_mode else f"\\({content}\\)"
        tag = "div" if display_mode else "span"
        return f'<{tag} class="math math-{self.engine}" data-display="{display}">{wrapped}</{tag}>'


def _braces_balanced(latex: str) -> bool:
    depth = 0
    for char in _ESCAPED_BRACE_RE.sub("", latex):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0
