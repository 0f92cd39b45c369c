"""markdown-it-py configured for chat content."""

from __future__ import annotations

import logging
import re

from markdown_it import MarkdownIt

from chatmark.parser.base import MathRenderer
from chatmark.parser.blocks import decode_inline_math

from .math import MathMarkupRenderer

logger = logging.getLogger(__name__)

_FENCED_DISPLAY_MATH_RE = re.compile(r"\A\$\$([\s\S]+)\$\$\Z")


class MarkdownItCompiler:
    """Compile placeholder-laden markdown to HTML.

    Two renderer rules are overridden: an untagged fence whose body is one
    ``$$...$$`` span renders as display math, and an inline code span carrying
    the inline-math mark renders as inline math. Both fall back to the stock
    rule when the math renderer raises.
    """

    def __init__(
        self,
        math_renderer: MathRenderer | None = None,
        *,
        breaks: bool = True,
        gfm: bool = True,
        allow_html: bool = True,
    ) -> None:
        self._math = math_renderer or MathMarkupRenderer()
        self._md = MarkdownIt("commonmark", {"html": allow_html, "breaks": breaks})
        if gfm:
            self._md.enable(["table", "strikethrough"])

        default_fence = self._md.renderer.rules["fence"]
        default_code_inline = self._md.renderer.rules["code_inline"]

        def math_fence(tokens, idx, options, env):
            token = tokens[idx]
            m = _FENCED_DISPLAY_MATH_RE.match(token.content.strip())
            if token.info.strip() or m is None:
                return default_fence(tokens, idx, options, env)
            try:
                return self._math(m.group(1), True) + "\n"
            except Exception as exc:
                logger.warning("Display math fell back to a code block: %s", exc)
                return default_fence(tokens, idx, options, env)

        def math_code_inline(tokens, idx, options, env):
            token = tokens[idx]
            expression = decode_inline_math(token.content)
            if expression is None:
                return default_code_inline(tokens, idx, options, env)
            try:
                return self._math(expression, False)
            except Exception as exc:
                logger.warning("Inline math fell back to a code span: %s", exc)
                token.content = f"${expression}$"
                return default_code_inline(tokens, idx, options, env)

        self._md.renderer.rules["fence"] = math_fence
        self._md.renderer.rules["code_inline"] = math_code_inline

    def __call__(self, text: str) -> str:
        return self._md.render(text)
