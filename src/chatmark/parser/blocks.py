"""Block extraction: pull math, reasoning and fenced code regions out of raw text.

Passes run in a fixed order, each a pure ``str -> (str, side table)`` rewrite
on the previous pass's output:

1. display math (``$$...$$``)
2. inline math (``$...$``, re-encoded as an inline code span)
3. reasoning blocks (``<think>...</think>``, plus a trailing unterminated one)
4. fenced code blocks (specialized ones only get a placeholder)

The math and reasoning passes never look inside code, and the math passes
never look inside reasoning regions, so no pass can split a region owned by
another one.
"""

from __future__ import annotations

import html
import logging
import re

from .base import CodeBlock, Extraction, MathBlock, ReasoningBlock, SpecializedType

logger = logging.getLogger(__name__)

FENCE = "```"
INLINE_MATH_MARK = "\ue000"

MATH_ATTR = "data-math-block-id"
THINK_ATTR = "data-think-block-id"
CODE_ATTR = "data-code-block-id"


def extract(text: str) -> Extraction:
    """Run every pass over *text* and collect the side tables."""
    text, math_blocks = extract_display_math(text)
    text = encode_inline_math(text)
    text, reasoning_blocks = extract_reasoning(text)
    text, code_blocks, literal_tail = extract_code_blocks(text)
    return Extraction(
        text=text,
        math_blocks=math_blocks,
        reasoning_blocks=reasoning_blocks,
        code_blocks=code_blocks,
        literal_tail=literal_tail,
    )


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

def _block_placeholder(attr: str, block_id: str) -> str:
    # Blank lines on both sides keep the div a standalone HTML block.
    return f'\n\n<div {attr}="{block_id}"></div>\n\n'


def _inline_placeholder(attr: str, block_id: str) -> str:
    return f'<span {attr}="{block_id}"></span>'


# ---------------------------------------------------------------------------
# Protected regions
# ---------------------------------------------------------------------------

_COMPLETE_FENCE_RE = re.compile(r"```([\w+#.-]+)?[^\S\n]*\n([\s\S]*?)```")
_OPEN_FENCE_RE = re.compile(r"```([\w+#.-]+)?[^\S\n]*\n?([\s\S]*)$")
_INLINE_CODE_RE = re.compile(r"(?<!`)(`{1,2})(?!`)[^\n]+?(?<!`)\1(?!`)")
_THINK_RE = re.compile(r"<think>([\s\S]*?)</think>")
_OPEN_THINK_RE = re.compile(r"<think>([\s\S]*)$")


def _fence_spans(text: str) -> list[tuple[int, int]]:
    """Spans of complete fences, plus the unterminated tail when the count is odd."""
    limit = len(text)
    if text.count(FENCE) % 2:
        limit = text.rfind(FENCE)
    spans = [(m.start(), m.end()) for m in _COMPLETE_FENCE_RE.finditer(text, 0, limit)]
    if limit < len(text):
        spans.append((limit, len(text)))
    return spans


def _think_spans(text: str) -> list[tuple[int, int]]:
    spans = [(m.start(), m.end()) for m in _THINK_RE.finditer(text)]
    tail_from = spans[-1][1] if spans else 0
    open_m = _OPEN_THINK_RE.search(text, tail_from)
    if open_m:
        spans.append((open_m.start(), len(text)))
    return spans


def _code_spans(text: str) -> list[tuple[int, int]]:
    fences = _fence_spans(text)
    spans = list(fences)
    cursor = 0
    for start, end in fences + [(len(text), len(text))]:
        spans.extend((m.start(), m.end()) for m in _INLINE_CODE_RE.finditer(text, cursor, start))
        cursor = end
    return sorted(spans)


def _merge(spans: list[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, end in sorted(spans):
        if merged and start < merged[-1][1]:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))
    return merged


def _inside(pos: int, spans: list[tuple[int, int]]) -> bool:
    return any(start <= pos < end for start, end in spans)


def _rewrite_outside(text: str, spans: list[tuple[int, int]], rewrite) -> str:
    """Apply *rewrite* to every stretch of *text* not covered by *spans*."""
    parts: list[str] = []
    cursor = 0
    for start, end in _merge(spans):
        if start > cursor:
            parts.append(rewrite(text[cursor:start]))
        parts.append(text[max(start, cursor):end])
        cursor = max(cursor, end)
    if cursor < len(text):
        parts.append(rewrite(text[cursor:]))
    return "".join(parts)


# ---------------------------------------------------------------------------
# Pass 1: display math
# ---------------------------------------------------------------------------

_DISPLAY_MATH_RE = re.compile(r"\$\$([\s\S]+?)\$\$")


def extract_display_math(text: str) -> tuple[str, list[MathBlock]]:
    """Replace balanced ``$$...$$`` regions; an unterminated ``$$`` stays literal."""
    blocks: list[MathBlock] = []

    def _replace(m: re.Match[str]) -> str:
        latex = m.group(1).strip()
        if not latex:
            return m.group(0)
        block_id = f"math-block-{len(blocks)}"
        before = m.string[m.start() - 1] if m.start() > 0 else "\n"
        after = m.string[m.end()] if m.end() < len(m.string) else "\n"
        display = before == "\n" and after == "\n"
        blocks.append(MathBlock(id=block_id, latex=latex, display=display))
        if display:
            return _block_placeholder(MATH_ATTR, block_id)
        return _inline_placeholder(MATH_ATTR, block_id)

    protected = _code_spans(text) + _think_spans(text)
    return _rewrite_outside(text, protected, lambda chunk: _DISPLAY_MATH_RE.sub(_replace, chunk)), blocks


# ---------------------------------------------------------------------------
# Pass 2: inline math
# ---------------------------------------------------------------------------

# Opening ``$`` must hug its expression; a closing ``$`` followed by a word
# character or digit is a currency amount, not math.
_INLINE_MATH_RE = re.compile(r"(?<![\\$\w])\$(?=\S)([^$\n`]+?)(?<=\S)\$(?![\w$])")


def encode_inline_math(text: str) -> str:
    """Turn ``$expr$`` into a marked inline code span for the compiler."""
    def _replace(m: re.Match[str]) -> str:
        return f"`{INLINE_MATH_MARK}{m.group(1)}{INLINE_MATH_MARK}`"

    protected = _code_spans(text) + _think_spans(text)
    return _rewrite_outside(text, protected, lambda chunk: _INLINE_MATH_RE.sub(_replace, chunk))


def decode_inline_math(content: str) -> str | None:
    """Return the expression of an encoded span, or ``None`` for ordinary code."""
    if len(content) > 2 and content[0] == INLINE_MATH_MARK and content[-1] == INLINE_MATH_MARK:
        return content[1:-1]
    return None


# ---------------------------------------------------------------------------
# Pass 3: reasoning blocks
# ---------------------------------------------------------------------------

def extract_reasoning(text: str) -> tuple[str, list[ReasoningBlock]]:
    """Replace ``<think>`` regions, flagging a trailing unterminated one."""
    blocks: list[ReasoningBlock] = []
    code = _code_spans(text)
    parts: list[str] = []
    cursor = 0

    search_from = 0
    while True:
        m = _THINK_RE.search(text, search_from)
        if m is None:
            break
        if _inside(m.start(), code):
            # A quoted tag only skips itself, not the block after it.
            search_from = m.start() + len("<think>")
            continue
        search_from = m.end()
        block_id = f"think-block-{len(blocks)}"
        blocks.append(ReasoningBlock(id=block_id, content=m.group(1).strip()))
        parts.append(text[cursor:m.start()])
        parts.append(_block_placeholder(THINK_ATTR, block_id))
        cursor = m.end()

    search_from = cursor
    while True:
        open_m = _OPEN_THINK_RE.search(text, search_from)
        if open_m is None or not _inside(open_m.start(), code):
            break
        search_from = open_m.start() + len("<think>")

    if open_m is not None:
        block_id = f"think-block-{len(blocks)}"
        blocks.append(ReasoningBlock(id=block_id, content=open_m.group(1).strip(), is_incomplete=True))
        parts.append(text[cursor:open_m.start()])
        parts.append(_block_placeholder(THINK_ATTR, block_id))
        cursor = len(text)

    parts.append(text[cursor:])
    return "".join(parts), blocks


# ---------------------------------------------------------------------------
# Pass 4: fenced code blocks
# ---------------------------------------------------------------------------

def extract_code_blocks(text: str) -> tuple[str, list[CodeBlock], str | None]:
    """Replace specialized fences; return ``(text, blocks, literal_tail)``.

    With an odd fence count the last fence is open. Complete fences before
    it are handled normally; the open tail becomes a progressive widget when
    it classifies as specialized and a literal tail otherwise.
    """
    if text.count(FENCE) % 2 == 0:
        rewritten, blocks = _replace_complete_fences(text, [])
        return rewritten, blocks, None

    open_at = text.rfind(FENCE)
    head, tail = text[:open_at], text[open_at:]
    head, blocks = _replace_complete_fences(head, [])

    m = _OPEN_FENCE_RE.match(tail)
    language = m.group(1) if m else None
    code = m.group(2) if m else tail[len(FENCE):]
    specialized = classify(code, language)
    if specialized is None:
        logger.debug("Unterminated fence at offset %d; rendering tail literally", open_at)
        return head, blocks, tail

    block_id = f"code-block-{len(blocks)}"
    blocks.append(
        CodeBlock(
            id=block_id,
            code=code.strip(),
            language=language,
            kind="specialized",
            specialized_type=specialized,
            is_incomplete=True,
        )
    )
    return head + _block_placeholder(CODE_ATTR, block_id), blocks, None


def _replace_complete_fences(text: str, blocks: list[CodeBlock]) -> tuple[str, list[CodeBlock]]:
    def _replace(m: re.Match[str]) -> str:
        language, code = m.group(1), m.group(2)
        block_id = f"code-block-{len(blocks)}"
        specialized = classify(code, language)
        if specialized is None:
            blocks.append(CodeBlock(id=block_id, code=code.strip(), language=language))
            return m.group(0)
        blocks.append(
            CodeBlock(
                id=block_id,
                code=code.strip(),
                language=language,
                kind="specialized",
                specialized_type=specialized,
            )
        )
        return _block_placeholder(CODE_ATTR, block_id)

    return _COMPLETE_FENCE_RE.sub(_replace, text), blocks


def literal_html(text: str) -> str:
    """Escape *text* and turn newlines into ``<br>`` (the no-compile fallback)."""
    return html.escape(text).replace("\n", "<br>")


def prose_text(text: str) -> str:
    """*text* with fenced code and inline code spans (encoded math included) cut out."""
    parts: list[str] = []
    cursor = 0
    for start, end in _merge(_code_spans(text)):
        parts.append(text[cursor:start])
        cursor = max(cursor, end)
    parts.append(text[cursor:])
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_LANGUAGE_TYPES: dict[str, SpecializedType] = {
    "abc": "abc",
    "svg": "svg",
    "html": "html",
    "mermaid": "diagram",
    "diagram": "diagram",
    "chart": "chart",
    "plotly": "chart",
    "marp": "presentation",
    "marpit": "presentation",
}

_ABC_FIELD_RE = re.compile(r"^([XTMLKQ]):", re.MULTILINE)
_HTML_DOCUMENT_RE = re.compile(r"\A<(?:!DOCTYPE\s+html|html|head|body)\b", re.IGNORECASE)
_MARP_FRONTMATTER_RE = re.compile(r"\A---\s*\n(?:[^\n]*\n)*?marp:\s*true\b")


def classify(code: str, language: str | None = None) -> SpecializedType | None:
    """Pick the widget type for a fenced block, or ``None`` for regular code.

    A recognised language tag wins. Anything else, tagged or not, is
    sniffed, and sniffing stays conservative: anything short of a clear
    signal is regular code.
    """
    if language:
        tagged = _LANGUAGE_TYPES.get(language.strip().lower())
        if tagged is not None:
            return tagged

    trimmed = code.strip()
    if trimmed.startswith("<svg") and trimmed.endswith("</svg>"):
        return "svg"

    if _HTML_DOCUMENT_RE.match(trimmed):
        return "html"

    fields = set(_ABC_FIELD_RE.findall(trimmed))
    # K: closes every ABC header, so it plus one more field is required.
    if "K" in fields and len(fields) >= 2:
        return "abc"

    if _MARP_FRONTMATTER_RE.match(trimmed):
        return "presentation"

    return None
