"""Citation tokens: numbering sources, splitting text, classifying labels."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace

from .base import CitationNode, RenderNode, SemanticCitationNode, SemanticKind, SourceInfo, SourceType, TextNode

logger = logging.getLogger(__name__)

NUMERIC_CITATION_RE = re.compile(r"\[(\d+)\]")
# Labels start with a letter and are at least two characters, so ``[x]`` and
# ``[ ]`` style markers stay literal.
CITATION_RE = re.compile(r"\[(\d+|[^\W\d_][^\[\]\n]{0,98}[^\s\[\]])\]")

SEMANTIC_TOOLTIPS: dict[str, str] = {
    "memory": "From remembered context about the user",
    "pinned": "From important past conversations",
}

_SOURCE_ICONS: dict[str, str] = {
    "knowledge": "Page",
    "gmail": "Gmail",
    "drive": "GoogleDrive",
    "calendar": "GoogleCalendar",
    "notion": "Notion",
    "tasks": "GoogleTasks",
}

_SEMANTIC_ICONS: dict[str, str] = {
    "memory": "Brain",
    "pinned": "Pin",
    "document": "Page",
}


# ---------------------------------------------------------------------------
# Source numbering
# ---------------------------------------------------------------------------

def number_sources(sources: list[SourceInfo]) -> list[SourceInfo]:
    """Return copies of *sources* numbered ``index + 1`` in supplied order."""
    return [replace(source, ref_number=idx + 1) for idx, source in enumerate(sources)]


def parse_citations(text: str) -> list[int]:
    """Distinct numeric citation values in *text*, ascending."""
    return sorted({int(m.group(1)) for m in NUMERIC_CITATION_RE.finditer(text)})


def cited_sources(sources: list[SourceInfo], content: str) -> list[SourceInfo]:
    """Number *sources* and keep only those cited in *content*.

    Content that cites nothing yields an empty list even when sources exist.
    """
    cited = set(parse_citations(content))
    if not cited:
        return []
    return [source for source in number_sources(sources) if source.ref_number in cited]


def sources_for_display(sources: list[SourceInfo], content: str | None = None) -> list[SourceInfo]:
    if content is None:
        return number_sources(sources)
    return cited_sources(sources, content)


def source_by_ref(sources: list[SourceInfo], ref_number: int) -> SourceInfo | None:
    return next((s for s in sources if s.ref_number == ref_number), None)


# ---------------------------------------------------------------------------
# Source helpers
# ---------------------------------------------------------------------------

def source_icon(source_type: str) -> str:
    return _SOURCE_ICONS.get(source_type, "Internet")


def semantic_icon(kind: str) -> str:
    return _SEMANTIC_ICONS.get(kind, "Page")


def source_type_from_tool(tool_name: str) -> SourceType:
    """Map the name of the tool that fetched a source to its source type."""
    if tool_name.startswith("gmail"):
        return "gmail"
    if tool_name.startswith("drive"):
        return "drive"
    if "calendar" in tool_name:
        return "calendar"
    if "notion" in tool_name:
        return "notion"
    if tool_name.startswith("tasks"):
        return "tasks"
    if tool_name in ("read_document", "search_knowledge", "get_document_summary"):
        return "knowledge"
    return "unknown"


def truncate(label: str, width: int) -> str:
    if len(label) <= width:
        return label
    return label[: width - 2] + "…"


def semantic_kind(label: str) -> SemanticKind | None:
    if label == "Memory":
        return "memory"
    if label == "Pinned":
        return "pinned"
    if label.isdigit():
        return None
    return "document"


def semantic_tooltip(node: SemanticCitationNode) -> str:
    return SEMANTIC_TOOLTIPS.get(node.kind, f"Source: {node.label}")


def has_semantic_citation(text: str) -> bool:
    """True when *text* holds a non-numeric citation token.

    Works on markdown source too: a bracket directly followed by ``(`` or
    ``[`` is link syntax, not a citation.
    """
    return any(
        not m.group(1).isdigit() and text[m.end():m.end() + 1] not in ("(", "[")
        for m in CITATION_RE.finditer(text)
    )


# ---------------------------------------------------------------------------
# Splitting text into citation parts
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class CitationPart:
    kind: str  # "text" | "citation" | "semantic"
    content: str
    number: int | None = None
    semantic_kind: SemanticKind | None = None


def split_citations(text: str) -> list[CitationPart]:
    parts: list[CitationPart] = []
    cursor = 0
    for m in CITATION_RE.finditer(text):
        if m.start() > cursor:
            parts.append(CitationPart("text", text[cursor:m.start()]))
        value = m.group(1)
        if value.isdigit():
            parts.append(CitationPart("citation", m.group(0), number=int(value)))
        else:
            parts.append(CitationPart("semantic", value, semantic_kind=semantic_kind(value)))
        cursor = m.end()
    if cursor < len(text):
        parts.append(CitationPart("text", text[cursor:]))
    return parts


class CitationResolver:
    """Resolve citation tokens in text nodes against one render cycle's sources."""

    def __init__(self, sources: list[SourceInfo] | None = None) -> None:
        sources = sources or []
        if any(s.ref_number is None for s in sources):
            sources = number_sources(sources)
        self.sources = sources
        self._reported: set[int] = set()

    def resolve(self, text: str) -> list[RenderNode]:
        nodes: list[RenderNode] = []
        for part in split_citations(text):
            if part.kind == "citation":
                source = source_by_ref(self.sources, part.number)
                if source is None:
                    self._report_unresolved(part.number)
                    _append_text(nodes, part.content)
                else:
                    nodes.append(CitationNode(ref_number=part.number, source=source))
            elif part.kind == "semantic":
                nodes.append(SemanticCitationNode(kind=part.semantic_kind, label=part.content))
            else:
                _append_text(nodes, part.content)
        return nodes

    def _report_unresolved(self, number: int) -> None:
        if number in self._reported:
            return
        self._reported.add(number)
        logger.warning("Citation [%d] has no matching source (%d supplied)", number, len(self.sources))


def _append_text(nodes: list[RenderNode], value: str) -> None:
    if nodes and isinstance(nodes[-1], TextNode):
        nodes[-1].value += value
    else:
        nodes.append(TextNode(value))
