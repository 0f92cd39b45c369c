"""Core intermediate representation (IR) for one render cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol

SpecializedType = Literal["abc", "svg", "html", "diagram", "chart", "presentation"]
SemanticKind = Literal["memory", "pinned", "document"]
SourceType = Literal["knowledge", "gmail", "drive", "calendar", "notion", "tasks", "unknown"]


# ---------------------------------------------------------------------------
# Extracted blocks (side tables)
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class MathBlock:
    id: str
    latex: str
    display: bool = True


@dataclass(slots=True)
class ReasoningBlock:
    id: str
    content: str
    is_incomplete: bool = False


@dataclass(slots=True)
class CodeBlock:
    id: str
    code: str
    language: str | None = None
    kind: Literal["specialized", "regular"] = "regular"
    specialized_type: SpecializedType | None = None
    is_incomplete: bool = False


@dataclass(slots=True)
class Extraction:
    """Rewritten text plus the side tables its placeholders refer to.

    ``literal_tail`` holds the unterminated, non-specialized fence tail that
    must bypass markdown compilation.
    """

    text: str
    math_blocks: list[MathBlock] = field(default_factory=list)
    reasoning_blocks: list[ReasoningBlock] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)
    literal_tail: str | None = None

    @property
    def specialized_blocks(self) -> list[CodeBlock]:
        return [block for block in self.code_blocks if block.kind == "specialized"]

    @property
    def needs_tree(self) -> bool:
        return bool(self.math_blocks or self.reasoning_blocks or self.specialized_blocks)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class SourceInfo:
    id: str
    type: SourceType
    name: str
    external_url: str | None = None
    internal_path: str | None = None
    ref_number: int | None = None


# ---------------------------------------------------------------------------
# Render nodes
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class TextNode:
    value: str


@dataclass(slots=True)
class ElementNode:
    tag: str
    attributes: dict[str, str | dict[str, str]] = field(default_factory=dict)
    children: list[RenderNode] = field(default_factory=list)


@dataclass(slots=True)
class MathNode:
    markup: str
    display: bool = True


@dataclass(slots=True)
class ReasoningNode:
    content: str
    is_incomplete: bool = False

    @property
    def summary(self) -> str:
        return "Thinking…" if self.is_incomplete else "Thoughts"


@dataclass(slots=True)
class WidgetNode:
    code: str
    specialized_type: SpecializedType
    language: str | None = None
    is_incomplete: bool = False


@dataclass(slots=True)
class CitationNode:
    ref_number: int
    source: SourceInfo | None = None


@dataclass(slots=True)
class SemanticCitationNode:
    kind: SemanticKind
    label: str


RenderNode = (
    TextNode | ElementNode | MathNode | ReasoningNode | WidgetNode | CitationNode | SemanticCitationNode
)


@dataclass(slots=True)
class RenderOutput:
    """Result of one render cycle.

    ``nodes`` is ``None`` on the fast path, where the host paints ``html``
    opaquely.
    """

    html: str
    nodes: list[RenderNode] | None = None

    @property
    def is_passthrough(self) -> bool:
        return self.nodes is None


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class MathRenderer(Protocol):
    def __call__(self, expression: str, display_mode: bool) -> str:  # pragma: no cover - structural protocol
        """Return markup for *expression* or raise."""


class MarkdownCompiler(Protocol):
    def __call__(self, text: str) -> str:  # pragma: no cover - structural protocol
        """Compile markdown text to an HTML string."""
