"""Tests for citation numbering, splitting and resolution."""

from __future__ import annotations

import logging

import pytest

from chatmark.parser.base import CitationNode, SemanticCitationNode, SourceInfo, TextNode
from chatmark.parser.citations import (
    CitationResolver,
    cited_sources,
    has_semantic_citation,
    number_sources,
    parse_citations,
    semantic_tooltip,
    source_icon,
    source_type_from_tool,
    sources_for_display,
    split_citations,
    truncate,
)


@pytest.fixture
def sources() -> list[SourceInfo]:
    return [
        SourceInfo(id="a", type="knowledge", name="Alpha"),
        SourceInfo(id="b", type="drive", name="Beta", external_url="https://example.com/b"),
        SourceInfo(id="c", type="gmail", name="Gamma"),
    ]


# ---------------------------------------------------------------------------
# Numbering and filtering
# ---------------------------------------------------------------------------

def test_number_sources_uses_supplied_order(sources: list[SourceInfo]) -> None:
    numbered = number_sources(sources)

    assert [(s.id, s.ref_number) for s in numbered] == [("a", 1), ("b", 2), ("c", 3)]
    assert all(s.ref_number is None for s in sources)


def test_cited_sources_keeps_only_cited_regardless_of_order(sources: list[SourceInfo]) -> None:
    shown = cited_sources(sources, "Beta says [2], Alpha says [1], again [2].")

    assert [(s.name, s.ref_number) for s in shown] == [("Alpha", 1), ("Beta", 2)]


def test_cited_sources_empty_when_nothing_cited(sources: list[SourceInfo]) -> None:
    assert cited_sources(sources, "No references here.") == []


def test_sources_for_display_without_content_lists_everything(sources: list[SourceInfo]) -> None:
    assert [s.ref_number for s in sources_for_display(sources)] == [1, 2, 3]
    assert [s.ref_number for s in sources_for_display(sources, "[3]")] == [3]


def test_parse_citations_dedupes_and_sorts() -> None:
    assert parse_citations("[3] then [1] and [3] again") == [1, 3]
    assert parse_citations("[Memory] only") == []


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------

def test_split_citations_mixed_tokens() -> None:
    parts = split_citations("See [1], [Memory] and [Project Plan].")

    assert [(p.kind, p.content) for p in parts] == [
        ("text", "See "),
        ("citation", "[1]"),
        ("text", ", "),
        ("semantic", "Memory"),
        ("text", " and "),
        ("semantic", "Project Plan"),
        ("text", "."),
    ]
    assert parts[1].number == 1
    assert parts[3].semantic_kind == "memory"
    assert parts[5].semantic_kind == "document"


def test_single_character_brackets_are_not_citations() -> None:
    assert [p.kind for p in split_citations("[x] done, [ ] todo")] == ["text"]
    assert not has_semantic_citation("[x] done")
    assert has_semantic_citation("from [Pinned]")


def test_link_syntax_is_not_a_semantic_citation() -> None:
    assert not has_semantic_citation("see [the docs](https://x.test) or [guide][]")
    assert has_semantic_citation("see [Memory] (earlier)")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def test_resolver_matches_ref_numbers(sources: list[SourceInfo]) -> None:
    resolver = CitationResolver(sources)
    nodes = resolver.resolve("Fact [2].")

    assert nodes[0] == TextNode("Fact ")
    assert isinstance(nodes[1], CitationNode)
    assert nodes[1].ref_number == 2
    assert nodes[1].source.name == "Beta"
    assert nodes[2] == TextNode(".")


def test_resolver_keeps_caller_numbering_when_complete() -> None:
    numbered = [SourceInfo(id="z", type="notion", name="Zed", ref_number=7)]
    nodes = CitationResolver(numbered).resolve("[7]")

    assert nodes == [CitationNode(ref_number=7, source=numbered[0])]


def test_unknown_citation_degrades_to_literal_text(
    sources: list[SourceInfo], caplog: pytest.LogCaptureFixture
) -> None:
    resolver = CitationResolver(sources[:2])
    with caplog.at_level(logging.WARNING, logger="chatmark.parser.citations"):
        nodes = resolver.resolve("[5] and [5]")

    assert nodes == [TextNode("[5] and [5]")]
    assert len([r for r in caplog.records if "[5]" in r.getMessage()]) == 1


def test_semantic_citations_resolve_without_sources() -> None:
    nodes = CitationResolver().resolve("[Memory] [Pinned] [Q3 Report]")

    semantic = [n for n in nodes if isinstance(n, SemanticCitationNode)]
    assert [(n.kind, n.label) for n in semantic] == [
        ("memory", "Memory"),
        ("pinned", "Pinned"),
        ("document", "Q3 Report"),
    ]
    assert semantic_tooltip(semantic[0]) == "From remembered context about the user"
    assert semantic_tooltip(semantic[1]) == "From important past conversations"
    assert semantic_tooltip(semantic[2]) == "Source: Q3 Report"


# ---------------------------------------------------------------------------
# Source helpers
# ---------------------------------------------------------------------------

def test_source_type_from_tool() -> None:
    assert source_type_from_tool("gmail_search") == "gmail"
    assert source_type_from_tool("drive_read") == "drive"
    assert source_type_from_tool("list_calendar_events") == "calendar"
    assert source_type_from_tool("search_knowledge") == "knowledge"
    assert source_type_from_tool("web_fetch") == "unknown"


def test_source_icon_and_truncate() -> None:
    assert source_icon("drive") == "GoogleDrive"
    assert source_icon("unknown") == "Internet"
    assert truncate("short", 25) == "short"
    assert truncate("x" * 30, 25) == "x" * 23 + "…"
