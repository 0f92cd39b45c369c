"""chatmark CLI entrypoint."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from chatmark.config import MATH_ENGINES, RenderOptions
from chatmark.parser.base import RenderOutput, SourceInfo
from chatmark.parser.citations import sources_for_display
from chatmark.pipeline import RenderPipeline
from chatmark.renderer.html_renderer import HTMLRenderer
from chatmark.scheduler import StreamingRenderer


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="Output HTML path")
@click.option(
    "--sources",
    "sources_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON list of sources for numeric citations",
)
@click.option("--title", type=str, default=None, help="Override page title")
@click.option("--dark-mode", is_flag=True, help="Enable dark mode stylesheet")
@click.option("--all-sources", is_flag=True, help="List every source, not only cited ones")
@click.option("--no-breaks", is_flag=True, help="Do not turn single newlines into line breaks")
@click.option(
    "--math-engine",
    type=click.Choice(list(MATH_ENGINES), case_sensitive=False),
    default="katex",
    show_default=True,
    help="Math rendering mode",
)
@click.option(
    "--stream-chunk",
    type=click.IntRange(min=1),
    default=None,
    help="Replay the input in chunks of N characters through the streaming scheduler",
)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity")
def main(
    input_path: Path,
    output: Path,
    sources_path: Path | None,
    title: str | None,
    dark_mode: bool,
    all_sources: bool,
    no_breaks: bool,
    math_engine: str,
    stream_chunk: int | None,
    verbose: int,
) -> None:
    """Render a chat message written in markdown into a self-contained HTML file."""
    logging.basicConfig(
        level=logging.WARNING - 10 * min(verbose, 2),
        format="%(levelname)s %(name)s: %(message)s",
    )

    options = RenderOptions(breaks=not no_breaks, math_engine=math_engine)
    pipeline = RenderPipeline(options)
    content = input_path.read_text(encoding="utf-8", errors="ignore")
    sources = _load_sources(sources_path) if sources_path else []

    if stream_chunk:
        renders = asyncio.run(_replay(pipeline, content, sources, stream_chunk))
        click.echo(f"Streamed {len(content)} chars in {renders} render(s)")

    result = pipeline.render(content, sources)
    shown = sources_for_display(sources, None if all_sources else content)
    page = HTMLRenderer(options=options).render(
        result,
        title=title or input_path.stem,
        sources=shown,
        dark_mode=dark_mode,
    )

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(page, encoding="utf-8")

    click.echo(f"Rendered: {output}")


async def _replay(pipeline: RenderPipeline, content: str, sources: list[SourceInfo], chunk: int) -> int:
    """Feed *content* to a streaming renderer as a model would; return the render count."""
    outputs: list[RenderOutput] = []
    view = StreamingRenderer(outputs.append, pipeline=pipeline, sources=sources)
    try:
        for end in range(chunk, len(content) + chunk, chunk):
            view.update(content[:end], is_streaming=True)
            await asyncio.sleep(pipeline.options.debounce_delay / 4)
        view.update(content, is_streaming=False)
    finally:
        view.close()
    return len(outputs)


def _load_sources(path: Path) -> list[SourceInfo]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid sources JSON in {path.name}: {exc}") from exc

    if not isinstance(raw, list):
        raise click.ClickException(f"Sources file {path.name} must contain a JSON list")

    sources: list[SourceInfo] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict) or "name" not in item:
            raise click.ClickException(f"Source #{idx + 1} in {path.name} needs at least a name")
        sources.append(
            SourceInfo(
                id=str(item.get("id", idx + 1)),
                type=item.get("type", "unknown"),
                name=str(item["name"]),
                external_url=item.get("externalUrl") or item.get("external_url"),
                internal_path=item.get("internalPath") or item.get("internal_path"),
            )
        )
    return sources


if __name__ == "__main__":  # pragma: no cover
    main()
