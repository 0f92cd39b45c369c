"""Render options shared by the pipeline, the scheduler and the CLI."""

from __future__ import annotations

from dataclasses import dataclass

MATH_ENGINES = ("katex", "mathjax", "none")


@dataclass(slots=True)
class RenderOptions:
    breaks: bool = True
    gfm: bool = True
    allow_html: bool = True
    debounce_delay: float = 0.05
    math_engine: str = "katex"
    semantic_label_max: int = 20
    source_name_max: int = 25

    def __post_init__(self) -> None:
        self.math_engine = self.math_engine.lower()
        if self.math_engine not in MATH_ENGINES:
            raise ValueError(f"Unknown math engine: {self.math_engine} (expected one of {', '.join(MATH_ENGINES)})")
        if self.debounce_delay < 0:
            raise ValueError("debounce_delay must be non-negative")
