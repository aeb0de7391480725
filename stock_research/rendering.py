"""
Turns the raw memo text returned by the backend into typed content blocks.

Only a small Markdown subset is understood: `#`-`###` headings, `-`/`*`
bullet lists, `**strong**` spans and plain paragraphs.  Everything else,
including HTML and script tags, is kept as literal text so nothing in the
memo is ever executed by a presentation layer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

_HEADING_RE = re.compile(r"^(#{1,3}) (.*)$")
_LIST_ITEM_RE = re.compile(r"^[-*] (.*)$")
_STRONG_RE = re.compile(r"\*\*(.+?)\*\*")

_BOLD = "\033[1m"
_RESET = "\033[0m"


@dataclass(frozen=True, slots=True)
class InlineRun:
    text: str
    strong: bool = False


Runs = Tuple[InlineRun, ...]


@dataclass(frozen=True, slots=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True, slots=True)
class Paragraph:
    runs: Runs


@dataclass(frozen=True, slots=True)
class UnorderedList:
    items: Tuple[Runs, ...]


ContentBlock = Union[Heading, Paragraph, UnorderedList]


def parse_inline(text: str) -> Runs:
    """Split *text* into literal and strong runs, merging neighbours of the same kind."""

    runs: List[InlineRun] = []

    def _append(chunk: str, strong: bool) -> None:
        if not chunk:
            return
        if runs and runs[-1].strong == strong:
            runs[-1] = InlineRun(runs[-1].text + chunk, strong)
        else:
            runs.append(InlineRun(chunk, strong))

    position = 0
    for match in _STRONG_RE.finditer(text):
        _append(text[position:match.start()], False)
        _append(match.group(1), True)
        position = match.end()
    _append(text[position:], False)
    return tuple(runs)


def render(raw: str) -> Tuple[ContentBlock, ...]:
    """Parse *raw* into content blocks in source order. Never raises."""

    blocks: List[ContentBlock] = []
    paragraph_lines: List[str] = []
    list_items: List[Runs] = []

    def _close_paragraph() -> None:
        if paragraph_lines:
            blocks.append(Paragraph(parse_inline(" ".join(paragraph_lines))))
            paragraph_lines.clear()

    def _close_list() -> None:
        if list_items:
            blocks.append(UnorderedList(tuple(list_items)))
            list_items.clear()

    for raw_line in (raw or "").splitlines():
        line = raw_line.strip()
        if not line:
            _close_paragraph()
            _close_list()
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            _close_paragraph()
            _close_list()
            text = "".join(run.text for run in parse_inline(heading.group(2).strip()))
            blocks.append(Heading(len(heading.group(1)), text))
            continue

        item = _LIST_ITEM_RE.match(line)
        if item:
            _close_paragraph()
            list_items.append(parse_inline(item.group(1).strip()))
            continue

        _close_list()
        paragraph_lines.append(line)

    _close_paragraph()
    _close_list()
    return tuple(blocks)


def runs_to_text(runs: Sequence[InlineRun], *, color: bool = False) -> str:
    if not color:
        return "".join(run.text for run in runs)
    return "".join(f"{_BOLD}{run.text}{_RESET}" if run.strong else run.text for run in runs)


def format_blocks(blocks: Sequence[ContentBlock], *, color: bool = False) -> str:
    """Lay blocks out as terminal text; *color* enables ANSI bold for strong runs and headings."""

    chunks: List[str] = []
    for block in blocks:
        if isinstance(block, Heading):
            title = f"{_BOLD}{block.text}{_RESET}" if color else block.text
            underline = {1: "=", 2: "-"}.get(block.level)
            chunks.append(f"{title}\n{underline * len(block.text)}" if underline else title)
        elif isinstance(block, UnorderedList):
            chunks.append("\n".join(f"  • {runs_to_text(item, color=color)}" for item in block.items))
        else:
            chunks.append(runs_to_text(block.runs, color=color))
    return "\n\n".join(chunks)
