from __future__ import annotations

from typing import Dict, List, NamedTuple, Sequence

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import ExecutionEvent

MAX_GANTT_WIDTH = 100
IDLE_LABEL = "idle"


class _Block(NamedTuple):
    label: str
    end_time: float
    width: int
    idle: bool


def _blocks(events: Sequence[ExecutionEvent], max_width: int = MAX_GANTT_WIDTH) -> List[_Block]:
    """
    Lay segments out left to right with widths proportional to duration.

    Every block is at least wide enough for its label and its end time, so
    short Round Robin slices stay readable.
    """
    span = max(e.end_time for e in events)
    scale = max_width / span if span > 0 else 0.0

    def width_for(label: str, start: float, end: float) -> int:
        minimum = max(len(label), len(f"{end:.0f}")) + 2
        return max(minimum, round((end - start) * scale))

    blocks: List[_Block] = []
    last_end = 0.0
    for e in events:
        if e.start_time - last_end > 1e-6:
            blocks.append(_Block(IDLE_LABEL, e.start_time, width_for(IDLE_LABEL, last_end, e.start_time), True))
        blocks.append(_Block(e.process, e.end_time, width_for(e.process, e.start_time, e.end_time), False))
        last_end = e.end_time
    return blocks


def _time_marks(blocks: Sequence[_Block]) -> str:
    marks = "0"
    for block in blocks:
        end = f"{block.end_time:.0f}"
        marks += " " * (block.width + 1 - len(end)) + end
    return marks


def render_gantt(events: Sequence[ExecutionEvent]) -> str:
    """
    Plain-text Gantt chart with one box per execution segment.
    """
    if not events:
        return "(no execution)"

    blocks = _blocks(events)

    border = " " + " ".join("-" * b.width for b in blocks) + " "
    labels = "|" + "|".join(b.label.center(b.width) for b in blocks) + "|"

    return "\n".join(
        [
            "Gantt Chart:",
            "",
            border,
            labels,
            border,
            _time_marks(blocks),
        ]
    )


def build_rich_gantt(events: Sequence[ExecutionEvent]) -> tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.
    """
    if not events:
        panel = Panel("No execution", title="Gantt Chart")
        return panel, ""

    blocks = _blocks(events)

    colors = ["red", "green", "yellow", "blue", "magenta", "cyan"]
    process_to_color: Dict[str, str] = {}

    def process_color(name: str) -> str:
        if name not in process_to_color:
            idx = len(process_to_color) % len(colors)
            process_to_color[name] = colors[idx]
        return process_to_color[name]

    timeline = Text()
    labels = Text()

    for block in blocks:
        if block.idle:
            timeline.append(" " * (block.width + 1))
            labels.append(block.label.center(block.width) + " ", style="dim")
            continue
        timeline.append(" " * block.width, style=f"on {process_color(block.label)}")
        timeline.append(" ")
        labels.append(block.label.center(block.width) + " ", style="bold")

    table = Table.grid(padding=(0, 0))
    table.add_row(timeline)
    table.add_row(labels)

    panel = Panel.fit(table, title="Gantt Chart")
    return panel, _time_marks(blocks)
