from procsched.gantt import build_rich_gantt, render_gantt
from procsched.models import ExecutionEvent


def _events():
    return [
        ExecutionEvent("compute", "P1", 0, 10),
        ExecutionEvent("sleep", "P2", 10, 15),
        ExecutionEvent("compute", "P1", 20, 40),
    ]


def test_render_gantt_lists_segments_in_order():
    chart = render_gantt(_events())
    lines = chart.splitlines()

    assert lines[0] == "Gantt Chart:"
    labels = lines[3]
    assert labels.startswith("|") and labels.endswith("|")
    assert [part.strip() for part in labels.strip("|").split("|")] == ["P1", "P2", "idle", "P1"]
    assert lines[-1].startswith("0")
    assert lines[-1].split() == ["0", "10", "15", "20", "40"]


def test_render_gantt_widths_are_proportional():
    chart = render_gantt(_events())
    widths = [len(part) for part in chart.splitlines()[3].strip("|").split("|")]
    assert widths[3] > widths[0] > widths[1]


def test_render_gantt_empty():
    assert render_gantt([]) == "(no execution)"


def test_build_rich_gantt_time_marks():
    panel, marks = build_rich_gantt(_events())
    assert panel.title == "Gantt Chart"
    assert marks.split() == ["0", "10", "15", "20", "40"]


def test_build_rich_gantt_empty():
    _, marks = build_rich_gantt([])
    assert marks == ""
