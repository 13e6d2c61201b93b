from __future__ import annotations

from typing import Iterator, List

from .models import ExecutionEvent


class Timeline:
    """
    Append-only record of execution segments for one scheduling run.

    Segments are kept in dispatch order and never merged, so a process that
    runs for several consecutive quanta shows up once per quantum.
    """

    def __init__(self) -> None:
        self._events: List[ExecutionEvent] = []

    def record(self, workload: str, process: str, start: float, end: float) -> ExecutionEvent:
        if end < start:
            raise ValueError(f"Segment for {process} ends before it starts ({start} > {end})")
        event = ExecutionEvent(workload=workload, process=process, start_time=start, end_time=end)
        self._events.append(event)
        return event

    @property
    def events(self) -> List[ExecutionEvent]:
        return list(self._events)

    def __iter__(self) -> Iterator[ExecutionEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)
