from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union


@dataclass(frozen=True)
class Completed:
    """A workload finished all of its work."""


@dataclass(frozen=True)
class Suspended:
    """
    A workload gave up the CPU before finishing.

    ``checkpoint`` is the offset of the first unit of work that has not been
    done yet; the next run starts from it.
    """

    checkpoint: int


RunResult = Union[Completed, Suspended]


class DispatchState(Enum):
    STOPPED = "stopped"
    EXITED = "exited"


@dataclass(frozen=True)
class DispatchResult:
    state: DispatchState
    elapsed: float

    @property
    def exited(self) -> bool:
        return self.state is DispatchState.EXITED


@dataclass(frozen=True)
class ExecutionEvent:
    """
    One contiguous slice of execution for a process in the Gantt chart.
    """

    workload: str
    process: str
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class ProcessDescriptor:
    name: str
    workload_kind: str
    arrival_time: int
    workload: Any = None
    burst_time: float = 0.0
    remaining_time: float = 0.0
    start_time: Optional[float] = None
    completion_time: Optional[float] = None
    turnaround_time: float = 0.0
    waiting_time: float = 0.0
    response_time: float = 0.0
    checkpoint: int = 0
    os_pid: Optional[int] = None
    has_never_run: bool = True
    is_running: bool = False
    terminated: bool = False
    measured: bool = False

    def assign_burst(self, burst_time: float) -> None:
        if self.measured:
            raise ValueError(f"Burst time of {self.name} is already set")
        self.burst_time = burst_time
        self.remaining_time = burst_time
        self.measured = True

    def mark_started(self, now: float) -> None:
        if self.start_time is None:
            self.start_time = now

    def mark_completed(self, now: float) -> None:
        if self.completion_time is not None:
            raise ValueError(f"{self.name} already completed at {self.completion_time:.2f}")
        self.completion_time = now
        self.remaining_time = 0.0
        self.terminated = True

    def finalize(self) -> None:
        """
        Derive turnaround, waiting and response time from completion time.

        Waiting time is clamped at zero: timing jitter can make a process
        finish a little sooner than its measured burst.
        """
        if self.completion_time is None:
            raise ValueError(f"{self.name} has not completed")
        self.turnaround_time = self.completion_time - self.arrival_time
        self.waiting_time = max(0.0, self.turnaround_time - self.burst_time)
        start = self.start_time if self.start_time is not None else self.completion_time
        self.response_time = max(0.0, start - self.arrival_time)

    def fresh_copy(self) -> "ProcessDescriptor":
        """Duplicate the measured descriptor with all run state cleared."""
        return ProcessDescriptor(
            name=self.name,
            workload_kind=self.workload_kind,
            arrival_time=self.arrival_time,
            workload=self.workload,
            burst_time=self.burst_time,
            remaining_time=self.burst_time,
            measured=self.measured,
        )


@dataclass
class SystemMetrics:
    cpu_busy_time: float
    makespan: float
    throughput: float
    cpu_utilization: float


@dataclass
class ScheduleResult:
    algorithm: str
    quantum: Optional[int]
    processes: List[ProcessDescriptor] = field(default_factory=list)
    timeline: List[ExecutionEvent] = field(default_factory=list)
    system: Optional[SystemMetrics] = None
