from __future__ import annotations

import ctypes
import logging
import math
import mmap
import time

from .errors import ControlBlockError

logger = logging.getLogger(__name__)

# Quantum used when a workload must run to completion (burst profiling).
UNBOUNDED = math.inf

SCHEDULER = 0
WORKLOAD = 1


class _ControlState(ctypes.Structure):
    _fields_ = [
        ("owner", ctypes.c_int),
        ("run", ctypes.c_bool),
        ("preemptive", ctypes.c_bool),
        ("epoch", ctypes.c_ulong),
        ("progress", ctypes.c_long),
        ("quantum", ctypes.c_double),
    ]


class ControlBlock:
    """
    Control state shared between the scheduler and every workload it forks.

    The state lives in an anonymous shared mapping, so children created with
    ``fork`` see the same memory as the scheduler. Writers never overlap:
    the scheduler configures the block only while it owns it, hands it to
    the dispatched workload for the length of one dispatch, and reclaims it
    once the workload has stopped or exited.
    """

    def __init__(self) -> None:
        try:
            self._mm = mmap.mmap(-1, ctypes.sizeof(_ControlState))
        except (OSError, ValueError) as exc:
            raise ControlBlockError(f"Could not map shared control block: {exc}") from exc
        self._state = _ControlState.from_buffer(self._mm)
        self._state.owner = SCHEDULER
        self._state.run = True
        self._state.quantum = UNBOUNDED

    @property
    def closed(self) -> bool:
        return self._mm is None

    def _live(self) -> _ControlState:
        if self._state is None:
            raise ControlBlockError("Control block has been released")
        return self._state

    @property
    def progress(self) -> int:
        return self._live().progress

    @property
    def quantum(self) -> float:
        return self._live().quantum

    @property
    def preemptive(self) -> bool:
        return self._live().preemptive

    @property
    def should_run(self) -> bool:
        return self._live().run

    @property
    def epoch(self) -> int:
        return self._live().epoch

    @property
    def owned_by_workload(self) -> bool:
        return self._live().owner == WORKLOAD

    # Scheduler side

    def configure(self, *, quantum: float, preemptive: bool, progress: int = 0) -> None:
        """Prepare the block for the next dispatch."""
        state = self._live()
        if state.owner != SCHEDULER:
            raise ControlBlockError("Cannot reconfigure while a workload owns the control block")
        state.quantum = quantum
        state.preemptive = preemptive
        state.progress = progress
        state.run = True
        state.epoch += 1

    def hand_over(self) -> None:
        self._live().owner = WORKLOAD

    def reclaim(self) -> None:
        self._live().owner = SCHEDULER

    def halt(self) -> None:
        """Ask any workload still holding the CPU to give it up."""
        self._live().run = False

    def close(self) -> None:
        if self._mm is None:
            return
        # Drop the ctypes view first; the mapping cannot close while exported.
        self._state = None
        self._mm.close()
        self._mm = None

    # Workload side

    def checkpoint(self, offset: int) -> None:
        state = self._live()
        if state.owner != WORKLOAD:
            raise ControlBlockError("Workload wrote a checkpoint without owning the control block")
        state.progress = offset

    def reset_progress(self) -> None:
        self.checkpoint(0)

    def start_slice(self) -> "SliceTimer":
        return SliceTimer(self)

    def __enter__(self) -> "ControlBlock":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class SliceTimer:
    """
    Measures how long a workload has held the CPU in the current dispatch.

    A workload that was stopped by the scheduler's watchdog notices the new
    dispatch epoch when it is resumed and starts counting from zero again.
    """

    def __init__(self, control: ControlBlock) -> None:
        self._control = control
        self._epoch = control.epoch
        self._start = time.perf_counter()

    def elapsed(self) -> float:
        return (time.perf_counter() - self._start) * 1000.0

    def expired(self) -> bool:
        control = self._control
        if not control.should_run:
            return True
        if control.epoch != self._epoch:
            self._epoch = control.epoch
            self._start = time.perf_counter()
            return False
        return self.elapsed() >= control.quantum
