from __future__ import annotations

import logging
import os
import random
import sqlite3
import time
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, Protocol

from .control import ControlBlock
from .models import Completed, RunResult, Suspended

logger = logging.getLogger(__name__)

COMPLETED = Completed()


class Workload(Protocol):
    """
    Work that can be suspended at a checkpoint and resumed later.

    ``run`` starts at ``control.progress``, checks its slice timer between
    units of work, and returns ``Suspended(offset)`` as soon as the slice has
    expired. ``offset`` is the first unit not yet done, so nothing is lost or
    repeated across a suspend/resume boundary.
    """

    kind: str

    def run(self, control: ControlBlock) -> RunResult:
        ...


def _run_units(control: ControlBlock, total: int, unit: Callable[[int], None]) -> RunResult:
    timer = control.start_slice()
    for i in range(control.progress, total):
        if timer.expired():
            return Suspended(i)
        unit(i)
    return COMPLETED


def _pause(delay_ms: float) -> None:
    if delay_ms > 0:
        time.sleep(delay_ms / 1000.0)


@dataclass
class FileWriteWorkload:
    """Append numbered lines to a text file."""

    kind: ClassVar[str] = "file_write"

    path: str = "output.txt"
    lines: int = 1000
    delay_ms: float = 1.0

    def run(self, control: ControlBlock) -> RunResult:
        try:
            fh = open(self.path, "a", encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot open %s, skipping remaining lines: %s", self.path, exc)
            return COMPLETED

        pid = os.getpid()

        def write_line(i: int) -> None:
            fh.write(f"Process {pid} writing line {i}\n")
            fh.flush()
            _pause(self.delay_ms)

        with fh:
            return _run_units(control, self.lines, write_line)


@dataclass
class ConsoleEchoWorkload:
    """Print numbered lines to standard output."""

    kind: ClassVar[str] = "console_echo"

    lines: int = 100
    delay_ms: float = 10.0

    def run(self, control: ControlBlock) -> RunResult:
        pid = os.getpid()

        def echo(i: int) -> None:
            print(f"Process {pid} echoing line {i}", flush=True)
            _pause(self.delay_ms)

        return _run_units(control, self.lines, echo)


@dataclass
class ComputeWorkload:
    """
    CPU-bound summation of ``range(iterations)``.

    The slice timer is only consulted every ``check_every`` iterations. On
    resume the partial sum of the skipped prefix is recomputed in closed form.
    """

    kind: ClassVar[str] = "compute"

    iterations: int = 2_000_000
    check_every: int = 1000

    def run(self, control: ControlBlock) -> RunResult:
        start = control.progress
        total = start * (start - 1) // 2 if start > 0 else 0
        timer = control.start_slice()

        for i in range(start, self.iterations):
            if i % self.check_every == 0 and timer.expired():
                logger.debug("Process %d suspended at iteration %d, sum %d", os.getpid(), i, total)
                return Suspended(i)
            total += i

        logger.debug("Process %d completed computation, final sum %d", os.getpid(), total)
        return COMPLETED


@dataclass
class DatabaseWriteWorkload:
    """Insert one ``student`` row per unit of work into a SQLite database."""

    kind: ClassVar[str] = "db_write"

    path: str = "os_project.db"
    records: int = 90
    delay_ms: float = 10.0

    def run(self, control: ControlBlock) -> RunResult:
        try:
            conn = sqlite3.connect(self.path)
            conn.execute("CREATE TABLE IF NOT EXISTS student (id INTEGER, name TEXT, age INTEGER)")
        except sqlite3.Error as exc:
            logger.warning("Cannot open database %s, skipping remaining records: %s", self.path, exc)
            return COMPLETED

        rng = random.Random()
        name = f"name_{os.getpid()}"

        def insert(i: int) -> None:
            with conn:
                conn.execute(
                    "INSERT INTO student (id, name, age) VALUES (?, ?, ?)",
                    (i, name, rng.randint(10, 20)),
                )
            _pause(self.delay_ms)

        try:
            return _run_units(control, self.records, insert)
        except sqlite3.Error as exc:
            logger.warning("Insert into %s failed, skipping remaining records: %s", self.path, exc)
            return COMPLETED
        finally:
            conn.close()


@dataclass
class SleepWorkload:
    """Fixed-length units of idle work; handy for demos and timing tests."""

    kind: ClassVar[str] = "sleep"

    units: int = 50
    unit_ms: float = 10.0

    def run(self, control: ControlBlock) -> RunResult:
        return _run_units(control, self.units, lambda _i: _pause(self.unit_ms))


WORKLOADS: Dict[str, type] = {
    "file_write": FileWriteWorkload,
    "console_echo": ConsoleEchoWorkload,
    "compute": ComputeWorkload,
    "db_write": DatabaseWriteWorkload,
    "sleep": SleepWorkload,
}


def make_workload(kind: str, **options) -> Workload:
    kind = kind.lower()
    if kind not in WORKLOADS:
        raise ValueError(f"Unknown workload '{kind}' (choose from {', '.join(WORKLOADS)})")
    try:
        return WORKLOADS[kind](**options)
    except TypeError as exc:
        raise ValueError(f"Invalid options for workload '{kind}': {exc}") from exc
