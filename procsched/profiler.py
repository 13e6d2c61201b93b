from __future__ import annotations

import logging
import os
import time
from typing import Callable, List, Optional

from .control import UNBOUNDED, ControlBlock
from .errors import SpawnError
from .models import ProcessDescriptor
from .orchestrator import spawn_workload

logger = logging.getLogger(__name__)


def measure_burst(workload, name: str = "workload", control: Optional[ControlBlock] = None) -> float:
    """
    Run ``workload`` once to completion in its own process and return the
    wall-clock time it took, in milliseconds.

    Returns 0.0 if the process could not be created.
    """
    owned = control is None
    if control is None:
        control = ControlBlock()

    try:
        control.configure(quantum=UNBOUNDED, preemptive=False)
        control.hand_over()
        started = time.perf_counter()
        try:
            pid = spawn_workload(workload, control, name)
        except SpawnError as exc:
            logger.warning("%s; burst time set to 0", exc)
            return 0.0
        os.waitpid(pid, 0)
        return (time.perf_counter() - started) * 1000.0
    finally:
        control.reclaim()
        if owned:
            control.close()


def profile_processes(
    processes: List[ProcessDescriptor],
    measure: Callable[..., float] = measure_burst,
) -> List[ProcessDescriptor]:
    """Measure the burst time of every process that has not been measured yet."""
    for p in processes:
        if p.measured:
            continue
        logger.info("Measuring burst time for %s (%s)...", p.name, p.workload_kind)
        p.assign_burst(measure(p.workload, p.name))
        logger.info("Measured burst time for %s (%s): %.2f ms", p.name, p.workload_kind, p.burst_time)
    return processes
