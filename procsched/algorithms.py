from __future__ import annotations

import logging
from typing import List, Optional

from .metrics import compute_system_metrics, finalize_metrics
from .models import ProcessDescriptor, ScheduleResult
from .orchestrator import Orchestrator, ProcessOrchestrator
from .timeline import Timeline

logger = logging.getLogger(__name__)


def _by_arrival(processes: List[ProcessDescriptor]) -> List[ProcessDescriptor]:
    for p in processes:
        if not p.measured:
            raise ValueError(f"{p.name} has no measured burst time; profile it before scheduling")
    # sorted() is stable, so equal arrivals keep their input order.
    return sorted(processes, key=lambda p: p.arrival_time)


def _run_to_completion(
    orchestrator: Orchestrator, timeline: Timeline, p: ProcessDescriptor, now: float
) -> float:
    """Non-preemptive dispatch shared by FCFS and SJF. Returns the new clock."""
    logger.info("Starting %s at time %.2f ms", p.name, now)
    p.mark_started(now)

    if p.burst_time <= 0:
        # The profiler could not run this workload; there is nothing to dispatch.
        logger.warning("%s has no measured burst time, completing it immediately", p.name)
        end = now
    else:
        result = orchestrator.dispatch(p, p.burst_time, preemptive=False)
        end = now + result.elapsed

    timeline.record(p.workload_kind, p.name, now, end)
    p.mark_completed(end)
    logger.info("Completed %s at time %.2f ms", p.name, end)
    return end


def _finish(
    algorithm: str, quantum: Optional[int], processes: List[ProcessDescriptor], timeline: Timeline
) -> ScheduleResult:
    finalize_metrics(processes)
    result = ScheduleResult(algorithm=algorithm, quantum=quantum, processes=processes, timeline=timeline.events)
    compute_system_metrics(result)
    return result


def schedule_fcfs(
    processes: List[ProcessDescriptor], orchestrator: Orchestrator, quantum: Optional[int] = None
) -> ScheduleResult:
    """
    First-Come First-Serve (non-preemptive) scheduling.

    When the CPU would otherwise be ahead of the next arrival the scheduler
    idles until that arrival.
    """
    ordered = _by_arrival(processes)
    timeline = Timeline()
    now = 0.0

    logger.info("Executing FCFS scheduling")
    with orchestrator:
        for p in ordered:
            if now < p.arrival_time:
                orchestrator.idle(p.arrival_time - now)
                now = float(p.arrival_time)
            now = _run_to_completion(orchestrator, timeline, p, now)

    return _finish("FCFS", quantum, ordered, timeline)


def schedule_sjf(
    processes: List[ProcessDescriptor], orchestrator: Orchestrator, quantum: Optional[int] = None
) -> ScheduleResult:
    """
    Shortest Job First (non-preemptive).

    At each decision point, among processes that have arrived and are not yet
    completed, choose the one with the smallest measured burst time. Ties go
    to the process that comes first in arrival order.
    """
    ordered = _by_arrival(processes)
    timeline = Timeline()
    completed: set[int] = set()
    now = 0.0

    logger.info("Executing Shortest Job First scheduling")
    with orchestrator:
        while len(completed) < len(ordered):
            shortest: Optional[int] = None
            for i, p in enumerate(ordered):
                if i in completed or p.arrival_time > now:
                    continue
                if shortest is None or p.burst_time < ordered[shortest].burst_time:
                    shortest = i

            if shortest is None:
                # Nothing has arrived yet; idle until the next arrival.
                next_arrival = min(p.arrival_time for i, p in enumerate(ordered) if i not in completed)
                orchestrator.idle(next_arrival - now)
                now = float(next_arrival)
                continue

            now = _run_to_completion(orchestrator, timeline, ordered[shortest], now)
            completed.add(shortest)

    return _finish("SJF (non-preemptive)", quantum, ordered, timeline)


def schedule_rr(
    processes: List[ProcessDescriptor], orchestrator: Orchestrator, quantum: Optional[int] = None
) -> ScheduleResult:
    """
    Round Robin scheduling with a fixed time quantum.

    Each pass walks the processes in arrival order and gives every arrived,
    unfinished process a slice of ``min(remaining, quantum)`` ms. A process
    that has used up its measured burst is finished even if its OS process
    is still alive.
    """
    if quantum is None or quantum <= 0:
        raise ValueError("Round Robin requires a positive quantum (use --quantum)")

    ordered = _by_arrival(processes)
    timeline = Timeline()
    now = 0.0

    logger.info("Executing Round Robin scheduling (time quantum: %d ms)", quantum)
    with orchestrator:
        while not all(p.terminated for p in ordered):
            work_done = False

            for p in ordered:
                if p.terminated or p.arrival_time > now:
                    continue

                if p.remaining_time <= 0:
                    p.mark_started(now)
                    logger.warning("%s has no measured burst time, completing it immediately", p.name)
                    p.mark_completed(now)
                    continue

                work_done = True
                time_slice = min(p.remaining_time, float(quantum))
                logger.info(
                    "Executing %s for %.2f ms at %.2f (progress: %d)", p.name, time_slice, now, p.checkpoint
                )
                p.mark_started(now)

                start = now
                result = orchestrator.dispatch(p, time_slice, preemptive=True)
                elapsed = min(result.elapsed, time_slice)
                now += elapsed
                p.remaining_time = max(0.0, p.remaining_time - elapsed)
                timeline.record(p.workload_kind, p.name, start, now)

                if not result.exited and p.remaining_time <= 0:
                    logger.info("%s used its whole burst without exiting; discarding it", p.name)
                    orchestrator.terminate(p)
                if result.exited or p.remaining_time <= 0:
                    p.mark_completed(now)
                    logger.info("Completed %s at time %.2f ms", p.name, now)

            if not work_done:
                pending = [p.arrival_time for p in ordered if not p.terminated and p.arrival_time > now]
                if pending:
                    next_arrival = min(pending)
                    orchestrator.idle(next_arrival - now)
                    now = float(next_arrival)

    return _finish("Round Robin", quantum, ordered, timeline)


ALGORITHMS = {
    "fcfs": schedule_fcfs,
    "sjf": schedule_sjf,
    "rr": schedule_rr,
}


def run_algorithm(
    name: str,
    processes: List[ProcessDescriptor],
    orchestrator: Optional[Orchestrator] = None,
    quantum: Optional[int] = None,
) -> ScheduleResult:
    """
    Dispatch to the requested algorithm.

    The algorithm runs on fresh copies of ``processes``, so one measured set
    can be scheduled by several policies in turn.
    """
    name = name.lower()
    if name not in ALGORITHMS:
        raise ValueError(f"Unknown or unimplemented algorithm '{name}'")

    if orchestrator is None:
        orchestrator = ProcessOrchestrator()

    func = ALGORITHMS[name]
    return func([p.fresh_copy() for p in processes], orchestrator, quantum=quantum)
