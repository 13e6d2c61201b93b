from __future__ import annotations

from typing import Iterable, List

from .models import ProcessDescriptor, ScheduleResult, SystemMetrics


def finalize_metrics(processes: Iterable[ProcessDescriptor]) -> None:
    """
    Fill in turnaround, waiting and response time once every process of a
    run has completed.
    """
    for p in processes:
        p.finalize()


def compute_system_metrics(result: ScheduleResult) -> SystemMetrics:
    """
    Compute throughput and CPU utilization given populated per-process metrics
    and timeline segments.
    """
    if not result.processes:
        system = SystemMetrics(cpu_busy_time=0.0, makespan=0.0, throughput=0.0, cpu_utilization=0.0)
        result.system = system
        return system

    makespan = max(p.completion_time or 0.0 for p in result.processes)
    cpu_busy_time = sum(event.duration for event in result.timeline)

    # Times are in milliseconds; throughput is reported per second.
    throughput = len(result.processes) * 1000.0 / makespan if makespan > 0 else 0.0
    cpu_utilization = cpu_busy_time / makespan if makespan > 0 else 0.0

    system = SystemMetrics(
        cpu_busy_time=cpu_busy_time,
        makespan=makespan,
        throughput=throughput,
        cpu_utilization=cpu_utilization,
    )
    result.system = system
    return system


def summarize_process_metrics(processes: List[ProcessDescriptor]) -> dict:
    """
    Return averages of the key per-process metrics for quick comparison.
    """
    if not processes:
        return {"avg_waiting": 0.0, "avg_turnaround": 0.0, "avg_response": 0.0}

    n = len(processes)
    return {
        "avg_waiting": sum(max(0.0, p.waiting_time) for p in processes) / n,
        "avg_turnaround": sum(p.turnaround_time for p in processes) / n,
        "avg_response": sum(p.response_time for p in processes) / n,
    }
