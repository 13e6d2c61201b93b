from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .algorithms import ALGORITHMS, run_algorithm
from .config import MAX_PROCESSES, RunConfig
from .errors import SchedulerError
from .gantt import build_rich_gantt, render_gantt
from .metrics import summarize_process_metrics
from .models import ProcessDescriptor, ScheduleResult
from .profiler import profile_processes
from .workload_io import load_workload
from .workloads import WORKLOADS, make_workload


def configure_logging(verbose: int = 0) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procsched",
        description="Process scheduling simulator running real workloads (FCFS, SJF, RR).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Log scheduling decisions (-v) or every dispatch (-vv).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a scheduling algorithm on a workload file.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        help="Algorithm to use (fcfs, sjf, rr).",
    )
    run_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    run_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=None,
        help="Time quantum in milliseconds for round-robin (ignored by FCFS and SJF).",
    )
    run_parser.add_argument(
        "--plain",
        action="store_true",
        help="Print a plain-text Gantt chart instead of the colored one.",
    )
    _add_engine_arguments(run_parser)

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run several algorithms on the same measured workload and compare average metrics.",
    )
    compare_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=list(ALGORITHMS),
        help="Algorithms to compare (default: fcfs sjf rr).",
    )
    compare_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=20,
        help="Time quantum in milliseconds used for RR when included (default: 20).",
    )
    _add_engine_arguments(compare_parser)

    subparsers.add_parser(
        "menu",
        help="Interactive menu to pick workloads, arrival times and an algorithm.",
    )

    return parser


def _add_engine_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use the burst_time declared in the workload file on a virtual CPU instead of spawning processes.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=1.0,
        help="Milliseconds between checks on a dispatched process (default: 1.0).",
    )


def _print_process_set(processes: List[ProcessDescriptor], console: Console) -> None:
    table = Table(title="Initial process set", box=box.SIMPLE_HEAVY)
    table.add_column("Process", justify="center")
    table.add_column("Task")
    table.add_column("Arrival (ms)", justify="right")
    table.add_column("Burst (ms)", justify="right")
    for p in processes:
        table.add_row(p.name, p.workload_kind, str(p.arrival_time), f"{p.burst_time:.2f}")
    console.print(table)


def _print_result(result: ScheduleResult, console: Console, plain: bool = False) -> None:
    console.print(f"[bold]Algorithm:[/bold] {result.algorithm}")
    if result.quantum is not None:
        console.print(f"[bold]Quantum:[/bold] {result.quantum} ms")

    console.print()

    headers = [
        "Process",
        "PID",
        "Task",
        "Arrival",
        "Burst",
        "Completion",
        "Turnaround",
        "Waiting",
        "Response",
    ]

    proc_table = Table(title="Process statistics (ms)", box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"Process", "Task"} else "right"
        proc_table.add_column(h, justify=justify)

    for p in result.processes:
        proc_table.add_row(
            p.name,
            "" if p.os_pid is None else str(p.os_pid),
            p.workload_kind,
            str(p.arrival_time),
            f"{p.burst_time:.2f}",
            f"{p.completion_time or 0.0:.2f}",
            f"{p.turnaround_time:.2f}",
            f"{p.waiting_time:.2f}",
            f"{p.response_time:.2f}",
        )

    console.print(proc_table)
    console.print()

    summary = summarize_process_metrics(result.processes)
    sys_table = Table(title="Average metrics", box=box.SIMPLE_HEAVY)
    sys_table.add_column("Metric")
    sys_table.add_column("Value", justify="right")

    sys_table.add_row("Avg turnaround", f"{summary['avg_turnaround']:.2f} ms")
    sys_table.add_row("Avg waiting", f"{summary['avg_waiting']:.2f} ms")
    sys_table.add_row("Avg response", f"{summary['avg_response']:.2f} ms")
    if result.system:
        sys = result.system
        sys_table.add_row("Makespan", f"{sys.makespan:.2f} ms")
        sys_table.add_row("Throughput (proc/s)", f"{sys.throughput:.3f}")
        sys_table.add_row("CPU utilization", f"{sys.cpu_utilization*100:.1f}%")

    console.print(sys_table)
    console.print()

    if plain:
        console.print(render_gantt(result.timeline), markup=False, highlight=False, soft_wrap=True)
        return

    panel, time_marks = build_rich_gantt(result.timeline)
    console.print(panel)
    if time_marks:
        console.print(time_marks, highlight=False, soft_wrap=True)


def _prepare(processes: List[ProcessDescriptor], config: RunConfig, console: Console) -> None:
    config.validate(len(processes))
    if not config.simulate:
        console.print("[dim]Measuring burst times...[/dim]")
        profile_processes(processes)
    _print_process_set(processes, console)


def _run(args: argparse.Namespace, console: Console) -> int:
    config = RunConfig(
        algorithm=args.algorithm,
        quantum=args.quantum,
        simulate=args.simulate,
        poll_interval=args.poll_interval,
    )
    processes = load_workload(Path(args.workload), declared_burst=config.simulate)
    _prepare(processes, config, console)

    result = run_algorithm(
        config.algorithm,
        processes,
        orchestrator=config.make_orchestrator(),
        quantum=config.effective_quantum,
    )
    _print_result(result, console, plain=args.plain)
    return 0


def _compare(args: argparse.Namespace, console: Console) -> int:
    configs = [
        RunConfig(algorithm=alg, quantum=args.quantum, simulate=args.simulate, poll_interval=args.poll_interval)
        for alg in args.algorithms
    ]
    processes = load_workload(Path(args.workload), declared_burst=args.simulate)
    for config in configs:
        config.validate(len(processes))
    _prepare(processes, configs[0], console)

    summary_table = Table(title="Algorithm comparison", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm")
    summary_table.add_column("Quantum", justify="right")
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("Avg response", justify="right")

    for config in configs:
        result = run_algorithm(
            config.algorithm,
            processes,
            orchestrator=config.make_orchestrator(),
            quantum=config.effective_quantum,
        )
        summary = summarize_process_metrics(result.processes)
        summary_table.add_row(
            result.algorithm,
            "" if result.quantum is None else str(result.quantum),
            f"{summary['avg_waiting']:.2f}",
            f"{summary['avg_turnaround']:.2f}",
            f"{summary['avg_response']:.2f}",
        )

    console.print(summary_table)
    return 0


def _ask_int(prompt: str, console: Console, minimum: Optional[int] = None) -> int:
    while True:
        raw = input(prompt).strip()
        try:
            value = int(raw)
        except ValueError:
            console.print("[red]Please enter a whole number.[/red]")
            continue
        if minimum is not None and value < minimum:
            console.print(f"[red]Value must be at least {minimum}.[/red]")
            continue
        return value


def _interactive_menu(console: Console) -> int:
    try:
        return _menu_session(console)
    except EOFError:
        console.print("\n[red]Input ended before the menu was complete.[/red]")
        return 1


def _menu_session(console: Console) -> int:
    kinds = list(WORKLOADS)

    count = _ask_int(f"Enter number of processes (max {MAX_PROCESSES}): ", console)
    if not 1 <= count <= MAX_PROCESSES:
        console.print("[red]Invalid number of processes![/red]")
        return 1

    processes: List[ProcessDescriptor] = []
    for index in range(1, count + 1):
        console.print(f"\n[bold]Available process types for P{index}:[/bold]")
        for idx, kind in enumerate(kinds, start=1):
            console.print(f"  [yellow]{idx}[/yellow]. [white]{kind}[/white]")
        choice = input(f"Select process type (1-{len(kinds)}): ").strip()
        try:
            kind = kinds[int(choice) - 1]
        except (ValueError, IndexError):
            console.print("[red]Invalid choice! Defaulting to compute process.[/red]")
            kind = "compute"
        arrival = _ask_int("Enter arrival time (in milliseconds): ", console, minimum=0)
        processes.append(
            ProcessDescriptor(name=f"P{index}", workload_kind=kind, arrival_time=arrival, workload=make_workload(kind))
        )

    console.print("\n[bold]Choose scheduling algorithm:[/bold]")
    algorithms = list(ALGORITHMS)
    for idx, alg in enumerate(algorithms, start=1):
        console.print(f"  [yellow]{idx}[/yellow]. [white]{alg}[/white]")
    choice = input(f"Choice [1-{len(algorithms)}]: ").strip()
    try:
        algorithm = algorithms[int(choice) - 1]
    except (ValueError, IndexError):
        console.print("[red]Invalid choice![/red]")
        return 1

    quantum = None
    if algorithm == "rr":
        quantum = _ask_int("Enter time quantum (in milliseconds): ", console, minimum=1)

    config = RunConfig(algorithm=algorithm, quantum=quantum)
    _prepare(processes, config, console)
    result = run_algorithm(algorithm, processes, orchestrator=config.make_orchestrator(), quantum=quantum)
    _print_result(result, console)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    try:
        if args.command == "run":
            return _run(args, console)
        if args.command == "compare":
            return _compare(args, console)
        if args.command == "menu":
            return _interactive_menu(console)
    except SchedulerError as exc:
        console.print(f"[red]Scheduling run aborted: {escape(str(exc))}[/red]")
        return 1
    except (ValueError, OSError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
