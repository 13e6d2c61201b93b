import os
import signal
from pathlib import Path

import pytest

from procsched.algorithms import run_algorithm
from procsched.control import UNBOUNDED, ControlBlock
from procsched.errors import ControlBlockError, SpawnError
from procsched.models import ProcessDescriptor
from procsched.orchestrator import ProcessOrchestrator, _workload_main
from procsched.profiler import measure_burst, profile_processes
from procsched.workloads import FileWriteWorkload, SleepWorkload

pytestmark = pytest.mark.skipif(not hasattr(os, "fork"), reason="requires fork and POSIX job-control signals")


def _process(name, workload, arrival_time=0):
    return ProcessDescriptor(name=name, workload_kind=workload.kind, arrival_time=arrival_time, workload=workload)


def _fail_fork():
    raise OSError("fork refused")


def test_measure_burst_runs_workload_to_completion(tmp_path: Path):
    out = tmp_path / "out.txt"
    elapsed = measure_burst(FileWriteWorkload(path=str(out), lines=10, delay_ms=2))

    assert elapsed >= 20
    assert len(out.read_text().splitlines()) == 10


def test_measure_burst_is_zero_when_spawn_fails(monkeypatch):
    monkeypatch.setattr(os, "fork", _fail_fork)
    assert measure_burst(SleepWorkload(units=1, unit_ms=1)) == 0.0


def test_profile_processes_sets_burst_once():
    p = _process("P1", SleepWorkload(units=3, unit_ms=2))
    profile_processes([p])

    assert p.measured
    assert p.burst_time >= 6
    assert p.remaining_time == p.burst_time
    with pytest.raises(ValueError):
        p.assign_burst(1.0)


def test_preemptive_slices_do_not_lose_or_repeat_work(tmp_path: Path):
    out = tmp_path / "out.txt"
    p = _process("P1", FileWriteWorkload(path=str(out), lines=40, delay_ms=2))
    dispatches = 0
    checkpoints = []

    with ProcessOrchestrator() as orch:
        while True:
            result = orch.dispatch(p, 15)
            dispatches += 1
            assert result.elapsed <= 15
            if result.exited:
                break
            checkpoints.append(p.checkpoint)
            assert dispatches < 500

    assert dispatches > 1
    # Slices end at the workload's own checkpoint, not only at the watchdog.
    assert any(c > 0 for c in checkpoints)
    assert checkpoints == sorted(checkpoints)
    lines = [int(line.rsplit(" ", 1)[1]) for line in out.read_text().splitlines()]
    assert lines == list(range(40))


def test_non_preemptive_dispatch_waits_for_exit():
    p = _process("P1", SleepWorkload(units=3, unit_ms=2))
    with ProcessOrchestrator() as orch:
        result = orch.dispatch(p, 1000, preemptive=False)

    assert result.exited
    assert not p.has_never_run
    assert p.os_pid is not None


def test_closing_the_run_reaps_stopped_processes():
    p = _process("P1", SleepWorkload(units=200, unit_ms=5))
    with ProcessOrchestrator() as orch:
        result = orch.dispatch(p, 10)
        assert not result.exited
        assert orch.control is not None

    assert orch.control is None
    with pytest.raises(ChildProcessError):
        os.waitpid(p.os_pid, os.WNOHANG)


def test_dispatch_outside_a_run_is_rejected():
    with pytest.raises(ControlBlockError):
        ProcessOrchestrator().dispatch(_process("P1", SleepWorkload(units=1)), 10)


def test_spawn_failure_aborts_the_run(monkeypatch):
    p = _process("P1", SleepWorkload(units=1, unit_ms=1))
    p.assign_burst(5.0)
    monkeypatch.setattr(os, "fork", _fail_fork)

    with pytest.raises(SpawnError):
        run_algorithm("fcfs", [p], orchestrator=ProcessOrchestrator())


def test_round_robin_with_real_processes():
    procs = [
        _process("P1", SleepWorkload(units=8, unit_ms=5)),
        _process("P2", SleepWorkload(units=4, unit_ms=5)),
        _process("P3", SleepWorkload(units=4, unit_ms=5), arrival_time=10),
    ]
    profile_processes(procs)

    res = run_algorithm("rr", procs, orchestrator=ProcessOrchestrator(), quantum=15)

    assert {p.name for p in res.processes} == {"P1", "P2", "P3"}
    for p in res.processes:
        assert p.terminated
        assert p.remaining_time == 0
        assert p.waiting_time >= 0
        assert p.turnaround_time == pytest.approx(p.completion_time - p.arrival_time)
    assert all(e.duration <= 15 + 1e-6 for e in res.timeline)
    assert [e.end_time for e in res.timeline] == sorted(e.end_time for e in res.timeline)


def test_resuming_a_process_that_died_reports_exit():
    p = _process("P1", SleepWorkload(units=200, unit_ms=5))
    with ProcessOrchestrator() as orch:
        assert not orch.dispatch(p, 10).exited
        os.kill(p.os_pid, signal.SIGKILL)
        os.waitpid(p.os_pid, 0)

        result = orch.dispatch(p, 10)

    assert result.exited


def test_workload_stops_itself_after_checkpoint(monkeypatch):
    with ControlBlock() as control:
        control.configure(quantum=0, preemptive=True)
        control.hand_over()
        signals = []

        def fake_kill(pid, sig):
            # Stand-in for the stop and the scheduler's next dispatch.
            signals.append(sig)
            control.reclaim()
            control.configure(quantum=UNBOUNDED, preemptive=True, progress=control.progress)
            control.hand_over()

        monkeypatch.setattr(os, "kill", fake_kill)
        assert _workload_main(SleepWorkload(units=3, unit_ms=0), control) == 0

    assert signals == [signal.SIGSTOP]


def test_workload_resumed_for_a_new_dispatch_does_not_stop_itself(monkeypatch):
    signals = []
    monkeypatch.setattr(os, "kill", lambda pid, sig: signals.append(sig))

    with ControlBlock() as control:
        control.configure(quantum=0, preemptive=True)
        control.hand_over()
        write = control.checkpoint
        redispatched = []

        def checkpoint_then_redispatch(offset):
            write(offset)
            if not redispatched:
                # Stopped right after the checkpoint and resumed for the next slice.
                redispatched.append(offset)
                control.reclaim()
                control.configure(quantum=UNBOUNDED, preemptive=True, progress=offset)
                control.hand_over()

        control.checkpoint = checkpoint_then_redispatch
        assert _workload_main(SleepWorkload(units=3, unit_ms=0), control) == 0

    assert redispatched == [0]
    assert signals == []


def test_fcfs_with_real_processes():
    procs = [
        _process("P1", SleepWorkload(units=4, unit_ms=5)),
        _process("P2", SleepWorkload(units=2, unit_ms=5), arrival_time=5),
        _process("P3", SleepWorkload(units=3, unit_ms=5), arrival_time=5),
    ]
    profile_processes(procs)

    res = run_algorithm("fcfs", procs, orchestrator=ProcessOrchestrator())

    assert [e.process for e in res.timeline] == ["P1", "P2", "P3"]
    for p, event in zip(res.processes, res.timeline):
        assert event.process == p.name
        assert event.start_time >= p.arrival_time
        assert event.duration <= p.burst_time + 1e-6
        assert p.completion_time == event.end_time
        assert p.waiting_time >= 0


def test_sjf_with_real_processes():
    procs = [
        _process("P1", SleepWorkload(units=4, unit_ms=5)),
        _process("P2", SleepWorkload(units=8, unit_ms=5), arrival_time=5),
        _process("P3", SleepWorkload(units=1, unit_ms=5), arrival_time=5),
    ]
    profile_processes(procs)

    res = run_algorithm("sjf", procs, orchestrator=ProcessOrchestrator())

    assert [e.process for e in res.timeline] == ["P1", "P3", "P2"]
    assert all(p.terminated for p in res.processes)
