from __future__ import annotations

import logging
import os
import signal
import sys
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from .control import ControlBlock
from .errors import ControlBlockError, SpawnError
from .models import DispatchResult, DispatchState, ProcessDescriptor, Suspended

logger = logging.getLogger(__name__)


def _workload_main(workload, control: ControlBlock) -> int:
    """
    Body of a forked workload process.

    A suspended workload stores its checkpoint, then either stops itself and
    waits to be resumed (preemptive dispatch) or ends the process.
    """
    while True:
        result = workload.run(control)
        if isinstance(result, Suspended):
            epoch = control.epoch
            control.checkpoint(result.checkpoint)
            if not control.preemptive:
                return 0
            # Stopped by the scheduler in between and already resumed for a
            # new dispatch: carry on from the checkpoint instead of stopping.
            if control.epoch == epoch:
                os.kill(os.getpid(), signal.SIGSTOP)
            continue
        control.reset_progress()
        return 0


def _flush_std_streams() -> None:
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass


def spawn_workload(workload, control: ControlBlock, name: str = "workload") -> int:
    """
    Fork a process that runs ``workload`` against ``control``.

    Returns the child's pid in the parent. The child never returns.
    """
    if workload is None:
        raise SpawnError(name, "no workload attached")

    # Unflushed output would otherwise be written twice, once by each process.
    _flush_std_streams()

    try:
        pid = os.fork()
    except OSError as exc:
        raise SpawnError(name, str(exc)) from exc

    if pid == 0:
        code = 1
        try:
            code = _workload_main(workload, control)
        except Exception:
            logger.exception("Workload of %s failed", name)
        finally:
            _flush_std_streams()
            os._exit(code)

    return pid


class Orchestrator(ABC):
    """
    Runs one dispatch at a time on behalf of a scheduling policy.

    Use as a context manager: entering allocates a fresh control block for
    the scheduling run, leaving reaps any process still alive and releases
    the block.
    """

    def __init__(self) -> None:
        self.control: Optional[ControlBlock] = None

    def __enter__(self) -> "Orchestrator":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def open(self) -> ControlBlock:
        if self.control is not None:
            raise ControlBlockError("A scheduling run is already in progress")
        self.control = ControlBlock()
        return self.control

    def close(self) -> None:
        if self.control is None:
            return
        try:
            self.control.halt()
            self._release_processes()
        finally:
            self.control.close()
            self.control = None

    def _require_control(self) -> ControlBlock:
        if self.control is None:
            raise ControlBlockError("No control block; dispatch outside of a scheduling run")
        return self.control

    def dispatch(self, process: ProcessDescriptor, budget: float, preemptive: bool = True) -> DispatchResult:
        """
        Give ``process`` the CPU for at most ``budget`` ms.

        The first dispatch spawns the process, later ones resume it from its
        saved checkpoint. The reported elapsed time never exceeds ``budget``.
        """
        control = self._require_control()
        if process.terminated:
            raise ValueError(f"{process.name} has already terminated")
        if budget <= 0:
            raise ValueError(f"Dispatch budget must be positive, got {budget}")

        first = process.has_never_run
        control.configure(
            quantum=budget,
            preemptive=preemptive,
            progress=0 if first else process.checkpoint,
        )
        process.is_running = True
        control.hand_over()
        try:
            state, elapsed = self._execute(process, budget, preemptive, first)
        finally:
            control.reclaim()
            process.is_running = False

        process.has_never_run = False
        if state is DispatchState.STOPPED:
            process.checkpoint = control.progress

        logger.debug(
            "%s %s after %.2f ms (budget %.2f ms, checkpoint %d)",
            process.name,
            state.value,
            elapsed,
            budget,
            process.checkpoint,
        )
        return DispatchResult(state=state, elapsed=min(elapsed, budget))

    @abstractmethod
    def _execute(
        self, process: ProcessDescriptor, budget: float, preemptive: bool, first: bool
    ) -> Tuple[DispatchState, float]:
        """Start or resume the process and block until it stops or exits."""

    @abstractmethod
    def idle(self, duration: float) -> None:
        """Let ``duration`` ms pass with no process on the CPU."""

    def terminate(self, process: ProcessDescriptor) -> None:
        """Discard a process that is still alive but has no time left."""

    def _release_processes(self) -> None:
        """Reap every process spawned during the run."""


class ProcessOrchestrator(Orchestrator):
    """
    Dispatches workloads as real child processes.

    Stop and resume use ``SIGSTOP`` / ``SIGCONT``. While a preemptive
    dispatch is running the orchestrator polls the child every
    ``poll_interval`` ms. A workload normally checkpoints and stops itself
    when its slice expires; only if it is still running ``grace`` ms after
    the budget does the orchestrator stop it.
    """

    def __init__(self, poll_interval: float = 1.0, grace: float = 10.0) -> None:
        super().__init__()
        self.poll_interval = poll_interval
        self.grace = grace
        self._children: Dict[int, ProcessDescriptor] = {}

    def _execute(self, process, budget, preemptive, first):
        started = time.perf_counter()
        if first:
            pid = spawn_workload(process.workload, self._require_control(), process.name)
            process.os_pid = pid
            self._children[pid] = process
            logger.debug("Spawned %s as pid %d", process.name, pid)
        else:
            try:
                os.kill(process.os_pid, signal.SIGCONT)
            except ProcessLookupError:
                # Died while stopped; _watch reports it as exited.
                logger.warning("%s (pid %d) is gone, cannot resume it", process.name, process.os_pid)
        return self._watch(process, budget, preemptive, started)

    def _watch(self, process, budget, preemptive, started):
        pid = process.os_pid
        stop_sent = False
        while True:
            try:
                waited, status = os.waitpid(pid, os.WNOHANG | os.WUNTRACED)
            except ChildProcessError:
                self._children.pop(pid, None)
                return DispatchState.EXITED, (time.perf_counter() - started) * 1000.0
            elapsed = (time.perf_counter() - started) * 1000.0

            if waited == pid:
                if os.WIFSTOPPED(status):
                    return DispatchState.STOPPED, elapsed
                self._children.pop(pid, None)
                if os.WIFSIGNALED(status):
                    logger.warning("%s (pid %d) killed by signal %d", process.name, pid, os.WTERMSIG(status))
                elif os.WEXITSTATUS(status) != 0:
                    logger.warning("%s (pid %d) exited with status %d", process.name, pid, os.WEXITSTATUS(status))
                return DispatchState.EXITED, elapsed

            if preemptive and not stop_sent and elapsed >= budget + self.grace:
                logger.debug("Quantum expired for %s, stopping pid %d", process.name, pid)
                os.kill(pid, signal.SIGSTOP)
                stop_sent = True

            time.sleep(self.poll_interval / 1000.0)

    def idle(self, duration: float) -> None:
        if duration > 0:
            time.sleep(duration / 1000.0)

    def terminate(self, process: ProcessDescriptor) -> None:
        pid = process.os_pid
        if pid is None or pid not in self._children:
            return
        logger.debug("Killing leftover process %s (pid %d)", process.name, pid)
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        try:
            os.waitpid(pid, 0)
        except ChildProcessError:
            pass
        del self._children[pid]

    def _release_processes(self) -> None:
        for process in list(self._children.values()):
            self.terminate(process)


class SimulatedOrchestrator(Orchestrator):
    """
    Deterministic virtual CPU.

    Nothing is spawned: each process owns exactly ``burst_time`` ms of work
    and a dispatch consumes ``min(budget, work left)`` of it. Idle periods
    are accumulated instead of slept.
    """

    def __init__(self) -> None:
        super().__init__()
        self.idle_time = 0.0
        self._consumed: Dict[str, float] = {}
        self._next_pid = 1000

    def _execute(self, process, budget, preemptive, first):
        control = self._require_control()
        if first:
            self._next_pid += 1
            process.os_pid = self._next_pid
            self._consumed[process.name] = 0.0

        consumed = self._consumed[process.name]
        elapsed = min(budget, process.burst_time - consumed)
        consumed += elapsed
        self._consumed[process.name] = consumed

        if consumed >= process.burst_time:
            control.reset_progress()
            return DispatchState.EXITED, elapsed

        control.checkpoint(int(consumed))
        if not preemptive:
            return DispatchState.EXITED, elapsed
        return DispatchState.STOPPED, elapsed

    def idle(self, duration: float) -> None:
        if duration > 0:
            self.idle_time += duration

    def _release_processes(self) -> None:
        self._consumed.clear()
