from __future__ import annotations


class SchedulerError(Exception):
    """Base class for failures that abort a scheduling run."""


class ControlBlockError(SchedulerError):
    """The shared control block could not be allocated or was misused."""


class SpawnError(SchedulerError):
    """A workload process could not be created."""

    def __init__(self, process_name: str, reason: str) -> None:
        super().__init__(f"Could not spawn {process_name}: {reason}")
        self.process_name = process_name
