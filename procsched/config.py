from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .algorithms import ALGORITHMS
from .orchestrator import Orchestrator, ProcessOrchestrator, SimulatedOrchestrator

MAX_PROCESSES = 10


@dataclass
class RunConfig:
    """
    Settings for one scheduling run, as collected by the CLI.
    """

    algorithm: str
    quantum: Optional[int] = None
    simulate: bool = False
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        self.algorithm = self.algorithm.lower()

    def validate(self, process_count: int) -> None:
        if self.algorithm not in ALGORITHMS:
            raise ValueError(f"Unknown or unimplemented algorithm '{self.algorithm}'")
        if not 1 <= process_count <= MAX_PROCESSES:
            raise ValueError(f"Number of processes must be between 1 and {MAX_PROCESSES}, got {process_count}")
        if self.algorithm == "rr" and (self.quantum is None or self.quantum <= 0):
            raise ValueError("Round Robin requires a positive quantum (use --quantum)")
        if self.poll_interval <= 0:
            raise ValueError("Poll interval must be positive")

    @property
    def effective_quantum(self) -> Optional[int]:
        return self.quantum if self.algorithm == "rr" else None

    def make_orchestrator(self) -> Orchestrator:
        if self.simulate:
            return SimulatedOrchestrator()
        return ProcessOrchestrator(poll_interval=self.poll_interval)
