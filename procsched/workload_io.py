from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import List, Mapping

from .models import ProcessDescriptor
from .workloads import make_workload


def load_workload(path: str | Path, declared_burst: bool = False) -> List[ProcessDescriptor]:
    """
    Load a process set from a JSON or CSV file.

    With ``declared_burst`` each entry must carry a ``burst_time`` and the
    descriptors come back already measured; otherwise burst times are left
    for the profiler.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        entries = _load_json(path)
    elif suffix == ".csv":
        entries = _load_csv(path)
    else:
        raise ValueError(f"Unsupported workload format: {suffix} (use .json or .csv)")

    processes = [_process_from_mapping(entry, i, declared_burst) for i, entry in enumerate(entries, start=1)]

    names = [p.name for p in processes]
    if len(set(names)) != len(names):
        raise ValueError(f"Process names must be unique: {names}")
    return processes


def _load_json(path: Path) -> List[Mapping]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("JSON workload must be a list of process objects")
    return raw


def _load_csv(path: Path) -> List[Mapping]:
    with path.open("r", encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f))


def _process_from_mapping(mapping, index: int, declared_burst: bool) -> ProcessDescriptor:
    try:
        kind = str(mapping["workload"])
        arrival_time = int(mapping["arrival_time"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid process entry: {mapping!r}") from exc

    if arrival_time < 0:
        raise ValueError(f"Arrival time cannot be negative: {mapping!r}")

    name = mapping.get("name") or f"P{index}"
    options = mapping.get("options") or {}
    if not isinstance(options, dict):
        raise ValueError(f"Workload options must be an object: {mapping!r}")

    process = ProcessDescriptor(
        name=str(name),
        workload_kind=kind,
        arrival_time=arrival_time,
        workload=make_workload(kind, **options),
    )

    if declared_burst:
        burst_val = mapping.get("burst_time")
        try:
            burst_time = float(burst_val)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Entry needs a numeric burst_time for a simulated run: {mapping!r}") from exc
        if burst_time < 0:
            raise ValueError(f"Burst time cannot be negative: {mapping!r}")
        process.assign_burst(burst_time)

    return process
