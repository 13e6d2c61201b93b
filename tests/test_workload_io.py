import json
from pathlib import Path

import pytest

from procsched.models import ProcessDescriptor
from procsched.workload_io import load_workload
from procsched.workloads import ComputeWorkload, FileWriteWorkload


def test_load_json(tmp_path: Path):
    data = [
        {"name": "A", "workload": "compute", "arrival_time": 0, "options": {"iterations": 10}},
        {"workload": "file_write", "arrival_time": 15},
    ]
    p = tmp_path / "w.json"
    p.write_text(json.dumps(data))
    procs = load_workload(p)

    assert isinstance(procs[0], ProcessDescriptor)
    assert procs[0].name == "A"
    assert isinstance(procs[0].workload, ComputeWorkload)
    assert procs[0].workload.iterations == 10
    assert procs[1].name == "P2"
    assert isinstance(procs[1].workload, FileWriteWorkload)
    assert procs[1].arrival_time == 15
    assert not procs[1].measured


def test_load_csv(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("name,workload,arrival_time,burst_time\nA,compute,0,30\nB,sleep,5,12.5\n")
    procs = load_workload(p, declared_burst=True)

    assert procs[0].name == "A"
    assert procs[1].workload_kind == "sleep"
    assert procs[1].burst_time == 12.5
    assert procs[1].measured


def test_declared_burst_must_be_present(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("workload,arrival_time\ncompute,0\n")
    with pytest.raises(ValueError):
        load_workload(p, declared_burst=True)


def test_rejects_unknown_workload(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_text('[{"workload": "mine_bitcoin", "arrival_time": 0}]')
    with pytest.raises(ValueError):
        load_workload(p)


def test_rejects_duplicate_names(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_text('[{"name": "A", "workload": "compute", "arrival_time": 0},'
                 '{"name": "A", "workload": "compute", "arrival_time": 1}]')
    with pytest.raises(ValueError):
        load_workload(p)


def test_rejects_negative_arrival(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("workload,arrival_time\ncompute,-1\n")
    with pytest.raises(ValueError):
        load_workload(p)


def test_rejects_unknown_format(tmp_path: Path):
    p = tmp_path / "w.yaml"
    p.write_text("")
    with pytest.raises(ValueError):
        load_workload(p)
