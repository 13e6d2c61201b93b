"""
Process scheduling simulator package.

Runs real workloads as separate OS processes on a single virtual CPU and
times them under FCFS, SJF and Round Robin dispatch policies.
"""

__all__ = ["cli"]
