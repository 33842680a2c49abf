# -*- coding: utf-8 -*-
"""Wall-clock interval accumulators for the run summary.

Counters are append-only and only touched by the control thread.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass
class IntervalLedger:
    """Accumulate named wall-clock intervals in seconds."""

    totals: Dict[str, float] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)
    started_at: float = field(default_factory=time.perf_counter)

    def add(self, name: str, seconds: float) -> None:
        self.totals[name] = self.totals.get(name, 0.0) + max(float(seconds), 0.0)
        self.counts[name] = self.counts.get(name, 0) + 1

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.add(name, time.perf_counter() - t0)

    def get(self, name: str) -> float:
        return self.totals.get(name, 0.0)

    def elapsed(self) -> float:
        return time.perf_counter() - self.started_at

    def computation_time(self, *, exclude: tuple[str, ...] = ("output",)) -> float:
        """Total elapsed wall time minus the excluded phases (output by default)."""
        return max(self.elapsed() - sum(self.get(n) for n in exclude), 0.0)

    def summary_lines(self) -> list[str]:
        lines = [f"interval_{name} = {secs:.9f} s ({self.counts[name]} calls)" for name, secs in sorted(self.totals.items())]
        lines.append(f"total wall time for computation = {self.computation_time():.9f} s")
        return lines


__all__ = ["IntervalLedger"]
