# -*- coding: utf-8 -*-
"""Regression comparators: ensemble-average convergence and DTW distance.

Both comparators work in two modes against a :class:`ReferenceDatabase`:

generate
    Append the observed run to the database and report whether the reference
    has converged (the new run no longer moves it beyond the thresholds).
test
    Compare the observed run against the stored reference without writing.

Ensemble average
----------------
The database keeps a per-sample running mean ``mu`` and variance ``var``
across runs. A test run ``o`` of identical shape is normalised by
``scale = max(max|mu|, tiny)``::

    mean_error     = max |o - mu| / scale
    variance_error = max(max((o - mu)^2 - var, 0)) / scale^2

and accepted iff ``mean_error <= mean_threshold`` and
``variance_error <= variance_threshold``. Widening either threshold can only
turn a rejection into an acceptance.

Dynamic time warping
--------------------
The reference is the medoid of the stored runs (the run with the smallest
summed DTW distance to the others). A test run is accepted iff its DTW
distance to the medoid, optionally normalised by the warping path length, is
at most ``threshold``. Sampling cadence may differ between runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..debug import dbg
from ..errors import ConfigurationFailure, require_positive
from .database import EnsembleStats, ReferenceDatabase, ReferenceRecord
from .dtw import dtw_distance
from .series import Series

_TINY = 1e-12


@dataclass
class ComparisonResult:
    quantity: str
    method: str
    mode: str
    accepted: bool
    metrics: Dict[str, float] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    message: str = ""

    def describe(self) -> str:
        status = "ok" if self.accepted else "FAILED"
        parts = ", ".join(f"{k}={v:.6g}" for k, v in self.metrics.items())
        failed = f" failing={','.join(self.failed)}" if self.failed else ""
        msg = f" {self.message}" if self.message else ""
        return f"[{self.method}/{self.mode}] {self.quantity}: {status}{failed} ({parts}){msg}"


class Comparator:
    """Base class: subclasses implement ``assess`` (test) and ``absorb`` (generate)."""

    method = "base"

    def assess(self, observed: Series, record: Optional[ReferenceRecord]) -> ComparisonResult:  # pragma: no cover - interface
        raise NotImplementedError

    def absorb(self, observed: Series, record: Optional[ReferenceRecord]) -> Tuple[ComparisonResult, bool, Optional[EnsembleStats]]:  # pragma: no cover - interface
        """Return (result, append?, new ensemble stats) for generate mode."""
        raise NotImplementedError

    def test(self, observed: Series, db: ReferenceDatabase, run_configuration: str) -> ComparisonResult:
        return self.assess(observed, db.load(run_configuration, observed.quantity))

    def generate(self, observed: Series, db: ReferenceDatabase, run_configuration: str) -> ComparisonResult:
        record = db.load(run_configuration, observed.quantity)
        result, append, stats = self.absorb(observed, record)
        if append:
            db.append_run(run_configuration, observed, ensemble=stats)
        return result

    def _missing(self, observed: Series, mode: str) -> ComparisonResult:
        return ComparisonResult(
            observed.quantity, self.method, mode, False, failed=["reference"],
            message="no reference data stored for this quantity",
        )


class EnsembleAverageComparator(Comparator):
    method = "ensemble"

    def __init__(self, mean_threshold: float, variance_threshold: float) -> None:
        self.mean_threshold = require_positive("mean_threshold", mean_threshold)
        self.variance_threshold = require_positive("variance_threshold", variance_threshold)

    @staticmethod
    def errors(values: np.ndarray, stats: EnsembleStats) -> Tuple[float, float]:
        """Normalised (mean_error, variance_error) of one run against ``stats``."""
        mu = stats.mean
        scale = max(float(np.max(np.abs(mu))) if mu.size else 0.0, _TINY)
        dev = values - mu
        mean_error = float(np.max(np.abs(dev))) / scale if dev.size else 0.0
        excess = np.maximum(dev * dev - stats.variance, 0.0)
        variance_error = float(np.max(excess)) / (scale * scale) if excess.size else 0.0
        return mean_error, variance_error

    def _judge(self, quantity: str, mode: str, mean_error: float, variance_error: float, prefix: str = "") -> ComparisonResult:
        failed = []
        if not mean_error <= self.mean_threshold:
            failed.append(f"{prefix}mean")
        if not variance_error <= self.variance_threshold:
            failed.append(f"{prefix}variance")
        return ComparisonResult(
            quantity, self.method, mode, not failed,
            metrics={f"{prefix}mean_error": mean_error, f"{prefix}variance_error": variance_error},
            failed=failed,
        )

    def assess(self, observed: Series, record: Optional[ReferenceRecord]) -> ComparisonResult:
        if record is None or record.ensemble is None:
            return self._missing(observed, "test")
        stats = record.ensemble
        if observed.values.shape != stats.mean.shape:
            return ComparisonResult(
                observed.quantity, self.method, "test", False, failed=["shape"],
                message=f"observed shape {observed.values.shape} != reference shape {stats.mean.shape}",
            )
        mean_error, variance_error = self.errors(observed.values, stats)
        result = self._judge(observed.quantity, "test", mean_error, variance_error)
        result.metrics["runs"] = float(stats.count)
        return result

    def absorb(self, observed: Series, record: Optional[ReferenceRecord]):
        if record is None or record.ensemble is None:
            stats = EnsembleStats.start(observed.values)
            result = ComparisonResult(
                observed.quantity, self.method, "generate", False,
                metrics={"runs": 1.0}, message="ensemble started",
            )
            return result, True, stats
        old = record.ensemble
        if observed.values.shape != old.mean.shape:
            return ComparisonResult(
                observed.quantity, self.method, "generate", False, failed=["shape"],
                message=f"run shape {observed.values.shape} != ensemble shape {old.mean.shape}; not appended",
            ), False, None
        new = old.updated(observed.values)
        scale = max(float(np.max(np.abs(new.mean))) if new.mean.size else 0.0, _TINY)
        mean_change = float(np.max(np.abs(new.mean - old.mean))) / scale if new.mean.size else 0.0
        var_change = float(np.max(np.abs(new.variance - old.variance))) / (scale * scale) if new.mean.size else 0.0
        result = self._judge(observed.quantity, "generate", mean_change, var_change, prefix="delta_")
        result.failed = []  # convergence is informational in generate mode
        result.metrics["runs"] = float(new.count)
        result.message = "converged" if result.accepted else "not yet converged"
        dbg("validate").debug(result.describe())
        return result, True, new


class DtwComparator(Comparator):
    method = "dtw"

    def __init__(self, threshold: float, *, normalize: bool = False) -> None:
        self.threshold = require_positive("dtw threshold", threshold)
        self.normalize = bool(normalize)

    def distance(self, a: Series, b: Series) -> float:
        return dtw_distance(a.values, b.values, normalize=self.normalize)

    def reference(self, record: ReferenceRecord) -> Optional[Series]:
        """Medoid of the stored runs."""
        runs = record.runs
        if not runs:
            return None
        if len(runs) <= 2:
            return runs[0]
        totals = np.zeros(len(runs))
        for i in range(len(runs)):
            for j in range(i + 1, len(runs)):
                d = self.distance(runs[i], runs[j])
                totals[i] += d
                totals[j] += d
        return runs[int(np.argmin(totals))]

    def _compare(self, observed: Series, ref: Series, mode: str) -> ComparisonResult:
        if observed.n_components != ref.n_components:
            return ComparisonResult(
                observed.quantity, self.method, mode, False, failed=["shape"],
                message=f"observed has {observed.n_components} components, reference {ref.n_components}",
            )
        d = self.distance(observed, ref)
        accepted = d <= self.threshold
        return ComparisonResult(
            observed.quantity, self.method, mode, accepted,
            metrics={"dtw_distance": d, "threshold": self.threshold},
            failed=[] if accepted else ["dtw_distance"],
        )

    def assess(self, observed: Series, record: Optional[ReferenceRecord]) -> ComparisonResult:
        ref = self.reference(record) if record is not None else None
        if ref is None:
            return self._missing(observed, "test")
        return self._compare(observed, ref, "test")

    def absorb(self, observed: Series, record: Optional[ReferenceRecord]):
        ref = self.reference(record) if record is not None else None
        if ref is None:
            return ComparisonResult(
                observed.quantity, self.method, "generate", False,
                metrics={"runs": 1.0}, message="reference started",
            ), True, None
        result = self._compare(observed, ref, "generate")
        if "shape" in result.failed:
            result.message += "; not appended"
            return result, False, None
        result.failed = []
        result.metrics["runs"] = float(len(record.runs) + 1)
        result.message = "converged" if result.accepted else "not yet converged"
        return result, True, None


def make_comparator(method: str, *, mean_threshold: float = 1e-3, variance_threshold: float = 1e-3,
                    threshold: float = 1e-3, normalize: bool = False) -> Comparator:
    if method == "ensemble":
        return EnsembleAverageComparator(mean_threshold, variance_threshold)
    if method == "dtw":
        return DtwComparator(threshold, normalize=normalize)
    raise ConfigurationFailure(f"unknown comparison method {method!r}")


__all__ = [
    "ComparisonResult",
    "Comparator",
    "EnsembleAverageComparator",
    "DtwComparator",
    "make_comparator",
]
