# -*- coding: utf-8 -*-
"""Error taxonomy for a multi-rate run.

- StepFailure: a stability estimator or the rigid-body integrator could not
  produce a usable step. Fatal; unwinds to process exit.
- ValidationFailure: one or more recorded quantities diverged from the
  reference database. Raised only after every comparison has run.
- ConfigurationFailure: malformed thresholds or settings, rejected before the
  run loop starts.
"""
from __future__ import annotations

import math
from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .validation.comparators import ComparisonResult


class MultirateError(Exception):
    """Base class for every error raised by the multirate package."""


class StepFailure(MultirateError, RuntimeError):
    def __init__(self, message: str, *, physical_time: float | None = None, dt: float | None = None):
        self.physical_time = physical_time
        self.dt = dt
        detail = []
        if physical_time is not None:
            detail.append(f"t={physical_time:.9g}")
        if dt is not None:
            detail.append(f"dt={dt:.6g}")
        super().__init__(message + (f" ({', '.join(detail)})" if detail else ""))


class ConfigurationFailure(MultirateError, ValueError):
    pass


class ValidationFailure(MultirateError, AssertionError):
    """Collective report of every quantity that failed regression testing."""

    def __init__(self, failures: Sequence["ComparisonResult"]):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} quantity comparison(s) failed:"]
        for f in self.failures:
            lines.append(f"  {f.describe()}")
        super().__init__("\n".join(lines))


def require_finite(name: str, value: float) -> float:
    """Return ``value`` as float or raise ConfigurationFailure if not finite."""
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationFailure(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(v):
        raise ConfigurationFailure(f"{name} must be finite, got {value!r}")
    return v


def require_positive(name: str, value: float) -> float:
    """Return ``value`` as float or raise ConfigurationFailure if not finite > 0."""
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationFailure(f"{name} must be a number, got {value!r}") from exc
    if not (v > 0.0) or v == float("inf"):
        raise ConfigurationFailure(f"{name} must be positive and finite, got {value!r}")
    return v


__all__ = [
    "MultirateError",
    "StepFailure",
    "ConfigurationFailure",
    "ValidationFailure",
    "require_finite",
    "require_positive",
]
