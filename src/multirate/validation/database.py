# -*- coding: utf-8 -*-
"""On-disk reference database for regression validation.

Layout::

    <root>/<run configuration>/<quantity>.json

Each document holds every run appended in generate mode plus the running
ensemble statistics (count, per-sample mean and sum of squared deviations).
Generate mode appends; test mode only reads.
"""
from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..debug import dbg
from .series import Series

FORMAT_VERSION = 1
_SAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def _safe_name(name: str) -> str:
    cleaned = _SAFE.sub("_", str(name)).strip("._")
    return cleaned or "unnamed"


@dataclass
class EnsembleStats:
    """Per-sample running mean and variance (Welford) across runs."""

    count: int
    mean: np.ndarray
    m2: np.ndarray

    @property
    def variance(self) -> np.ndarray:
        if self.count < 2:
            return np.zeros_like(self.mean)
        return self.m2 / (self.count - 1)

    @classmethod
    def start(cls, values: np.ndarray) -> "EnsembleStats":
        v = np.asarray(values, dtype=float)
        return cls(1, v.copy(), np.zeros_like(v))

    def updated(self, values: np.ndarray) -> "EnsembleStats":
        v = np.asarray(values, dtype=float)
        if v.shape != self.mean.shape:
            raise ValueError(f"ensemble shape {self.mean.shape} cannot absorb a run of shape {v.shape}")
        n = self.count + 1
        delta = v - self.mean
        mean = self.mean + delta / n
        m2 = self.m2 + delta * (v - mean)
        return EnsembleStats(n, mean, m2)

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "mean": self.mean.tolist(), "m2": self.m2.tolist()}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "EnsembleStats":
        return cls(int(raw["count"]), np.asarray(raw["mean"], dtype=float), np.asarray(raw["m2"], dtype=float))


@dataclass
class ReferenceRecord:
    quantity: str
    run_configuration: str
    runs: List[Series] = field(default_factory=list)
    ensemble: Optional[EnsembleStats] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": FORMAT_VERSION,
            "quantity": self.quantity,
            "run_configuration": self.run_configuration,
            "runs": [r.to_dict() for r in self.runs],
            "ensemble": self.ensemble.to_dict() if self.ensemble is not None else None,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ReferenceRecord":
        """Rebuild a record; any malformed document raises ValueError."""
        if not isinstance(raw, dict):
            raise ValueError(f"malformed reference document: expected an object, got {type(raw).__name__}")
        version = raw.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"unsupported reference format version {version}")
        try:
            ens = raw.get("ensemble")
            return cls(
                quantity=raw["quantity"],
                run_configuration=raw["run_configuration"],
                runs=[Series.from_dict(r) for r in raw.get("runs", [])],
                ensemble=EnsembleStats.from_dict(ens) if ens else None,
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"malformed reference document: missing or mistyped {exc}") from exc


class ReferenceDatabase:
    """Reference series keyed by (run configuration, quantity name)."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, run_configuration: str, quantity: str) -> Path:
        return self.root / _safe_name(run_configuration) / f"{_safe_name(quantity)}.json"

    def exists(self, run_configuration: str, quantity: str) -> bool:
        return self.path_for(run_configuration, quantity).exists()

    def load(self, run_configuration: str, quantity: str) -> Optional[ReferenceRecord]:
        path = self.path_for(run_configuration, quantity)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as fh:
            return ReferenceRecord.from_dict(json.load(fh))

    def save(self, record: ReferenceRecord) -> Path:
        path = self.path_for(record.run_configuration, record.quantity)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(record.to_dict(), fh)
        os.replace(tmp, path)
        dbg("refdb").debug(f"saved {record.quantity} ({len(record.runs)} runs) -> {path}")
        return path

    def append_run(
        self,
        run_configuration: str,
        series: Series,
        *,
        ensemble: Optional[EnsembleStats] = None,
    ) -> ReferenceRecord:
        """Append ``series`` as a new run and persist; returns the new record."""
        record = self.load(run_configuration, series.quantity) or ReferenceRecord(series.quantity, run_configuration)
        record.runs.append(series)
        if ensemble is not None:
            record.ensemble = ensemble
        self.save(record)
        return record


__all__ = ["EnsembleStats", "ReferenceRecord", "ReferenceDatabase", "FORMAT_VERSION"]
