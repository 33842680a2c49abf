# -*- coding: utf-8 -*-
"""Run configuration dataclasses.

Every field has a default that works for small demonstration runs. Configs
are plain dataclasses; ``RunConfig.from_dict`` / :func:`load_config` build them
from JSON documents and ``validate()`` rejects malformed settings before any
run loop starts.

Example document::

    {
      "scheduler": {"end_time": 10.0, "output_interval": 0.1},
      "coupling": {"start_time": 1.0},
      "validation": {
        "mode": "test",
        "database_dir": "reference_db",
        "comparators": [
          {"quantity": "Position", "method": "dtw", "threshold": 1e-3}
        ]
      }
    }
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationFailure, require_finite, require_positive

MODES = ("generate", "test")
METHODS = ("ensemble", "dtw")


def _build(cls, raw: Dict[str, Any], where: str):
    if not isinstance(raw, dict):
        raise ConfigurationFailure(f"{where}: expected an object, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationFailure(f"{where}: unknown keys {unknown}")
    try:
        return cls(**raw)
    except TypeError as exc:
        raise ConfigurationFailure(f"{where}: {exc}") from exc


@dataclass
class SchedulerConfig:
    end_time: float = 10.0
    start_time: float = 0.0
    # Slow epoch: full snapshot cadence in physical time.
    output_interval: float = 0.1
    # Medium-epoch cadences, counted in advection steps (0 disables).
    screening_interval: int = 100
    observation_interval: int = 50
    sort_interval: int = 100
    # Only record observations/snapshots once coupling is active.
    record_after_coupling: bool = False
    write_initial_output: bool = True

    def validate(self) -> "SchedulerConfig":
        self.start_time = require_finite("scheduler.start_time", self.start_time)
        self.end_time = require_finite("scheduler.end_time", self.end_time)
        if self.end_time < self.start_time:
            raise ConfigurationFailure(
                f"scheduler.end_time must be >= start_time, got {self.end_time!r}"
            )
        self.output_interval = require_positive("scheduler.output_interval", self.output_interval)
        for name in ("screening_interval", "observation_interval", "sort_interval"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationFailure(f"scheduler.{name} must be a non-negative integer, got {value!r}")
        return self


@dataclass
class CouplingConfig:
    enabled: bool = True
    # Hydrostatic warm-up: no structural coupling before this time.
    start_time: float = 1.0
    body: str = "structure"

    def validate(self) -> "CouplingConfig":
        self.start_time = require_finite("coupling.start_time", self.start_time)
        return self


@dataclass
class ComparatorConfig:
    quantity: str
    method: str = "dtw"
    # ensemble-average thresholds
    mean_threshold: float = 1e-3
    variance_threshold: float = 1e-3
    # dtw threshold
    threshold: float = 1e-3
    normalize: bool = False

    def validate(self) -> "ComparatorConfig":
        if not self.quantity or not isinstance(self.quantity, str):
            raise ConfigurationFailure(f"comparator quantity must be a non-empty string, got {self.quantity!r}")
        if self.method not in METHODS:
            raise ConfigurationFailure(f"comparator '{self.quantity}': method must be one of {METHODS}, got {self.method!r}")
        if self.method == "ensemble":
            require_positive(f"{self.quantity}.mean_threshold", self.mean_threshold)
            require_positive(f"{self.quantity}.variance_threshold", self.variance_threshold)
        else:
            require_positive(f"{self.quantity}.threshold", self.threshold)
        return self


@dataclass
class ValidationConfig:
    mode: str = "test"
    database_dir: str = "reference_db"
    run_configuration: str = "default"
    comparators: List[ComparatorConfig] = field(default_factory=list)

    def validate(self) -> "ValidationConfig":
        if self.mode not in MODES:
            raise ConfigurationFailure(f"validation.mode must be one of {MODES}, got {self.mode!r}")
        for name in ("run_configuration", "database_dir"):
            value = getattr(self, name)
            if not value or not isinstance(value, str):
                raise ConfigurationFailure(f"validation.{name} must be a non-empty string, got {value!r}")
        seen = set()
        for c in self.comparators:
            c.validate()
            if c.quantity in seen:
                raise ConfigurationFailure(f"quantity '{c.quantity}' configured twice")
            seen.add(c.quantity)
        return self

    def comparator_for(self, quantity: str) -> Optional[ComparatorConfig]:
        for c in self.comparators:
            if c.quantity == quantity:
                return c
        return None


@dataclass
class RunConfig:
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    coupling: CouplingConfig = field(default_factory=CouplingConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    # Case-specific parameters handed to the engine factory untouched.
    case: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> "RunConfig":
        self.scheduler.validate()
        self.coupling.validate()
        self.validation.validate()
        return self

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RunConfig":
        if not isinstance(raw, dict):
            raise ConfigurationFailure("run configuration must be a JSON object")
        unknown = sorted(set(raw) - {"scheduler", "coupling", "validation", "case"})
        if unknown:
            raise ConfigurationFailure(f"unknown top-level keys {unknown}")
        for key in ("validation", "case"):
            if not isinstance(raw.get(key, {}), dict):
                raise ConfigurationFailure(f"{key}: expected an object, got {type(raw[key]).__name__}")
        val_raw = dict(raw.get("validation", {}))
        raw_comparators = val_raw.pop("comparators", [])
        if not isinstance(raw_comparators, list):
            raise ConfigurationFailure("validation.comparators must be a list")
        comparators = [
            _build(ComparatorConfig, c, f"validation.comparators[{i}]")
            for i, c in enumerate(raw_comparators)
        ]
        validation = _build(ValidationConfig, val_raw, "validation")
        validation.comparators = comparators
        cfg = cls(
            scheduler=_build(SchedulerConfig, raw.get("scheduler", {}), "scheduler"),
            coupling=_build(CouplingConfig, raw.get("coupling", {}), "coupling"),
            validation=validation,
            case=dict(raw.get("case", {})),
        )
        return cfg.validate()


def load_config(path: str | Path) -> RunConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigurationFailure(f"config file not found: {p}")
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationFailure(f"{p}: invalid JSON ({exc})") from exc
    return RunConfig.from_dict(raw)


__all__ = [
    "MODES",
    "METHODS",
    "SchedulerConfig",
    "CouplingConfig",
    "ComparatorConfig",
    "ValidationConfig",
    "RunConfig",
    "load_config",
]
