# -*- coding: utf-8 -*-
"""End-of-run regression validation over every registered quantity."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Union

from ..config import MODES, ValidationConfig
from ..debug import dbg
from ..errors import ConfigurationFailure, ValidationFailure
from .comparators import Comparator, ComparisonResult, make_comparator
from .database import ReferenceDatabase
from .series import Series

SeriesSource = Union[Series, Callable[[], Series]]


@dataclass
class ValidationReport:
    mode: str
    results: List[ComparisonResult] = field(default_factory=list)

    @property
    def failures(self) -> List[ComparisonResult]:
        return [r for r in self.results if r.failed]

    @property
    def validated(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise ValidationFailure(self.failures)

    def summary_lines(self) -> List[str]:
        return [r.describe() for r in self.results]


class RegressionValidator:
    """Compare recorded series with the reference database.

    The mode is fixed for the lifetime of the validator. ``run`` evaluates
    every registered quantity before reporting, so one invocation surfaces
    all failing quantities at once.
    """

    def __init__(self, database: Union[ReferenceDatabase, str, Path], run_configuration: str, mode: str = "test") -> None:
        if mode not in MODES:
            raise ConfigurationFailure(f"validation mode must be one of {MODES}, got {mode!r}")
        if not run_configuration:
            raise ConfigurationFailure("run configuration key must not be empty")
        self.database = database if isinstance(database, ReferenceDatabase) else ReferenceDatabase(database)
        self.run_configuration = run_configuration
        self.mode = mode
        self._entries: Dict[str, tuple[Comparator, SeriesSource]] = {}

    @classmethod
    def from_config(cls, cfg: ValidationConfig, sources: Mapping[str, SeriesSource]) -> "RegressionValidator":
        cfg.validate()
        validator = cls(cfg.database_dir, cfg.run_configuration, cfg.mode)
        for c in cfg.comparators:
            if c.quantity not in sources:
                raise ConfigurationFailure(f"no recorded series for configured quantity '{c.quantity}'")
            comparator = make_comparator(
                c.method,
                mean_threshold=c.mean_threshold,
                variance_threshold=c.variance_threshold,
                threshold=c.threshold,
                normalize=c.normalize,
            )
            validator.register(c.quantity, comparator, sources[c.quantity])
        return validator

    def register(self, quantity: str, comparator: Comparator, source: SeriesSource) -> None:
        if quantity in self._entries:
            raise ConfigurationFailure(f"quantity '{quantity}' registered twice")
        self._entries[quantity] = (comparator, source)

    @property
    def quantities(self) -> List[str]:
        return list(self._entries)

    def _resolve(self, quantity: str, source: SeriesSource) -> Series:
        series = source() if callable(source) else source
        if series.quantity != quantity:
            series = Series(quantity, series.values, series.index, series.time, dict(series.meta))
        return series

    def run(self) -> ValidationReport:
        report = ValidationReport(self.mode)
        log = dbg("validate")
        for quantity, (comparator, source) in self._entries.items():
            try:
                observed = self._resolve(quantity, source)
                if self.mode == "generate":
                    result = comparator.generate(observed, self.database, self.run_configuration)
                else:
                    result = comparator.test(observed, self.database, self.run_configuration)
            except ValueError as exc:
                result = ComparisonResult(quantity, comparator.method, self.mode, False, failed=["error"], message=str(exc))
            report.results.append(result)
            if result.failed:
                log.warning(result.describe())
            else:
                log.info(result.describe())
        return report


__all__ = ["ValidationReport", "RegressionValidator", "SeriesSource"]
