# -*- coding: utf-8 -*-
"""Time-event triggers for the multi-rate scheduler.

A trigger is a small stateful predicate over physical time. Three kinds exist
and share one record type, dispatched by :func:`evaluate_trigger`:

interval
    Fires when ``t - last_fired >= interval``. Firing advances ``last_fired``
    by exactly one interval (not to ``t``), so the nominal cadence stays
    uniform however irregular the query times are. A query that overshoots
    several boundaries fires once; later queries catch up one boundary each.
absolute
    Fires once ``t >= threshold`` and latches: every later query is true,
    even if time were to go backwards. Used to gate one-time activation such
    as "structural coupling starts after the warm-up".
adaptive
    An interval trigger whose interval is re-estimated by an external
    estimator each time it fires. Evaluation returns both the boolean and the
    interval in force, and the estimate is memoised per physical time so a
    second query in the same tick does not invoke the estimator again.

Triggers are normally created through
:class:`~src.multirate.time_stepper.TimeStepper`, which hands them a clock so
``trigger()`` can be called without passing the time explicitly.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, NamedTuple, Optional

from .debug import dbg, is_enabled
from .engine_api import Estimator, as_estimator
from .errors import ConfigurationFailure, StepFailure, require_positive

# Relative slack on interval comparisons so accumulated round-off in
# ``last_fired`` cannot skip a nominal boundary.
_REL_EPS = 1e-12


class TriggerKind(Enum):
    INTERVAL = "interval"
    ABSOLUTE = "absolute"
    ADAPTIVE = "adaptive"


class TriggerResult(NamedTuple):
    fired: bool
    value: float


@dataclass
class Trigger:
    """Tagged trigger record. See the module docstring for the kinds.

    ``threshold`` is the interval for interval/adaptive kinds and the
    activation time for the absolute kind.
    """

    kind: TriggerKind
    threshold: float
    last_fired: float = 0.0
    label: str = ""
    clock: Optional[Callable[[], float]] = field(default=None, repr=False)
    estimator: Optional[Estimator] = field(default=None, repr=False)
    fire_count: int = 0
    latched: bool = False
    _memo: Optional[tuple[float, float]] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, TriggerKind):
            self.kind = TriggerKind(self.kind)
        if self.kind is TriggerKind.ABSOLUTE:
            t = float(self.threshold)
            if not math.isfinite(t):
                raise ConfigurationFailure(f"trigger '{self.label}': activation time must be finite, got {self.threshold!r}")
            self.threshold = t
        else:
            self.threshold = require_positive(f"trigger '{self.label}' interval", self.threshold)
        if not math.isfinite(float(self.last_fired)):
            raise ConfigurationFailure(f"trigger '{self.label}': start time must be finite")
        self.last_fired = float(self.last_fired)
        if self.estimator is not None:
            self.estimator = as_estimator(self.estimator)

    @property
    def interval(self) -> float:
        return self.threshold

    def _now(self, current_time: Optional[float]) -> float:
        if current_time is not None:
            return float(current_time)
        if self.clock is None:
            raise ValueError(f"trigger '{self.label}' has no clock; pass current_time explicitly")
        return float(self.clock())

    def fire(self, current_time: Optional[float] = None) -> bool:
        return evaluate_trigger(self, self._now(current_time)).fired

    def fire_with_step(
        self, current_time: Optional[float] = None, estimator: Optional[Estimator] = None
    ) -> tuple[bool, float]:
        """Evaluate and also return the interval/step in force after evaluation."""
        res = evaluate_trigger(self, self._now(current_time), estimator)
        return res.fired, res.value

    def __call__(self, estimator: Optional[Estimator] = None) -> bool:
        return evaluate_trigger(self, self._now(None), estimator).fired

    def estimate(self, current_time: float, estimator: Optional[Estimator] = None) -> float:
        """Query the adaptive estimator once per physical time."""
        if self._memo is not None and self._memo[0] == current_time:
            return self._memo[1]
        fn = as_estimator(estimator) if estimator is not None else self.estimator
        if fn is None:
            raise ValueError(f"adaptive trigger '{self.label}' has no estimator")
        value = float(fn())
        if not (value > 0.0) or not math.isfinite(value):
            raise StepFailure(
                f"adaptive trigger '{self.label}': estimator returned unusable interval {value!r}",
                physical_time=current_time,
            )
        self._memo = (current_time, value)
        return value


def _interval_due(trigger: Trigger, current_time: float) -> bool:
    return current_time - trigger.last_fired >= trigger.threshold * (1.0 - _REL_EPS)


def evaluate_trigger(
    trigger: Trigger, current_time: float, estimator: Optional[Estimator] = None
) -> TriggerResult:
    """Single evaluation entry point for every trigger kind."""
    kind = trigger.kind
    if kind is TriggerKind.ABSOLUTE:
        if not trigger.latched and current_time >= trigger.threshold:
            trigger.latched = True
            trigger.last_fired = trigger.threshold
            trigger.fire_count += 1
            if is_enabled():
                dbg("trigger").debug(f"{trigger.label or 'absolute'} latched at t={current_time:.9g}")
        return TriggerResult(trigger.latched, trigger.threshold)

    if kind is TriggerKind.INTERVAL:
        if _interval_due(trigger, current_time):
            trigger.last_fired += trigger.threshold
            trigger.fire_count += 1
            if is_enabled():
                dbg("trigger").debug(
                    f"{trigger.label or 'interval'} fired at t={current_time:.9g} nominal={trigger.last_fired:.9g}"
                )
            return TriggerResult(True, trigger.threshold)
        return TriggerResult(False, trigger.threshold)

    if kind is TriggerKind.ADAPTIVE:
        if _interval_due(trigger, current_time):
            trigger.last_fired += trigger.threshold
            trigger.threshold = trigger.estimate(current_time, estimator)
            trigger.fire_count += 1
            if is_enabled():
                dbg("trigger").debug(
                    f"{trigger.label or 'adaptive'} fired at t={current_time:.9g} "
                    f"nominal={trigger.last_fired:.9g} next_interval={trigger.threshold:.6g}"
                )
            return TriggerResult(True, trigger.threshold)
        return TriggerResult(False, trigger.threshold)

    raise ValueError(f"unknown trigger kind: {kind!r}")  # pragma: no cover


def interval_trigger(interval: float, *, start: float = 0.0, label: str = "") -> Trigger:
    return Trigger(TriggerKind.INTERVAL, interval, last_fired=start, label=label)


def absolute_trigger(activation_time: float, *, label: str = "") -> Trigger:
    return Trigger(TriggerKind.ABSOLUTE, activation_time, label=label)


def adaptive_trigger(estimator: Estimator, *, start: float = 0.0, label: str = "") -> Trigger:
    """Create an adaptive trigger seeded with one estimator call at ``start``."""
    fn = as_estimator(estimator)
    trig = Trigger(TriggerKind.ADAPTIVE, fn(), last_fired=start, label=label, estimator=fn)
    trig._memo = (float(start), trig.threshold)
    return trig


__all__ = [
    "TriggerKind",
    "TriggerResult",
    "Trigger",
    "evaluate_trigger",
    "interval_trigger",
    "absolute_trigger",
    "adaptive_trigger",
]
