# -*- coding: utf-8 -*-
"""Physical time ownership for a run.

:class:`TimeStepper` is the only object that advances physical time. The
scheduler calls :meth:`TimeStepper.increment_physical_time` once per fast tick
with a stability estimator; every trigger reads the time through the stepper
handle it was created from.
"""
from __future__ import annotations

import math
from typing import Any, List

from .debug import dbg, is_enabled
from .engine_api import as_estimator
from .errors import ConfigurationFailure, StepFailure
from .triggers import Trigger, TriggerKind, absolute_trigger, adaptive_trigger, interval_trigger


class TimeStepper:
    """Hold physical time, the end time and the triggers of one run."""

    def __init__(self, end_time: float, *, start_time: float = 0.0) -> None:
        start_time = float(start_time)
        end_time = float(end_time)
        if not math.isfinite(start_time) or not math.isfinite(end_time):
            raise ConfigurationFailure("start and end time must be finite")
        if end_time < start_time:
            raise ConfigurationFailure(f"end time {end_time} precedes start time {start_time}")
        self._physical_time = start_time
        self.start_time = start_time
        self.end_time = end_time
        self.global_step_size = 0.0
        self.step_count = 0
        self._triggers: List[Trigger] = []

    @property
    def physical_time(self) -> float:
        return self._physical_time

    def get_physical_time(self) -> float:
        return self._physical_time

    def is_end_time(self) -> bool:
        return self._physical_time >= self.end_time

    def increment_physical_time(self, estimator: Any) -> float:
        """Query ``estimator`` for a stable step, advance time by it, return it."""
        fn = as_estimator(estimator)
        dt = float(fn())
        if not (dt > 0.0) or not math.isfinite(dt):
            raise StepFailure("stability estimator returned an unusable step size", physical_time=self._physical_time, dt=dt)
        self._physical_time += dt
        self.global_step_size = dt
        self.step_count += 1
        if is_enabled():
            dbg("stepper").debug(f"N={self.step_count} t={self._physical_time:.9g} dt={dt:.6g}")
        return dt

    # trigger registration -------------------------------------------------
    def _own(self, trigger: Trigger) -> Trigger:
        trigger.clock = self.get_physical_time
        self._triggers.append(trigger)
        return trigger

    def add_trigger_by_interval(self, interval: float, *, label: str = "") -> Trigger:
        return self._own(interval_trigger(interval, start=self._physical_time, label=label))

    def add_trigger_by_physical_time(self, activation_time: float, *, label: str = "") -> Trigger:
        return self._own(absolute_trigger(activation_time, label=label))

    def add_adaptive_trigger(self, estimator: Any, *, label: str = "") -> Trigger:
        return self._own(adaptive_trigger(estimator, start=self._physical_time, label=label))

    @property
    def triggers(self) -> tuple[Trigger, ...]:
        return tuple(self._triggers)

    def triggers_of_kind(self, kind: TriggerKind) -> list[Trigger]:
        return [t for t in self._triggers if t.kind is kind]

    def __repr__(self) -> str:
        return (
            f"TimeStepper(t={self._physical_time:.9g}, end={self.end_time:.9g}, "
            f"dt={self.global_step_size:.6g}, triggers={len(self._triggers)})"
        )


__all__ = ["TimeStepper"]
