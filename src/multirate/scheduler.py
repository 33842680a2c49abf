# -*- coding: utf-8 -*-
"""Multi-rate integration scheduler.

Three nested epochs share one physical clock owned by a
:class:`~src.multirate.time_stepper.TimeStepper`:

fast (acoustic)
    Every tick. The stability estimator sets ``dt``; the engine advances its
    state, the coupling protocol exchanges loads with the structure once its
    activation trigger has latched, then the engine completes the step.
medium (advection)
    An adaptive trigger fed by the advection step estimator. On firing the
    particles move, the neighbour configuration is rebuilt and the
    advection-scale physics runs. Progress screening, observation recording
    and particle sorting happen every N medium steps.
slow (output)
    An interval trigger writing full snapshots.

Triggers are evaluated only after a complete fast advance, and
``is_end_time()`` is the only loop condition.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .config import SchedulerConfig
from .coupling import FsiCouplingProtocol
from .debug import dbg, is_enabled
from .engine_api import ContinuumEngine, RecordingSink
from .recording import describe_state
from .time_stepper import TimeStepper
from .timing import IntervalLedger
from .triggers import Trigger


@dataclass
class RunSummary:
    fast_steps: int = 0
    medium_steps: int = 0
    slow_steps: int = 0
    observations: int = 0
    snapshots: int = 0
    coupled_steps: int = 0
    final_time: float = 0.0
    ledger: IntervalLedger = field(default_factory=IntervalLedger)

    def lines(self) -> list[str]:
        head = [
            f"final time = {self.final_time:.9g}",
            f"fast steps = {self.fast_steps}, medium steps = {self.medium_steps}, "
            f"output events = {self.slow_steps}, coupled steps = {self.coupled_steps}",
        ]
        return head + self.ledger.summary_lines()


class MultiRateScheduler:
    """Drive a continuum engine through the fast/medium/slow epochs.

    Parameters
    ----------
    engine:
        Continuum engine implementing :class:`ContinuumEngine`.
    stepper:
        Owner of physical time. The scheduler registers its medium and slow
        triggers on it during setup.
    sink:
        Snapshot/observation writer; defaults to a no-op sink.
    config:
        Cadences and recording policy.
    coupling:
        Optional FSI protocol whose activation trigger lives on ``stepper``.
    """

    def __init__(
        self,
        engine: ContinuumEngine,
        stepper: TimeStepper,
        *,
        sink: Optional[RecordingSink] = None,
        config: Optional[SchedulerConfig] = None,
        coupling: Optional[FsiCouplingProtocol] = None,
    ) -> None:
        self.engine = engine
        self.stepper = stepper
        self.sink = sink if sink is not None else RecordingSink()
        self.config = (config or SchedulerConfig()).validate()
        self.coupling = coupling
        self.summary = RunSummary()
        self.advection: Optional[Trigger] = None
        self.output: Optional[Trigger] = None
        self._ready = False
        self._log = dbg("scheduler")

    @property
    def ledger(self) -> IntervalLedger:
        return self.summary.ledger

    # helpers -------------------------------------------------------------
    def _coupling_active(self) -> bool:
        return self.coupling is not None and self.coupling.is_active()

    def _recording_allowed(self, active: bool) -> bool:
        return active or not self.config.record_after_coupling

    @staticmethod
    def _every(count: int, interval: int) -> bool:
        return interval > 0 and count % interval == 0

    def _observe(self) -> None:
        with self.ledger.measure("output"):
            self.sink.write_observation(self.summary.observations)
        self.summary.observations += 1

    def _snapshot(self) -> None:
        with self.ledger.measure("output"):
            self.sink.write_snapshot()
        self.summary.snapshots += 1

    # setup ---------------------------------------------------------------
    def setup(self) -> None:
        """Initial configuration, medium-scale setup, triggers and first output."""
        if self._ready:
            return
        active = self._coupling_active()
        with self.ledger.measure("configuration"):
            self.engine.refresh_neighbor_configuration()
        with self.ledger.measure("advection"):
            self.engine.update_medium_scale(active)
        self.advection = self.stepper.add_adaptive_trigger(
            self.engine.compute_advection_step_size, label="advection"
        )
        self.output = self.stepper.add_trigger_by_interval(self.config.output_interval, label="output")
        if self.config.write_initial_output and self._recording_allowed(active):
            self._snapshot()
            self._observe()
        self._ready = True
        self._log.info(
            f"setup done: t={self.stepper.physical_time:.9g} end={self.stepper.end_time:.9g} "
            f"advection interval={self.advection.interval:.6g} output interval={self.output.interval:.6g}"
        )

    # epochs --------------------------------------------------------------
    def _fast(self) -> bool:
        with self.ledger.measure("acoustic"):
            dt = self.stepper.increment_physical_time(self.engine.compute_stable_step_size)
            self.engine.advance_state(dt)
        # single read per tick, reused by every later stage of this tick
        active = self._coupling_active()
        if active:
            with self.ledger.measure("fsi"):
                self.coupling.step(dt, physical_time=self.stepper.physical_time, active=True)
            self.summary.coupled_steps += 1
        with self.ledger.measure("acoustic"):
            self.engine.complete_state(dt)
        self.summary.fast_steps += 1
        return active

    def _medium(self, active: bool) -> None:
        summary = self.summary
        cfg = self.config
        with self.ledger.measure("advection"):
            self.engine.update_positions()
        summary.medium_steps += 1
        n = summary.medium_steps

        if self._every(n, cfg.screening_interval):
            msg = (
                f"N={n} t={self.stepper.physical_time:.9g} dt={self.stepper.global_step_size:.6g} "
                f"advection dt={self.advection.interval:.6g} fast steps={summary.fast_steps}"
            )
            if self.coupling is not None and self.coupling.state is not None:
                msg += f" load: {describe_state(self.coupling.state)}"
            self._log.info(msg)

        if self._every(n, cfg.observation_interval) and self._recording_allowed(active):
            self._observe()

        with self.ledger.measure("configuration"):
            if self._every(n, cfg.sort_interval):
                self.engine.sort_particles()
            self.engine.refresh_neighbor_configuration()
        with self.ledger.measure("advection"):
            self.engine.update_medium_scale(active)

    def tick(self) -> None:
        """One fast step followed by any medium/slow work it makes due."""
        if not self._ready:
            self.setup()
        active = self._fast()
        if self.advection.fire():
            self._medium(active)
        if self.output.fire():
            self.summary.slow_steps += 1
            if self._recording_allowed(active):
                self._snapshot()
        if is_enabled():
            self._log.debug(f"tick done: {self.stepper!r} coupled={active}")

    def run(self) -> RunSummary:
        self.setup()
        while not self.stepper.is_end_time():
            self.tick()
        self.summary.final_time = self.stepper.physical_time
        for line in self.summary.lines():
            self._log.info(line)
        return self.summary


__all__ = ["RunSummary", "MultiRateScheduler"]
