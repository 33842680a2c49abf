# -*- coding: utf-8 -*-
"""Fluid–structure coupling protocol.

Once the activation trigger has latched, each fast tick exchanges loads with
the external rigid-body integrator in a fixed order:

1. aggregate pressure/viscous force and moment on the coupled body
   (continuum side);
2. clear every discrete force previously injected into the rigid-body state;
3. inject the new force/moment as one discrete load;
4. advance the rigid-body integrator by exactly the fast step just consumed
   and check that its clock lands on physical time;
5. write the resulting position/velocity back onto the continuum boundary.

The first coupled tick moves the integrator clock to the start of that tick.
Before the latch nothing is computed or injected, so the warm-up transient
never loads the structure. Integrator failures propagate as
:class:`~src.multirate.errors.StepFailure`; step size control belongs to the
fast-epoch estimator, so nothing is retried here.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from .debug import dbg, is_enabled, pretty_vec
from .engine_api import ContinuumEngine, RigidBodyIntegrator
from .errors import StepFailure
from .triggers import Trigger, TriggerKind

# Tolerance on the rigid-body clock matching the consumed fast step.
_SYNC_RTOL = 1e-9


@dataclass
class CouplingState:
    """Generalised load on the coupled body for one fast tick."""

    force: np.ndarray
    moment: np.ndarray
    time: float = 0.0

    def __post_init__(self) -> None:
        self.force = np.atleast_1d(np.asarray(self.force, dtype=float))
        self.moment = np.atleast_1d(np.asarray(self.moment, dtype=float))

    def as_vector(self) -> np.ndarray:
        return np.concatenate([self.force, self.moment])

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.force)) and np.all(np.isfinite(self.moment)))

    @classmethod
    def zero(cls, dim: int = 2, moment_dim: int = 1) -> "CouplingState":
        return cls(np.zeros(dim), np.zeros(moment_dim))


class FsiCouplingProtocol:
    """Drive one continuum engine against one rigid-body integrator.

    Parameters
    ----------
    engine:
        Continuum side; provides the aggregated load and takes the
        constraint back.
    integrator:
        Rigid-body side; owned exclusively by this protocol during a tick.
    activation:
        Absolute-time trigger gating the coupling.
    body:
        Handle of the coupled body inside the integrator.
    publish:
        Optional callback receiving each new :class:`CouplingState`.
    """

    def __init__(
        self,
        engine: ContinuumEngine,
        integrator: RigidBodyIntegrator,
        activation: Trigger,
        *,
        body: Any = "structure",
        publish: Optional[Callable[[CouplingState], None]] = None,
    ) -> None:
        if activation.kind is not TriggerKind.ABSOLUTE:
            raise ValueError("coupling activation must be an absolute-time trigger")
        self.engine = engine
        self.integrator = integrator
        self.activation = activation
        self.body = body
        self.publish = publish
        self.state: Optional[CouplingState] = None
        self.steps = 0
        # Coupled clock; set to the start of the first coupled tick.
        self.coupled_time: Optional[float] = None

    def is_active(self, current_time: Optional[float] = None) -> bool:
        return self.activation.fire(current_time)

    def step(self, dt: float, *, physical_time: float = 0.0, active: Optional[bool] = None) -> Optional[CouplingState]:
        """Run one exchange if active; return the injected load or None."""
        if active is None:
            active = self.is_active()
        if not active:
            return None

        force, moment = self.engine.compute_force_on_coupled_body()
        load = CouplingState(force, moment, time=physical_time)
        if not load.is_finite():
            raise StepFailure("non-finite load on coupled body", physical_time=physical_time, dt=dt)

        if self.coupled_time is None:
            # physical_time is already past the consumed step
            self.coupled_time = physical_time - dt
            self.integrator.sync_clock(self.coupled_time)
        rb_state = self.integrator.current_state()
        t_before = getattr(rb_state, "time", None)
        self.integrator.clear_forces(rb_state)
        self.integrator.set_force(rb_state, self.body, load)
        new_state = self.integrator.advance(dt)
        self.coupled_time += dt
        self._check_sync(t_before, new_state, dt, physical_time)
        self.engine.apply_body_constraint(new_state)

        self.state = load
        self.steps += 1
        if self.publish is not None:
            self.publish(load)
        if is_enabled():
            dbg("fsi").debug(
                f"t={physical_time:.9g} dt={dt:.6g} force={pretty_vec(load.force)} moment={pretty_vec(load.moment)}"
            )
        return load

    def _check_sync(self, t_before: Optional[float], new_state: Any, dt: float, physical_time: float) -> None:
        if not _same_time(self.coupled_time, physical_time):
            raise StepFailure(
                f"coupled clock {self.coupled_time:.12g} does not match physical time",
                physical_time=physical_time,
                dt=dt,
            )
        t_after = getattr(new_state, "time", None)
        if t_before is None or t_after is None:
            return
        advanced = float(t_after) - float(t_before)
        if not math.isclose(advanced, dt, rel_tol=_SYNC_RTOL, abs_tol=1e-12 * max(1.0, abs(float(t_after)))):
            raise StepFailure(
                f"rigid-body integrator advanced {advanced:.9g} instead of the fast step",
                physical_time=physical_time,
                dt=dt,
            )
        if not _same_time(float(t_after), physical_time):
            raise StepFailure(
                f"rigid-body clock {float(t_after):.12g} does not match physical time",
                physical_time=physical_time,
                dt=dt,
            )


def _same_time(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=_SYNC_RTOL, abs_tol=1e-12 * max(1.0, abs(b)))


__all__ = ["CouplingState", "FsiCouplingProtocol"]
