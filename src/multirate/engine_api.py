# -*- coding: utf-8 -*-
"""Collaborator contracts consumed by the scheduler and coupling protocol.

Engines integrate by subclassing the shims below and overriding what they
support. Every delegated call is synchronous and blocking from the scheduler's
point of view; engines are free to parallelise internally.

- ContinuumEngine: the particle solver (step size estimators, fast and medium
  physics updates, neighbour configuration, force on the coupled body).
- RigidBodyIntegrator: the external multibody solver driven by the coupling
  protocol (clear/inject discrete loads, advance, report state).
- RecordingSink: fire-and-forget snapshot and observation writers.

Stability estimators are plain zero-argument callables returning a step size.
``as_estimator`` adapts engine methods and objects exposing ``exec()`` so call
sites can pass either form.
"""
from __future__ import annotations

from typing import Any, Callable, Tuple, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .coupling import CouplingState


Estimator = Callable[[], float]
ForceMoment = Tuple[np.ndarray, np.ndarray]


def as_estimator(obj: Any) -> Estimator:
    """Return a zero-argument step-size callable for ``obj``.

    Accepts a callable, an object with ``exec()`` or an object with
    ``compute_stable_step_size()``.
    """
    if callable(obj):
        return obj
    for name in ("exec", "compute_stable_step_size"):
        fn = getattr(obj, name, None)
        if callable(fn):
            return fn
    raise TypeError(f"cannot use {type(obj).__name__} as a step size estimator")


class ContinuumEngine:
    """Base shim for the continuum (particle) engine.

    Required: ``compute_stable_step_size``, ``advance_state``,
    ``compute_advection_step_size`` and ``refresh_neighbor_configuration``.
    The rest default to no-ops so single-physics cases only implement what
    they use. ``compute_force_on_coupled_body`` is required once coupling is
    configured.
    """

    # fast epoch -------------------------------------------------------
    def compute_stable_step_size(self) -> float:  # pragma: no cover - interface
        raise NotImplementedError

    def advance_state(self, dt: float) -> None:  # pragma: no cover - interface
        """First (or only) half of the fast-scale update."""
        raise NotImplementedError

    def complete_state(self, dt: float) -> None:
        """Second half of the fast-scale update, run after coupling."""
        return None

    # medium epoch -----------------------------------------------------
    def compute_advection_step_size(self) -> float:  # pragma: no cover - interface
        raise NotImplementedError

    def update_positions(self) -> None:
        return None

    def sort_particles(self) -> None:
        return None

    def refresh_neighbor_configuration(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def update_medium_scale(self, coupling_active: bool) -> None:
        """Advection-scale physics (density regularisation, viscous forces)."""
        return None

    # coupling -----------------------------------------------------------
    def compute_force_on_coupled_body(self) -> ForceMoment:  # pragma: no cover - interface
        raise NotImplementedError

    def apply_body_constraint(self, state: Any) -> None:
        """Write the rigid-body position/velocity back onto the boundary particles."""
        return None


class RigidBodyIntegrator:
    """Base shim for the external rigid-body integrator.

    ``advance`` must raise :class:`~src.multirate.errors.StepFailure` when the
    requested accuracy cannot be met within ``dt``.
    """

    def clear_forces(self, state: Any) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def set_force(self, state: Any, body: Any, coupling: "CouplingState") -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def advance(self, dt: float) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def current_state(self) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def sync_clock(self, time: float) -> None:
        """Move the integrator clock to ``time`` without touching the motion."""
        state = self.current_state()
        if hasattr(state, "time"):
            state.time = float(time)


class RecordingSink:
    """Fire-and-forget output. Return values are never consumed."""

    def write_snapshot(self) -> None:
        return None

    def write_observation(self, sequence_index: int) -> None:
        return None


class CompositeSink(RecordingSink):
    """Fan a single sink call out to several sinks in registration order."""

    def __init__(self, *sinks: RecordingSink) -> None:
        self.sinks = list(sinks)

    def add(self, sink: RecordingSink) -> RecordingSink:
        self.sinks.append(sink)
        return sink

    def write_snapshot(self) -> None:
        for s in self.sinks:
            s.write_snapshot()

    def write_observation(self, sequence_index: int) -> None:
        for s in self.sinks:
            s.write_observation(sequence_index)


__all__ = [
    "Estimator",
    "ForceMoment",
    "as_estimator",
    "ContinuumEngine",
    "RigidBodyIntegrator",
    "RecordingSink",
    "CompositeSink",
]
