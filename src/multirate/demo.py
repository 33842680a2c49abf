# -*- coding: utf-8 -*-
"""Floating-body demonstration case.

A box floats on a strip of water columns. The water is a toy continuum
surrogate (linear surface waves on ``n_columns`` columns with viscous
smoothing); the box is integrated by :class:`PlanarRigidBodyIntegrator`.
Coupling starts after a hydrostatic warm-up, so the box is held in place until
the water has settled and is then released from ``drop_height`` above its
equilibrium draught.

This is not a physical model. It exercises every scheduler, coupling and
validation path end to end with cheap, deterministic numerics.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import numpy as np

from .config import ComparatorConfig, RunConfig
from .coupling import FsiCouplingProtocol
from .debug import dbg, is_enabled
from .engine_api import CompositeSink, ContinuumEngine, ForceMoment
from .errors import ConfigurationFailure, require_positive
from .recording import CallbackSink, CouplingRecorder, ObservationRecorder
from .rigid_body import BodyLink, PlanarBodyState, PlanarRigidBodyIntegrator, WorldAnchor
from .scheduler import MultiRateScheduler, RunSummary
from .time_stepper import TimeStepper
from .validation.validator import RegressionValidator, ValidationReport


@dataclass
class FloatingBodyCase:
    fluid_density: float = 1000.0
    body_density: float = 500.0
    body_width: float = 0.2
    body_height: float = 0.1
    tank_width: float = 1.0
    depth: float = 0.5
    n_columns: int = 50
    gravity: float = 9.81
    sound_speed: float = 10.0
    cfl: float = 0.25
    advection_cfl: float = 0.2
    max_advection_step: float = 0.01
    viscosity: float = 0.05
    drag: float = 20.0
    contact_stiffness: float = 400.0
    rotational_stiffness: float = 5.0
    initial_bump: float = 0.01
    drop_height: float = 0.02
    accuracy: float = 1e-3
    mooring: bool = False

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FloatingBodyCase":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigurationFailure(f"case: unknown keys {unknown}")
        return cls(**raw).validate()

    def validate(self) -> "FloatingBodyCase":
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in ("initial_bump", "drop_height", "viscosity", "drag", "rotational_stiffness", "mooring"):
                continue
            require_positive(f"case.{f.name}", value)
        if self.n_columns < 3:
            raise ConfigurationFailure("case.n_columns must be at least 3")
        if self.body_width >= self.tank_width:
            raise ConfigurationFailure("case.body_width must be smaller than case.tank_width")
        if self.body_density >= self.fluid_density:
            raise ConfigurationFailure("case.body_density must be below case.fluid_density for the body to float")
        return self

    @property
    def body_mass(self) -> float:
        return self.body_density * self.body_width * self.body_height

    @property
    def body_inertia(self) -> float:
        return self.body_mass * (self.body_width ** 2 + self.body_height ** 2) / 12.0

    @property
    def draught(self) -> float:
        return self.body_height * self.body_density / self.fluid_density


class FloatingBodyEngine(ContinuumEngine):
    """Water-column surrogate around a floating box."""

    def __init__(self, case: FloatingBodyCase) -> None:
        self.case = case
        n = case.n_columns
        self.dx = case.tank_width / n
        self.x = (np.arange(n) + 0.5) * self.dx - 0.5 * case.tank_width
        self.eta = case.initial_bump * np.exp(-((self.x + 0.25 * case.tank_width) / (0.1 * case.tank_width)) ** 2)
        self.eta -= self.eta.mean()
        self.w = np.zeros(n)
        self.wave_speed = math.sqrt(case.gravity * case.depth)
        # body as seen by the fluid; overwritten by the constraint once coupled
        self.body_position = np.array([0.0, case.body_height / 2.0 - case.draught + case.drop_height])
        self.body_velocity = np.zeros(2)
        self.body_angle = 0.0
        self.body_angular_velocity = 0.0
        self.footprint = np.zeros(n, dtype=bool)
        self.order = np.arange(n)
        self.viscous_load = np.zeros(2)
        self.surface = np.column_stack([self.x, self.eta])
        self.sorts = 0
        self.refreshes = 0

    # fast epoch --------------------------------------------------------------
    def compute_stable_step_size(self) -> float:
        return self.case.cfl * self.dx / (self.case.sound_speed + float(np.max(np.abs(self.w))))

    def _acceleration(self) -> np.ndarray:
        lap = np.empty_like(self.eta)
        lap[1:-1] = self.eta[2:] - 2.0 * self.eta[1:-1] + self.eta[:-2]
        lap[0] = self.eta[1] - self.eta[0]
        lap[-1] = self.eta[-2] - self.eta[-1]
        acc = (self.wave_speed / self.dx) ** 2 * lap
        bottom = self.body_bottom()
        pressed = self.footprint & (self.eta > bottom)
        acc[pressed] -= self.case.contact_stiffness * (self.eta[pressed] - bottom)
        return acc

    def advance_state(self, dt: float) -> None:
        self.w += 0.5 * dt * self._acceleration()

    def complete_state(self, dt: float) -> None:
        self.eta += dt * self.w
        self.w += 0.5 * dt * self._acceleration()

    # medium epoch ------------------------------------------------------------
    def compute_advection_step_size(self) -> float:
        vmax = max(float(np.max(np.abs(self.w))), abs(float(self.body_velocity[1])), 1e-12)
        return min(self.case.advection_cfl * self.dx / vmax, self.case.max_advection_step)

    def update_positions(self) -> None:
        self.surface = np.column_stack([self.x, self.eta])

    def sort_particles(self) -> None:
        self.order = np.argsort(self.surface[:, 0], kind="stable")
        self.surface = self.surface[self.order]
        self.sorts += 1

    def refresh_neighbor_configuration(self) -> None:
        half = 0.5 * self.case.body_width
        self.footprint = np.abs(self.x - self.body_position[0]) <= half
        self.refreshes += 1

    def update_medium_scale(self, coupling_active: bool) -> None:
        # density regularisation: the strip conserves volume
        self.eta -= self.eta.mean()
        nu = self.case.viscosity
        if nu > 0.0:
            smooth = np.empty_like(self.w)
            smooth[1:-1] = self.w[2:] - 2.0 * self.w[1:-1] + self.w[:-2]
            smooth[0] = smooth[-1] = 0.0
            self.w += min(nu, 0.25) * smooth
        if coupling_active:
            self.viscous_load = -self.case.drag * self.body_velocity
        else:
            self.viscous_load = np.zeros(2)

    # coupling ----------------------------------------------------------------
    def body_bottom(self) -> float:
        return float(self.body_position[1]) - 0.5 * self.case.body_height

    def surface_slope(self) -> float:
        """Free-surface slope across the footprint, from the columns on either side."""
        idx = np.flatnonzero(self.footprint)
        if idx.size == 0:
            return 0.0
        left = max(int(idx[0]) - 1, 0)
        right = min(int(idx[-1]) + 1, self.eta.size - 1)
        if right == left:
            return 0.0
        return float(self.eta[right] - self.eta[left]) / ((right - left) * self.dx)

    def compute_force_on_coupled_body(self) -> ForceMoment:
        case = self.case
        free = ~self.footprint
        # hydrostatic head from the surrounding free surface
        level = float(self.eta[free].mean()) if free.any() else 0.0
        submerged = min(max(level - self.body_bottom(), 0.0), case.body_height)
        buoyancy = case.fluid_density * case.gravity * case.body_width * submerged
        force = np.array([0.0, buoyancy]) + self.viscous_load
        tilt = math.atan(self.surface_slope()) - self.body_angle
        moment = np.array([case.rotational_stiffness * tilt - 0.1 * case.drag * self.body_angular_velocity])
        return force, moment

    def apply_body_constraint(self, state: PlanarBodyState) -> None:
        self.body_position = np.array(state.position, dtype=float)
        self.body_velocity = np.array(state.velocity, dtype=float)
        self.body_angle = float(state.angle)
        self.body_angular_velocity = float(state.angular_velocity)

    def mean_elevation(self) -> float:
        return float(self.eta.mean())

    def wave_energy(self) -> float:
        return float(0.5 * np.sum(self.w ** 2) + 0.5 * self.case.gravity * np.sum(self.eta ** 2)) * self.dx


@dataclass
class DemoRun:
    case: FloatingBodyCase
    engine: FloatingBodyEngine
    integrator: PlanarRigidBodyIntegrator
    stepper: TimeStepper
    coupling: Optional[FsiCouplingProtocol]
    recorder: ObservationRecorder
    loads: CouplingRecorder
    snapshots: CallbackSink
    scheduler: MultiRateScheduler

    def sources(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {name: (lambda n=name: self.recorder.series(n)) for name in self.recorder.quantities}
        out[self.loads.quantity] = self.loads.series
        return out

    def validator(self, cfg: RunConfig) -> RegressionValidator:
        """Validator over the recorded series; falls back to ``DEFAULT_COMPARATORS``."""
        validation = cfg.validation
        if not validation.comparators:
            validation = replace(validation, comparators=[replace(c) for c in DEFAULT_COMPARATORS])
        return RegressionValidator.from_config(validation, self.sources())


DEFAULT_COMPARATORS = [
    ComparatorConfig("Position", method="dtw", threshold=1e-3, normalize=True),
    ComparatorConfig("WaveEnergy", method="ensemble", mean_threshold=1e-3, variance_threshold=1e-3),
]


def build_run(cfg: RunConfig) -> DemoRun:
    """Wire engine, integrator, coupling, sinks and scheduler from ``cfg``."""
    cfg.validate()
    case = FloatingBodyCase.from_dict(cfg.case)
    engine = FloatingBodyEngine(case)
    links = []
    if case.mooring:
        anchor = WorldAnchor((0.0, -case.depth))
        links = [
            BodyLink(anchor, "spring", {"k": 50.0, "rest_length": case.depth}),
            BodyLink(anchor, "gas_damper", {"damping": 1.0}),
        ]
    integrator = PlanarRigidBodyIntegrator(
        case.body_mass,
        case.body_inertia,
        position=tuple(engine.body_position),
        gravity=(0.0, -case.gravity),
        links=links,
        accuracy=case.accuracy,
        body=cfg.coupling.body,
        start_time=cfg.scheduler.start_time,
    )
    sched_cfg = cfg.scheduler
    stepper = TimeStepper(sched_cfg.end_time, start_time=sched_cfg.start_time)

    loads = CouplingRecorder()
    coupling = None
    if cfg.coupling.enabled:
        activation = stepper.add_trigger_by_physical_time(cfg.coupling.start_time, label="fsi")
        coupling = FsiCouplingProtocol(engine, integrator, activation, body=cfg.coupling.body, publish=loads)

    recorder = ObservationRecorder(
        stepper.get_physical_time,
        {
            "Position": lambda: integrator.current_state().position,
            "Angle": lambda: integrator.current_state().angle,
            "SurfaceElevation": engine.mean_elevation,
            "WaveEnergy": engine.wave_energy,
        },
    )
    snapshots = CallbackSink(on_snapshot=lambda: _log_snapshot(stepper, engine, integrator))
    sink = CompositeSink(recorder, snapshots)
    scheduler = MultiRateScheduler(engine, stepper, sink=sink, config=sched_cfg, coupling=coupling)
    return DemoRun(case, engine, integrator, stepper, coupling, recorder, loads, snapshots, scheduler)


def _log_snapshot(stepper: TimeStepper, engine: FloatingBodyEngine, integrator: PlanarRigidBodyIntegrator) -> None:
    if is_enabled():
        state = integrator.current_state()
        dbg("demo").debug(
            f"snapshot t={stepper.physical_time:.6g} body y={state.position[1]:.6g} "
            f"angle={state.angle:.4g} wave energy={engine.wave_energy():.4e}"
        )


def run_demo(cfg: RunConfig) -> tuple[RunSummary, ValidationReport]:
    """Run the floating-body case and validate the recorded series."""
    run = build_run(cfg)
    summary = run.scheduler.run()
    report = run.validator(cfg).run()
    return summary, report


__all__ = [
    "FloatingBodyCase",
    "FloatingBodyEngine",
    "DemoRun",
    "DEFAULT_COMPARATORS",
    "build_run",
    "run_demo",
]
