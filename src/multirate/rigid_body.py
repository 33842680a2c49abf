# -*- coding: utf-8 -*-
"""Reference planar rigid-body integrator.

A single body with three mobilities (x, y, rotation about z) under uniform
gravity, optional spring/damper links to world anchors and one slot of
discrete loads injected by the coupling protocol. Integration uses the
Runge–Kutta–Merson scheme with its embedded error estimate; ``advance(dt)``
sub-steps internally to meet ``accuracy`` and lands exactly on ``dt``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .debug import dbg, is_enabled
from .engine_api import RigidBodyIntegrator
from .errors import ConfigurationFailure, StepFailure, require_positive


@dataclass
class WorldAnchor:
    position: Tuple[float, float]


@dataclass
class BodyLink:
    """Spring/damper between a world anchor and the body's mass centre.

    ``link_type`` is ``'spring'`` (Hooke's law about ``rest_length``) or
    ``'gas_damper'`` (force opposing velocity).
    """

    anchor: WorldAnchor
    link_type: str = "spring"
    properties: Dict[str, float] = field(default_factory=dict)


@dataclass
class PlanarBodyState:
    time: float
    position: np.ndarray
    angle: float
    velocity: np.ndarray
    angular_velocity: float
    # Discrete loads keyed by body handle: (force[2], moment about z).
    discrete_forces: Dict[Any, Tuple[np.ndarray, float]] = field(default_factory=dict)

    def pack(self) -> np.ndarray:
        return np.array(
            [self.position[0], self.position[1], self.angle, self.velocity[0], self.velocity[1], self.angular_velocity],
            dtype=float,
        )

    def unpack(self, y: np.ndarray) -> None:
        self.position = np.array(y[0:2], dtype=float)
        self.angle = float(y[2])
        self.velocity = np.array(y[3:5], dtype=float)
        self.angular_velocity = float(y[5])


class PlanarRigidBodyIntegrator(RigidBodyIntegrator):
    def __init__(
        self,
        mass: float,
        inertia: float,
        *,
        position: Tuple[float, float] = (0.0, 0.0),
        angle: float = 0.0,
        gravity: Tuple[float, float] = (0.0, -9.81),
        links: Optional[List[BodyLink]] = None,
        accuracy: float = 1e-3,
        max_substeps: int = 64,
        body: Any = "structure",
        start_time: float = 0.0,
    ) -> None:
        self.mass = require_positive("rigid body mass", mass)
        self.inertia = require_positive("rigid body inertia", inertia)
        self.accuracy = require_positive("integrator accuracy", accuracy)
        if max_substeps < 1:
            raise ConfigurationFailure("max_substeps must be at least 1")
        self.max_substeps = int(max_substeps)
        self.gravity = np.asarray(gravity, dtype=float)
        self.links = list(links or [])
        self.body = body
        self.state = PlanarBodyState(
            time=float(start_time),
            position=np.asarray(position, dtype=float),
            angle=float(angle),
            velocity=np.zeros(2),
            angular_velocity=0.0,
        )
        self.substeps_taken = 0
        self.rejected_substeps = 0

    # RigidBodyIntegrator --------------------------------------------------
    def current_state(self) -> PlanarBodyState:
        return self.state

    def clear_forces(self, state: PlanarBodyState) -> None:
        state.discrete_forces.clear()

    def set_force(self, state: PlanarBodyState, body: Any, coupling) -> None:
        if body != self.body:
            raise KeyError(f"unknown body {body!r}")
        force = np.zeros(2)
        f = np.atleast_1d(np.asarray(coupling.force, dtype=float))
        force[: min(2, f.size)] = f[:2]
        moment = float(np.atleast_1d(coupling.moment)[-1])
        state.discrete_forces[body] = (force, moment)

    def advance(self, dt: float) -> PlanarBodyState:
        dt = float(dt)
        if not (dt > 0.0):
            raise StepFailure("rigid-body advance requires a positive step", physical_time=self.state.time, dt=dt)
        t0 = self.state.time
        y = self.state.pack()
        t, h, remaining = t0, dt, dt
        substeps = 0
        while remaining > 1e-14 * dt:
            h = min(h, remaining)
            y_new, err = self._merson(t, y, h)
            substeps += 1
            if substeps > self.max_substeps:
                raise StepFailure(
                    f"rigid-body integrator could not reach accuracy {self.accuracy:g} within {self.max_substeps} substeps",
                    physical_time=t0,
                    dt=dt,
                )
            if not np.all(np.isfinite(y_new)):
                raise StepFailure("rigid-body integrator produced non-finite state", physical_time=t0, dt=dt)
            if err <= 1.0:
                y, t, remaining = y_new, t + h, remaining - h
                self.substeps_taken += 1
                if err > 0.0:
                    h *= min(4.0, 0.9 * err ** -0.2)
                else:
                    h *= 4.0
            else:
                self.rejected_substeps += 1
                h *= max(0.1, 0.9 * err ** -0.25)
        self.state.unpack(y)
        self.state.time = t0 + dt
        if is_enabled():
            dbg("rigid").debug(
                f"advance dt={dt:.6g} substeps={substeps} pos={self.state.position} angle={self.state.angle:.6g}"
            )
        return self.state

    # dynamics ---------------------------------------------------------------
    def _link_forces(self, pos: np.ndarray, vel: np.ndarray) -> np.ndarray:
        total = np.zeros(2)
        for link in self.links:
            if link.link_type == "spring":
                delta = pos - np.asarray(link.anchor.position, dtype=float)
                dist = float(np.linalg.norm(delta))
                direction = delta / dist if dist > 1e-12 else np.zeros(2)
                k = link.properties.get("k", 50.0)
                rest = link.properties.get("rest_length", 0.0)
                total += -k * (dist - rest) * direction
            elif link.link_type in ("gas_damper", "gas_dampner"):
                total += -link.properties.get("damping", 5.0) * vel
            else:
                raise ConfigurationFailure(f"unknown link type {link.link_type!r}")
        return total

    def _rhs(self, t: float, y: np.ndarray) -> np.ndarray:
        pos, vel = y[0:2], y[3:5]
        force = self.mass * self.gravity + self._link_forces(pos, vel)
        moment = 0.0
        for f, m in self.state.discrete_forces.values():
            force = force + f
            moment += m
        acc = force / self.mass
        return np.array([y[3], y[4], y[5], acc[0], acc[1], moment / self.inertia])

    def _merson(self, t: float, y: np.ndarray, h: float) -> tuple[np.ndarray, float]:
        k1 = self._rhs(t, y)
        k2 = self._rhs(t + h / 3.0, y + h * k1 / 3.0)
        k3 = self._rhs(t + h / 3.0, y + h * (k1 + k2) / 6.0)
        k4 = self._rhs(t + h / 2.0, y + h * (k1 + 3.0 * k3) / 8.0)
        k5 = self._rhs(t + h, y + h * (0.5 * k1 - 1.5 * k3 + 2.0 * k4))
        y_new = y + h * (k1 + 4.0 * k4 + k5) / 6.0
        err_vec = h * (2.0 * k1 - 9.0 * k3 + 8.0 * k4 - k5) / 30.0
        scale = self.accuracy * np.maximum(1.0, np.abs(y_new))
        return y_new, float(np.max(np.abs(err_vec) / scale))


__all__ = [
    "WorldAnchor",
    "BodyLink",
    "PlanarBodyState",
    "PlanarRigidBodyIntegrator",
]
