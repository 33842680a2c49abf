from dataclasses import dataclass, field
from types import SimpleNamespace

import numpy as np
import pytest

from src.multirate.engine_api import ContinuumEngine, RecordingSink, RigidBodyIntegrator


class StubEngine(ContinuumEngine):
    """Fixed-rate engine that appends every call to a shared log."""

    def __init__(self, log, *, dt=0.125, advection=0.25, force=(0.0, 1.0), moment=(0.0,)):
        self.log = log
        self.dt = dt
        self.advection = advection
        self.force = np.asarray(force, dtype=float)
        self.moment = np.asarray(moment, dtype=float)
        self.medium_flags = []
        self.constraints = []

    def compute_stable_step_size(self):
        self.log.append("stable")
        return self.dt

    def advance_state(self, dt):
        self.log.append("advance")

    def complete_state(self, dt):
        self.log.append("complete")

    def compute_advection_step_size(self):
        self.log.append("advection_dt")
        return self.advection

    def update_positions(self):
        self.log.append("positions")

    def sort_particles(self):
        self.log.append("sort")

    def refresh_neighbor_configuration(self):
        self.log.append("refresh")

    def update_medium_scale(self, coupling_active):
        self.log.append("medium")
        self.medium_flags.append(coupling_active)

    def compute_force_on_coupled_body(self):
        self.log.append("force")
        return self.force, self.moment

    def apply_body_constraint(self, state):
        self.log.append("constraint")
        self.constraints.append(state.time)


@dataclass
class StubBodyState:
    time: float = 0.0
    loads: list = field(default_factory=list)


class StubIntegrator(RigidBodyIntegrator):
    def __init__(self, log, *, start_time=0.0, drift=0.0):
        self.log = log
        self.state = StubBodyState(time=start_time)
        self.drift = drift
        self.injected = []

    def current_state(self):
        return self.state

    def clear_forces(self, state):
        self.log.append("clear")
        state.loads.clear()

    def set_force(self, state, body, coupling):
        self.log.append("set")
        state.loads.append((body, coupling))
        self.injected.append(coupling)

    def advance(self, dt):
        self.log.append("rb_advance")
        self.state.time += dt + self.drift
        return self.state


class CountingSink(RecordingSink):
    def __init__(self, log=None, clock=None):
        self.log = log if log is not None else []
        self.clock = clock
        self.snapshot_times = []
        self.observation_indices = []

    def write_snapshot(self):
        self.log.append("snapshot")
        if self.clock is not None:
            self.snapshot_times.append(self.clock())

    def write_observation(self, sequence_index):
        self.log.append("observation")
        self.observation_indices.append(sequence_index)


@pytest.fixture
def call_log():
    return []


@pytest.fixture
def stub_engine(call_log):
    return StubEngine(call_log)


@pytest.fixture
def stub_integrator(call_log):
    return StubIntegrator(call_log)


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def stubs():
    """Stub collaborator classes, for tests that need non-default settings."""
    return SimpleNamespace(Engine=StubEngine, Integrator=StubIntegrator, Sink=CountingSink, BodyState=StubBodyState)
