import numpy as np
import pytest

from src.multirate.coupling import CouplingState
from src.multirate.errors import ConfigurationFailure, StepFailure
from src.multirate.rigid_body import BodyLink, PlanarRigidBodyIntegrator, WorldAnchor


def _body(**kw):
    return PlanarRigidBodyIntegrator(2.0, 0.5, **kw)


@pytest.mark.dt
@pytest.mark.fast
def test_free_fall_matches_closed_form():
    rb = _body(position=(0.0, 1.0))
    state = rb.advance(0.5)
    assert state.time == pytest.approx(0.5)
    assert state.position[1] == pytest.approx(1.0 - 0.5 * 9.81 * 0.25, rel=1e-9)
    assert state.velocity[1] == pytest.approx(-9.81 * 0.5, rel=1e-9)
    assert state.position[0] == pytest.approx(0.0)


@pytest.mark.dt
@pytest.mark.fast
def test_injected_load_balances_gravity_and_spins_the_body():
    rb = _body()
    state = rb.current_state()
    rb.clear_forces(state)
    rb.set_force(state, "structure", CouplingState([0.0, 2.0 * 9.81], [1.0]))
    rb.advance(1.0)
    assert np.allclose(state.position, 0.0, atol=1e-12)
    # alpha = M / I = 2
    assert state.angular_velocity == pytest.approx(2.0)
    assert state.angle == pytest.approx(1.0)


@pytest.mark.fast
def test_clear_forces_drops_previous_loads():
    rb = _body()
    state = rb.current_state()
    rb.set_force(state, "structure", CouplingState([1.0, 0.0], [0.0]))
    rb.clear_forces(state)
    assert state.discrete_forces == {}


@pytest.mark.fast
def test_unknown_body_is_rejected():
    rb = _body()
    with pytest.raises(KeyError):
        rb.set_force(rb.current_state(), "hull", CouplingState([0.0, 0.0], [0.0]))


@pytest.mark.dt
def test_spring_oscillation_stays_on_the_clock():
    anchor = WorldAnchor((0.0, 0.0))
    rb = _body(gravity=(0.0, 0.0), position=(1.0, 0.0), links=[BodyLink(anchor, "spring", {"k": 8.0})], accuracy=1e-6)
    omega = np.sqrt(8.0 / 2.0)
    t = 0.0
    for _ in range(20):
        state = rb.advance(0.05)
        t += 0.05
    assert state.time == pytest.approx(t)
    assert state.position[0] == pytest.approx(np.cos(omega * t), abs=1e-4)
    assert rb.substeps_taken >= 20


@pytest.mark.dt
@pytest.mark.fast
def test_unreachable_accuracy_is_a_step_failure():
    anchor = WorldAnchor((0.0, 0.0))
    rb = _body(
        position=(1.0, 0.0),
        links=[BodyLink(anchor, "spring", {"k": 1e6})],
        accuracy=1e-10,
        max_substeps=1,
    )
    with pytest.raises(StepFailure):
        rb.advance(1.0)


@pytest.mark.fast
def test_bad_settings_are_configuration_failures():
    with pytest.raises(ConfigurationFailure):
        PlanarRigidBodyIntegrator(0.0, 1.0)
    with pytest.raises(ConfigurationFailure):
        PlanarRigidBodyIntegrator(1.0, 1.0, max_substeps=0)
    rb = _body(links=[BodyLink(WorldAnchor((0.0, 0.0)), "rope")])
    with pytest.raises(ConfigurationFailure):
        rb.advance(0.1)
