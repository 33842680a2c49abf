import numpy as np
import pytest

from src.multirate.coupling import CouplingState, FsiCouplingProtocol
from src.multirate.errors import StepFailure
from src.multirate.time_stepper import TimeStepper
from src.multirate.triggers import absolute_trigger, interval_trigger


def _protocol(engine, integrator, start=1.0, **kw):
    return FsiCouplingProtocol(engine, integrator, absolute_trigger(start, label="fsi"), **kw)


@pytest.mark.fast
def test_activation_must_be_absolute(stub_engine, stub_integrator):
    with pytest.raises(ValueError):
        FsiCouplingProtocol(stub_engine, stub_integrator, interval_trigger(0.1))


@pytest.mark.dt
def test_no_force_is_injected_before_the_latch(stub_engine, stub_integrator, call_log):
    stepper = TimeStepper(2.0)
    activation = stepper.add_trigger_by_physical_time(1.0)
    protocol = FsiCouplingProtocol(stub_engine, stub_integrator, activation)
    injected_at = []
    while not stepper.is_end_time():
        dt = stepper.increment_physical_time(lambda: 0.1)
        if protocol.step(dt, physical_time=stepper.physical_time) is not None:
            injected_at.append(stepper.physical_time)
    assert injected_at
    assert min(injected_at) >= 1.0 - 1e-12
    assert len(stub_integrator.injected) == len(injected_at)
    assert call_log.count("force") == len(injected_at)


@pytest.mark.dt
@pytest.mark.fast
def test_exchange_order_and_published_state(stub_engine, stub_integrator, call_log):
    published = []
    protocol = _protocol(stub_engine, stub_integrator, publish=published.append)
    now = [0.5]
    protocol.activation.clock = lambda: now[0]
    assert protocol.step(0.1, physical_time=0.5) is None
    assert protocol.state is None
    assert call_log == []

    now[0] = 1.0
    state = protocol.step(0.1, physical_time=1.0)
    assert call_log == ["force", "clear", "set", "rb_advance", "constraint"]
    assert published == [state]
    assert protocol.state is state
    np.testing.assert_allclose(state.force, [0.0, 1.0])
    assert state.time == pytest.approx(1.0)
    assert protocol.steps == 1
    assert protocol.coupled_time == pytest.approx(1.0)
    assert stub_integrator.state.time == pytest.approx(1.0)
    # only the latest load is held by the integrator
    protocol.step(0.1, physical_time=1.1, active=True)
    assert len(stub_integrator.state.loads) == 1


@pytest.mark.dt
@pytest.mark.fast
def test_non_finite_load_is_a_step_failure(stubs, call_log, stub_integrator):
    engine = stubs.Engine(call_log, force=(np.nan, 0.0))
    protocol = _protocol(engine, stub_integrator)
    with pytest.raises(StepFailure):
        protocol.step(0.1, physical_time=1.0, active=True)
    assert stub_integrator.injected == []
    assert protocol.state is None


@pytest.mark.dt
@pytest.mark.fast
def test_out_of_sync_integrator_is_a_step_failure(stubs, stub_engine, call_log):
    integrator = stubs.Integrator(call_log, drift=1e-3)
    protocol = _protocol(stub_engine, integrator)
    with pytest.raises(StepFailure):
        protocol.step(0.1, physical_time=1.0, active=True)
    assert "constraint" not in call_log


@pytest.mark.fast
def test_coupling_state_vector():
    state = CouplingState([1.0, 2.0], 3.0, time=0.5)
    np.testing.assert_allclose(state.as_vector(), [1.0, 2.0, 3.0])
    assert state.is_finite()
    zero = CouplingState.zero()
    np.testing.assert_allclose(zero.as_vector(), [0.0, 0.0, 0.0])


@pytest.mark.dt
def test_rigid_body_clock_tracks_physical_time_when_latch_falls_mid_step(stubs, stub_engine, call_log):
    integrator = stubs.Integrator(call_log, start_time=1.0)
    stepper = TimeStepper(2.1)
    activation = stepper.add_trigger_by_physical_time(1.0, label="fsi")
    protocol = FsiCouplingProtocol(stub_engine, integrator, activation)
    while not stepper.is_end_time():
        dt = stepper.increment_physical_time(lambda: 0.3)
        protocol.step(dt, physical_time=stepper.physical_time)
    # first coupled tick spans 0.9 .. 1.2
    assert stub_engine.constraints[0] == pytest.approx(1.2)
    assert integrator.state.time == pytest.approx(stepper.physical_time)
    assert protocol.coupled_time == pytest.approx(stepper.physical_time)


@pytest.mark.dt
@pytest.mark.fast
def test_skipped_tick_is_a_step_failure(stub_engine, stub_integrator, call_log):
    protocol = _protocol(stub_engine, stub_integrator)
    protocol.step(0.1, physical_time=1.0, active=True)
    with pytest.raises(StepFailure):
        protocol.step(0.1, physical_time=1.2, active=True)
    assert call_log.count("constraint") == 1
