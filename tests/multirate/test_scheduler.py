import logging

import pytest

from src.multirate.config import SchedulerConfig
from src.multirate.coupling import FsiCouplingProtocol
from src.multirate.errors import StepFailure
from src.multirate.scheduler import MultiRateScheduler
from src.multirate.time_stepper import TimeStepper

MEDIUM_CALLS = {"positions", "sort", "refresh", "medium"}


def _config(**kw):
    base = dict(
        end_time=2.0,
        output_interval=0.5,
        screening_interval=3,
        observation_interval=2,
        sort_interval=4,
    )
    base.update(kw)
    return SchedulerConfig(**base)


def _ticks(log):
    """Split the call log into per-tick chunks starting at each 'stable' call."""
    chunks = []
    for entry in log:
        if entry == "stable":
            chunks.append([])
        if chunks:
            chunks[-1].append(entry)
    return chunks


@pytest.mark.dt
def test_epoch_counts_for_binary_exact_cadences(stub_engine, call_log, stubs):
    stepper = TimeStepper(2.0)
    sink = stubs.Sink(call_log, clock=stepper.get_physical_time)
    summary = MultiRateScheduler(stub_engine, stepper, sink=sink, config=_config()).run()

    assert summary.fast_steps == 16
    assert summary.medium_steps == 8
    assert summary.slow_steps == 4
    # one initial write plus one per output event / every second medium step
    assert summary.snapshots == 5
    assert summary.observations == 5
    assert sink.observation_indices == [0, 1, 2, 3, 4]
    assert sink.snapshot_times == pytest.approx([0.0, 0.5, 1.0, 1.5, 2.0])
    assert call_log.count("sort") == 2
    assert summary.final_time == pytest.approx(2.0)
    assert stepper.is_end_time()


@pytest.mark.dt
def test_setup_precedes_the_loop(stub_engine, call_log, stubs):
    stepper = TimeStepper(0.25)
    sink = stubs.Sink(call_log)
    MultiRateScheduler(stub_engine, stepper, sink=sink, config=_config(end_time=0.25)).run()
    first_tick = call_log.index("stable")
    assert call_log[:first_tick] == ["refresh", "medium", "advection_dt", "snapshot", "observation"]


@pytest.mark.dt
def test_fast_work_precedes_medium_and_slow_work_in_each_tick(stub_engine, call_log, stubs):
    stepper = TimeStepper(2.0)
    sink = stubs.Sink(call_log)
    MultiRateScheduler(stub_engine, stepper, sink=sink, config=_config()).run()
    for chunk in _ticks(call_log):
        assert chunk[:3] == ["stable", "advance", "complete"]
        if "positions" in chunk:
            assert chunk.index("positions") > chunk.index("complete")
            assert chunk.index("refresh") < chunk.index("medium")
        if "snapshot" in chunk:
            assert all(chunk.index("snapshot") > i for i, c in enumerate(chunk) if c in MEDIUM_CALLS)


@pytest.mark.dt
def test_loop_stops_on_end_time_only(stubs, call_log):
    engine = stubs.Engine(call_log, dt=0.3, advection=10.0)
    stepper = TimeStepper(1.0)
    summary = MultiRateScheduler(engine, stepper, config=_config(end_time=1.0)).run()
    # 0.3, 0.6, 0.9, 1.2: the last step may overshoot the end time
    assert summary.fast_steps == 4
    assert summary.medium_steps == 0
    assert stepper.physical_time == pytest.approx(1.2)


@pytest.mark.dt
def test_zero_length_run_only_writes_initial_output(stub_engine, call_log, stubs):
    stepper = TimeStepper(0.0)
    sink = stubs.Sink(call_log)
    summary = MultiRateScheduler(stub_engine, stepper, sink=sink, config=_config(end_time=0.0)).run()
    assert summary.fast_steps == 0
    assert "stable" not in call_log
    assert call_log.count("snapshot") == 1


@pytest.mark.dt
def test_estimator_failure_propagates(stubs, call_log):
    engine = stubs.Engine(call_log, dt=0.0)
    with pytest.raises(StepFailure):
        MultiRateScheduler(engine, TimeStepper(1.0), config=_config(end_time=1.0)).run()


def _coupled(stubs, call_log, *, start=1.0, integrator=None, **cfg):
    engine = stubs.Engine(call_log)
    integrator = integrator or stubs.Integrator(call_log)
    stepper = TimeStepper(2.0)
    activation = stepper.add_trigger_by_physical_time(start, label="fsi")
    coupling = FsiCouplingProtocol(engine, integrator, activation)
    sink = stubs.Sink(call_log, clock=stepper.get_physical_time)
    sched = MultiRateScheduler(engine, stepper, sink=sink, config=_config(**cfg), coupling=coupling)
    return sched, engine, integrator, sink


@pytest.mark.dt
def test_coupling_runs_inside_the_fast_epoch_once_latched(stubs, call_log):
    sched, engine, integrator, _ = _coupled(stubs, call_log)
    summary = sched.run()
    ticks = _ticks(call_log)
    # t = 0.125 .. 0.875 uncoupled, 1.0 .. 2.0 coupled
    assert all("force" not in chunk for chunk in ticks[:7])
    for chunk in ticks[7:]:
        assert chunk[:8] == ["stable", "advance", "force", "clear", "set", "rb_advance", "constraint", "complete"]
    assert summary.coupled_steps == 9
    assert len(integrator.injected) == 9
    # the rigid-body clock follows physical time from the first coupled tick
    assert integrator.state.time == pytest.approx(2.0)
    assert engine.constraints[0] == pytest.approx(1.0)
    assert engine.medium_flags[:4] == [False, False, False, False]
    assert engine.medium_flags[-1] is True


@pytest.mark.dt
def test_recording_waits_for_coupling_when_requested(stubs, call_log):
    sched, _, _, sink = _coupled(stubs, call_log, record_after_coupling=True)
    summary = sched.run()
    assert summary.slow_steps == 4
    assert sink.snapshot_times == pytest.approx([1.0, 1.5, 2.0])
    assert summary.observations == 3


@pytest.mark.dt
def test_integrator_failure_propagates_from_the_loop(stubs, call_log):
    class Failing(stubs.Integrator):
        def advance(self, dt):
            raise StepFailure("no convergence", dt=dt)

    sched, engine, integrator, _ = _coupled(stubs, call_log, integrator=Failing(call_log))
    with pytest.raises(StepFailure):
        sched.run()
    assert sched.stepper.physical_time == pytest.approx(1.0)


@pytest.mark.dt
def test_screening_and_timing_summary_are_logged(stub_engine, caplog):
    with caplog.at_level(logging.INFO, logger="multirate"):
        summary = MultiRateScheduler(stub_engine, TimeStepper(2.0), config=_config()).run()
    text = caplog.text
    assert "N=3 " in text and "N=6 " in text
    assert "total wall time for computation" in text
    assert summary.ledger.counts["acoustic"] == 32
    assert set(summary.ledger.totals) >= {"acoustic", "advection", "configuration", "output"}
