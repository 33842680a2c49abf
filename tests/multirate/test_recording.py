import numpy as np
import pytest

from src.multirate.coupling import CouplingState
from src.multirate.engine_api import CompositeSink
from src.multirate.recording import CallbackSink, CouplingRecorder, ObservationRecorder


@pytest.mark.fast
def test_observation_recorder_samples_every_probe():
    now = [0.0]
    value = [1.0]
    rec = ObservationRecorder(lambda: now[0], {"scalar": lambda: value[0], "vector": lambda: [value[0], -value[0]]})
    for i in range(3):
        rec.write_observation(i)
        now[0] += 0.5
        value[0] *= 2.0
    scalar = rec.series("scalar")
    vector = rec.series("vector")
    assert scalar.shape == (3, 1)
    assert vector.shape == (3, 2)
    np.testing.assert_allclose(scalar.values.ravel(), [1.0, 2.0, 4.0])
    np.testing.assert_allclose(vector.time, [0.0, 0.5, 1.0])
    np.testing.assert_array_equal(vector.index, [0, 1, 2])
    assert set(rec.all_series()) == {"scalar", "vector"}
    assert len(rec) == 3


@pytest.mark.fast
def test_probe_length_must_not_change():
    size = [2]
    rec = ObservationRecorder(lambda: 0.0, {"v": lambda: np.zeros(size[0])})
    rec.write_observation(0)
    size[0] = 3
    with pytest.raises(ValueError):
        rec.write_observation(1)


@pytest.mark.fast
def test_probes_are_fixed_once_sampling_starts():
    rec = ObservationRecorder(lambda: 0.0, {"a": lambda: 1.0})
    with pytest.raises(ValueError):
        rec.add_probe("a", lambda: 2.0)
    rec.write_observation(0)
    with pytest.raises(ValueError):
        rec.add_probe("b", lambda: 2.0)
    with pytest.raises(KeyError):
        rec.series("b")


@pytest.mark.fast
def test_coupling_recorder_series():
    rec = CouplingRecorder()
    assert rec.last() is None
    assert len(rec.series()) == 0
    rec(CouplingState([1.0, 2.0], [0.5], time=1.0))
    rec(CouplingState([1.5, 2.5], [0.0], time=1.1))
    series = rec.series()
    assert series.quantity == "StructureAction"
    assert series.shape == (2, 3)
    np.testing.assert_allclose(series.time, [1.0, 1.1])
    assert rec.last().time == pytest.approx(1.1)


@pytest.mark.fast
def test_composite_sink_fans_out_in_order():
    seen = []
    a = CallbackSink(on_snapshot=lambda: seen.append("a"), on_observation=lambda i: seen.append(("a", i)))
    b = CallbackSink(on_snapshot=lambda: seen.append("b"))
    sink = CompositeSink(a)
    sink.add(b)
    sink.write_snapshot()
    sink.write_observation(7)
    assert seen == ["a", "b", ("a", 7)]
    assert a.snapshots == b.snapshots == 1
    assert b.observations == 1
