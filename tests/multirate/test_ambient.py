import logging

import pytest

from src.multirate import debug
from src.multirate.errors import ConfigurationFailure, MultirateError, StepFailure, require_positive
from src.multirate.timing import IntervalLedger


@pytest.mark.fast
def test_namespaced_loggers_and_toggle():
    assert debug.dbg("scheduler").name == "multirate.scheduler"
    was = debug.is_enabled()
    try:
        debug.enable(True)
        assert debug.is_enabled()
        assert logging.getLogger("multirate").level == logging.DEBUG
        debug.enable(False)
        assert not debug.is_enabled()
        assert logging.getLogger("multirate").level == logging.INFO
    finally:
        debug.enable(was)
    assert debug.pretty_vec([1.0, -2.0]) == "[1.000e+00, -2.000e+00]"


@pytest.mark.fast
def test_interval_ledger_accumulates_named_phases():
    ledger = IntervalLedger()
    ledger.add("acoustic", 0.5)
    ledger.add("acoustic", 0.25)
    ledger.add("output", -1.0)
    with ledger.measure("fsi"):
        pass
    assert ledger.get("acoustic") == pytest.approx(0.75)
    assert ledger.counts == {"acoustic": 2, "output": 1, "fsi": 1}
    assert ledger.get("output") == 0.0
    assert ledger.get("missing") == 0.0
    lines = ledger.summary_lines()
    assert lines[0].startswith("interval_acoustic = 0.750000000 s (2 calls)")
    assert lines[-1].startswith("total wall time for computation")


@pytest.mark.fast
def test_error_taxonomy():
    err = StepFailure("estimator returned zero", physical_time=1.5, dt=0.0)
    assert isinstance(err, MultirateError) and isinstance(err, RuntimeError)
    assert "t=1.5" in str(err) and "dt=0" in str(err)
    assert issubclass(ConfigurationFailure, ValueError)
    assert require_positive("x", "2.5") == pytest.approx(2.5)
    for bad in (0, -1, "abc", None, float("inf"), float("nan")):
        with pytest.raises(ConfigurationFailure):
            require_positive("x", bad)
