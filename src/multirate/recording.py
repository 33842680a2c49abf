# -*- coding: utf-8 -*-
"""Recording sinks feeding the regression validator.

``ObservationRecorder`` samples named probes each time the scheduler asks for
an observation and keeps them as :class:`~src.multirate.validation.series.Series`.
``CouplingRecorder`` collects the action on the structure published by the
coupling protocol. ``CallbackSink`` wraps plain callables for snapshot output.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .coupling import CouplingState
from .debug import dbg, is_enabled, pretty_vec
from .engine_api import RecordingSink
from .validation.series import Series

Probe = Callable[[], Any]


class ObservationRecorder(RecordingSink):
    """Sample scalar or vector probes into per-quantity series.

    Every probe is sampled on each ``write_observation`` call, so all series
    share the same index and time axes. Vector probes must keep their length
    for the whole run.
    """

    def __init__(self, clock: Callable[[], float], probes: Optional[Dict[str, Probe]] = None) -> None:
        self.clock = clock
        self._probes: Dict[str, Probe] = {}
        self._samples: Dict[str, List[np.ndarray]] = {}
        self._index: List[int] = []
        self._time: List[float] = []
        for name, probe in (probes or {}).items():
            self.add_probe(name, probe)

    def add_probe(self, name: str, probe: Probe) -> None:
        if name in self._probes:
            raise ValueError(f"probe '{name}' already registered")
        if self._index:
            raise ValueError(f"cannot add probe '{name}' after sampling started")
        self._probes[name] = probe
        self._samples[name] = []

    @property
    def quantities(self) -> List[str]:
        return list(self._probes)

    def write_observation(self, sequence_index: int) -> None:
        t = float(self.clock())
        row = {}
        for name, probe in self._probes.items():
            value = np.array(probe(), dtype=float).ravel()
            samples = self._samples[name]
            if samples and samples[0].shape != value.shape:
                raise ValueError(
                    f"probe '{name}' changed length from {samples[0].shape[0]} to {value.shape[0]}"
                )
            row[name] = value
        for name, value in row.items():
            self._samples[name].append(value)
        self._index.append(int(sequence_index))
        self._time.append(t)
        if is_enabled():
            dbg("record").debug(f"observation #{sequence_index} t={t:.9g}")

    def series(self, name: str) -> Series:
        if name not in self._probes:
            raise KeyError(name)
        return Series.from_samples(name, self._samples[name], index=list(self._index), time=list(self._time))

    def all_series(self) -> Dict[str, Series]:
        return {name: self.series(name) for name in self._probes}

    def __len__(self) -> int:
        return len(self._index)


class CouplingRecorder:
    """Collect published coupling loads as ``[fx, fy, ..., m...]`` rows."""

    def __init__(self, quantity: str = "StructureAction") -> None:
        self.quantity = quantity
        self.states: List[CouplingState] = []

    def __call__(self, state: CouplingState) -> None:
        self.states.append(state)

    def series(self) -> Series:
        rows = [s.as_vector() for s in self.states]
        times = [s.time for s in self.states]
        return Series.from_samples(self.quantity, rows, time=times)

    def last(self) -> Optional[CouplingState]:
        return self.states[-1] if self.states else None


class CallbackSink(RecordingSink):
    """Count sink calls and forward them to optional callables."""

    def __init__(
        self,
        on_snapshot: Optional[Callable[[], None]] = None,
        on_observation: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.on_snapshot = on_snapshot
        self.on_observation = on_observation
        self.snapshots = 0
        self.observations = 0

    def write_snapshot(self) -> None:
        self.snapshots += 1
        if self.on_snapshot is not None:
            self.on_snapshot()

    def write_observation(self, sequence_index: int) -> None:
        self.observations += 1
        if self.on_observation is not None:
            self.on_observation(sequence_index)


def describe_state(state: CouplingState) -> str:
    return f"t={state.time:.6g} force={pretty_vec(state.force)} moment={pretty_vec(state.moment)}"


__all__ = ["Probe", "ObservationRecorder", "CouplingRecorder", "CallbackSink", "describe_state"]
