# -*- coding: utf-8 -*-
"""Recorded time series of one observed quantity."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import numpy as np


@dataclass
class Series:
    """Ordered samples of a scalar or vector quantity.

    ``values`` has shape ``(n_samples, n_components)``; scalars are stored as
    one component. ``index`` holds the event count of each sample and
    ``time`` the physical time it was taken at.
    """

    quantity: str
    values: np.ndarray
    index: Optional[np.ndarray] = None
    time: Optional[np.ndarray] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        v = np.asarray(self.values, dtype=float)
        if v.ndim == 0:
            v = v.reshape(1, 1)
        elif v.ndim == 1:
            v = v.reshape(-1, 1)
        elif v.ndim > 2:
            v = v.reshape(v.shape[0], -1)
        self.values = v
        n = v.shape[0]
        self.index = np.arange(n, dtype=int) if self.index is None else np.asarray(self.index, dtype=int)
        self.time = np.zeros(n) if self.time is None else np.asarray(self.time, dtype=float)
        if self.index.shape != (n,) or self.time.shape != (n,):
            raise ValueError(
                f"series '{self.quantity}': index/time length must match {n} samples"
            )

    def __len__(self) -> int:
        return int(self.values.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        return tuple(self.values.shape)  # type: ignore[return-value]

    @property
    def n_components(self) -> int:
        return int(self.values.shape[1])

    def reversed(self) -> "Series":
        return Series(self.quantity, self.values[::-1].copy(), self.index[::-1].copy(), self.time[::-1].copy(), dict(self.meta))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quantity": self.quantity,
            "index": self.index.tolist(),
            "time": self.time.tolist(),
            "values": self.values.tolist(),
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Series":
        values = raw.get("values", [])
        if len(values) == 0:
            values = np.zeros((0, 1))
        return cls(
            quantity=raw["quantity"],
            values=values,
            index=raw.get("index"),
            time=raw.get("time"),
            meta=dict(raw.get("meta", {})),
        )

    @classmethod
    def from_samples(
        cls,
        quantity: str,
        samples: Sequence[Any],
        *,
        index: Optional[Sequence[int]] = None,
        time: Optional[Sequence[float]] = None,
    ) -> "Series":
        if len(samples) == 0:
            return cls(quantity, np.zeros((0, 1)), index=[], time=[])
        rows = [np.atleast_1d(np.asarray(s, dtype=float)).ravel() for s in samples]
        return cls(quantity, np.vstack(rows), index=index, time=time)


# Same record, different roles: freshly produced vs. persisted.
ObservedSeries = Series
ReferenceSeries = Series

__all__ = ["Series", "ObservedSeries", "ReferenceSeries"]
