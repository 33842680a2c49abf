# -*- coding: utf-8 -*-
"""Dynamic time warping distance between two sampled series.

Standard recurrence over the pointwise Euclidean distance ``d``::

    cost[i, j] = d(o_i, r_j) + min(cost[i-1, j], cost[i, j-1], cost[i-1, j-1])

with ``cost[0, 0] = 0`` and an infinite border, so every warping path starts
at the first pair and ends at the last one. Tolerates local stretching, e.g.
a duplicated sample from a different output cadence costs nothing.
"""
from __future__ import annotations

from typing import List, Tuple

import numpy as np


def _as_2d(x) -> np.ndarray:
    a = np.asarray(x, dtype=float)
    if a.ndim == 0:
        return a.reshape(1, 1)
    if a.ndim == 1:
        return a.reshape(-1, 1)
    return a.reshape(a.shape[0], -1)


def pointwise_distance(a, b) -> np.ndarray:
    """Return the ``(len(a), len(b))`` matrix of Euclidean sample distances."""
    A, B = _as_2d(a), _as_2d(b)
    if A.shape[1] != B.shape[1]:
        raise ValueError(f"component mismatch: {A.shape[1]} vs {B.shape[1]}")
    diff = A[:, None, :] - B[None, :, :]
    return np.sqrt(np.sum(diff * diff, axis=2))


def dtw_cost_matrix(a, b) -> np.ndarray:
    """Accumulated cost matrix of shape ``(n + 1, m + 1)``."""
    d = pointwise_distance(a, b)
    n, m = d.shape
    cost = np.full((n + 1, m + 1), np.inf)
    cost[0, 0] = 0.0
    for i in range(1, n + 1):
        # vertical and diagonal predecessors are known for the whole row
        best = np.minimum(cost[i - 1, 1:], cost[i - 1, :-1]) + d[i - 1]
        row = cost[i]
        for j in range(1, m + 1):
            row[j] = min(best[j - 1], row[j - 1] + d[i - 1, j - 1])
    return cost


def warping_path(cost: np.ndarray) -> List[Tuple[int, int]]:
    """Backtrack the optimal path (0-based sample pairs), diagonal first on ties."""
    i, j = cost.shape[0] - 1, cost.shape[1] - 1
    if i == 0 or j == 0 or not np.isfinite(cost[i, j]):
        return []
    path = [(i - 1, j - 1)]
    while i > 1 or j > 1:
        candidates = (
            (cost[i - 1, j - 1], i - 1, j - 1),
            (cost[i - 1, j], i - 1, j),
            (cost[i, j - 1], i, j - 1),
        )
        _, i, j = min(candidates, key=lambda c: c[0])
        path.append((i - 1, j - 1))
    path.reverse()
    return path


def dtw_distance(a, b, *, normalize: bool = False) -> float:
    """DTW distance between ``a`` and ``b``.

    With ``normalize`` the accumulated cost is divided by the length of the
    optimal warping path. Two empty series are at distance 0; an empty series
    against a non-empty one is infinitely far.
    """
    A, B = _as_2d(a), _as_2d(b)
    if A.shape[0] == 0 or B.shape[0] == 0:
        return 0.0 if A.shape[0] == B.shape[0] else float("inf")
    cost = dtw_cost_matrix(A, B)
    total = float(cost[-1, -1])
    if normalize:
        return total / max(len(warping_path(cost)), 1)
    return total


__all__ = ["pointwise_distance", "dtw_cost_matrix", "warping_path", "dtw_distance"]
