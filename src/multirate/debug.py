from __future__ import annotations

"""Namespaced logging for the multi-rate scheduler, coupling and validators.

Use `enable(True)` (or set env MULTIRATE_DEBUG=1) to turn on per-tick tracing
across the time stepper, triggers, scheduler epochs and the coupling protocol.

Helpers:
- dbg(name): namespaced logger under "multirate.<name>"
- enable(flag): turn deep tracing on/off globally
- is_enabled(): check global flag (gate expensive per-tick messages with it)
- configure(level): attach the stream handler without forcing debug level
- pretty_vec(v): compact rendering of force/moment vectors for logs

Progress screening, the timing summary and validation reports are emitted at
INFO on the same loggers, so `configure("INFO")` shows them without tracing.
"""

import logging
import os
import threading
from typing import Any

import numpy as np

_ENABLED = bool(int(os.getenv("MULTIRATE_DEBUG", "0") or "0"))
_LOCK = threading.Lock()
_ROOT = "multirate"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _ensure_handler(lg: logging.Logger) -> None:
    if not any(isinstance(h, logging.StreamHandler) for h in lg.handlers):
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%H:%M:%S"))
        lg.addHandler(h)


def enable(flag: bool = True, *, level: int = logging.DEBUG) -> None:
    """Enable or disable deep debug logging for the multirate package."""
    global _ENABLED
    with _LOCK:
        _ENABLED = bool(flag)
        lg = logging.getLogger(_ROOT)
        if _ENABLED:
            _ensure_handler(lg)
            lg.setLevel(level)
        else:
            lg.setLevel(logging.INFO)


def configure(level: str | int = "INFO") -> None:
    """Attach the package stream handler at ``level`` (used by the CLI)."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    with _LOCK:
        lg = logging.getLogger(_ROOT)
        _ensure_handler(lg)
        lg.setLevel(logging.DEBUG if _ENABLED else level)


def is_enabled() -> bool:
    return _ENABLED


def dbg(name: str) -> logging.Logger:
    """Return a child logger under the multirate namespace."""
    lg = logging.getLogger(f"{_ROOT}.{name}")
    if _ENABLED:
        root = logging.getLogger(_ROOT)
        if not root.handlers:
            enable(True)
    return lg


def pretty_vec(v: Any) -> str:
    arr = np.atleast_1d(np.asarray(v, dtype=float))
    return "[" + ", ".join(f"{x:.3e}" for x in arr) + "]"


__all__ = ["enable", "configure", "is_enabled", "dbg", "pretty_vec"]
