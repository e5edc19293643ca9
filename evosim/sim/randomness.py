# SPDX-License-Identifier: MIT
"""
Per-thread random streams for the simulation engine.

Every draw in the engine goes through :func:`randone`. Each thread reads from
its own ``numpy.random.Generator`` so parallel replicas never share a stream.
A replica binds a generator spawned from its world's ``SeedSequence`` with
:func:`use_generator`, which makes seeded runs reproducible regardless of how
the worker threads are scheduled.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

import numpy as np

_local = threading.local()
_root_lock = threading.Lock()
_root_sequence = np.random.SeedSequence()


def _stack() -> List[np.random.Generator]:
    stack = getattr(_local, "stack", None)
    if stack is None:
        with _root_lock:
            child = _root_sequence.spawn(1)[0]
        stack = [np.random.default_rng(child)]
        _local.stack = stack
    return stack


def generator() -> np.random.Generator:
    """Return the generator bound to the calling thread."""
    return _stack()[-1]


def randone() -> float:
    """Uniform random number in [0, 1)."""
    return float(_stack()[-1].random())


def seed(value: Optional[int] = None) -> None:
    """Re-seed the process root sequence and the calling thread's stream."""
    global _root_sequence
    with _root_lock:
        _root_sequence = np.random.SeedSequence(value)
        child = _root_sequence.spawn(1)[0]
    _local.stack = [np.random.default_rng(child)]


@contextmanager
def use_generator(rng: np.random.Generator) -> Iterator[np.random.Generator]:
    """Bind ``rng`` to the current thread for the duration of the block."""
    stack = _stack()
    stack.append(rng)
    try:
        yield rng
    finally:
        stack.pop()
