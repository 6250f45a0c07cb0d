"""
Brute-force normalization constants by walking the whole state space.

Only practical for tiny networks (C(N+M-1, M-1) states); kept as the
reference the recurrence is checked against.
"""
from __future__ import annotations

import math
from typing import Iterator, Sequence, Tuple

import numpy as np

from .errors import DomainError
from .recurrence import validate_loads, validate_population


def compositions(total: int, parts: int) -> Iterator[Tuple[int, ...]]:
    """Yield every tuple of `parts` non-negative ints summing to `total`."""
    if parts == 0:
        if total == 0:
            yield ()
        return
    if parts == 1:
        yield (total,)
        return
    for first in range(total + 1):
        for rest in compositions(total - first, parts - 1):
            yield (first,) + rest


def state_space_size(num_queues: int, population: int) -> int:
    if num_queues == 0:
        return 1 if population == 0 else 0
    return math.comb(population + num_queues - 1, num_queues - 1)


def enumerate_normalization(loads: Sequence[float], population: int) -> np.ndarray:
    n_jobs = validate_population(population)
    x = validate_loads(loads)
    if n_jobs > 0 and x.size == 0:
        raise DomainError(f"a network with no queues cannot hold {n_jobs} jobs")
    out = np.zeros(n_jobs + 1, dtype=float)
    for n in range(n_jobs + 1):
        total = 0.0
        for state in compositions(n, len(x)):
            total += float(np.prod(x ** np.asarray(state, dtype=float)))
        out[n] = total
    return out
