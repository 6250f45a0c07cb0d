"""
Normalization constants for closed product-form queueing networks.

Buzen's convolution: with relative loads X_1..X_M and a population N,

    g(n, m) = g(n, m-1) + X_m * g(n-1, m)

folded queue by queue into a single column g[0..N]. After the last queue,
g[n] is the sum over every way of placing n jobs on the M queues of the
product of X_i ** k_i. O(N*M) time, O(N) space.

Three numerical policies are supported:
- "direct":  plain floating point.
- "rescale": the column holds g[n] / exp(n * log_scale). After each queue,
             if the stored top entry exceeds a threshold, entry n is divided
             by s**n with s = top**(1/N) and log s is added to `log_scale`;
             later loads are divided by exp(log_scale). g[0] stays exactly 1.
- "log":     the column holds log g[n], combined with log-sum-exp.
Ratios g[a]/g[b] (all the metrics need) are exact under every policy.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterator, List, Sequence

import numpy as np

from .errors import DomainError, NumericalError

POLICIES = ("direct", "rescale", "log")
DEFAULT_RESCALE_THRESHOLD = 1e100


# -----------------------------
# Validation
# -----------------------------
def validate_population(population: Any) -> int:
    if isinstance(population, bool) or not isinstance(population, (int, np.integer)):
        raise DomainError(f"population must be an integer, got {population!r}")
    if population < 0:
        raise DomainError(f"population must be non-negative, got {population}")
    return int(population)


def validate_loads(loads: Sequence[float]) -> np.ndarray:
    try:
        arr = np.asarray(loads, dtype=float)
    except (TypeError, ValueError) as e:
        raise DomainError(f"loads must be numeric, got {loads!r}") from e
    if arr.ndim != 1:
        raise DomainError(f"loads must be a flat sequence, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise DomainError(f"loads must be finite, got {arr.tolist()}")
    if np.any(arr < 0):
        raise DomainError(f"loads must be non-negative, got {arr.tolist()}")
    return arr


def validate_policy(policy: str) -> str:
    if policy not in POLICIES:
        raise DomainError(f"unknown numerical policy {policy!r}; expected one of {POLICIES}")
    return policy


def validate_rescale_threshold(threshold: Any) -> float:
    if isinstance(threshold, bool):
        raise DomainError(f"rescale_threshold must be a number, got {threshold!r}")
    try:
        t = float(threshold)
    except (TypeError, ValueError) as e:
        raise DomainError(f"rescale_threshold must be a number, got {threshold!r}") from e
    if not (math.isfinite(t) and t > 0):
        raise DomainError(f"rescale_threshold must be a positive finite number, got {threshold!r}")
    return t


# -----------------------------
# Table
# -----------------------------
@dataclass(frozen=True, eq=False)
class NormalizationTable:
    """Final column of the recurrence for populations 0..N.

    `data` holds g[n] (direct), g[n] / exp(n * log_scale) (rescale) or
    log g[n] (log). The rescale form divides by a per-job factor, so g[0]
    stays exactly 1 and low entries keep their magnitude. Indexing and
    iteration yield the true g[n], which can overflow to inf under the
    scaled policies; use `ratio` or `log_g` there.
    """

    data: np.ndarray
    policy: str = "direct"
    log_scale: float = 0.0

    def __post_init__(self) -> None:
        validate_policy(self.policy)
        arr = np.array(self.data, dtype=float)
        if arr.ndim != 1 or arr.size == 0:
            raise DomainError(f"a normalization table needs at least one entry, got shape {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)
        object.__setattr__(self, "log_scale", float(self.log_scale))

    @property
    def population(self) -> int:
        return len(self.data) - 1

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, n):
        if isinstance(n, slice):
            return self.to_array()[n]
        return self.g(n)

    def __iter__(self) -> Iterator[float]:
        return iter(self.to_array().tolist())

    def __repr__(self) -> str:
        return f"NormalizationTable(policy={self.policy!r}, population={self.population}, log_scale={self.log_scale:g})"

    def _index(self, n: int) -> int:
        return range(len(self.data))[n]

    def log_g(self, n: int) -> float:
        """log g[n]; -inf only when g[n] is exactly zero."""
        n = self._index(n)
        v = self.data[n]
        if self.policy == "log":
            return float(v)
        with np.errstate(divide="ignore"):
            return float(np.log(v)) + n * self.log_scale

    def log_column(self) -> np.ndarray:
        if self.policy == "log":
            return self.data.copy()
        with np.errstate(divide="ignore"):
            return np.log(self.data) + np.arange(len(self.data)) * self.log_scale

    def g(self, n: int) -> float:
        n = self._index(n)
        with np.errstate(over="ignore"):
            if self.policy == "log":
                return float(np.exp(self.data[n]))
            return float(self.data[n] * np.exp(n * self.log_scale))

    def to_array(self) -> np.ndarray:
        with np.errstate(over="ignore"):
            if self.policy == "log":
                return np.exp(self.data)
            if self.log_scale == 0.0:
                return self.data.copy()
            return self.data * np.exp(np.arange(len(self.data)) * self.log_scale)

    def ratio(self, num: int, den: int) -> float:
        """g[num] / g[den] without leaving the stored scale."""
        num = self._index(num)
        den = self._index(den)
        d = self.data[den]
        if self.policy == "log":
            if not np.isfinite(d):
                raise NumericalError(f"g[{den}] is zero; the network cannot hold {den} jobs")
            return float(np.exp(self.data[num] - d))
        if d == 0.0 or not np.isfinite(d):
            raise NumericalError(f"g[{den}] = {d!r} cannot be used as a denominator")
        r = self.data[num] / d
        if self.log_scale == 0.0 or r == 0.0:
            return float(r)
        with np.errstate(over="ignore", under="ignore"):
            return float(np.exp(math.log(r) + (num - den) * self.log_scale))


def as_table(obj: Any) -> NormalizationTable:
    """Accept a NormalizationTable or a plain array of g values."""
    if isinstance(obj, NormalizationTable):
        return obj
    try:
        arr = np.asarray(obj, dtype=float)
    except (TypeError, ValueError) as e:
        raise DomainError(f"not a normalization table: {obj!r}") from e
    return NormalizationTable(arr)


# -----------------------------
# Recurrence
# -----------------------------
def _fold_queue(g: np.ndarray, load: float) -> None:
    # In place, increasing n: g[n-1] already includes this queue.
    for n in range(1, len(g)):
        g[n] += load * g[n - 1]


def _fold_queue_log(lg: np.ndarray, log_load: float) -> None:
    for n in range(1, len(lg)):
        lg[n] = np.logaddexp(lg[n], log_load + lg[n - 1])


def compute_normalization(
    loads: Sequence[float],
    population: int,
    policy: str = "direct",
    rescale_threshold: float = DEFAULT_RESCALE_THRESHOLD,
) -> NormalizationTable:
    """Compute g[0..population] for the given per-queue relative loads."""
    validate_policy(policy)
    n_jobs = validate_population(population)
    x = validate_loads(loads)
    if n_jobs > 0 and x.size == 0:
        raise DomainError(f"a network with no queues cannot hold {n_jobs} jobs")

    if policy == "log":
        lg = np.full(n_jobs + 1, -np.inf)
        lg[0] = 0.0
        with np.errstate(divide="ignore"):
            log_x = np.log(x)
        for lx in log_x:
            _fold_queue_log(lg, float(lx))
        return NormalizationTable(lg, policy="log")

    if policy == "rescale":
        rescale_threshold = validate_rescale_threshold(rescale_threshold)

    g = np.zeros(n_jobs + 1, dtype=float)
    g[0] = 1.0
    if policy == "direct":
        for load in x:
            _fold_queue(g, float(load))
        return NormalizationTable(g)

    # Stored column is g[n] / exp(n * log_scale); later queues see their
    # load divided by exp(log_scale), which keeps the recurrence unchanged.
    log_scale = 0.0
    jobs = np.arange(n_jobs + 1)
    for load in x:
        with np.errstate(over="ignore", invalid="ignore"):
            _fold_queue(g, float(load) * math.exp(-log_scale))
        top = g[n_jobs]
        if not np.isfinite(top):
            raise NumericalError("g[N] overflowed within a single queue; use policy='log'")
        if n_jobs > 0 and top > rescale_threshold:
            step = math.log(top) / n_jobs
            g *= np.exp(-step * jobs)
            log_scale += step
    if n_jobs > 0 and np.any(x > 0) and np.any(g[1:] == 0.0):
        raise NumericalError("rescaled column underflowed to zero; use policy='log'")
    return NormalizationTable(g, policy="rescale", log_scale=log_scale)


def normalization_columns(loads: Sequence[float], population: int) -> List[np.ndarray]:
    """Every intermediate column g(., m) for m = 0..M (direct policy).

    Same recurrence with a fresh array per queue; mostly useful for showing
    how the table fills in.
    """
    n_jobs = validate_population(population)
    x = validate_loads(loads)
    if n_jobs > 0 and x.size == 0:
        raise DomainError(f"a network with no queues cannot hold {n_jobs} jobs")
    col = np.zeros(n_jobs + 1, dtype=float)
    col[0] = 1.0
    columns = [col]
    for load in x:
        prev = columns[-1]
        nxt = prev.copy()
        for n in range(1, n_jobs + 1):
            nxt[n] = prev[n] + load * nxt[n - 1]
        columns.append(nxt)
    return columns
