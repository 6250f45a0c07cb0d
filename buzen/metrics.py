"""
Steady-state metrics derived from a completed normalization table.

Everything here is a pure function of (table, load/visit ratios): the table
is never modified and the functions can be called in any order, any number
of times. With N the table's population and X a queue's relative load:

    P(n_i >= k) = X**k * g[N-k] / g[N]        0 <= k <= N, else 0
    E[n_i]      = sum_{k=1..N} P(n_i >= k)
    throughput  = e_i * g[N-1] / g[N]         0 when N == 0

Under the "rescale" and "log" policies the sums are taken in log space so
that X**k cannot overflow on its own.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .cache import NormalizationCache
from .errors import DomainError
from .network import Network
from .recurrence import (
    DEFAULT_RESCALE_THRESHOLD,
    NormalizationTable,
    as_table,
    compute_normalization,
)


# -----------------------------
# Argument checks
# -----------------------------
def _check_load(load: Any) -> float:
    try:
        x = float(load)
    except (TypeError, ValueError) as e:
        raise DomainError(f"load must be a number, got {load!r}") from e
    if not math.isfinite(x) or x < 0:
        raise DomainError(f"load must be finite and non-negative, got {load!r}")
    return x


def _check_k(k: Any) -> int:
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise DomainError(f"k must be an integer, got {k!r}")
    if k < 0:
        raise DomainError(f"k must be non-negative, got {k}")
    return int(k)


def _check_visit_ratios(visit_ratios: Sequence[float]) -> np.ndarray:
    try:
        e = np.asarray(visit_ratios, dtype=float)
    except (TypeError, ValueError) as err:
        raise DomainError(f"visit ratios must be numeric, got {visit_ratios!r}") from err
    if e.ndim != 1:
        raise DomainError(f"visit ratios must be a flat sequence, got shape {e.shape}")
    if not np.all(np.isfinite(e)) or np.any(e < 0):
        raise DomainError(f"visit ratios must be finite and non-negative, got {e.tolist()}")
    return e


def _check_denominator(t: NormalizationTable) -> None:
    n = t.population
    t.ratio(n, n)


# -----------------------------
# Metrics
# -----------------------------
def prob_at_least(table: Any, load: float, k: int) -> float:
    """P(queue holds at least k jobs)."""
    t = as_table(table)
    x = _check_load(load)
    k = _check_k(k)
    n = t.population
    if k > n:
        return 0.0
    _check_denominator(t)
    if k == 0:
        return 1.0
    if x == 0.0:
        return 0.0
    if t.policy != "direct":
        return float(np.exp(k * math.log(x) + t.log_g(n - k) - t.log_g(n)))
    ratio = t.ratio(n - k, n)
    if ratio == 0.0:
        return 0.0
    try:
        return float(x ** k * ratio)
    except OverflowError:
        return float(np.exp(k * math.log(x) + math.log(ratio)))


def prob_exactly(table: Any, load: float, k: int) -> float:
    """P(queue holds exactly k jobs)."""
    return prob_at_least(table, load, k) - prob_at_least(table, load, _check_k(k) + 1)


def queue_length_distribution(table: Any, load: float) -> np.ndarray:
    """P(n_i = k) for k = 0..N."""
    t = as_table(table)
    tails = np.array([prob_at_least(t, load, k) for k in range(t.population + 2)])
    return -np.diff(tails)


def expected_length(table: Any, load: float) -> float:
    """Mean number of jobs at the queue (waiting plus in service)."""
    t = as_table(table)
    x = _check_load(load)
    n = t.population
    if n == 0:
        return 0.0
    _check_denominator(t)
    if x == 0.0:
        return 0.0

    if t.policy == "direct":
        acc = 0.0
        xk = 1.0
        for k in range(1, n + 1):
            xk *= x
            acc += xk * t.data[n - k]
        return float(acc / t.data[n])

    lg = t.log_column()
    ks = np.arange(1, n + 1)
    terms = ks * math.log(x) + lg[n - ks]
    return float(np.exp(np.logaddexp.reduce(terms) - lg[n]))


def throughput(table: Any, visit_ratios: Sequence[float]) -> np.ndarray:
    """Per-queue throughput e_i * g[N-1] / g[N]."""
    t = as_table(table)
    e = _check_visit_ratios(visit_ratios)
    n = t.population
    if n == 0:
        return np.zeros(len(e), dtype=float)
    return e * t.ratio(n - 1, n)


def utilization(table: Any, load: float) -> float:
    return prob_at_least(table, load, 1)


def system_throughput(table: Any) -> float:
    """Completions per unit visit ratio, g[N-1] / g[N]."""
    t = as_table(table)
    n = t.population
    if n == 0:
        return 0.0
    return t.ratio(n - 1, n)


# -----------------------------
# Report
# -----------------------------
@dataclass(frozen=True, eq=False)
class PerformanceReport:
    names: Tuple[str, ...]
    loads: Tuple[float, ...]
    visit_ratios: Tuple[float, ...]
    population: int
    table: NormalizationTable = field(repr=False)
    expected_lengths: Tuple[float, ...]
    utilizations: Tuple[float, ...]
    throughputs: Tuple[float, ...]
    response_times: Tuple[float, ...]
    system_throughput: float
    log_normalization: float

    @property
    def policy(self) -> str:
        return self.table.policy

    @property
    def total_expected_length(self) -> float:
        return float(sum(self.expected_lengths))

    def prob_at_least(self, queue_index: int, k: int) -> float:
        return prob_at_least(self.table, self.loads[queue_index], k)

    def queue_length_distribution(self, queue_index: int) -> np.ndarray:
        return queue_length_distribution(self.table, self.loads[queue_index])

    def to_dict(self) -> Dict[str, Any]:
        queues: Dict[str, Any] = {}
        for i, name in enumerate(self.names):
            queues[name] = {
                "load": self.loads[i],
                "visit_ratio": self.visit_ratios[i],
                "expected_length": self.expected_lengths[i],
                "utilization": self.utilizations[i],
                "throughput": self.throughputs[i],
                "response_time": self.response_times[i],
            }
        return {
            "summary": {
                "population": self.population,
                "num_queues": len(self.names),
                "policy": self.policy,
                "log_normalization": self.log_normalization,
                "system_throughput": self.system_throughput,
                "total_expected_length": self.total_expected_length,
            },
            "normalization": self._normalization_dict(),
            "queues": queues,
        }

    def _normalization_dict(self) -> Dict[str, Any]:
        if self.policy == "direct":
            return {"g": self.table.to_array().tolist()}
        # Scaled tables may not fit in a float; report logs instead.
        # None marks G(n) == 0 (no queue can hold n jobs).
        logs = self.table.log_column()
        return {"log_g": [float(v) if np.isfinite(v) else None for v in logs]}


def build_report(network: Network, table: NormalizationTable) -> PerformanceReport:
    if table.population != network.population:
        raise DomainError(f"table is for population {table.population}, network has {network.population}")
    loads = network.loads
    ratios = network.visit_ratios
    lengths = [expected_length(table, x) for x in loads]
    utils = [utilization(table, x) for x in loads]
    xs = throughput(table, ratios).tolist()
    resp: List[float] = [(length / x) if x > 0 else float("nan") for length, x in zip(lengths, xs)]
    return PerformanceReport(
        names=tuple(network.names),
        loads=tuple(loads),
        visit_ratios=tuple(ratios),
        population=network.population,
        table=table,
        expected_lengths=tuple(lengths),
        utilizations=tuple(utils),
        throughputs=tuple(xs),
        response_times=tuple(resp),
        system_throughput=system_throughput(table),
        log_normalization=table.log_g(table.population),
    )


def analyze(
    network: Network,
    policy: str = "direct",
    rescale_threshold: float = DEFAULT_RESCALE_THRESHOLD,
    cache: Optional[NormalizationCache] = None,
) -> PerformanceReport:
    if cache is not None:
        table = cache.get(network.loads, network.population, policy, rescale_threshold)
    else:
        table = compute_normalization(network.loads, network.population, policy, rescale_threshold)
    return build_report(network, table)
