"""
Exact Mean Value Analysis for single-server closed networks.

Independent of the normalization constants: it steps the population up one
job at a time using the arrival theorem. Its results match the convolution
metrics for loads X_i = V_i * S_i, which makes it a useful cross-check.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import DomainError, NumericalError
from .recurrence import validate_loads, validate_population


@dataclass
class MVAResult:
    throughput: float  # cycles per unit time; queue i sees throughput * V_i
    response_time: float
    queue_lengths: np.ndarray
    residence_times: np.ndarray


def mean_value_analysis(population: int, visit_ratios: Sequence[float], service_times: Sequence[float]) -> MVAResult:
    """
    population    : int, jobs in the network
    visit_ratios  : array_like, V_i, length M
    service_times : array_like, S_i (mean per visit), length M
    """
    n_jobs = validate_population(population)
    V = validate_loads(visit_ratios)
    S = validate_loads(service_times)
    if V.size != S.size:
        raise DomainError(f"got {V.size} visit ratios but {S.size} service times")
    if V.size == 0:
        raise DomainError("a network needs at least one queue")

    L = np.zeros(V.size, dtype=float)
    R_i = np.zeros(V.size, dtype=float)
    X = 0.0
    R_total = 0.0
    for n in range(1, n_jobs + 1):
        # residence per visit seen by an arriving job (arrival theorem)
        R_i = S * (1.0 + L)
        R_total = float(np.dot(V, R_i))
        if R_total <= 0.0:
            raise NumericalError("total demand is zero; throughput is unbounded")
        X = n / R_total
        L = X * V * R_i  # Little's law per center
    return MVAResult(throughput=X, response_time=R_total, queue_lengths=L, residence_times=V * R_i)
