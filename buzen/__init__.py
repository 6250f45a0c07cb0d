"""
buzen package

Normalization constants and steady-state metrics for single-class closed
product-form queueing networks (Buzen's convolution algorithm), with an exact
MVA and a SimPy simulation for cross-checking.
"""

from .errors import DomainError, ModelError, NumericalError
from .metrics import (
    PerformanceReport,
    analyze,
    expected_length,
    prob_at_least,
    prob_exactly,
    queue_length_distribution,
    throughput,
    utilization,
)
from .network import Network, Queue
from .recurrence import NormalizationTable, compute_normalization

__all__ = [
    "DomainError",
    "ModelError",
    "Network",
    "NormalizationTable",
    "NumericalError",
    "PerformanceReport",
    "Queue",
    "analyze",
    "compute_normalization",
    "expected_length",
    "prob_at_least",
    "prob_exactly",
    "queue_length_distribution",
    "throughput",
    "utilization",
]
__version__ = "0.1.0"
