"""
Exception types raised by the buzen model and metrics code.

Both are raised at the point of detection and never retried: the computation
is deterministic, so the same input fails the same way every time.
"""
from __future__ import annotations


class ModelError(ValueError):
    """Base class for every error raised by buzen."""


class DomainError(ModelError):
    """Invalid network parameters: bad population, negative load, no queues."""


class NumericalError(ModelError, ArithmeticError):
    """A metrics query hit a zero or non-finite denominator."""
