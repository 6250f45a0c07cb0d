"""
Closed network description: an ordered set of queues and a fixed population.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import DomainError
from .recurrence import validate_population


def _non_negative(value: Any, what: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise DomainError(f"{what} must be a number, got {value!r}") from e
    if not math.isfinite(v) or v < 0:
        raise DomainError(f"{what} must be finite and non-negative, got {value!r}")
    return v


@dataclass(frozen=True)
class Queue:
    load: float
    visit_ratio: float = 1.0
    name: Optional[str] = None
    # Only known when built from a service time; the simulator needs it.
    service_time: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "load", _non_negative(self.load, "load"))
        object.__setattr__(self, "visit_ratio", _non_negative(self.visit_ratio, "visit_ratio"))
        if self.service_time is not None:
            object.__setattr__(self, "service_time", _non_negative(self.service_time, "service_time"))

    @classmethod
    def from_service(cls, visit_ratio: float, service_time: float, name: Optional[str] = None) -> "Queue":
        e = _non_negative(visit_ratio, "visit_ratio")
        s = _non_negative(service_time, "service_time")
        return cls(load=e * s, visit_ratio=e, name=name, service_time=s)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Queue":
        name = d.get("name")
        if "service_time" in d:
            return cls.from_service(d.get("visit_ratio", 1.0), d["service_time"], name=name)
        if "load" not in d:
            raise DomainError(f"queue {name or d!r} needs either 'load' or 'service_time'")
        return cls(load=d["load"], visit_ratio=d.get("visit_ratio", 1.0), name=name)


@dataclass(frozen=True)
class Network:
    queues: Tuple[Queue, ...]
    population: int

    def __post_init__(self) -> None:
        queues = tuple(self.queues)
        if not queues:
            raise DomainError("a network needs at least one queue")
        for q in queues:
            if not isinstance(q, Queue):
                raise DomainError(f"expected Queue, got {type(q).__name__}")
        object.__setattr__(self, "queues", queues)
        object.__setattr__(self, "population", validate_population(self.population))

    @classmethod
    def from_loads(cls, loads: Sequence[float], population: int, visit_ratios: Optional[Sequence[float]] = None) -> "Network":
        if visit_ratios is None:
            visit_ratios = [1.0] * len(loads)
        if len(visit_ratios) != len(loads):
            raise DomainError(f"got {len(loads)} loads but {len(visit_ratios)} visit ratios")
        return cls(tuple(Queue(load=x, visit_ratio=e) for x, e in zip(loads, visit_ratios)), population)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Network":
        queues = d.get("queues", [])
        if "population" not in d:
            raise DomainError("network config needs a 'population'")
        return cls(tuple(Queue.from_dict(q) for q in queues), d["population"])

    @property
    def num_queues(self) -> int:
        return len(self.queues)

    @property
    def loads(self) -> List[float]:
        return [q.load for q in self.queues]

    @property
    def visit_ratios(self) -> List[float]:
        return [q.visit_ratio for q in self.queues]

    @property
    def names(self) -> List[str]:
        return [q.name if q.name else f"q{i + 1}" for i, q in enumerate(self.queues)]
