"""
Discrete-event simulation of a closed network, used to sanity-check the
analytic metrics.

N jobs circulate among M single-server FCFS stations. Service times are
exponential with the station's mean service time; after each service a job
picks its next station at random with probability proportional to the visit
ratios, which gives the network the same product-form solution as the
convolution model.

Simulated time units are whatever the service times are expressed in.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import simpy

from .errors import DomainError
from .metrics import PerformanceReport
from .network import Network


def _service_times(network: Network) -> List[float]:
    out: List[float] = []
    for q in network.queues:
        if q.service_time is not None:
            out.append(q.service_time)
        elif q.visit_ratio > 0:
            out.append(q.load / q.visit_ratio)
        else:
            # never visited; any value will do
            out.append(q.load)
    return out


# -----------------------------
# Stations
# -----------------------------
class Station:
    def __init__(self, env: simpy.Environment, index: int, service_time: float) -> None:
        self.env = env
        self.index = index
        self.service_time = service_time
        self.server = simpy.Resource(env, capacity=1)

        self.jobs: int = 0
        self.completions: int = 0
        self._area: float = 0.0
        self._busy_area: float = 0.0
        self._last_change: float = 0.0

    def _advance(self) -> None:
        now = float(self.env.now)
        dt = now - self._last_change
        if dt > 0:
            self._area += self.jobs * dt
            if self.jobs > 0:
                self._busy_area += dt
        self._last_change = now

    def arrive(self) -> None:
        self._advance()
        self.jobs += 1

    def depart(self) -> None:
        self._advance()
        self.jobs -= 1
        self.completions += 1

    def reset_stats(self) -> None:
        self._advance()
        self._area = 0.0
        self._busy_area = 0.0
        self.completions = 0

    def mean_length(self, elapsed: float) -> float:
        self._advance()
        return self._area / elapsed if elapsed > 0 else 0.0

    def busy_fraction(self, elapsed: float) -> float:
        self._advance()
        return self._busy_area / elapsed if elapsed > 0 else 0.0


@dataclass
class SimulationResult:
    names: List[str]
    population: int
    sim_time: float
    measured_time: float
    completions: List[int]
    mean_lengths: List[float]
    throughputs: List[float]
    utilizations: List[float]
    wall_runtime_seconds: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "population": self.population,
                "sim_time": self.sim_time,
                "measured_time": self.measured_time,
                "total_completions": int(sum(self.completions)),
                "wall_runtime_seconds": self.wall_runtime_seconds,
            },
            "queues": {
                name: {
                    "completions": self.completions[i],
                    "mean_length": self.mean_lengths[i],
                    "throughput": self.throughputs[i],
                    "utilization": self.utilizations[i],
                }
                for i, name in enumerate(self.names)
            },
        }


# -----------------------------
# Simulation driver
# -----------------------------
class ClosedNetworkSimulation:
    def __init__(self, network: Network, config: Optional[Dict[str, Any]] = None) -> None:
        cfg = config or {}
        self.network = network
        self.seed = int(cfg.get("seed", 42))
        self.duration = float(cfg.get("duration", 10_000.0))
        self.warmup = float(cfg.get("warmup", 1_000.0))
        interval = cfg.get("progress_interval")
        self.progress_interval: Optional[float] = None if interval is None else float(interval)
        if self.warmup < 0 or self.duration <= self.warmup:
            raise DomainError(f"need 0 <= warmup < duration, got warmup={self.warmup}, duration={self.duration}")
        if self.progress_interval is not None and self.progress_interval <= 0:
            raise DomainError(f"progress_interval must be positive, got {self.progress_interval}")

        visits = np.asarray(network.visit_ratios, dtype=float)
        if visits.sum() <= 0:
            raise DomainError("at least one queue needs a positive visit ratio to route jobs")
        self.routing = visits / visits.sum()

        self.rng = np.random.default_rng(self.seed)
        self.env = simpy.Environment()
        self.stations = [Station(self.env, i, s) for i, s in enumerate(_service_times(network))]

    def _next_station(self) -> Station:
        return self.stations[int(self.rng.choice(len(self.stations), p=self.routing))]

    def _job(self, station: Station):
        while True:
            station.arrive()
            with station.server.request() as req:
                yield req
                yield self.env.timeout(self.rng.exponential(station.service_time))
            station.depart()
            station = self._next_station()

    def _warmup_reset(self):
        yield self.env.timeout(self.warmup)
        for st in self.stations:
            st.reset_stats()

    def _progress_logger(self, interval: float):
        """Print a progress line every `interval` units of simulated time."""
        while True:
            yield self.env.timeout(interval)
            elapsed_sim = float(self.env.now)
            remaining_sim = max(0.0, self.duration - elapsed_sim)
            wall_elapsed = time.time() - self._wall_start
            est_wall_remaining = wall_elapsed * (remaining_sim / elapsed_sim)
            print(
                f"[sim-progress] sim_elapsed={elapsed_sim:.1f}, sim_remaining={remaining_sim:.1f}, "
                f"wall_elapsed_s={wall_elapsed:.2f}, est_wall_remaining_s={est_wall_remaining:.2f}"
            )

    def run(self) -> SimulationResult:
        self._wall_start = time.time()
        for _ in range(self.network.population):
            self.env.process(self._job(self._next_station()))
        if self.warmup > 0:
            self.env.process(self._warmup_reset())
        if self.progress_interval is not None:
            self.env.process(self._progress_logger(self.progress_interval))

        self.env.run(until=self.duration)

        measured = self.duration - self.warmup
        return SimulationResult(
            names=self.network.names,
            population=self.network.population,
            sim_time=float(self.env.now),
            measured_time=measured,
            completions=[st.completions for st in self.stations],
            mean_lengths=[st.mean_length(measured) for st in self.stations],
            throughputs=[st.completions / measured for st in self.stations],
            utilizations=[st.busy_fraction(measured) for st in self.stations],
            wall_runtime_seconds=time.time() - self._wall_start,
        )


def compare_with_analysis(report: PerformanceReport, result: SimulationResult) -> Dict[str, Any]:
    """Side-by-side analytic and simulated values per queue."""
    rows: Dict[str, Any] = {}
    for i, name in enumerate(report.names):
        rows[name] = {
            "expected_length": report.expected_lengths[i],
            "simulated_length": result.mean_lengths[i],
            "throughput": report.throughputs[i],
            "simulated_throughput": result.throughputs[i],
            "utilization": report.utilizations[i],
            "simulated_utilization": result.utilizations[i],
        }
    return rows
