#!/usr/bin/env python3
"""
buzen command line

Solves a single-class closed queueing network with Buzen's convolution
algorithm and writes a performance report:
- normalization constants G(0..N) (or log G under a scaling policy)
- per-queue expected length, utilization, throughput, response time
- marginal queue-length distribution per queue
- optionally, a discrete-event simulation of the same network (SimPy) for
  side-by-side comparison

The network comes from a JSON config merged over DEFAULT_CONFIG; a few
fields can be overridden from the command line.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

from .errors import ModelError
from .metrics import PerformanceReport, analyze
from .network import Network
from .recurrence import POLICIES, validate_rescale_threshold
from .simulation import ClosedNetworkSimulation, SimulationResult, compare_with_analysis


# -----------------------------
# Utilities
# -----------------------------
def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fmt(v: Any) -> str:
    if isinstance(v, float):
        return f"{v:.6g}"
    return str(v)


def dict_to_table(d: Dict[str, Any]) -> str:
    keys = [str(k) for k in d.keys()]
    return (
        "| " + " | ".join(keys) + " |\n" +
        "| " + " | ".join(["---"] * len(keys)) + " |\n" +
        "| " + " | ".join(_fmt(v) for v in d.values()) + " |\n"
    )


def rows_to_table(rows: Dict[str, Dict[str, Any]], first_col: str = "queue") -> str:
    if not rows:
        return "_No rows._\n"
    cols = list(next(iter(rows.values())).keys())
    lines = [
        "| " + " | ".join([first_col] + cols) + " |\n",
        "| " + " | ".join(["---"] * (len(cols) + 1)) + " |\n",
    ]
    for name, row in rows.items():
        lines.append("| " + " | ".join([str(name)] + [_fmt(row.get(c, "n/a")) for c in cols]) + " |\n")
    return "".join(lines)


# -----------------------------
# Report building
# -----------------------------
def assemble_report(
    perf: PerformanceReport,
    sim: Optional[SimulationResult] = None,
    max_distribution_rows: int = 50,
) -> Dict[str, Any]:
    report = perf.to_dict()
    distributions: Dict[str, Any] = {}
    if perf.population <= max_distribution_rows:
        for i, name in enumerate(perf.names):
            distributions[name] = perf.queue_length_distribution(i).tolist()
    report["queue_length_distributions"] = distributions
    if sim is not None:
        report["simulation"] = sim.to_dict()
        report["comparison"] = compare_with_analysis(perf, sim)
    return report


def report_markdown(report: Dict[str, Any]) -> str:
    md = []
    md.append("# buzen Closed Network Report\n")
    summary = report.get("summary", {})
    if summary:
        md.append("## Summary\n")
        md.append(dict_to_table(summary))

    norm = report.get("normalization", {})
    if "g" in norm:
        md.append("\n## Normalization Constants G(n)\n")
        md.append(dict_to_table({str(n): v for n, v in enumerate(norm["g"])}))
    elif "log_g" in norm:
        md.append("\n## Normalization Constants log G(n)\n")
        md.append(dict_to_table({str(n): v for n, v in enumerate(norm["log_g"])}))

    md.append("\n## Per-Queue Metrics\n")
    md.append(rows_to_table(report.get("queues", {})))

    dists = report.get("queue_length_distributions", {})
    if dists:
        md.append("\n## Queue Length Distributions P(n_i = k)\n")
        for name, probs in dists.items():
            md.append(f"\n### {name}\n")
            md.append(dict_to_table({str(k): p for k, p in enumerate(probs)}))

    sim = report.get("simulation")
    if sim:
        md.append("\n## Simulation Summary\n")
        md.append(dict_to_table(sim.get("summary", {})))
        md.append("\n## Analytic vs Simulated\n")
        md.append(rows_to_table(report.get("comparison", {})))
    return "".join(md)


# -----------------------------
# Config
# -----------------------------
DEFAULT_CONFIG = {
    "network": {
        "population": 3,
        "queues": [
            {"name": "cpu", "load": 2.0},
            {"name": "disk", "load": 3.0},
        ],
    },
    "numerics": {
        "policy": "direct",
        "rescale_threshold": 1e100,
    },
    "simulation": {
        "enabled": False,
        "seed": 42,
        "duration": 100000.0,
        "warmup": 5000.0,
        "progress_interval": None,
    },
    "reporting": {
        "output_dir": "reports",
        "writers": ["json", "markdown"],
        "max_distribution_rows": 50,
    },
}


def load_config(path: Optional[str]) -> Dict[str, Any]:
    cfg = json.loads(json.dumps(DEFAULT_CONFIG))  # deep copy
    if path:
        with open(path, "r") as f:
            user_cfg = json.load(f)
        # Nested dicts merge; everything else (lists included) replaces
        def merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
            out = dict(a)
            for k, v in b.items():
                if isinstance(v, dict) and isinstance(out.get(k), dict):
                    out[k] = merge(out[k], v)
                else:
                    out[k] = v
            return out
        cfg = merge(cfg, user_cfg)
    return cfg


def write_reports(report: Dict[str, Any], config: Dict[str, Any]) -> List[str]:
    rep_cfg = config.get("reporting", {})
    writers = rep_cfg.get("writers", ["json", "markdown"])
    outdir = rep_cfg.get("output_dir", "reports")
    ensure_dir(outdir)
    written: List[str] = []
    if "json" in writers:
        path = os.path.join(outdir, "report.json")
        with open(path, "w") as f:
            json.dump(report, f, indent=2)
        print(f"Wrote JSON report: {path}")
        written.append(path)
    if "markdown" in writers:
        path = os.path.join(outdir, "report.md")
        with open(path, "w") as f:
            f.write(report_markdown(report))
        print(f"Wrote Markdown report: {path}")
        written.append(path)
    return written


def run(cfg: Dict[str, Any]) -> Dict[str, Any]:
    network = Network.from_dict(cfg.get("network", {}))
    num_cfg = cfg.get("numerics", {})
    perf = analyze(
        network,
        policy=num_cfg.get("policy", "direct"),
        rescale_threshold=validate_rescale_threshold(num_cfg.get("rescale_threshold", 1e100)),
    )
    sim_result = None
    sim_cfg = cfg.get("simulation", {})
    if sim_cfg.get("enabled", False):
        sim_result = ClosedNetworkSimulation(network, sim_cfg).run()
    rows = int(cfg.get("reporting", {}).get("max_distribution_rows", 50))
    return assemble_report(perf, sim_result, max_distribution_rows=rows)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="buzen closed queueing network solver")
    parser.add_argument("--config", type=str, help="Path to JSON config", default=None)
    parser.add_argument("--population", type=int, help="Override number of jobs N")
    parser.add_argument("--policy", type=str, choices=list(POLICIES), help="Override numerical policy")
    parser.add_argument("--simulate", action="store_true", help="Also run the discrete-event simulation")
    parser.add_argument("--seed", type=int, help="Override simulation RNG seed")
    parser.add_argument("--output-dir", type=str, help="Override report output dir")
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    if args.population is not None:
        cfg.setdefault("network", {})["population"] = int(args.population)
    if args.policy:
        cfg.setdefault("numerics", {})["policy"] = args.policy
    if args.simulate:
        cfg.setdefault("simulation", {})["enabled"] = True
    if args.seed is not None:
        cfg.setdefault("simulation", {})["seed"] = int(args.seed)
    if args.output_dir:
        cfg.setdefault("reporting", {})["output_dir"] = args.output_dir

    try:
        report = run(cfg)
    except ModelError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    write_reports(report, cfg)

    # Also print a concise summary
    print(json.dumps(report["summary"], indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
