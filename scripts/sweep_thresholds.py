from __future__ import annotations

import sys
import argparse
from itertools import product
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fabricsim import RecordingEventSink, SimConfig, run_simulation
from fabricsim.metrics import summarize_history


def run_single_simulation(
    seed: int,
    min_threshold: int,
    max_threshold: int,
    cooldown: int,
    total_ticks: int,
) -> Dict[str, float]:
    config = SimConfig(
        seed=seed,
        min_threshold=min_threshold,
        max_threshold=max_threshold,
        cooldown=cooldown,
        total_ticks=total_ticks,
    )
    # Events are discarded; only the counters matter for the sweep.
    coord, report = run_simulation(config, sink=RecordingEventSink(kinds=()))
    out: Dict[str, float] = {"total_blocked": float(report.total_blocked)}
    for jc, sim in coord.dispatchers.items():
        stats = dict(summarize_history(sim))
        stats["avg_wait"] = sim.summary()["avg_wait"]
        stats["allocations"] = sim.allocations
        stats["deallocations"] = sim.deallocations
        out.update({f"{jc.value}_{k}": float(v) for k, v in stats.items()})
    return out


def aggregate_metrics(metrics: List[Dict[str, float]]) -> Dict[str, float]:
    df = pd.DataFrame(metrics)
    means = df.mean()
    return {f"{k}_mean": float(means[k]) for k in df.columns}


def main() -> None:
    parser = argparse.ArgumentParser(description="Sweep autoscale thresholds over seeds")
    parser.add_argument("--n_repeat", type=int, default=20, help="Seeds per threshold pair (default: 20)")
    parser.add_argument("--seed", type=int, default=42, help="First seed (default: 42)")
    parser.add_argument("--ticks", type=int, default=5000, help="Ticks per run (default: 5000)")
    parser.add_argument("--cooldown", type=int, default=10, help="Autoscale cooldown (default: 10)")
    parser.add_argument("--n_jobs", type=int, default=-1, help="Parallel jobs, -1 means all cores (default: -1)")
    parser.add_argument("--output", type=str, default=str(Path("results") / "threshold_sweep.csv"))
    args = parser.parse_args()

    min_values = [0, 1, 2, 3]
    max_values = [3, 5, 8, 12]
    seeds = (np.arange(args.n_repeat) + args.seed).astype(int)
    grid = [(lo, hi) for lo, hi in product(min_values, max_values) if lo <= hi]

    results: List[Dict[str, float]] = []
    with tqdm(total=len(grid) * args.n_repeat, desc="Simulations", ncols=80) as sim_pbar:
        for lo, hi in tqdm(grid, desc="Threshold grid", ncols=80):
            metrics_per_seed = Parallel(n_jobs=args.n_jobs)(
                delayed(run_single_simulation)(
                    seed=int(seed),
                    min_threshold=lo,
                    max_threshold=hi,
                    cooldown=args.cooldown,
                    total_ticks=args.ticks,
                )
                for seed in seeds
            )
            sim_pbar.update(args.n_repeat)

            avg_metrics = aggregate_metrics(list(metrics_per_seed))
            avg_metrics.update({"min_threshold": lo, "max_threshold": hi})
            results.append(avg_metrics)
            tqdm.write(f"Completed min_threshold={lo}, max_threshold={hi}")

    df_results = pd.DataFrame(results)
    column_order = ["min_threshold", "max_threshold"] + sorted(
        [col for col in df_results.columns if col not in {"min_threshold", "max_threshold"}]
    )
    df_results = df_results[column_order]
    output_csv = Path(args.output)
    output_csv.parent.mkdir(parents=True, exist_ok=True)
    df_results.to_csv(output_csv, index=False)


if __name__ == "__main__":
    main()
