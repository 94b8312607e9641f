from __future__ import annotations

import sys
import json
import logging
import argparse
from pathlib import Path
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fabricsim import (
    Coordinator,
    EventKind,
    LoggingEventSink,
    MultiSink,
    RecordingEventSink,
    SimConfig,
    build_arrival_source,
    load_arrival_trace,
    load_config,
)
from fabricsim.metrics import history_frame, summarize_history


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


# ------------------- Plotting functions -------------------
def plot_dispatch_history(coord: Coordinator, out_path: Path, show: bool = False) -> None:
    """Queue depth (top) and pool size (bottom) per class over the run."""
    fig, (ax_q, ax_w) = plt.subplots(2, 1, figsize=(11, 8), sharex=True)
    colors = plt.cm.viridis(np.linspace(0.15, 0.85, len(coord.dispatchers)))
    for color, (jc, sim) in zip(colors, coord.dispatchers.items()):
        df = history_frame(sim)
        ax_q.plot(df["clock"], df["queue_depth"], label=f"Class {jc.value}", color=color, linewidth=1.6, alpha=0.9)
        ax_w.step(df["clock"], df["workers"], where="post", label=f"Class {jc.value}", color=color, linewidth=1.8)

    ax_q.set_ylabel("Queue depth", fontsize=15, fontweight="semibold", color="#1f1f2e")
    ax_w.set_ylabel("Workers", fontsize=15, fontweight="semibold", color="#1f1f2e")
    ax_w.set_xlabel("Tick", fontsize=15, fontweight="semibold", color="#1f1f2e")
    for ax in (ax_q, ax_w):
        ax.tick_params(axis="both", labelsize=12, colors="#2b2b3c", width=1.5)
        ax.legend(fontsize=11, loc="upper right", frameon=True, fancybox=True, framealpha=0.9)
        ax.grid(True, which="major", linestyle="--", linewidth=0.5, alpha=0.3, color="#7c8aa6")
        for spine in ["top", "right"]:
            ax.spines[spine].set_visible(False)
        ax.set_facecolor("#f4f6fb")
    fig.patch.set_facecolor("#eef1f7")
    fig.tight_layout()

    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=200)
    if show:
        plt.show()
    plt.close(fig)


def print_summary(report: Dict, histories: Dict[str, Dict[str, float]]) -> None:
    print("\n" + "=" * 60)
    print("Simulation summary".center(60))
    print("=" * 60)
    print(f"{'ticks':>30s}: {report['ticks']}")
    print(f"{'arrived':>30s}: {report['arrived']}")
    print(f"{'admitted':>30s}: {report['admitted']}")
    print(f"{'total blocked':>30s}: {report['total_blocked']}")
    print(f"{'auto-blocked sources':>30s}: {len(report['auto_blocked'])}")
    print(f"{'blocked ranges':>30s}: {', '.join(report['blocked_ranges']) or '-'}")
    for name, summary in report["dispatchers"].items():
        print(f"\n--- Dispatcher {name} ---")
        merged = dict(summary)
        merged.update(histories.get(name, {}))
        for k, v in merged.items():
            if isinstance(v, float):
                print(f"{k:>30s}: {v:.4f}")
            else:
                print(f"{k:>30s}: {v}")


# ------------------- Main program -------------------
def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the traffic-dispatch fabric simulation")
    parser.add_argument("--config", type=str, default=None, help="JSON config file (flags below override it)")
    parser.add_argument("--ticks", dest="total_ticks", type=int, default=None, help="Number of ticks to simulate")
    parser.add_argument("--workers", dest="initial_workers", type=int, default=None, help="Initial workers per class")
    parser.add_argument("--min_threshold", type=int, default=None, help="Deallocate when queue < min * workers")
    parser.add_argument("--max_threshold", type=int, default=None, help="Allocate when queue > max * workers")
    parser.add_argument("--cooldown", type=int, default=None, help="Ticks between autoscale evaluations")
    parser.add_argument("--max_process_time", type=int, default=None, help="Max service time per request")
    parser.add_argument("--dos_rate_limit", type=int, default=None, help="Requests per source per window")
    parser.add_argument("--dos_window_size", type=int, default=None, help="Ticks per rate-limit window")
    parser.add_argument("--prefill_per_worker", type=int, default=None, help="Initial queued requests per worker")
    parser.add_argument("--attack_share", type=float, default=None, help="Share of traffic from attacker addresses")
    parser.add_argument("--attacker", dest="attacker_addresses", action="append", default=None,
                        help="Attacker source address (repeatable)")
    parser.add_argument("--block", dest="blocked_ranges", action="append", default=None,
                        help="Blocked CIDR range (repeatable, replaces the defaults)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--trace", type=str, default=None, help="Replay arrivals from a JSON/CSV trace")
    parser.add_argument("--log_level", type=str, default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--log_file", type=str, default=None, help="Also write the event log here")
    parser.add_argument("--out_dir", type=str, default=str(ROOT / "results"), help="Directory for CSV/JSON/figure output")
    parser.add_argument("--skip_plot", action="store_true", help="Skip plotting")
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)
    logger = logging.getLogger("main")

    config = load_config(args.config) if args.config else SimConfig()
    overrides = {k: v for k, v in vars(args).items() if k in SimConfig.__dataclass_fields__}
    config = config.replace(**overrides).validate()

    recorder = RecordingEventSink(kinds=[k for k in EventKind if k is not EventKind.CYCLE])
    sink = MultiSink(LoggingEventSink(), recorder)

    source = build_arrival_source(config)
    coord = Coordinator.from_config(config, sink=sink, prefill_source=source)
    arrivals = load_arrival_trace(args.trace) if args.trace else source

    logger.info(f"Running {config.total_ticks} ticks with {config.initial_workers} workers per class")
    report = coord.run_steps(config.total_ticks, arrivals).as_dict()

    histories = {jc.value: summarize_history(sim) for jc, sim in coord.dispatchers.items()}
    print_summary(report, histories)

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    frames = []
    for jc, sim in coord.dispatchers.items():
        df = history_frame(sim)
        df.insert(0, "job_class", jc.value)
        frames.append(df)
    pd.concat(frames, ignore_index=True).to_csv(out_dir / "dispatch_history.csv", index=False)
    recorder.to_frame().to_csv(out_dir / "events.csv", index=False)
    with open(out_dir / "report.json", "w", encoding="utf-8") as f:
        json.dump({"config": config.to_dict(), "report": report, "history": histories}, f, indent=2)
    logger.info(f"Results saved to {out_dir}")

    if not args.skip_plot:
        plot_dispatch_history(coord, out_dir / "figures" / "dispatch_history.png")
    return 0


if __name__ == "__main__":
    sys.exit(main())
