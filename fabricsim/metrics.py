from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd

from .dispatcher import Dispatcher


def history_frame(sim: Dispatcher) -> pd.DataFrame:
    """Per-cycle history of one dispatcher (empty when history was not recorded)."""
    return pd.DataFrame(
        {
            "clock": np.asarray(sim.hist_clock, dtype=np.int64),
            "queue_depth": np.asarray(sim.hist_queue, dtype=np.int64),
            "workers": np.asarray(sim.hist_workers, dtype=np.int64),
            "busy": np.asarray(sim.hist_busy, dtype=np.int64),
            "arrivals": np.asarray(sim.hist_arrivals, dtype=np.int64),
            "dispatched": np.asarray(sim.hist_dispatched, dtype=np.int64),
            "completed": np.asarray(sim.hist_completed, dtype=np.int64),
        }
    )


def summarize_history(sim: Dispatcher) -> Dict[str, float]:
    """
    Averages over the recorded cycles:
    avg/max queue depth, avg/max pool size, utilization (busy / workers, idle
    pools count as 0) and throughput (completions per cycle).
    """
    if not sim.hist_clock:
        return dict(
            avg_queue_depth=0.0,
            max_queue_depth=0,
            avg_workers=0.0,
            max_workers=0,
            avg_utilization=0.0,
            throughput=0.0,
        )
    queue = np.asarray(sim.hist_queue, dtype=np.float64)
    workers = np.asarray(sim.hist_workers, dtype=np.float64)
    busy = np.asarray(sim.hist_busy, dtype=np.float64)
    completed = np.asarray(sim.hist_completed, dtype=np.float64)
    util = np.divide(busy, workers, out=np.zeros_like(busy), where=workers > 0)
    return dict(
        avg_queue_depth=float(queue.mean()),
        max_queue_depth=int(queue.max()),
        avg_workers=float(workers.mean()),
        max_workers=int(workers.max()),
        avg_utilization=float(util.mean()),
        throughput=float(completed.mean()),
    )
