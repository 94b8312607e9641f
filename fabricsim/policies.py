"""
Dispatch and autoscale policies.

A dispatch policy takes the dispatcher and hands queued requests to idle
workers through ``sim._assign``; it returns how many it assigned. The
autoscale decision is a pure function of queue depth and pool size.
"""

from __future__ import annotations

from enum import Enum


class ScaleAction(Enum):
    NONE = "none"
    ALLOCATE = "allocate"
    DEALLOCATE = "deallocate"


def policy_pool_order(sim) -> int:
    """FIFO queue onto idle workers, walking the pool in insertion order."""
    assigned = 0
    if not sim.wait_q:
        return 0
    for worker in sim.workers.values():
        if not sim.wait_q:
            break
        if worker.is_ready():
            sim._assign(worker.id)
            assigned += 1
    return assigned


def autoscale_decision(queue_depth: int, worker_count: int, min_threshold: int, max_threshold: int) -> ScaleAction:
    """Shrink below min_threshold per worker, grow above max_threshold per worker."""
    if queue_depth < min_threshold * worker_count:
        return ScaleAction.DEALLOCATE
    if queue_depth > max_threshold * worker_count:
        return ScaleAction.ALLOCATE
    return ScaleAction.NONE
