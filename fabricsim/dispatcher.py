from __future__ import annotations

from collections import deque
from typing import Callable, Dict, Iterable, List, Optional

from .errors import ConfigError
from .events import EventKind, EventSink, LoggingEventSink, SimEvent
from .policies import ScaleAction, autoscale_decision, policy_pool_order
from .request_generator import Request
from .worker import Worker


class Dispatcher:
    """
    Per-class dispatcher: one FIFO queue feeding an elastic pool of workers.

    Each ``run_cycle`` enqueues the new arrivals, hands queued work to idle
    workers (``policy_fn``), ticks every worker, then, every ``cooldown``
    cycles, grows or shrinks the pool by at most one worker.

    Workers are referenced by id; ``workers`` maps id -> Worker in pool order.
    """

    def __init__(
        self,
        name: str,
        initial_workers: int,
        min_threshold: int,
        max_threshold: int,
        cooldown: int,
        initial_queue: Iterable[Request] = (),
        policy_fn: Callable[["Dispatcher"], int] = policy_pool_order,
        sink: Optional[EventSink] = None,
        record_history: bool = True,
    ):
        if int(cooldown) < 1:
            raise ConfigError(f"cooldown must be >= 1, got {cooldown}")
        if int(initial_workers) < 0:
            raise ConfigError(f"initial_workers must be >= 0, got {initial_workers}")

        self.name = str(name)
        self.component = f"dispatcher.{self.name}"
        self.min_threshold = int(min_threshold)
        self.max_threshold = int(max_threshold)
        self.cooldown = int(cooldown)
        self.policy_fn = policy_fn
        self.sink = sink if sink is not None else LoggingEventSink()
        self.record_hist = record_history

        # Queue (arrival order) and the clock each entry was enqueued at
        self.wait_q: deque[Request] = deque()
        self._enqueued_at: deque[int] = deque()

        # Worker pool
        self.workers: Dict[int, Worker] = {}
        for wid in range(int(initial_workers)):
            self.workers[wid] = Worker(wid)
        self._next_id = int(initial_workers)

        self.clock = 0

        # Counters
        self.total_arrived = 0
        self.total_dispatched = 0
        self.total_completed = 0
        self.total_wait = 0
        self.max_wait = 0
        self.allocations = 0
        self.deallocations = 0

        # Per-cycle history (only filled when record_history=True)
        self.hist_clock: List[int] = []
        self.hist_queue: List[int] = []
        self.hist_workers: List[int] = []
        self.hist_busy: List[int] = []
        self.hist_arrivals: List[int] = []
        self.hist_dispatched: List[int] = []
        self.hist_completed: List[int] = []

        self._enqueue(initial_queue)

    # ================== helpers ================== #
    @property
    def queue_depth(self) -> int:
        return len(self.wait_q)

    @property
    def worker_count(self) -> int:
        return len(self.workers)

    def busy_count(self) -> int:
        return sum(1 for w in self.workers.values() if w.busy)

    def worker_ids(self) -> List[int]:
        return list(self.workers)

    def _emit(self, kind: EventKind, **kw) -> None:
        self.sink.emit(SimEvent(kind, self.clock, self.component, **kw))

    def _enqueue(self, requests: Iterable[Request]) -> int:
        n = 0
        for req in requests:
            self.wait_q.append(req)
            self._enqueued_at.append(self.clock)
            n += 1
        self.total_arrived += n
        return n

    def _assign(self, worker_id: int) -> Request:
        """Pop the queue head onto the given (idle) worker."""
        worker = self.workers[worker_id]
        request = self.wait_q.popleft()
        waited = self.clock - self._enqueued_at.popleft()
        worker.assign(request)
        self.total_dispatched += 1
        self.total_wait += waited
        if waited > self.max_wait:
            self.max_wait = waited
        return request

    # ================== pool sizing ================== #
    def allocate(self) -> int:
        """Append a fresh idle worker; returns its id."""
        wid = max(self._next_id, self.clock)
        self._next_id = wid + 1
        self.workers[wid] = Worker(wid)
        self.allocations += 1
        self._emit(EventKind.ALLOCATE, target=str(wid), count=len(self.workers))
        return wid

    def deallocate(self) -> Optional[int]:
        """Remove the first idle worker in pool order; busy workers are never removed."""
        for wid, worker in self.workers.items():
            if worker.is_ready():
                del self.workers[wid]
                self.deallocations += 1
                self._emit(EventKind.DEALLOCATE, target=str(wid), count=len(self.workers))
                return wid
        self._emit(EventKind.NO_IDLE_WORKER, count=len(self.workers),
                   detail="no server available for deallocation")
        return None

    def autoscale(self) -> ScaleAction:
        action = autoscale_decision(self.queue_depth, self.worker_count,
                                    self.min_threshold, self.max_threshold)
        if action is ScaleAction.DEALLOCATE:
            self.deallocate()
        elif action is ScaleAction.ALLOCATE:
            self.allocate()
        return action

    # ================== main cycle ================== #
    def run_cycle(self, new_arrivals: Iterable[Request] = ()) -> int:
        """Advance one tick; returns the queue depth left after dispatch."""
        arrived = self._enqueue(new_arrivals)
        dispatched = self.policy_fn(self)
        depth = self.queue_depth

        completed = 0
        for worker in self.workers.values():
            if worker.tick() is not None:
                completed += 1
        self.total_completed += completed

        self._emit(EventKind.CYCLE, count=depth,
                   detail=f"arrived={arrived} workers={self.worker_count}")

        if self.record_hist:
            self.hist_clock.append(self.clock)
            self.hist_queue.append(depth)
            self.hist_workers.append(self.worker_count)
            self.hist_busy.append(self.busy_count())
            self.hist_arrivals.append(arrived)
            self.hist_dispatched.append(dispatched)
            self.hist_completed.append(completed)

        if self.clock % self.cooldown == 0:
            self.autoscale()

        self.clock += 1
        return depth

    def summary(self) -> Dict[str, float]:
        return dict(
            clock=self.clock,
            queue_depth=self.queue_depth,
            workers=self.worker_count,
            busy=self.busy_count(),
            arrived=self.total_arrived,
            dispatched=self.total_dispatched,
            completed=self.total_completed,
            allocations=self.allocations,
            deallocations=self.deallocations,
            avg_wait=(self.total_wait / self.total_dispatched) if self.total_dispatched else 0.0,
            max_wait=self.max_wait,
        )
