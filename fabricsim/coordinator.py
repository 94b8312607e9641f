from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .admission import AdmissionFilter
from .config import SimConfig
from .dispatcher import Dispatcher
from .events import EventSink, LoggingEventSink
from .request_generator import BurstArrivalSource, JobClass, Request

ArrivalSource = Callable[[int], Sequence[Request]]


@dataclass
class RunReport:
    ticks: int
    total_blocked: int
    blocked_ranges: List[str]
    auto_blocked: List[str]
    arrived: int
    admitted: int
    dispatchers: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return dict(
            ticks=self.ticks,
            total_blocked=self.total_blocked,
            blocked_ranges=list(self.blocked_ranges),
            auto_blocked=list(self.auto_blocked),
            arrived=self.arrived,
            admitted=self.admitted,
            dispatchers={k: dict(v) for k, v in self.dispatchers.items()},
        )


def split_by_class(requests: Sequence[Request]) -> Tuple[List[Request], List[Request]]:
    """Partition admitted requests into (class A, class B), keeping relative order."""
    batch_a: List[Request] = []
    batch_b: List[Request] = []
    for req in requests:
        (batch_a if req.job_class is JobClass.A else batch_b).append(req)
    return batch_a, batch_b


class Coordinator:
    """
    Top-level tick driver. Owns the admission filter and one dispatcher per job
    class. Within a tick: arrivals -> filter -> class split -> dispatcher A ->
    dispatcher B -> clock.
    """

    def __init__(
        self,
        admission: AdmissionFilter,
        dispatcher_a: Dispatcher,
        dispatcher_b: Dispatcher,
    ):
        self.admission = admission
        self.dispatchers: Dict[JobClass, Dispatcher] = {
            JobClass.A: dispatcher_a,
            JobClass.B: dispatcher_b,
        }
        self.clock = 0
        self.total_arrived = 0

    @property
    def dispatcher_a(self) -> Dispatcher:
        return self.dispatchers[JobClass.A]

    @property
    def dispatcher_b(self) -> Dispatcher:
        return self.dispatchers[JobClass.B]

    @classmethod
    def from_config(
        cls,
        config: SimConfig,
        sink: Optional[EventSink] = None,
        prefill_source: Optional[BurstArrivalSource] = None,
        record_history: bool = True,
    ) -> "Coordinator":
        """
        Build the fabric described by ``config``. With ``prefill_per_worker`` > 0
        each class queue starts with prefill_per_worker * initial_workers requests
        drawn from ``prefill_source``; those never pass the filter.
        """
        config.validate()
        sink = sink if sink is not None else LoggingEventSink()

        admission = AdmissionFilter(config.dos_rate_limit, config.dos_window_size, sink=sink)
        for cidr in config.blocked_ranges:
            admission.add_blocked_range(cidr)

        prefill = {JobClass.A: [], JobClass.B: []}
        n_prefill = config.prefill_per_worker * config.initial_workers
        if n_prefill:
            if prefill_source is None:
                prefill_source = build_arrival_source(config)
            for jc in (JobClass.A, JobClass.B):
                prefill[jc] = prefill_source.draw(n_prefill, job_class=jc)

        def make(jc: JobClass) -> Dispatcher:
            return Dispatcher(
                jc.value,
                config.initial_workers,
                config.min_threshold,
                config.max_threshold,
                config.cooldown,
                initial_queue=prefill[jc],
                sink=sink,
                record_history=record_history,
            )

        return cls(admission, make(JobClass.A), make(JobClass.B))

    # ================== main loop ================== #
    def step(self, raw_batch: Sequence[Request]) -> Tuple[int, int]:
        """Run one tick on an already drawn arrival batch; returns both queue depths."""
        self.total_arrived += len(raw_batch)
        allowed = self.admission.filter_batch(raw_batch, self.clock)
        batch_a, batch_b = split_by_class(allowed)
        depth_a = self.dispatcher_a.run_cycle(batch_a)
        depth_b = self.dispatcher_b.run_cycle(batch_b)
        self.clock += 1
        return depth_a, depth_b

    def run_steps(self, total_ticks: int, arrival_source: ArrivalSource) -> RunReport:
        for _ in range(int(total_ticks)):
            self.step(arrival_source(self.clock))
        return self.report()

    def report(self) -> RunReport:
        return RunReport(
            ticks=self.clock,
            total_blocked=self.admission.total_blocked(),
            blocked_ranges=self.admission.blocked_ranges(),
            auto_blocked=sorted(self.admission.auto_blocked),
            arrived=self.total_arrived,
            admitted=self.admission.admitted,
            dispatchers={jc.value: d.summary() for jc, d in self.dispatchers.items()},
        )


def build_arrival_source(config: SimConfig, rng: Optional[np.random.Generator] = None) -> BurstArrivalSource:
    if rng is None:
        rng = np.random.default_rng(config.seed)
    return BurstArrivalSource(
        config.max_process_time,
        rng=rng,
        burst_probability=config.burst_probability,
        max_burst=config.max_burst,
        attacker_addresses=config.attacker_addresses,
        attack_share=config.attack_share,
    )


def run_simulation(
    config: SimConfig,
    sink: Optional[EventSink] = None,
    arrival_source: Optional[ArrivalSource] = None,
    record_history: bool = True,
) -> Tuple[Coordinator, RunReport]:
    """Build from config and run ``config.total_ticks`` ticks with a seeded source."""
    config.validate()
    source = build_arrival_source(config)
    coord = Coordinator.from_config(config, sink=sink, prefill_source=source,
                                    record_history=record_history)
    report = coord.run_steps(config.total_ticks, arrival_source if arrival_source is not None else source)
    return coord, report
