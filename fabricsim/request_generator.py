from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd


class JobClass(Enum):
    A = "A"
    B = "B"


@dataclass(frozen=True)
class Request:
    source_address: str
    dest_address: str
    service_time: int
    job_class: JobClass

    def __post_init__(self):
        if not isinstance(self.job_class, JobClass):
            raise ValueError(f"unknown job class: {self.job_class!r}")
        if int(self.service_time) != self.service_time or self.service_time < 1:
            raise ValueError(f"service_time must be a positive integer, got {self.service_time!r}")


def generate_address(rng: np.random.Generator) -> str:
    """Random dotted-decimal token; every octet uniform in [0, 255]."""
    return ".".join(str(int(o)) for o in rng.integers(0, 256, size=4))


def generate_requests(
    N: int,
    max_process_time: int,
    rng: Optional[np.random.Generator] = None,
    job_class: Optional[JobClass] = None,
    attacker_addresses: Sequence[str] = (),
    attack_share: float = 0.0,
) -> List[Request]:
    """
    Draw N requests. Service time is uniform in [1, max_process_time]; the
    class is a fair coin unless ``job_class`` pins it. With ``attack_share`` > 0
    that fraction of requests (in expectation) takes its source from
    ``attacker_addresses`` instead of a random address.
    """
    if rng is None:
        rng = np.random.default_rng()
    if max_process_time < 1:
        raise ValueError("max_process_time must be >= 1")
    if attack_share > 0 and not attacker_addresses:
        raise ValueError("attack_share > 0 requires attacker_addresses")

    service = rng.integers(1, max_process_time + 1, size=N)
    if job_class is None:
        classes = np.where(rng.integers(0, 2, size=N) == 0, JobClass.A.value, JobClass.B.value)
    else:
        classes = np.full(N, job_class.value)
    attacked = rng.random(N) < attack_share if attack_share > 0 else np.zeros(N, dtype=bool)

    out = []
    for i in range(N):
        if attacked[i]:
            src = attacker_addresses[int(rng.integers(0, len(attacker_addresses)))]
        else:
            src = generate_address(rng)
        out.append(Request(src, generate_address(rng), int(service[i]), JobClass(classes[i])))
    return out


class BurstArrivalSource:
    """
    Reference arrival process: each tick, with probability ``burst_probability``
    a burst of 1..max_burst requests surfaces; otherwise nothing arrives.
    """

    def __init__(
        self,
        max_process_time: int,
        rng: Optional[np.random.Generator] = None,
        burst_probability: float = 1 / 11,
        max_burst: int = 80,
        attacker_addresses: Sequence[str] = (),
        attack_share: float = 0.0,
    ):
        self.max_process_time = int(max_process_time)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.burst_probability = float(burst_probability)
        self.max_burst = int(max_burst)
        self.attacker_addresses = list(attacker_addresses)
        self.attack_share = float(attack_share)
        self.generated = 0

    def draw(self, N: int, job_class: Optional[JobClass] = None) -> List[Request]:
        batch = generate_requests(
            N,
            self.max_process_time,
            rng=self.rng,
            job_class=job_class,
            attacker_addresses=self.attacker_addresses,
            attack_share=self.attack_share,
        )
        self.generated += len(batch)
        return batch

    def __call__(self, tick: int) -> List[Request]:
        if self.rng.random() >= self.burst_probability:
            return []
        n = int(self.rng.integers(1, self.max_burst + 1))
        return self.draw(n)


class ReplayArrivalSource:
    """Replays a fixed tick -> batch schedule; ticks without an entry are empty."""

    def __init__(self, schedule: Mapping[int, Sequence[Request]]):
        self.schedule: Dict[int, List[Request]] = {int(t): list(b) for t, b in schedule.items()}

    def __call__(self, tick: int) -> List[Request]:
        return list(self.schedule.get(tick, ()))

    @property
    def total(self) -> int:
        return sum(len(b) for b in self.schedule.values())


def _rows_to_schedule(rows: Iterable[Mapping]) -> Dict[int, List[Request]]:
    schedule: Dict[int, List[Request]] = defaultdict(list)
    for row in rows:
        try:
            tick = int(row["tick"])
            req = Request(
                str(row["source"]),
                str(row["dest"]),
                int(row["service_time"]),
                JobClass(str(row["job_class"]).upper()),
            )
        except KeyError as e:
            raise ValueError(f"trace row missing field {e}") from e
        schedule[tick].append(req)
    return dict(schedule)


def load_arrival_trace(path: str | Path) -> ReplayArrivalSource:
    """
    Load an arrival trace. ``.csv`` files are read with pandas, anything else as
    a JSON list (or ``{"data": [...]}``) of rows with fields
    tick, source, dest, service_time, job_class. Row order within a tick is kept.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Trace file not found: {path}")

    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path, dtype={"source": str, "dest": str, "job_class": str})
        rows = df.to_dict(orient="records")
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and "data" in data:
            rows = data["data"]
        elif isinstance(data, list):
            rows = data
        else:
            raise ValueError(f"Unexpected data format in {path}")

    return ReplayArrivalSource(_rows_to_schedule(rows))
