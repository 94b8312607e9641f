"""
Structured event sink shared by the filter, the dispatchers and the coordinator.

Core components never print; every block decision, ban, allocation and
deallocation becomes a SimEvent handed to a sink. Where the events end up
(log stream, memory, DataFrame) is decided by whoever builds the sink.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol

import pandas as pd


class EventKind(Enum):
    RANGE_ADDED = "range_added"
    RANGE_REJECTED = "range_rejected"
    ADDRESS_FALLBACK = "address_fallback"
    WINDOW_RESET = "window_reset"
    BLOCKED_RANGE = "blocked_range"
    BLOCKED_BAN = "blocked_ban"
    BLOCKED_RATE = "blocked_rate"
    DOS_DETECTED = "dos_detected"
    ALLOCATE = "allocate"
    DEALLOCATE = "deallocate"
    NO_IDLE_WORKER = "no_idle_worker"
    CYCLE = "cycle"


BLOCK_KINDS = frozenset({EventKind.BLOCKED_RANGE, EventKind.BLOCKED_BAN, EventKind.BLOCKED_RATE})

_LEVELS: Dict[EventKind, int] = {
    EventKind.RANGE_REJECTED: logging.WARNING,
    EventKind.ADDRESS_FALLBACK: logging.WARNING,
    EventKind.DOS_DETECTED: logging.WARNING,
    EventKind.WINDOW_RESET: logging.DEBUG,
    EventKind.CYCLE: logging.DEBUG,
}


@dataclass(frozen=True)
class SimEvent:
    kind: EventKind
    tick: int
    component: str
    source: Optional[str] = None
    target: Optional[str] = None
    count: Optional[int] = None
    detail: str = ""

    def to_record(self) -> dict:
        rec = asdict(self)
        rec["kind"] = self.kind.value
        return rec


class EventSink(Protocol):
    def emit(self, event: SimEvent) -> None: ...


def format_event(event: SimEvent) -> str:
    """One-line human readable rendering, e.g. ``[tick 12] blocked_range src=10.1.2.3``."""
    parts = [f"[tick {event.tick}] {event.kind.value}"]
    if event.source is not None:
        parts.append(f"src={event.source}")
    if event.target is not None:
        parts.append(f"dst={event.target}")
    if event.count is not None:
        parts.append(f"count={event.count}")
    if event.detail:
        parts.append(event.detail)
    return "  ".join(parts)


class LoggingEventSink:
    """Forwards events to ``logging``, one logger per component."""

    def __init__(self, prefix: str = "fabricsim"):
        self.prefix = prefix
        self._loggers: Dict[str, logging.Logger] = {}

    def _logger(self, component: str) -> logging.Logger:
        logger = self._loggers.get(component)
        if logger is None:
            logger = logging.getLogger(f"{self.prefix}.{component}")
            self._loggers[component] = logger
        return logger

    def emit(self, event: SimEvent) -> None:
        level = _LEVELS.get(event.kind, logging.INFO)
        logger = self._logger(event.component)
        if logger.isEnabledFor(level):
            logger.log(level, format_event(event))


class RecordingEventSink:
    """Keeps events in memory; ``kinds`` restricts what is stored."""

    def __init__(self, kinds: Optional[Iterable[EventKind]] = None):
        self.kinds = frozenset(kinds) if kinds is not None else None
        self.events: List[SimEvent] = []
        self.counts: Counter = Counter()

    def emit(self, event: SimEvent) -> None:
        if self.kinds is not None and event.kind not in self.kinds:
            return
        self.events.append(event)
        self.counts[event.kind] += 1

    def of_kind(self, kind: EventKind) -> List[SimEvent]:
        return [e for e in self.events if e.kind is kind]

    def clear(self) -> None:
        self.events.clear()
        self.counts.clear()

    def to_frame(self) -> pd.DataFrame:
        columns = ["kind", "tick", "component", "source", "target", "count", "detail"]
        return pd.DataFrame([e.to_record() for e in self.events], columns=columns)


class MultiSink:
    def __init__(self, *sinks: EventSink):
        self.sinks = list(sinks)

    def emit(self, event: SimEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)
