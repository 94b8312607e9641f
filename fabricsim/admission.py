"""
Perimeter admission control.

Every arrival passes three checks, in order:

1. static blocked ranges (CIDR network/mask pairs),
2. sources already banned for flooding,
3. a fixed-window per-source counter; the request that pushes a source past
   ``dos_rate_limit`` is dropped and the source is banned for the rest of the run.

Admitted requests keep their arrival order.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from .errors import AddressParseError
from .events import EventKind, EventSink, LoggingEventSink, SimEvent
from .request_generator import Request

FULL_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class AddressRange:
    network: int
    mask: int
    label: str

    def __post_init__(self):
        if (self.network & self.mask) != self.network:
            raise ValueError(f"host bits set in network of {self.label}")

    def contains(self, addr: int) -> bool:
        return (addr & self.mask) == self.network


def parse_ipv4(text: str) -> int:
    """Strict dotted-decimal parse; raises AddressParseError on any malformed input."""
    octets = text.split(".")
    if len(octets) != 4:
        raise AddressParseError(text, f"expected 4 octets, got {len(octets)}")
    value = 0
    for octet in octets:
        if not (octet.isascii() and octet.isdigit()):
            raise AddressParseError(text, f"non-numeric octet {octet!r}")
        n = int(octet)
        if n > 255:
            raise AddressParseError(text, f"octet {n} out of range")
        value = (value << 8) | n
    return value


def ip_to_uint(text: str) -> int:
    """Lenient parse: malformed addresses map to 0 (0.0.0.0)."""
    try:
        return parse_ipv4(text)
    except AddressParseError:
        return 0


def prefix_mask(prefix: int) -> int:
    return 0 if prefix == 0 else (FULL_MASK << (32 - prefix)) & FULL_MASK


def parse_cidr(cidr: str) -> Tuple[Optional[AddressRange], Optional[str]]:
    """
    Returns ``(range, None)`` on success or ``(None, reason)`` when the entry must
    be skipped. A malformed network part degrades to 0.0.0.0, the reason is then
    reported alongside a valid range.
    """
    ip_part, slash, prefix_part = cidr.partition("/")
    if not slash:
        return None, "missing '/'"
    try:
        prefix = int(prefix_part)
    except ValueError:
        return None, f"non-numeric prefix {prefix_part!r}"
    if prefix < 0 or prefix > 32:
        return None, f"prefix {prefix} out of range [0, 32]"

    mask = prefix_mask(prefix)
    fallback = None
    try:
        network = parse_ipv4(ip_part)
    except AddressParseError as e:
        network = 0
        fallback = e.reason
    return AddressRange(network & mask, mask, cidr), fallback


class AdmissionFilter:

    component = "admission"

    def __init__(self, dos_rate_limit: int, dos_window_size: int, sink: Optional[EventSink] = None):
        self.dos_rate_limit = int(dos_rate_limit)
        self.dos_window_size = int(dos_window_size)
        self.sink = sink if sink is not None else LoggingEventSink()

        self.ranges: List[AddressRange] = []
        self.per_source_count: Counter = Counter()
        self.auto_blocked: Set[str] = set()
        self._total_blocked = 0
        self._window = 0
        self.admitted = 0

    # ================== configuration ================== #
    def add_blocked_range(self, cidr: str, tick: int = 0) -> bool:
        """Register a CIDR range; malformed entries are reported and skipped."""
        rng, problem = parse_cidr(cidr)
        if rng is None:
            self._emit(EventKind.RANGE_REJECTED, tick, source=cidr, detail=problem)
            return False
        if problem is not None:
            self._emit(EventKind.ADDRESS_FALLBACK, tick, source=cidr,
                       detail=f"network {problem}; using 0.0.0.0")
        self.ranges.append(rng)
        self._emit(EventKind.RANGE_ADDED, tick, source=cidr)
        return True

    def blocked_ranges(self) -> List[str]:
        return [r.label for r in self.ranges]

    def total_blocked(self) -> int:
        return self._total_blocked

    # ================== filtering ================== #
    def _emit(self, kind: EventKind, tick: int, **kw) -> None:
        self.sink.emit(SimEvent(kind, tick, self.component, **kw))

    def _maybe_reset_window(self, tick: int, size: int) -> None:
        """
        Counters belong to window ``tick // size``; the first batch seen in a
        later window clears them, so a skipped boundary tick still resets.
        Assumes ticks never decrease between calls.
        """
        if size <= 0:
            return
        window = tick // size
        if window != self._window:
            self._window = window
            if self.per_source_count:
                self.per_source_count.clear()
            self._emit(EventKind.WINDOW_RESET, tick, count=window)

    def _address_value(self, addr: str, tick: int) -> int:
        try:
            return parse_ipv4(addr)
        except AddressParseError as e:
            self._emit(EventKind.ADDRESS_FALLBACK, tick, source=addr,
                       detail=f"{e.reason}; matching as 0.0.0.0")
            return 0

    def in_blocked_range(self, addr: str, tick: int = 0) -> bool:
        if not self.ranges:
            return False
        value = self._address_value(addr, tick)
        return any(r.contains(value) for r in self.ranges)

    def filter_batch(
        self,
        requests: Sequence[Request],
        current_tick: int,
        dos_rate_limit: Optional[int] = None,
        dos_window_size: Optional[int] = None,
    ) -> List[Request]:
        """
        Drop blocked traffic from one tick's arrival batch and return the rest in
        arrival order. ``dos_rate_limit`` / ``dos_window_size`` override the
        constructor values for this call only. An empty batch changes nothing.
        """
        if not requests:
            return []
        limit = self.dos_rate_limit if dos_rate_limit is None else int(dos_rate_limit)
        size = self.dos_window_size if dos_window_size is None else int(dos_window_size)
        self._maybe_reset_window(current_tick, size)

        allowed: List[Request] = []
        for req in requests:
            src = req.source_address

            if self.in_blocked_range(src, current_tick):
                self._total_blocked += 1
                self._emit(EventKind.BLOCKED_RANGE, current_tick, source=src, target=req.dest_address)
                continue

            if src in self.auto_blocked:
                self._total_blocked += 1
                self._emit(EventKind.BLOCKED_BAN, current_tick, source=src, target=req.dest_address)
                continue

            self.per_source_count[src] += 1
            seen = self.per_source_count[src]
            if seen > limit:
                # Banned sources never reach this point, so this is the first excess.
                self._total_blocked += 1
                self.auto_blocked.add(src)
                self._emit(EventKind.DOS_DETECTED, current_tick, source=src, count=seen,
                           detail=f"exceeded {limit} requests/window")
                self._emit(EventKind.BLOCKED_RATE, current_tick, source=src,
                           target=req.dest_address, count=seen)
                continue

            allowed.append(req)

        self.admitted += len(allowed)
        return allowed
