from __future__ import annotations

from typing import Optional

from .errors import WorkerBusyError
from .request_generator import Request


class Worker:
    """
    One unit of service capacity. Idle until assigned a request, then busy for
    exactly ``request.service_time`` calls to ``tick()``.
    """

    __slots__ = ("id", "remaining", "current_request", "completed")

    def __init__(self, id: int):
        self.id = int(id)
        self.remaining = 0
        self.current_request: Optional[Request] = None
        self.completed = 0

    @property
    def busy(self) -> bool:
        return self.current_request is not None

    def is_ready(self) -> bool:
        return self.current_request is None

    def assign(self, request: Request) -> None:
        if self.busy:
            raise WorkerBusyError(f"Worker {self.id} is busy, cannot accept another request")
        self.current_request = request
        self.remaining = int(request.service_time)

    def tick(self) -> Optional[Request]:
        """Advance one cycle; returns the request that finished on this tick, if any."""
        if not self.busy:
            return None
        self.remaining -= 1
        if self.remaining <= 0:
            done = self.current_request
            self.remaining = 0
            self.current_request = None
            self.completed += 1
            return done
        return None

    def __repr__(self) -> str:
        state = f"busy, {self.remaining} left" if self.busy else "idle"
        return f"Worker(id={self.id}, {state})"
