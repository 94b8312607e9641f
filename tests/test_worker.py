"""Tests for the worker state machine."""

import pytest

from fabricsim import Worker, WorkerBusyError
from conftest import make_request


def test_new_worker_is_idle():
    worker = Worker(7)

    assert worker.is_ready()
    assert worker.remaining == 0
    assert worker.current_request is None


def test_busy_for_exactly_service_time_ticks():
    worker = Worker(0)
    worker.assign(make_request(service_time=3))

    assert not worker.is_ready()
    assert worker.remaining == 3
    worker.tick()
    assert not worker.is_ready()
    worker.tick()
    assert not worker.is_ready()
    worker.tick()
    assert worker.is_ready()
    assert worker.remaining == 0
    assert worker.current_request is None


def test_tick_returns_finished_request():
    worker = Worker(0)
    req = make_request(service_time=2)
    worker.assign(req)

    assert worker.tick() is None
    assert worker.tick() is req
    assert worker.completed == 1


def test_tick_on_idle_worker_is_noop():
    worker = Worker(0)

    assert worker.tick() is None
    assert worker.is_ready()
    assert worker.remaining == 0
    assert worker.completed == 0


def test_assign_to_busy_worker_is_rejected():
    worker = Worker(0)
    worker.assign(make_request(service_time=5))

    with pytest.raises(WorkerBusyError):
        worker.assign(make_request(service_time=1))
    assert worker.remaining == 5
