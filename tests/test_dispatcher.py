"""Tests for per-class dispatch and autoscaling."""

import pytest

from fabricsim import ConfigError, Dispatcher, EventKind
from fabricsim.policies import ScaleAction, autoscale_decision
from conftest import make_request


def make_dispatcher(recorder, workers=2, lo=0, hi=100, cooldown=1, **kw):
    return Dispatcher("A", workers, lo, hi, cooldown, sink=recorder, **kw)


def test_end_to_end_scale_up_after_first_cycle(recorder):
    sim = make_dispatcher(recorder, workers=2, lo=1, hi=3, cooldown=1)

    depth = sim.run_cycle([make_request(service_time=1) for _ in range(10)])

    assert depth == 8
    assert sim.worker_count == 3
    assert sim.clock == 1
    assert len(recorder.of_kind(EventKind.ALLOCATE)) == 1


def test_fifo_assignment_in_pool_order(recorder):
    sim = make_dispatcher(recorder, workers=3)
    reqs = [make_request(src=f"1.0.0.{i}", service_time=50) for i in range(5)]

    depth = sim.run_cycle(reqs)

    assert depth == 2
    assert [w.current_request for w in sim.workers.values()] == reqs[:3]
    assert list(sim.wait_q) == reqs[3:]


def test_queue_carries_over_when_no_worker_idle(recorder):
    sim = make_dispatcher(recorder, workers=1)
    first, second, third = (make_request(src=f"2.0.0.{i}", service_time=2) for i in range(3))

    assert sim.run_cycle([first, second]) == 1
    assert sim.run_cycle([third]) == 2
    # first finished at the end of cycle 1, so second goes next
    assert sim.run_cycle() == 1
    assert sim.workers[0].current_request is second
    assert list(sim.wait_q) == [third]


def test_service_time_one_finishes_in_same_cycle(recorder):
    sim = make_dispatcher(recorder, workers=1)

    sim.run_cycle([make_request(service_time=1)])

    assert sim.workers[0].is_ready()
    assert sim.total_completed == 1


def test_deallocation_only_removes_idle_workers(recorder):
    sim = make_dispatcher(recorder, workers=2, lo=1, hi=100, cooldown=1)
    long_job = make_request(service_time=10)

    sim.run_cycle([long_job])
    assert sim.worker_ids() == [0]
    assert sim.workers[0].current_request is long_job

    sim.run_cycle()
    assert sim.worker_ids() == [0]
    assert sim.workers[0].current_request is long_job
    assert len(recorder.of_kind(EventKind.NO_IDLE_WORKER)) == 1
    assert len(recorder.of_kind(EventKind.DEALLOCATE)) == 1


def test_autoscale_runs_only_on_cooldown_ticks(recorder):
    sim = make_dispatcher(recorder, workers=1, lo=0, hi=0, cooldown=3)
    jobs = [make_request(service_time=100) for _ in range(20)]

    sim.run_cycle(jobs)
    for _ in range(6):
        sim.run_cycle()

    # evaluations at clock 0, 3 and 6
    assert sim.worker_count == 4
    assert [int(e.target) for e in recorder.of_kind(EventKind.ALLOCATE)] == [1, 3, 6]


def test_worker_ids_stay_unique_across_resizing(recorder):
    sim = make_dispatcher(recorder, workers=2)

    first = sim.allocate()
    sim.deallocate()
    second = sim.allocate()

    assert first == 2 and second == 3
    assert len(set(sim.worker_ids())) == sim.worker_count


def test_allocated_worker_is_idle_and_appended(recorder):
    sim = make_dispatcher(recorder, workers=1)

    wid = sim.allocate()

    assert sim.worker_ids()[-1] == wid
    assert sim.workers[wid].is_ready()


def test_deallocate_on_empty_pool_reports_and_returns_none(recorder):
    sim = make_dispatcher(recorder, workers=0)

    assert sim.deallocate() is None
    assert len(recorder.of_kind(EventKind.NO_IDLE_WORKER)) == 1


@pytest.mark.parametrize("cooldown", [0, -2])
def test_non_positive_cooldown_is_rejected(recorder, cooldown):
    with pytest.raises(ConfigError):
        make_dispatcher(recorder, cooldown=cooldown)


def test_scaling_decision_uses_pre_scaling_worker_count():
    assert autoscale_decision(8, 2, 1, 3) is ScaleAction.ALLOCATE
    assert autoscale_decision(1, 2, 1, 3) is ScaleAction.DEALLOCATE
    assert autoscale_decision(4, 2, 1, 3) is ScaleAction.NONE
    assert autoscale_decision(0, 0, 1, 3) is ScaleAction.NONE
    assert autoscale_decision(1, 0, 1, 3) is ScaleAction.ALLOCATE


def test_initial_queue_is_served_first(recorder):
    preload = [make_request(src="9.9.9.1", service_time=5)]
    sim = make_dispatcher(recorder, workers=1, initial_queue=preload)

    sim.run_cycle([make_request(src="9.9.9.2", service_time=5)])

    assert sim.workers[0].current_request is preload[0]
    assert sim.total_arrived == 2


def test_wait_accounting(recorder):
    sim = make_dispatcher(recorder, workers=1)

    sim.run_cycle([make_request(service_time=2), make_request(service_time=2)])
    sim.run_cycle()
    sim.run_cycle()

    summary = sim.summary()
    assert summary["dispatched"] == 2
    assert summary["max_wait"] == 2
    assert summary["avg_wait"] == pytest.approx(1.0)


def test_history_records_one_row_per_cycle(recorder):
    sim = make_dispatcher(recorder, workers=2)

    for _ in range(4):
        sim.run_cycle([make_request(service_time=3)])

    assert sim.hist_clock == [0, 1, 2, 3]
    assert sum(sim.hist_arrivals) == 4
    assert len(sim.hist_queue) == len(sim.hist_workers) == 4


def test_history_disabled(recorder):
    sim = make_dispatcher(recorder, workers=1, record_history=False)

    sim.run_cycle([make_request()])

    assert sim.hist_clock == []
