"""Tests for history summaries."""

import pytest

from fabricsim import Dispatcher, RecordingEventSink
from fabricsim.metrics import history_frame, summarize_history
from conftest import make_request


def run_three_cycles():
    sim = Dispatcher("A", 2, 0, 100, 1, sink=RecordingEventSink())
    sim.run_cycle([make_request(service_time=2) for _ in range(3)])
    sim.run_cycle()
    sim.run_cycle()
    return sim


def test_history_frame_matches_cycles():
    df = history_frame(run_three_cycles())

    assert len(df) == 3
    assert df["queue_depth"].tolist() == [1, 1, 0]
    assert df["arrivals"].tolist() == [3, 0, 0]
    assert df["dispatched"].tolist() == [2, 0, 1]
    assert df["completed"].tolist() == [0, 2, 0]
    assert df["busy"].tolist() == [2, 0, 1]


def test_summarize_history():
    stats = summarize_history(run_three_cycles())

    assert stats["max_queue_depth"] == 1
    assert stats["avg_queue_depth"] == pytest.approx(2 / 3)
    assert stats["avg_workers"] == pytest.approx(2.0)
    # busy counted after the tick phase: 2/2, 0/2, 1/2
    assert stats["avg_utilization"] == pytest.approx(0.5)
    assert stats["throughput"] == pytest.approx(2 / 3)


def test_summarize_without_history():
    sim = Dispatcher("A", 1, 0, 100, 1, sink=RecordingEventSink(), record_history=False)

    assert summarize_history(sim)["avg_queue_depth"] == 0.0
