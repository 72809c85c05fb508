import threading

import pytest

from reconsuite.scanner.batcher import BatchStats, clamp_concurrency, run_batched


def test_clamp_concurrency_bounds_hints():
    assert clamp_concurrency(0) == 1
    assert clamp_concurrency(-5) == 1
    assert clamp_concurrency("7") == 7
    assert clamp_concurrency(500) == 50
    assert clamp_concurrency(100, ceiling=20) == 20
    assert clamp_concurrency("fast") == 1


def test_run_batched_drops_none_and_keeps_hits():
    outcomes = run_batched(range(10), 3, lambda n: n * 2 if n % 2 == 0 else None)
    assert sorted(outcomes) == [0, 4, 8, 12, 16]


def test_run_batched_survives_probe_errors():
    def probe(n):
        if n == 3:
            raise RuntimeError("boom")
        return n

    stats = BatchStats()
    outcomes = run_batched(range(6), 2, probe, stats=stats)
    assert sorted(outcomes) == [0, 1, 2, 4, 5]
    assert stats.errors == 1
    assert stats.hits == 5
    assert stats.windows == 3


def test_one_hanging_probe_does_not_block_the_other_49():
    release = threading.Event()

    def probe(n):
        if n == 17:
            release.wait(5)
            return "late"
        return f"host{n}"

    stats = BatchStats()
    try:
        outcomes = run_batched(range(50), 50, probe, timeout=0.5, stats=stats)
    finally:
        release.set()

    assert len(outcomes) == 49
    assert "late" not in outcomes
    assert stats.timed_out == 1


def test_checkpoint_runs_before_each_window_and_can_stop_the_batch():
    calls = []

    class Stop(Exception):
        pass

    def checkpoint():
        calls.append(len(calls))
        if len(calls) == 3:
            raise Stop()

    seen = []
    with pytest.raises(Stop):
        run_batched(range(10), 2, lambda n: n, checkpoint=checkpoint, on_outcome=seen.append)

    # two full windows ran before the third checkpoint raised
    assert sorted(seen) == [0, 1, 2, 3]


def test_on_outcome_runs_on_calling_thread():
    caller = threading.get_ident()
    threads = set()

    run_batched(range(8), 4, lambda n: n, on_outcome=lambda _o: threads.add(threading.get_ident()))
    assert threads == {caller}


def test_empty_candidates():
    stats = BatchStats()
    assert run_batched([], 5, lambda n: n, stats=stats) == []
    assert stats.windows == 0
