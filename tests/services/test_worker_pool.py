import sys
import threading
import time

import pytest

from chartfleet.errors import ChartfleetError, ReleaseFailedError
from chartfleet.models import DefaultsConfig, Err, Ok, Outcome, ReleaseSpec
from chartfleet.services.worker_pool import ScatterGatherPool, collect_failures, resolve_concurrency


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


class ConcurrencyRecorder:
    """Records how many operations overlap in time."""

    def __init__(self, delay: float = 0.02):
        self.delay = delay
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = []
        self.worker_ids = set()

    def __call__(self, release, worker_id):
        with self.lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(release.name)
            self.worker_ids.add(worker_id)
        time.sleep(self.delay)
        with self.lock:
            self.active -= 1
        return Ok()


def _releases(count, **kwargs):
    return [ReleaseSpec(name=f"r{index}", **kwargs) for index in range(count)]


def _pool_threads():
    return [
        thread
        for thread in threading.enumerate()
        if thread.name.startswith(ScatterGatherPool.THREAD_NAME_PREFIX)
    ]


@pytest.mark.parametrize(
    "requested, items, expected",
    [
        (0, 5, 5),
        (-3, 5, 5),
        (9, 5, 5),
        (5, 5, 5),
        (2, 5, 2),
        (1, 5, 1),
        (0, 0, 0),
    ],
)
def test_resolve_concurrency_clamps_to_item_count(requested, items, expected):
    assert resolve_concurrency(requested, items, exclusive=False) == expected


@pytest.mark.parametrize("requested, items", [(0, 5), (4, 5), (50, 5), (-1, 1), (3, 0)])
def test_resolve_concurrency_is_one_when_exclusive(requested, items):
    assert resolve_concurrency(requested, items, exclusive=True) == 1


def test_run_invokes_operation_once_per_release():
    pool = ScatterGatherPool(logger=DummyLogger())
    recorder = ConcurrencyRecorder(delay=0)
    releases = _releases(12)

    outcomes = pool.scatter_gather(releases, 4, recorder)

    assert len(outcomes) == 12
    assert sorted(recorder.calls) == sorted(release.name for release in releases)
    assert recorder.worker_ids <= {1, 2, 3, 4}


def test_run_bounds_parallelism_to_requested_concurrency():
    pool = ScatterGatherPool(logger=DummyLogger())
    recorder = ConcurrencyRecorder()

    errors = pool.run(_releases(8), 2, recorder)

    assert errors == []
    assert recorder.max_active <= 2


def test_run_executes_siblings_in_parallel():
    pool = ScatterGatherPool(logger=DummyLogger())
    barrier = threading.Barrier(3, timeout=5)

    def operation(release, worker_id):
        barrier.wait()
        return Ok()

    assert pool.run(_releases(3), 0, operation) == []


def test_release_flag_serializes_whole_run():
    pool = ScatterGatherPool(logger=DummyLogger())
    recorder = ConcurrencyRecorder()
    releases = _releases(5) + [ReleaseSpec(name="tiller", exclusive=True)]

    pool.run(releases, 6, recorder)

    assert recorder.max_active == 1
    assert recorder.worker_ids == {1}
    assert len(recorder.calls) == 6


def test_default_flag_serializes_unless_every_release_opts_out():
    recorder = ConcurrencyRecorder()
    pool = ScatterGatherPool(logger=DummyLogger(), defaults=DefaultsConfig(exclusive=True))

    pool.run(_releases(4), 4, recorder)

    assert recorder.max_active == 1

    opted_out = _releases(4, exclusive=False)
    assert pool.requires_exclusive_access(opted_out) is False
    assert pool.requires_exclusive_access(opted_out + [ReleaseSpec(name="x")]) is True


def test_failures_do_not_stop_siblings():
    pool = ScatterGatherPool(logger=DummyLogger())
    attempted = []
    lock = threading.Lock()

    def operation(release, worker_id):
        with lock:
            attempted.append(release.name)
        if release.name == "E":
            return Err(ChartfleetError("chart not found"))
        return Ok()

    outcomes = pool.scatter_gather([ReleaseSpec(name="E"), ReleaseSpec(name="F")], 2, operation)
    errors = pool.run([ReleaseSpec(name="E"), ReleaseSpec(name="F")], 2, operation)

    assert len(outcomes) == 2
    assert sorted(attempted) == ["E", "E", "F", "F"]
    assert len(errors) == 1
    assert isinstance(errors[0], ReleaseFailedError)
    assert errors[0].release.name == "E"
    assert str(errors[0]) == 'release "E" failed: chart not found'


def test_raised_exceptions_are_reported_as_release_errors():
    pool = ScatterGatherPool(logger=DummyLogger())

    def operation(release, worker_id):
        if release.name == "r1":
            raise ValueError("boom")
        return None

    errors = pool.run(_releases(3), 3, operation)

    assert [str(error) for error in errors] == ['release "r1" failed: boom']
    assert isinstance(errors[0].cause, ValueError)


def test_unsupported_results_are_reported_as_release_errors():
    pool = ScatterGatherPool(logger=DummyLogger())

    errors = pool.run(_releases(1), 1, lambda release, worker_id: "done")

    assert len(errors) == 1
    assert "unsupported result" in str(errors[0])


def test_err_without_value_is_still_a_failure():
    pool = ScatterGatherPool(logger=DummyLogger())

    errors = pool.run(_releases(1), 1, lambda release, worker_id: Err(None))

    assert len(errors) == 1


def test_errors_follow_completion_order():
    pool = ScatterGatherPool(logger=DummyLogger())

    def operation(release, worker_id):
        if release.name == "slow":
            time.sleep(0.2)
        return Err("failed")

    errors = pool.run([ReleaseSpec(name="slow"), ReleaseSpec(name="fast")], 2, operation)

    assert [error.release.name for error in errors] == ["fast", "slow"]


def test_run_joins_every_worker_before_returning():
    pool = ScatterGatherPool(logger=DummyLogger())
    recorder = ConcurrencyRecorder(delay=0.01)

    pool.run(_releases(6), 3, recorder)

    assert _pool_threads() == []


def test_run_with_no_releases_starts_nothing():
    pool = ScatterGatherPool(logger=DummyLogger())

    def operation(release, worker_id):
        raise AssertionError("operation must not be called")

    assert pool.run([], 4, operation) == []
    assert pool.scatter_gather([], 4, operation) == []


def test_collect_failures_keeps_only_failed_outcomes():
    ok = Outcome(release=ReleaseSpec(name="a"), worker_id=1, error=None)
    failed = Outcome(release=ReleaseSpec(name="b"), worker_id=2, error="chart not found")

    errors = collect_failures([ok, failed])

    assert [str(error) for error in errors] == ['release "b" failed: chart not found']


def test_exiting_operation_still_yields_every_outcome():
    pool = ScatterGatherPool(logger=DummyLogger())
    calls = []
    caught = {}

    def operation(release, worker_id):
        calls.append(release.name)
        if release.name == "r0":
            sys.exit(3)
        return Ok()

    def target():
        try:
            pool.run(_releases(2), 1, operation)
        except SystemExit as exc:
            caught["exit"] = exc

    runner = threading.Thread(target=target, daemon=True)
    runner.start()
    runner.join(timeout=5)

    assert not runner.is_alive()
    assert caught["exit"].code == 3
    assert calls == ["r0", "r1"]
    assert _pool_threads() == []
