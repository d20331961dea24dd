import threading

from chartfleet.models import Direction, Err, Ok, ReleaseSpec
from chartfleet.services.graph import DependencyGraphBuilder
from chartfleet.services.orchestrator import GroupOrchestrator
from chartfleet.services.planner import TopologicalPlanner
from chartfleet.services.worker_pool import ScatterGatherPool


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


class RecordingOperation:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.lock = threading.Lock()
        self.calls = []

    def __call__(self, release, worker_id):
        with self.lock:
            self.calls.append(release.name)
        if release.name in self.failing:
            return Err(RuntimeError("upgrade failed"))
        return Ok()


def _plan(releases):
    graph = DependencyGraphBuilder(logger=DummyLogger()).build(releases)
    return TopologicalPlanner(logger=DummyLogger()).plan(graph)


def _orchestrator():
    return GroupOrchestrator(pool=ScatterGatherPool(logger=DummyLogger()), logger=DummyLogger())


def _chain():
    return _plan(
        [
            ReleaseSpec(name="G0"),
            ReleaseSpec(name="G1", needs=("G0",)),
            ReleaseSpec(name="G2", needs=("G1",)),
        ]
    )


def test_group_order_forward_and_reverse():
    assert list(GroupOrchestrator.group_order(3, Direction.FORWARD)) == [0, 1, 2]
    assert list(GroupOrchestrator.group_order(3, Direction.REVERSE)) == [2, 1, 0]
    assert list(GroupOrchestrator.group_order(0, Direction.REVERSE)) == []


def test_forward_run_visits_groups_in_plan_order():
    operation = RecordingOperation()

    errors = _orchestrator().run_plan(_chain(), Direction.FORWARD, 0, operation)

    assert errors == []
    assert operation.calls == ["G0", "G1", "G2"]


def test_reverse_run_visits_groups_last_first():
    operation = RecordingOperation()

    errors = _orchestrator().run_plan(_chain(), "reverse", 0, operation)

    assert errors == []
    assert operation.calls == ["G2", "G1", "G0"]


def test_failing_group_stops_later_groups():
    operation = RecordingOperation(failing={"G1"})

    errors = _orchestrator().run_plan(_chain(), Direction.FORWARD, 0, operation)

    assert operation.calls == ["G0", "G1"]
    assert [str(error) for error in errors] == ['release "G1" failed: upgrade failed']


def test_failing_group_stops_reverse_run():
    operation = RecordingOperation(failing={"G2"})

    results = _orchestrator().run_groups(_chain(), Direction.REVERSE, 0, operation)

    assert operation.calls == ["G2"]
    assert [result.group_index for result in results] == [2]
    assert not results[0].succeeded


def test_shared_dependency_runs_alone_then_dependents_together():
    plan = _plan(
        [
            ReleaseSpec(name="A"),
            ReleaseSpec(name="B", needs=("A",)),
            ReleaseSpec(name="C", needs=("A",)),
        ]
    )
    barrier = threading.Barrier(2, timeout=5)
    seen = []
    lock = threading.Lock()

    def operation(release, worker_id):
        with lock:
            seen.append(release.name)
        if release.name in ("B", "C"):
            assert "A" in seen
            barrier.wait()
        return Ok()

    results = _orchestrator().run_groups(plan, Direction.FORWARD, 0, operation)

    assert [result.release_ids for result in results] == [("A",), ("B", "C")]
    assert all(result.succeeded for result in results)
    assert seen[0] == "A"


def test_reverse_run_tears_down_dependents_together_before_dependency():
    plan = _plan(
        [
            ReleaseSpec(name="A"),
            ReleaseSpec(name="B", needs=("A",)),
            ReleaseSpec(name="C", needs=("A",)),
        ]
    )
    barrier = threading.Barrier(2, timeout=5)
    seen = []
    lock = threading.Lock()

    def operation(release, worker_id):
        if release.name in ("B", "C"):
            barrier.wait()
        with lock:
            seen.append(release.name)
        return Ok()

    errors = _orchestrator().run_plan(plan, Direction.REVERSE, 2, operation)

    assert errors == []
    assert seen[-1] == "A"
    assert sorted(seen[:2]) == ["B", "C"]


def test_partial_group_failure_counts_every_outcome():
    plan = _plan([ReleaseSpec(name="E"), ReleaseSpec(name="F")])
    operation = RecordingOperation(failing={"E"})

    results = _orchestrator().run_groups(plan, Direction.FORWARD, 2, operation)

    assert results[0].outcomes == 2
    assert [error.release.name for error in results[0].errors] == ["E"]


def test_exclusive_release_only_serializes_its_own_group():
    plan = _plan(
        [
            ReleaseSpec(name="tiller", exclusive=True),
            ReleaseSpec(name="one", needs=("tiller",)),
            ReleaseSpec(name="two", needs=("tiller",)),
        ]
    )
    barrier = threading.Barrier(2, timeout=5)

    def operation(release, worker_id):
        if release.name != "tiller":
            barrier.wait()
        return Ok()

    assert _orchestrator().run_plan(plan, Direction.FORWARD, 0, operation) == []
