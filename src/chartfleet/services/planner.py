"""Layered topological planning over the release dependency graph."""

from typing import Dict, List, Set

from chartfleet.errors import CycleError, DuplicateReleaseError, UnresolvedDependencyError
from chartfleet.models import DependencyGraph, ExecutionPlan


class TopologicalPlanner:
    """Partitions a dependency graph into groups that can run one after another.

    Group 0 holds releases that need nothing; group k holds releases whose
    needs are all placed in groups 0..k-1. Within a group, identifiers keep
    their declaration order so logs stay reproducible. Planning either returns
    a complete plan or raises; a partial plan is never produced.
    """

    def __init__(self, logger):
        self.logger = logger

    def plan(self, graph: DependencyGraph) -> ExecutionPlan:
        if graph.duplicates:
            raise DuplicateReleaseError(graph.duplicates)

        self._validate_references(graph)

        placed: Set[str] = set()
        remaining: List[str] = list(graph.needs)
        groups = []

        while remaining:
            ready = [
                release_id
                for release_id in remaining
                if all(need in placed for need in graph.needs[release_id])
            ]
            if not ready:
                raise CycleError(remaining, self._find_cycle(graph, remaining))

            groups.append(tuple(ready))
            placed.update(ready)
            remaining = [release_id for release_id in remaining if release_id not in placed]

        plan = ExecutionPlan(groups=tuple(groups), releases=dict(graph.releases))
        self.logger.debug("planned %d groups: %s", len(plan), plan.describe())
        return plan

    def _validate_references(self, graph: DependencyGraph):
        missing: Dict[str, List[str]] = {}
        for release_id, needs in graph.needs.items():
            unknown = [need for need in needs if need not in graph.needs]
            if unknown:
                missing[release_id] = unknown

        if missing:
            raise UnresolvedDependencyError(missing)

    @staticmethod
    def _find_cycle(graph: DependencyGraph, remaining: List[str]) -> List[str]:
        # Every remaining node has at least one remaining need, so walking
        # needs from any of them must eventually revisit a node.
        pending = set(remaining)
        path: List[str] = []
        position: Dict[str, int] = {}
        current = remaining[0]

        while current not in position:
            position[current] = len(path)
            path.append(current)
            current = next(need for need in graph.needs[current] if need in pending)

        return path[position[current]:] + [current]
