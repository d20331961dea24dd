"""Dependency graph construction for declared releases."""

from typing import Sequence

from chartfleet.models import DependencyGraph, ReleaseSpec


class DependencyGraphBuilder:
    """Turns a flat release list into a graph of needs keyed by release id.

    No validation happens here: unknown needs and cycles are reported by the
    planner so that every structural error follows one failure path.
    """

    def __init__(self, logger):
        self.logger = logger

    def build(self, releases: Sequence[ReleaseSpec]) -> DependencyGraph:
        graph = DependencyGraph()

        for release in releases:
            release_id = release.id
            if release_id in graph.needs:
                if release_id not in graph.duplicates:
                    graph.duplicates.append(release_id)
                continue

            graph.releases[release_id] = release
            graph.needs[release_id] = tuple(dict.fromkeys(release.needs))
            self.logger.debug(
                "registered release %s with needs: %s",
                release_id,
                ", ".join(graph.needs[release_id]) or "<none>",
            )

        return graph
