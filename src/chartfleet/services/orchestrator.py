"""Group-by-group execution of an execution plan."""

from typing import List

from chartfleet.errors import ReleaseFailedError
from chartfleet.models import Direction, ExecutionPlan, GroupResult
from chartfleet.services.worker_pool import Operation, ScatterGatherPool, collect_failures


class GroupOrchestrator:
    """Runs plan groups strictly one after another and stops at the first failing group."""

    def __init__(self, pool: ScatterGatherPool, logger):
        self.pool = pool
        self.logger = logger

    def run_plan(
        self,
        plan: ExecutionPlan,
        direction: Direction,
        concurrency: int,
        operation: Operation,
    ) -> List[ReleaseFailedError]:
        results = self.run_groups(plan, direction, concurrency, operation)
        if results and not results[-1].succeeded:
            return list(results[-1].errors)
        return []

    def run_groups(
        self,
        plan: ExecutionPlan,
        direction: Direction,
        concurrency: int,
        operation: Operation,
    ) -> List[GroupResult]:
        """Returns one result per attempted group; only the last one may have failed."""
        groups_total = len(plan)
        self.logger.debug(
            "processing %d groups of releases in this order: %s",
            groups_total,
            plan.describe(),
        )

        results: List[GroupResult] = []
        for group_index in self.group_order(groups_total, direction):
            release_ids = plan.groups[group_index]
            self.logger.debug(
                "processing releases in group %d/%d: %s",
                group_index + 1,
                groups_total,
                ", ".join(release_ids),
            )

            outcomes = self.pool.scatter_gather(plan.releases_in(group_index), concurrency, operation)
            result = GroupResult(
                group_index=group_index,
                release_ids=release_ids,
                outcomes=len(outcomes),
                errors=collect_failures(outcomes),
            )
            results.append(result)

            if not result.succeeded:
                self.logger.debug(
                    "group %d/%d failed with %d error(s); skipping remaining groups",
                    group_index + 1,
                    groups_total,
                    len(result.errors),
                )
                break

        return results

    @staticmethod
    def group_order(groups_total: int, direction: Direction) -> range:
        if Direction(direction) is Direction.REVERSE:
            return range(groups_total - 1, -1, -1)
        return range(groups_total)
