import logging
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape

from .errors import ChartfleetError, ReleaseFailedError, StructuralError
from .errors_catalog import actionable_error, describe_structural_error
from .models import DesiredState, Direction, ExecutionPlan, GroupResult
from .services.graph import DependencyGraphBuilder
from .services.orchestrator import GroupOrchestrator
from .services.planner import TopologicalPlanner
from .services.worker_pool import Operation, ScatterGatherPool

console = Console()
logger = logging.getLogger("chartfleet")

OPERATION_DIRECTIONS: Dict[str, Direction] = {
    "apply": Direction.FORWARD,
    "sync": Direction.FORWARD,
    "diff": Direction.FORWARD,
    "template": Direction.FORWARD,
    "lint": Direction.FORWARD,
    "delete": Direction.REVERSE,
    "destroy": Direction.REVERSE,
}

# Operations whose per-release work does not depend on cluster state of other releases.
UNORDERED_OPERATIONS = ("template", "lint")

EXIT_SUCCESS = 0
EXIT_STRUCTURAL_ERROR = 1
EXIT_RELEASE_FAILURE = 2


class ReleaseEngine:
    """Runs an operation over every declared release in dependency order."""

    def __init__(self, state: DesiredState):
        self.state = state
        self.graph_builder = DependencyGraphBuilder(logger=logger)
        self.planner = TopologicalPlanner(logger=logger)
        self.pool = ScatterGatherPool(logger=logger, defaults=state.defaults)
        self.orchestrator = GroupOrchestrator(pool=self.pool, logger=logger)
        self.group_results: List[GroupResult] = []

    def plan(self) -> ExecutionPlan:
        graph = self.graph_builder.build(self.state.releases)
        return self.planner.plan(graph)

    def iterate(
        self,
        operation: Operation,
        direction: Direction,
        concurrency: Optional[int] = None,
    ) -> List[ReleaseFailedError]:
        """Plans first, so structural errors raise before any release is touched."""
        plan = self.plan()
        self.group_results = self.orchestrator.run_groups(
            plan,
            direction,
            self._concurrency(concurrency),
            operation,
        )
        if self.group_results and not self.group_results[-1].succeeded:
            return list(self.group_results[-1].errors)
        return []

    def iterate_unordered(
        self,
        operation: Operation,
        concurrency: Optional[int] = None,
    ) -> List[ReleaseFailedError]:
        self.group_results = []
        return self.pool.run(self.state.releases, self._concurrency(concurrency), operation)

    def apply(self, operation: Operation, concurrency: Optional[int] = None) -> List[ReleaseFailedError]:
        return self.iterate(operation, Direction.FORWARD, concurrency)

    def diff(self, operation: Operation, concurrency: Optional[int] = None) -> List[ReleaseFailedError]:
        return self.iterate(operation, Direction.FORWARD, concurrency)

    def delete(self, operation: Operation, concurrency: Optional[int] = None) -> List[ReleaseFailedError]:
        return self.iterate(operation, Direction.REVERSE, concurrency)

    def execute(
        self,
        operation_name: str,
        operation: Operation,
        concurrency: Optional[int] = None,
    ) -> List[ReleaseFailedError]:
        if operation_name not in OPERATION_DIRECTIONS:
            raise ChartfleetError(
                f"Unknown operation '{operation_name}'. "
                f"Supported operations: {', '.join(OPERATION_DIRECTIONS)}"
            )
        if operation_name in UNORDERED_OPERATIONS:
            return self.iterate_unordered(operation, concurrency)
        return self.iterate(operation, OPERATION_DIRECTIONS[operation_name], concurrency)

    def show_plan(self) -> int:
        try:
            plan = self.plan()
        except StructuralError as exc:
            self._report_structural_error(exc)
            return EXIT_STRUCTURAL_ERROR

        console.print(f"[bold blue]Execution plan: {len(plan)} group(s)[/bold blue]")
        for index, group in enumerate(plan):
            console.print(f"  [blue]group {index + 1}:[/blue] {escape(', '.join(group))}")
        return EXIT_SUCCESS

    def run(
        self,
        operation_name: str,
        operation: Operation,
        concurrency: Optional[int] = None,
    ) -> int:
        logger.info("Running %s over %d release(s)...", operation_name, len(self.state.releases))

        try:
            errors = self.execute(operation_name, operation, concurrency)
        except StructuralError as exc:
            self._report_structural_error(exc)
            return EXIT_STRUCTURAL_ERROR

        if errors:
            failed_group = self.group_results[-1].group_index + 1 if self.group_results else 1
            console.print(
                "[bold red]Error:[/bold red] "
                + actionable_error("group_failed", count=str(len(errors)), group=str(failed_group))
            )
            for error in errors:
                console.print(f"  [red]-[/red] {escape(str(error))}")
                logger.error(str(error))
            return EXIT_RELEASE_FAILURE

        console.print(f"[green]{operation_name} completed for all releases.[/green]")
        return EXIT_SUCCESS

    def _concurrency(self, concurrency: Optional[int]) -> int:
        if concurrency is None:
            return self.state.defaults.concurrency
        return concurrency

    @staticmethod
    def _report_structural_error(exc: StructuralError):
        console.print(f"[bold red]Invalid release graph:[/bold red] {escape(describe_structural_error(exc))}")
        logger.error(str(exc))
