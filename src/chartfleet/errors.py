"""Domain errors for chartfleet."""

from typing import Dict, List, Sequence


class ChartfleetError(RuntimeError):
    """Raised when a run cannot continue safely."""


class StructuralError(ChartfleetError):
    """Raised when the declared releases cannot be planned at all."""


class CycleError(StructuralError):
    """Raised when the needs of the declared releases form a cycle."""

    def __init__(self, remaining: Sequence[str], cycle: Sequence[str]):
        self.remaining = list(remaining)
        self.cycle = list(cycle)
        super().__init__(
            f"dependency cycle detected: {' -> '.join(self.cycle)} "
            f"(unplannable releases: {', '.join(self.remaining)})"
        )


class UnresolvedDependencyError(StructuralError):
    """Raised when a release needs an identifier that was never declared."""

    def __init__(self, missing: Dict[str, List[str]]):
        self.missing = dict(missing)
        details = "; ".join(
            f"{release_id} needs {', '.join(needs)}" for release_id, needs in self.missing.items()
        )
        super().__init__(f"unresolved dependencies: {details}")


class DuplicateReleaseError(StructuralError):
    """Raised when two declared releases share one identifier."""

    def __init__(self, duplicates: Sequence[str]):
        self.duplicates = list(duplicates)
        super().__init__(f"duplicate release identifiers: {', '.join(self.duplicates)}")


class ReleaseFailedError(ChartfleetError):
    """A single release operation failed; collected, never raised by the engine."""

    def __init__(self, release, cause):
        self.release = release
        self.cause = cause
        super().__init__(f'release "{release.name}" failed: {cause}')
