"""Shared domain models for chartfleet."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class ReleaseSpec:
    """One deployable chart release as declared by the desired state."""

    name: str
    namespace: str = ""
    kube_context: str = ""
    chart: str = ""
    version: Optional[str] = None
    values: Tuple[str, ...] = ()
    needs: Tuple[str, ...] = ()
    exclusive: Optional[bool] = None

    @property
    def id(self) -> str:
        """Joins kube context, namespace and name with "/", skipping empty parts.

        Because empty parts leave no placeholder, a release in context "prod"
        without a namespace and a release in namespace "prod" without a context
        share the id "prod/<name>" and are rejected as duplicates.
        """
        parts = [part for part in (self.kube_context, self.namespace, self.name) if part]
        return "/".join(parts)

    def requires_exclusive_access(self, defaults: "DefaultsConfig") -> bool:
        if self.exclusive is not None:
            return self.exclusive
        return defaults.exclusive


@dataclass(frozen=True)
class DefaultsConfig:
    """Run-wide defaults shared by every release."""

    exclusive: bool = False
    concurrency: int = 0
    kube_context: str = ""


@dataclass(frozen=True)
class DesiredState:
    """Releases and defaults handed to the engine by the loader."""

    releases: Tuple[ReleaseSpec, ...] = ()
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)


class Direction(str, Enum):
    FORWARD = "forward"
    REVERSE = "reverse"


@dataclass
class DependencyGraph:
    """Release identifiers mapped to the identifiers they need, in declaration order."""

    needs: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    releases: Dict[str, ReleaseSpec] = field(default_factory=dict)
    duplicates: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.needs)


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered groups of release identifiers; needs always point to earlier groups."""

    groups: Tuple[Tuple[str, ...], ...]
    releases: Dict[str, ReleaseSpec]

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self):
        return iter(self.groups)

    def releases_in(self, group_index: int) -> List[ReleaseSpec]:
        return [self.releases[release_id] for release_id in self.groups[group_index]]

    def describe(self) -> str:
        return " -> ".join("[" + ", ".join(group) + "]" for group in self.groups)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T = None

    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False


Result = Union[Ok, Err]


@dataclass(frozen=True)
class Outcome:
    """Result of one release operation as published by a worker."""

    release: ReleaseSpec
    worker_id: int
    error: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GroupResult:
    """Aggregate of one pool run; empty errors means every release succeeded."""

    group_index: int
    release_ids: Tuple[str, ...]
    outcomes: int = 0
    errors: list = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors
