"""Actionable error catalog for chartfleet."""

from typing import Dict

from .errors import CycleError, DuplicateReleaseError, StructuralError, UnresolvedDependencyError

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "dependency_cycle": {
        "what": "Releases depend on each other in a cycle: {cycle}.",
        "next": "Remove one of the `needs` entries along the cycle.",
    },
    "unresolved_dependency": {
        "what": "Some `needs` entries do not match any declared release ({details}).",
        "next": "Use full release ids (`context/namespace/name`) or declare the missing releases.",
    },
    "duplicate_release": {
        "what": "Release ids are declared more than once: {ids}.",
        "next": "Give each release a unique name within its namespace and kube context.",
    },
    "group_failed": {
        "what": "{count} release(s) failed in group {group}; later groups were not started.",
        "next": "Fix the failing releases and run the command again.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"


def describe_structural_error(exc: StructuralError) -> str:
    if isinstance(exc, CycleError):
        return actionable_error("dependency_cycle", cycle=" -> ".join(exc.cycle))
    if isinstance(exc, UnresolvedDependencyError):
        details = "; ".join(
            f"{release_id} needs {', '.join(needs)}" for release_id, needs in exc.missing.items()
        )
        return actionable_error("unresolved_dependency", details=details)
    if isinstance(exc, DuplicateReleaseError):
        return actionable_error("duplicate_release", ids=", ".join(exc.duplicates))
    return str(exc)
