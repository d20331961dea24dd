"""
chartfleet - Dependency-aware concurrent chart release orchestration
"""

__version__ = "0.1.0"

from .core import ReleaseEngine
from .errors import (
    ChartfleetError,
    CycleError,
    ReleaseFailedError,
    StructuralError,
    UnresolvedDependencyError,
)

__all__ = [
    "ReleaseEngine",
    "ChartfleetError",
    "CycleError",
    "ReleaseFailedError",
    "StructuralError",
    "UnresolvedDependencyError",
]
