"""Exception taxonomy for dependency collection, placement and copying.

Every failure the CLI reports derives from ``CopyDepsError`` so the entry
point can catch a single type, print a diagnosis and exit non-zero.
"""

from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from workspace.models import Graph, UnresolvedRequirement


class CopyDepsError(Exception):
    """Base class for all reported failures."""


class ConfigError(CopyDepsError):
    """Raised when a config file or pattern list cannot be loaded."""


class ManifestError(CopyDepsError):
    """Raised when a package manifest is unreadable or malformed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot read manifest {path}: {reason}")
        self.path = path
        self.reason = reason


class UnresolvedDependencyError(CopyDepsError):
    """Raised once discovery finished with at least one unresolved requirement.

    Carries every unresolved requirement so that all problems are reported
    in a single run.
    """

    def __init__(self, unresolved: List["UnresolvedRequirement"], graph: Optional["Graph"] = None):
        super().__init__("Some packages not found.")
        self.unresolved = list(unresolved)
        self.graph = graph


class PlacementConsistencyFault(CopyDepsError):
    """Raised when the upward placement walk cannot make progress."""


class CopyError(CopyDepsError):
    """Raised when copying one package into the output tree fails."""

    def __init__(self, package: str, target_dir: str, cause: Optional[BaseException] = None):
        message = f"failed to copy {package} to {target_dir}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.package = package
        self.target_dir = target_dir
        self.cause = cause
