"""Production dependency discovery inside an installed workspace.

Each declared dependency is looked up the way Node.js resolves ``require``:
starting in the requester's own ``node_modules`` and climbing through every
ancestor ``node_modules`` until a package whose version satisfies the
declared range is found. The result is a deduplicated ``Graph`` that records
every consumer of every package.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Dict, List, Optional

from common.logging_utils import extra_context, is_debug_enabled, relative_path
from constants import Constants
from versioning.version_match import satisfies
from .manifest import has_manifest, read_manifest
from .models import DependencyRequirement, Graph, Manifest, PackageNode

logger = logging.getLogger(__name__)

ManifestReader = Callable[[str], Manifest]
RangeMatcher = Callable[[str, str], bool]


def strip_dependencies_dir(path: str) -> Optional[str]:
    """Return the package directory owning the last ``node_modules`` segment of ``path``.

    ``/ws/node_modules/@scope/a/node_modules/b`` becomes ``/ws/node_modules/@scope/a``.
    Returns None when the path has no ``node_modules`` segment.
    """
    parts = path.split(os.sep)
    for idx in range(len(parts) - 1, -1, -1):
        if parts[idx] == Constants.DEPENDENCIES_DIR:
            head = os.sep.join(parts[:idx])
            return head or os.sep
    return None


def dependency_dir(package_dir: str, name: str) -> str:
    """Directory where ``name`` would be installed for ``package_dir``."""
    return os.path.join(package_dir, Constants.DEPENDENCIES_DIR, *name.split("/"))


class Discovery:
    """Builds the dependency Graph of one root package.

    Args:
        root_dir: Directory of the package whose production tree is collected.
        workspace_root: Highest directory the lookup may climb to; None climbs
            to the filesystem root.
        reader: Manifest reader, ``read_manifest`` by default.
        matcher: ``(version, range) -> bool``; ``satisfies`` by default.
        preserve_symlinks: Keep symlinked package paths instead of resolving
            them to their real location.
    """

    def __init__(
        self,
        root_dir: str,
        workspace_root: Optional[str] = None,
        reader: ManifestReader = read_manifest,
        matcher: RangeMatcher = satisfies,
        preserve_symlinks: bool = False,
    ):
        resolve = os.path.abspath if preserve_symlinks else os.path.realpath
        self.root_dir = resolve(root_dir)
        self.workspace_root = resolve(workspace_root) if workspace_root else None
        self._reader = reader
        self._matcher = matcher
        self._preserve_symlinks = preserve_symlinks
        self._manifests: Dict[str, Manifest] = {}
        self._created: List[PackageNode] = []
        self.graph = Graph(self.root_dir)
        self._bounded = self.workspace_root is not None and self._within_workspace(self.root_dir)

        if self.workspace_root and not self._bounded:
            logger.warning(
                "Package %s is outside workspace root %s; lookups will climb to the filesystem root",
                relative_path(self.root_dir),
                relative_path(self.workspace_root),
            )

    def _within_workspace(self, path: str) -> bool:
        root = self.workspace_root.rstrip(os.sep) + os.sep
        return (path.rstrip(os.sep) + os.sep).startswith(root)

    def _manifest(self, package_dir: str) -> Manifest:
        manifest = self._manifests.get(package_dir)
        if manifest is None:
            manifest = self._reader(package_dir)
            self._manifests[package_dir] = manifest
        return manifest

    def _source_dir(self, candidate: str) -> str:
        if not self._preserve_symlinks and os.path.islink(candidate):
            return os.path.realpath(candidate)
        return candidate

    def _is_boundary(self, search_dir: str) -> bool:
        if self._bounded and search_dir == self.workspace_root:
            return True
        return os.path.dirname(search_dir) == search_dir

    def _climb(self, search_dir: str) -> Optional[str]:
        """Next directory to search after ``search_dir``, None at the boundary.

        Once the package lies inside the workspace root, the climb never
        leaves it, even for packages whose real path is elsewhere.
        """
        owner = strip_dependencies_dir(search_dir)
        if owner is None:
            if self._is_boundary(search_dir):
                return None
            owner = os.path.dirname(search_dir)
        if self._bounded and not self._within_workspace(owner):
            return None
        return owner

    def _match_candidate(self, candidate: str, requirement: DependencyRequirement) -> Optional[Manifest]:
        source_dir = self._source_dir(candidate)
        if not has_manifest(source_dir):
            return None
        manifest = self._manifest(source_dir)
        if manifest.version is None:
            logger.debug("Skipping %s: manifest declares no version", relative_path(candidate))
            return None
        if self._matcher(manifest.version, requirement.version_range):
            return manifest
        if is_debug_enabled(logger):
            logger.debug(
                "Candidate rejected",
                extra=extra_context(
                    event="decision",
                    component="discovery",
                    action="match_candidate",
                    outcome="version_mismatch",
                    target=candidate,
                    package=requirement.name,
                    requested_spec=requirement.version_range,
                    resolved_version=manifest.version,
                ),
            )
        return None

    def resolve(self, requirement: DependencyRequirement, requester: PackageNode) -> Optional[PackageNode]:
        """Look up one requirement of ``requester``.

        Returns the matching node (new or existing), or None after recording
        the requirement as unresolved. Newly created nodes are reported via
        ``self._created``.
        """
        search_dir: Optional[str] = requester.source_dir
        while search_dir is not None:
            candidate = dependency_dir(search_dir, requirement.name)
            manifest = self._match_candidate(candidate, requirement)
            if manifest is not None:
                node, created = self.graph.add_package(
                    requirement.name,
                    manifest.version,
                    self._source_dir(candidate),
                    requester,
                )
                requester.deps.append(node.id)
                if created:
                    self._created.append(node)
                    logger.debug("%s: %s resolved to %s", requester, requirement, relative_path(node.source_dir))
                return node
            search_dir = self._climb(search_dir)

        logger.info(
            "cannot find %s required in %s",
            requirement,
            relative_path(requester.source_dir),
        )
        self.graph.add_unresolved(requirement, requester)
        return None

    def run(self) -> Graph:
        """Discover the full production dependency graph of the root package.

        Every node is expanded exactly once, when it is first created, so
        dependency cycles terminate. Children are expanded depth-first in
        declaration order.

        Raises:
            ManifestError: If a manifest that must be expanded cannot be read.
        """
        stack: List[PackageNode] = [self.graph.root]
        while stack:
            node = stack.pop()
            manifest = self._manifest(node.source_dir)
            self._created = []
            for requirement in manifest.dependencies:
                self.resolve(requirement, node)
            stack.extend(reversed(self._created))
        return self.graph


def discover(
    root_dir: str,
    workspace_root: Optional[str] = None,
    reader: ManifestReader = read_manifest,
    matcher: RangeMatcher = satisfies,
    preserve_symlinks: bool = False,
) -> Graph:
    """Build the production dependency Graph of the package in ``root_dir``."""
    return Discovery(
        root_dir,
        workspace_root=workspace_root,
        reader=reader,
        matcher=matcher,
        preserve_symlinks=preserve_symlinks,
    ).run()
