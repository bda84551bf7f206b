"""Workspace dependency graph: discovery of installed packages and their output placement.

Discovery mirrors the Node.js ``node_modules`` lookup to find which installed
package every production dependency resolves to; placement maps the
resulting graph onto a fresh ``node_modules`` tree that resolves the same way.
"""

from .models import (
    DependencyRequirement,
    Graph,
    Manifest,
    PackageNode,
    PlacedPackage,
    UnresolvedRequirement,
)
from .manifest import read_manifest
from .discovery import Discovery, discover
from .placement import Placement, is_resolvable, make_root, place

__all__ = [
    "DependencyRequirement",
    "Graph",
    "Manifest",
    "PackageNode",
    "PlacedPackage",
    "UnresolvedRequirement",
    "read_manifest",
    "Discovery",
    "discover",
    "Placement",
    "is_resolvable",
    "make_root",
    "place",
]
