"""Data models for the dependency graph and the output placement tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from constants import Constants

# Handle of a node inside a Graph arena.
NodeId = int

# Stable identity of a discovered package.
PackageKey = Tuple[str, str, str]

ROOT_ID: NodeId = 0


@dataclass(frozen=True)
class DependencyRequirement:
    """A ``name -> range`` pair declared in a manifest, not yet resolved."""
    name: str
    version_range: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version_range}"


@dataclass
class Manifest:
    """The parts of a package manifest the resolver cares about."""
    name: Optional[str]
    version: Optional[str]
    dependencies: List[DependencyRequirement] = field(default_factory=list)


@dataclass
class PackageNode:
    """A concrete package found on disk.

    ``deps`` and ``users`` hold node ids of the owning Graph, so the two-way
    links never form Python reference cycles.
    """
    id: NodeId
    name: str
    version: str
    source_dir: str
    discovery_depth: int
    deps: List[NodeId] = field(default_factory=list)
    users: List[NodeId] = field(default_factory=list)

    @property
    def key(self) -> PackageKey:
        return (self.name, self.version, self.source_dir)

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass
class UnresolvedRequirement:
    """A requirement for which no ancestor directory held a matching version."""
    name: str
    version_range: str
    users: List[NodeId] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.name}@{self.version_range}"


GraphEntry = Union[PackageNode, UnresolvedRequirement]


class Graph:
    """Append-only arena of discovered packages and unresolved requirements.

    Node 0 is always the synthetic root package the discovery started from.
    """

    def __init__(self, root_dir: str):
        self._nodes: List[PackageNode] = []
        self._by_key: Dict[PackageKey, NodeId] = {}
        self._unresolved: Dict[Tuple[str, str], UnresolvedRequirement] = {}
        self._order: List[GraphEntry] = []
        self._nodes.append(PackageNode(
            id=ROOT_ID,
            name=Constants.ROOT_PACKAGE_NAME,
            version=Constants.ROOT_PACKAGE_VERSION,
            source_dir=root_dir,
            discovery_depth=0,
        ))

    @property
    def root(self) -> PackageNode:
        return self._nodes[ROOT_ID]

    def node(self, node_id: NodeId) -> PackageNode:
        return self._nodes[node_id]

    def find(self, name: str, version: str, source_dir: str) -> Optional[PackageNode]:
        node_id = self._by_key.get((name, version, source_dir))
        return None if node_id is None else self._nodes[node_id]

    def add_package(self, name: str, version: str, source_dir: str, user: PackageNode) -> Tuple[PackageNode, bool]:
        """Return the node for the identity, creating it if needed.

        Records ``user`` as a consumer either way. The boolean is True when
        the node was created by this call.
        """
        existing = self.find(name, version, source_dir)
        if existing is not None:
            existing.users.append(user.id)
            existing.discovery_depth = min(existing.discovery_depth, user.discovery_depth + 1)
            return existing, False
        node = PackageNode(
            id=len(self._nodes),
            name=name,
            version=version,
            source_dir=source_dir,
            discovery_depth=user.discovery_depth + 1,
            users=[user.id],
        )
        self._nodes.append(node)
        self._by_key[node.key] = node.id
        self._order.append(node)
        return node, True

    def add_unresolved(self, requirement: DependencyRequirement, user: PackageNode) -> UnresolvedRequirement:
        key = (requirement.name, requirement.version_range)
        entry = self._unresolved.get(key)
        if entry is None:
            entry = UnresolvedRequirement(requirement.name, requirement.version_range)
            self._unresolved[key] = entry
            self._order.append(entry)
        if user.id not in entry.users:
            entry.users.append(user.id)
        return entry

    @property
    def packages(self) -> List[PackageNode]:
        """All discovered packages (root excluded) in discovery order."""
        return self._nodes[1:]

    @property
    def unresolved(self) -> List[UnresolvedRequirement]:
        return list(self._unresolved.values())

    @property
    def entries(self) -> List[GraphEntry]:
        """Packages and unresolved requirements in discovery order."""
        return list(self._order)

    def is_resolved(self) -> bool:
        return not self._unresolved

    def users_of(self, entry: GraphEntry) -> List[PackageNode]:
        return [self._nodes[i] for i in entry.users]

    def deps_of(self, node: PackageNode) -> List[PackageNode]:
        return [self._nodes[i] for i in node.deps]

    def __iter__(self) -> Iterator[PackageNode]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self._nodes) - 1


@dataclass(eq=False)
class PlacedPackage:
    """A package with its directory in the output tree.

    ``parent`` is the placement whose ``node_modules`` holds this one; it is
    None only for the root.
    """
    node: PackageNode
    target_dir: str
    parent: Optional["PlacedPackage"] = None
    strategy: str = "root"
    fallback: bool = False

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def version(self) -> str:
        return self.node.version

    @property
    def source_dir(self) -> str:
        return self.node.source_dir

    def __str__(self) -> str:
        return f"{self.node} -> {self.target_dir}"
