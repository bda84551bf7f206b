"""Assignment of discovered packages to directories of the output tree.

The output ``node_modules`` must resolve exactly like the workspace it was
collected from, while sharing as many copies as possible. Packages are
placed breadth-first from the root, so every consumer is placed before its
own dependencies are considered:

* a package with a single version in the graph, or required by the root, is
  hoisted to ``<dist>/node_modules``;
* an identical version already placed where the consumer can reach it is
  reused;
* a package with a single consumer is nested in that consumer's
  ``node_modules``;
* otherwise the lowest ancestor of the consumer from which every placed
  consumer can reach the package is searched for.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled, relative_path
from errors import PlacementConsistencyFault, UnresolvedDependencyError
from .discovery import dependency_dir
from .models import Graph, NodeId, PackageNode, PlacedPackage, ROOT_ID

logger = logging.getLogger(__name__)

HOISTED = "hoisted"
NESTED = "nested"
SEARCHED = "searched"


def _is_within(path: str, ancestor: str) -> bool:
    return (path.rstrip(os.sep) + os.sep).startswith(ancestor.rstrip(os.sep) + os.sep)


def slot_owner_dir(target_dir: str, name: str) -> str:
    """Directory whose ``node_modules`` holds ``name`` at ``target_dir``.

    Two levels above the target for ``name``, three for ``@scope/name``.
    """
    owner = target_dir
    for _ in range(len(name.split("/")) + 1):
        owner = os.path.dirname(owner)
    return owner


def is_resolvable(target: PlacedPackage, consumer: PlacedPackage) -> bool:
    """Check if ``target`` is found by the upward lookup started at ``consumer``."""
    return _is_within(consumer.target_dir, slot_owner_dir(target.target_dir, target.name))


def make_root(graph: Graph, target_dir: str) -> PlacedPackage:
    """Pin the graph's root package to the output directory."""
    return PlacedPackage(node=graph.root, target_dir=os.path.abspath(target_dir), parent=None)


class Placement:
    """Worklist computing one ``PlacedPackage`` per reachable graph node.

    Attributes:
        placements: node id -> placement; nodes sharing another node's copy
            map to that copy.
        slots: owner directory -> package name -> placement.
    """

    def __init__(self, graph: Graph, root: PlacedPackage):
        self.graph = graph
        self.root = root
        self.by_name: Dict[str, List[PackageNode]] = {}
        for node in graph.packages:
            self.by_name.setdefault(node.name, []).append(node)
        self.placements: Dict[NodeId, PlacedPackage] = {ROOT_ID: root}
        self.slots: Dict[str, Dict[str, PlacedPackage]] = {}
        self.result: List[PlacedPackage] = []
        self._queue: Deque[Tuple[PackageNode, PlacedPackage]] = deque()

    def _occupant(self, owner: PlacedPackage, name: str) -> Optional[PlacedPackage]:
        return self.slots.get(owner.target_dir, {}).get(name)

    def _claim(self, node: PackageNode, owner: PlacedPackage, strategy: str, fallback: bool = False) -> PlacedPackage:
        occupant = self._occupant(owner, node.name)
        if occupant is not None:
            raise PlacementConsistencyFault(
                f"cannot place {node}: {occupant.target_dir} is already taken by {occupant.node}"
            )
        return PlacedPackage(
            node=node,
            target_dir=dependency_dir(owner.target_dir, node.name),
            parent=owner,
            strategy=strategy,
            fallback=fallback,
        )

    def _placed_users(self, node: PackageNode) -> List[PlacedPackage]:
        users: List[PlacedPackage] = []
        for user_id in node.users:
            placed = self.placements.get(user_id)
            if placed is not None and placed not in users:
                users.append(placed)
        return users

    def _find_reusable(self, node: PackageNode, consumer: PlacedPackage) -> Optional[PlacedPackage]:
        others = sorted(
            (n for n in self.by_name[node.name] if n.id != node.id and n.version == node.version),
            key=lambda n: n.discovery_depth,
        )
        for other in others:
            placed = self.placements.get(other.id)
            if placed is not None and is_resolvable(placed, consumer):
                return placed
        return None

    def _search(self, node: PackageNode, consumer: PlacedPackage) -> PlacedPackage:
        """Walk from ``consumer`` toward the root looking for a slot every placed user reaches."""
        users = self._placed_users(node)
        owner = consumer
        previous: Optional[PlacedPackage] = None
        visited = set()
        while True:
            occupant = self._occupant(owner, node.name)
            if occupant is not None:
                if previous is None:
                    raise PlacementConsistencyFault(
                        f"cannot place {node}: {occupant.target_dir} is already taken by {occupant.node}"
                    )
                logger.warning(
                    "%s: %s is taken by %s, keeping %s unreachable for some consumers",
                    node,
                    relative_path(occupant.target_dir),
                    occupant.node,
                    relative_path(dependency_dir(previous.target_dir, node.name)),
                )
                return self._claim(node, previous, SEARCHED, fallback=True)

            score = sum(1 for user in users if _is_within(user.target_dir, owner.target_dir))
            if is_debug_enabled(logger):
                logger.debug(
                    "Placement candidate",
                    extra=extra_context(
                        event="decision",
                        component="placement",
                        action="score_candidate",
                        package=str(node),
                        target=owner.target_dir,
                        score=score,
                        count=len(users),
                    ),
                )
            if score == len(users):
                return self._claim(node, owner, SEARCHED)
            if owner is self.root:
                # Only hit when a user was placed outside the root's tree;
                # Placement.run itself places everything below the root.
                logger.warning(
                    "%s: no location reachable by all %d consumers, using %s",
                    node,
                    len(users),
                    relative_path(dependency_dir(owner.target_dir, node.name)),
                )
                return self._claim(node, owner, SEARCHED, fallback=True)

            parent = owner.parent
            if parent is None:
                raise PlacementConsistencyFault(
                    f"placement chain of {owner.node} at {owner.target_dir} does not reach the output root"
                )
            if id(parent) in visited or not _is_within(owner.target_dir, parent.target_dir) \
                    or parent.target_dir == owner.target_dir:
                raise PlacementConsistencyFault(
                    f"placement walk for {node} made no progress at {owner.target_dir}"
                )
            visited.add(id(owner))
            previous = owner
            owner = parent

    def place_node(self, node: PackageNode, consumer: PlacedPackage) -> Tuple[PlacedPackage, bool]:
        """Decide where ``node`` goes; the flag is False when an existing copy is reused."""
        if len(self.by_name[node.name]) == 1 or ROOT_ID in node.users:
            return self._claim(node, self.root, HOISTED), True
        reused = self._find_reusable(node, consumer)
        if reused is not None:
            return reused, False
        if len(node.users) == 1:
            return self._claim(node, consumer, NESTED), True
        return self._search(node, consumer), True

    def _record(self, placed: PlacedPackage) -> None:
        self.slots.setdefault(placed.parent.target_dir, {})[placed.name] = placed
        self.result.append(placed)
        for dep in self.graph.deps_of(placed.node):
            self._queue.append((dep, placed))

    def run(self) -> List[PlacedPackage]:
        """Place every package reachable from the root.

        Raises:
            UnresolvedDependencyError: If the graph holds unresolved requirements.
            PlacementConsistencyFault: If the upward walk cannot make progress.
        """
        if not self.graph.is_resolved():
            raise UnresolvedDependencyError(self.graph.unresolved, self.graph)

        for dep in self.graph.deps_of(self.graph.root):
            self._queue.append((dep, self.root))

        while self._queue:
            node, consumer = self._queue.popleft()
            if node.id in self.placements:
                continue
            placed, is_new = self.place_node(node, consumer)
            self.placements[node.id] = placed
            if not is_new:
                logger.debug("%s (%s) reuses %s", node, relative_path(node.source_dir),
                             relative_path(placed.target_dir))
                continue
            self._record(placed)
            logger.debug("%s (%s) -> %s [%s]", node, relative_path(node.source_dir),
                         relative_path(placed.target_dir), placed.strategy)
        return self.result


def place(graph: Graph, root: PlacedPackage) -> List[PlacedPackage]:
    """Assign an output directory to every package of ``graph``."""
    return Placement(graph, root).run()
