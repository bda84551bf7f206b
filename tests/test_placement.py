"""Tests for output tree placement."""

import os

import pytest

from errors import PlacementConsistencyFault, UnresolvedDependencyError
from workspace.discovery import discover
from workspace.models import DependencyRequirement, Graph, PlacedPackage
from workspace.placement import Placement, is_resolvable, make_root, place, slot_owner_dir

TARGET = os.path.abspath("THE-TARGET")


def _nm(*names):
    path = TARGET
    for name in names:
        path = os.path.join(path, "node_modules", *name.split("/"))
    return path


def _targets(placements):
    return {(p.name, p.version, p.target_dir) for p in placements}


def _run(graph):
    placement = Placement(graph, make_root(graph, TARGET))
    return placement, placement.run()


def _assert_consistent(graph, placement):
    dirs = [p.target_dir for p in placement.result]
    assert len(dirs) == len(set(dirs))
    for node in graph.packages:
        placed = placement.placements[node.id]
        if placed.fallback:
            continue
        for user in graph.users_of(node):
            assert is_resolvable(placed, placement.placements[user.id]), (node, user)


class TestHelpers:
    """Slot arithmetic of the output tree."""

    def test_slot_owner_dir(self):
        """The owner is two levels above a plain target, three above a scoped one."""
        assert slot_owner_dir(_nm("a", "b"), "b") == _nm("a")
        assert slot_owner_dir(_nm("a", "@s/b"), "@s/b") == _nm("a")
        assert slot_owner_dir(_nm("a"), "a") == TARGET

    def test_is_resolvable_for_scoped_package(self):
        """Scoped packages at the top level are visible to siblings and the root."""
        graph = Graph("/src")
        node, _ = graph.add_package("@s/b", "1.0.0", "/src/node_modules/@s/b", graph.root)
        other, _ = graph.add_package("c", "1.0.0", "/src/node_modules/c", graph.root)
        root = make_root(graph, TARGET)
        placed = PlacedPackage(node, _nm("@s/b"), parent=root)
        consumer = PlacedPackage(other, _nm("c"), parent=root)
        assert is_resolvable(placed, consumer)
        assert is_resolvable(placed, root)


class TestWorkspacePlacement:
    """Placement of discovered workspaces."""

    def test_simple_workspace_is_flat(self, simple_workspace):
        """A single-version graph is hoisted entirely."""
        graph = discover(simple_workspace, workspace_root=simple_workspace)
        placement, result = _run(graph)
        assert _targets(result) == {
            ("a", "1.0.0", _nm("a")),
            ("b", "1.0.0", _nm("b")),
            ("c", "1.0.0", _nm("c")),
        }
        assert all(p.strategy == "hoisted" for p in result)
        _assert_consistent(graph, placement)

    def test_yarn_workspace_targets(self, yarn_workspace):
        """Conflicting versions are nested where each consumer finds its own."""
        graph = discover(os.path.join(yarn_workspace, "foo-backend"), workspace_root=yarn_workspace)
        placement, result = _run(graph)
        assert _targets(result) == {
            ("a", "1.0.0", _nm("a")),
            ("b", "0.1.0", _nm("b")),
            ("b", "1.0.0", _nm("a", "b")),
            ("c", "2.0.0", _nm("c")),
            ("d", "1.0.0", _nm("d")),
            ("r1", "1.0.0", _nm("r1")),
            ("r2", "1.0.0", _nm("r2")),
            ("r3", "1.0.0", _nm("r3")),
            ("s", "1.0.0", _nm("s")),
            ("s", "2.0.0", _nm("r3", "s")),
        }
        assert not any(p.fallback for p in result)
        _assert_consistent(graph, placement)

    def test_yarn_workspace_strategies(self, yarn_workspace):
        """Each rule is picked for the package it applies to."""
        graph = discover(os.path.join(yarn_workspace, "foo-backend"), workspace_root=yarn_workspace)
        _, result = _run(graph)
        strategies = {(p.name, p.version): p.strategy for p in result}
        assert strategies[("b", "0.1.0")] == "hoisted"
        assert strategies[("b", "1.0.0")] == "nested"
        assert strategies[("s", "2.0.0")] == "nested"
        assert strategies[("s", "1.0.0")] == "searched"

    def test_cycle_is_placed_once(self, cyclic_workspace):
        """Packages in a cycle get one placement each."""
        graph = discover(cyclic_workspace, workspace_root=cyclic_workspace)
        result = place(graph, make_root(graph, TARGET))
        assert len(result) == 2
        assert _targets(result) == {
            ("a", "1.0.0", _nm("a")),
            ("b", "1.0.0", _nm("b")),
        }


def _graph_with_conflict():
    """root -> x@2, p, q; p -> x@1; q -> x@1 (one shared x@1 node)."""
    graph = Graph("/src")
    root = graph.root
    x2, _ = graph.add_package("x", "2.0.0", "/src/node_modules/x", root)
    p, _ = graph.add_package("p", "1.0.0", "/src/node_modules/p", root)
    q, _ = graph.add_package("q", "1.0.0", "/src/node_modules/q", root)
    root.deps.extend([x2.id, p.id, q.id])
    x1, _ = graph.add_package("x", "1.0.0", "/src/node_modules/p/node_modules/x", p)
    graph.add_package("x", "1.0.0", "/src/node_modules/p/node_modules/x", q)
    p.deps.append(x1.id)
    q.deps.append(x1.id)
    return graph


class TestRules:
    """Individual placement decisions on hand-built graphs."""

    def test_collision_steps_back_and_flags_fallback(self):
        """A taken root slot keeps the shared version one level down."""
        graph = _graph_with_conflict()
        placement, result = _run(graph)
        x1 = next(p for p in result if p.name == "x" and p.version == "1.0.0")
        assert x1.target_dir == _nm("p", "x")
        assert x1.fallback is True
        x2 = next(p for p in result if p.version == "2.0.0")
        assert x2.target_dir == _nm("x")
        assert x2.fallback is False
        _assert_consistent(graph, placement)

    def test_same_version_reachable_copy_is_reused(self):
        """An identical version already reachable is shared, not copied again."""
        graph = Graph("/src")
        root = graph.root
        a, _ = graph.add_package("a", "1.0.0", "/src/node_modules/a", root)
        z_top, _ = graph.add_package("z", "1.0.0", "/src/node_modules/z", root)
        root.deps.extend([a.id, z_top.id])
        # an identical install of z in a different source folder
        z_other, _ = graph.add_package("z", "1.0.0", "/src/node_modules/a/node_modules/z", a)
        a.deps.append(z_other.id)
        placement, result = _run(graph)
        assert placement.placements[z_other.id] is placement.placements[z_top.id]
        assert placement.placements[z_top.id].target_dir == _nm("z")
        assert [p.name for p in result].count("z") == 1

    def test_unresolved_graph_is_rejected(self):
        """Placement refuses graphs with unresolved requirements."""
        graph = Graph("/src")
        graph.add_unresolved(DependencyRequirement("m", "^1.0.0"), graph.root)
        with pytest.raises(UnresolvedDependencyError) as exc:
            _run(graph)
        assert [str(u) for u in exc.value.unresolved] == ["m@^1.0.0"]

    def test_broken_placement_chain_raises(self):
        """A consumer chain that never reaches the root is a consistency fault."""
        graph = _graph_with_conflict()
        placement = Placement(graph, make_root(graph, TARGET))
        p = next(n for n in graph if n.name == "p")
        q = next(n for n in graph if n.name == "q")
        x1 = next(n for n in graph if n.name == "x" and n.version == "1.0.0")
        orphan = PlacedPackage(p, os.path.abspath("ELSEWHERE/node_modules/p"), parent=None, strategy="hoisted")
        placement.placements[p.id] = orphan
        placement.placements[q.id] = PlacedPackage(q, _nm("q"), parent=placement.root)
        with pytest.raises(PlacementConsistencyFault):
            placement.place_node(x1, orphan)

    def test_user_outside_output_falls_back_to_root(self):
        """A user placed outside the output tree leaves the root slot as fallback."""
        graph = Graph("/src")
        root = graph.root
        p, _ = graph.add_package("p", "1.0.0", "/src/node_modules/p", root)
        q, _ = graph.add_package("q", "1.0.0", "/src/node_modules/q", root)
        r, _ = graph.add_package("r", "1.0.0", "/src/node_modules/r", root)
        root.deps.extend([p.id, q.id, r.id])
        x1, _ = graph.add_package("x", "1.0.0", "/src/node_modules/p/node_modules/x", p)
        graph.add_package("x", "1.0.0", "/src/node_modules/p/node_modules/x", q)
        p.deps.append(x1.id)
        q.deps.append(x1.id)
        x3, _ = graph.add_package("x", "3.0.0", "/src/node_modules/r/node_modules/x", r)
        r.deps.append(x3.id)

        placement = Placement(graph, make_root(graph, TARGET))
        placement.placements[p.id] = PlacedPackage(p, os.path.abspath("ELSEWHERE/node_modules/p"),
                                                   parent=placement.root)
        placement.placements[q.id] = PlacedPackage(q, _nm("q"), parent=placement.root)
        placed, is_new = placement.place_node(x1, placement.placements[q.id])
        assert is_new
        assert placed.target_dir == _nm("x")
        assert placed.strategy == "searched"
        assert placed.fallback is True
