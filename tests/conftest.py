"""Shared fixtures: on-disk workspaces described as nested dicts."""

import json
import os

import pytest


def build_tree(base, tree):
    """Create ``tree`` below ``base``.

    Dict values are directories, string values are file contents, and a
    dict under a ``package.json`` key is written as JSON.
    """
    os.makedirs(base, exist_ok=True)
    for name, value in tree.items():
        path = os.path.join(base, name)
        if name == "package.json" and isinstance(value, dict):
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(value, fh)
        elif isinstance(value, dict):
            build_tree(path, value)
        else:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(value)
    return base


def pkg(name, version, dependencies=None, **fields):
    manifest = {"name": name, "version": version}
    if dependencies is not None:
        manifest["dependencies"] = dependencies
    manifest.update(fields)
    return {"package.json": manifest}


def with_modules(package, **modules):
    """Attach a ``node_modules`` directory to a package dict."""
    result = dict(package)
    result["node_modules"] = modules
    return result


@pytest.fixture
def simple_workspace(tmp_path):
    """Package with a transitive chain a -> b -> c, and an unused d."""
    root = str(tmp_path / "foopath")
    build_tree(root, with_modules(
        pkg("foo", "0.1.0", {"a": "^1.0.0", "b": "^1.0.0"}),
        a=pkg("a", "1.0.0", {"b": "^1.0.0"}),
        b=pkg("b", "1.0.0", {"c": "^1.0.0"}),
        c=pkg("c", "1.0.0"),
        d=pkg("d", "1.0.0"),
    ))
    return root


@pytest.fixture
def yarn_workspace(tmp_path):
    """Workspace member whose dependencies are split between its own and the hoisted node_modules.

    Returns the workspace root; the package lives in ``foo-backend``.
    """
    ws = str(tmp_path / "workspaceRoot")
    backend = pkg("foo", "0.1.0", {
        "a": "^1.0.0",
        "b": "^0.1.0",
        "d": "^1.0.0",
        "r1": "^1.0.0",
        "r2": "^1.0.0",
        "r3": "^1.0.0",
    }, devDependencies={"x": "^1.0.0"})
    build_tree(ws, {
        "foo-backend": with_modules(
            backend,
            b=pkg("b", "0.1.0"),
            d=pkg("d", "1.0.0"),
            x=pkg("x", "1.0.0"),
            r1=pkg("r1", "1.0.0", {"s": "1.0.0"}),
            r2=pkg("r2", "1.0.0", {"s": "1.0.0"}),
            r3=with_modules(pkg("r3", "1.0.0", {"s": "2.0.0"}), s=pkg("s", "2.0.0")),
            s=pkg("s", "1.0.0"),
        ),
        "node_modules": {
            "a": pkg("a", "1.0.0", {"b": "^1.0.0"}),
            "b": pkg("b", "1.0.0", {"c": "^2.0.0"}),
            "c": pkg("c", "2.0.0"),
        },
    })
    return ws


@pytest.fixture
def cyclic_workspace(tmp_path):
    root = str(tmp_path / "foopath")
    build_tree(root, with_modules(
        pkg("foo", "0.1.0", {"a": "^1.0.0", "b": "^1.0.0"}),
        a=pkg("a", "1.0.0", {"b": "^1.0.0"}),
        b=pkg("b", "1.0.0", {"a": "^1.0.0"}),
    ))
    return root


def read_installed(base, name):
    """Return the manifest of ``name`` installed in ``base/node_modules``, or None."""
    path = os.path.join(base, "node_modules", *name.split("/"), "package.json")
    if not os.path.isfile(path):
        return None
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)
