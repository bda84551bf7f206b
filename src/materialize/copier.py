"""Copying of placed packages into the output ``node_modules`` tree."""

from __future__ import annotations

import logging
import os
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterator, List, Optional, Set

from common.logging_utils import Timer, extra_context, is_debug_enabled, progress_level, relative_path
from constants import Constants
from errors import ConfigError, CopyError
from workspace.models import PlacedPackage
from .ignore import PackageIgnore, PathPredicate

logger = logging.getLogger(__name__)

IgnoreCallback = Callable[[str, List[str]], Set[str]]


def reset_output(target_dir: str) -> str:
    """Remove and recreate ``<target_dir>/node_modules``; returns its path."""
    deps_root = os.path.join(os.path.abspath(target_dir), Constants.DEPENDENCIES_DIR)
    logger.debug("removing %s", deps_root)
    try:
        if os.path.lexists(deps_root):
            shutil.rmtree(deps_root)
        os.makedirs(deps_root, exist_ok=True)
    except OSError as e:
        raise CopyError(Constants.DEPENDENCIES_DIR, deps_root, e) from e
    return deps_root


def _ignore_callback(source_dir: str, rules: PackageIgnore, exclude_paths: Optional[PathPredicate]) -> IgnoreCallback:
    """Adapt package rules and the global predicate to ``shutil.copytree``'s ``ignore``."""

    def _ignore(directory: str, names: List[str]) -> Set[str]:
        rel_dir = os.path.relpath(directory, source_dir)
        ignored = set()
        for name in names:
            full = os.path.join(directory, name)
            rel = name if rel_dir == os.curdir else os.path.join(rel_dir, name)
            keep = rules.keeps(rel, os.path.isdir(full))
            if keep and exclude_paths is not None:
                keep = not exclude_paths(full)
            if not keep:
                ignored.add(name)
        if ignored:
            logger.debug("filter %s: skipping %s", relative_path(directory), ", ".join(sorted(ignored)))
        return ignored

    return _ignore


def iter_package_files(source_dir: str, ignore: IgnoreCallback) -> Iterator[str]:
    """Yield the files ``copytree`` would copy, pruning ignored directories."""
    for directory, dirnames, filenames in os.walk(source_dir):
        ignored = ignore(directory, dirnames + filenames)
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        for name in sorted(filenames):
            if name not in ignored:
                yield os.path.join(directory, name)


def copy_package(
    placed: PlacedPackage,
    exclude_paths: Optional[PathPredicate] = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """Copy one package's source tree to its target directory.

    The ``source -> target`` line is logged at INFO when ``verbose`` or
    ``dry_run`` is set, at DEBUG otherwise.

    Raises:
        CopyError: If the ignore file cannot be read or any file fails to copy.
    """
    source, target = placed.source_dir, placed.target_dir
    logger.log(progress_level(verbose or dry_run), "%s -> %s", relative_path(source), relative_path(target))
    try:
        rules = PackageIgnore.for_package(source)
    except ConfigError as e:
        raise CopyError(str(placed.node), target, e) from e
    ignore = _ignore_callback(source, rules, exclude_paths)

    if dry_run:
        for path in iter_package_files(source, ignore):
            logger.info("would copy %s", relative_path(path))
        return

    with Timer() as t:
        try:
            os.makedirs(target, exist_ok=True)
            shutil.copytree(source, target, ignore=ignore, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            raise CopyError(str(placed.node), target, e) from e
    if is_debug_enabled(logger):
        logger.debug(
            "Package copied",
            extra=extra_context(
                event="copy",
                component="materializer",
                action="copytree",
                package=str(placed.node),
                target=target,
                duration_ms=t.duration_ms(),
            ),
        )


def materialize(
    placements: List[PlacedPackage],
    target_dir: str,
    exclude_paths: Optional[PathPredicate] = None,
    dry_run: bool = False,
    max_workers: Optional[int] = None,
    verbose: bool = False,
) -> List[PlacedPackage]:
    """Recreate ``<target_dir>/node_modules`` and copy every placed package into it.

    Packages are copied concurrently; a failure in one package does not stop
    the others already running, but the first failure (in placement order)
    is raised once all copies finished. Partial output is left in place.

    Args:
        placements: Output of the placement step.
        target_dir: Distribution directory.
        exclude_paths: Global predicate; True means "do not copy this path".
        dry_run: Log decisions only, touch nothing.
        max_workers: Copy worker limit, ``Constants.COPY_MAX_WORKERS`` by default.
        verbose: Log every copied package at INFO.

    Returns:
        The placements that were (or would have been) copied.

    Raises:
        CopyError: If the output cannot be reset or a package fails to copy.
    """
    if dry_run:
        logger.info("dry run: would recreate %s",
                    relative_path(os.path.join(target_dir, Constants.DEPENDENCIES_DIR)))
    else:
        reset_output(target_dir)

    selected = []
    for placed in placements:
        if exclude_paths is not None and exclude_paths(placed.source_dir):
            logger.debug("filter %s: excluded", relative_path(placed.source_dir))
            continue
        selected.append(placed)

    workers = max(1, max_workers or Constants.COPY_MAX_WORKERS)
    failures = {}
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(copy_package, placed, exclude_paths, dry_run, verbose): index
            for index, placed in enumerate(selected)
        }
        for future in as_completed(futures):
            try:
                future.result()
            except CopyError as e:
                logger.error("%s", e)
                failures[futures[future]] = e

    if failures:
        raise failures[min(failures)]
    return selected
