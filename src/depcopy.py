"""copy-production-deps - copy the production dependencies of a workspace package

Collects the packages a package needs at runtime from an installed npm/yarn
workspace, lays them out in a new ``node_modules`` tree that Node.js resolves
the same way, and copies them into ``<distDir>/node_modules``.

    Returns:
        int: Exit code
"""
import logging
import os
import sys
from dataclasses import dataclass
from typing import List, Optional

from args import parse_args
from cli_config import apply_config, build_exclude_predicate, load_config
from common.logging_utils import (
    Timer,
    configure_logging,
    extra_context,
    is_debug_enabled,
    progress_level,
    relative_path,
    verbose_loggers,
)
from constants import Constants, ExitCodes
from errors import CopyDepsError, UnresolvedDependencyError
from materialize.copier import materialize
from materialize.ignore import PathPredicate
from workspace.discovery import discover
from workspace.models import PlacedPackage
from workspace.placement import make_root, place

logger = logging.getLogger(__name__)


@dataclass
class CopyOptions:
    """Options of one copy run, as assembled from the CLI and config file."""
    dry_run: bool = False
    verbose: bool = False
    exclude_paths: Optional[PathPredicate] = None
    workspace_root: Optional[str] = None
    preserve_symlinks: bool = False
    jobs: Optional[int] = None


def copy_production_deps(
    source_dir: str,
    target_dir: str,
    options: Optional[CopyOptions] = None,
) -> List[PlacedPackage]:
    """Copy the production dependencies of ``source_dir`` into ``<target_dir>/node_modules``.

    Args:
        source_dir: Package directory containing ``package.json``.
        target_dir: Distribution directory.
        options: Run options; defaults apply when None.
            With ``options.verbose`` the progress lines are emitted at INFO
            even when logging was not configured for it.

    Returns:
        list: Placed packages that were (or, in a dry run, would be) copied.

    Raises:
        UnresolvedDependencyError: If any production dependency is missing;
            nothing is copied in that case.
        CopyDepsError: For manifest, placement and copy failures.
    """
    options = options or CopyOptions()
    with verbose_loggers(options.verbose, logger.name, "workspace", "materialize"):
        return _copy(os.path.abspath(source_dir), os.path.abspath(target_dir), options)


def _copy(source_dir: str, target_dir: str, options: CopyOptions) -> List[PlacedPackage]:
    level = progress_level(options.verbose or options.dry_run)
    logger.log(level, "collecting production packages for %s", relative_path(source_dir))

    with Timer() as t:
        graph = discover(
            source_dir,
            workspace_root=options.workspace_root,
            preserve_symlinks=options.preserve_symlinks,
        )
    if is_debug_enabled(logger):
        logger.debug(
            "Discovery finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="discover",
                count=len(graph),
                unresolved=len(graph.unresolved),
                duration_ms=t.duration_ms(),
            ),
        )
    if not graph.is_resolved():
        raise UnresolvedDependencyError(graph.unresolved, graph)
    logger.log(level, "found %d packages", len(graph))

    placements = place(graph, make_root(graph, target_dir))
    for placed in placements:
        if placed.fallback:
            logger.warning("%s placed at %s by fallback, verify it resolves",
                           placed.node, relative_path(placed.target_dir))

    return materialize(
        placements,
        target_dir,
        exclude_paths=options.exclude_paths,
        dry_run=options.dry_run,
        max_workers=options.jobs,
        verbose=options.verbose,
    )


def describe_unresolved(error: UnresolvedDependencyError) -> List[str]:
    """Render one ``name@range not found as needed by ...`` line per unresolved requirement."""
    lines = []
    for requirement in error.unresolved:
        if error.graph is not None:
            users = [relative_path(u.source_dir) for u in error.graph.users_of(requirement)]
        else:
            users = [str(u) for u in requirement.users]
        lines.append(f"{requirement} not found as needed by {', '.join(users)}")
    return lines


def _setup_logging(args) -> None:
    level = None
    if getattr(args, "LOG_LEVEL", None):
        level = getattr(logging, str(args.LOG_LEVEL).upper(), logging.INFO)
    elif getattr(args, "VERBOSE", False) or getattr(args, "DRY_RUN", False):
        level = logging.INFO
    configure_logging(level, getattr(args, "LOG_FILE", None))


def options_from_args(args) -> CopyOptions:
    """Translate parsed arguments into ``CopyOptions``.

    Raises:
        ConfigError: If an ``--exclude-from`` file cannot be read.
    """
    return CopyOptions(
        dry_run=bool(args.DRY_RUN),
        verbose=bool(args.VERBOSE),
        exclude_paths=build_exclude_predicate(args),
        workspace_root=args.WORKSPACE_ROOT,
        preserve_symlinks=bool(args.PRESERVE_SYMLINKS),
        jobs=args.JOBS,
    )


def run(args) -> int:
    """Execute a copy run for parsed arguments and return the exit code."""
    try:
        options = options_from_args(args)
        copied = copy_production_deps(args.PACKAGE_DIR, args.DIST_DIR, options)
    except UnresolvedDependencyError as e:
        logger.error("%s: failed: %s", Constants.PROG_NAME, e)
        for line in describe_unresolved(e):
            sys.stderr.write(line + "\n")
        return ExitCodes.FAILURE.value
    except CopyDepsError as e:
        logger.error("%s: failed: %s", Constants.PROG_NAME, e)
        return ExitCodes.FAILURE.value

    if options.dry_run:
        logger.info("dry run: %d packages would be copied to %s", len(copied), relative_path(args.DIST_DIR))
    else:
        logger.info("copied %d packages to %s", len(copied), relative_path(args.DIST_DIR))
    return ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    try:
        apply_config(args, load_config(args.CONFIG))
    except CopyDepsError as e:
        configure_logging()
        logger.error("%s: %s", Constants.PROG_NAME, e)
        sys.exit(ExitCodes.FAILURE.value)
    _setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main"),
        )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
