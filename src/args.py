"""Argument parsing functionality for copy-production-deps."""

import argparse
from constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog=Constants.PROG_NAME,
        description=(
            "Copy production dependencies of a package living in an npm/yarn "
            "workspace to a dist folder"
        ),
        add_help=True,
    )

    parser.add_argument("PACKAGE_DIR",
                        metavar="packageDir",
                        help="Source package folder (must contain package.json)",
                        nargs="?",
                        default=Constants.DEFAULT_PACKAGE_DIR)
    parser.add_argument("DIST_DIR",
                        metavar="distDir",
                        help="Distribution directory (packages are copied to <distDir>/node_modules)",
                        nargs="?",
                        default=Constants.DEFAULT_DIST_DIR)

    parser.add_argument("-n", "--dryRun", "--dry-run",
                        dest="DRY_RUN",
                        help="Dry run - only show what would be copied.",
                        action="store_true")
    parser.add_argument("-v", "--verbose",
                        dest="VERBOSE",
                        help="Run with verbose logging",
                        action="store_true")
    parser.add_argument("--exclude",
                        dest="EXCLUDE",
                        help="Exclude file pattern (glob), can be used multiple times",
                        action="append", type=str,
                        default=[])
    parser.add_argument("--exclude-from",
                        dest="EXCLUDE_FROM",
                        help="Read excluded file patterns from file, one pattern a line",
                        action="append", type=str,
                        default=[])

    parser.add_argument("--workspace-root",
                        dest="WORKSPACE_ROOT",
                        help="Do not look for dependencies above this directory (default: filesystem root)",
                        action="store",
                        type=str)
    parser.add_argument("--preserve-symlinks",
                        dest="PRESERVE_SYMLINKS",
                        help="Resolve dependencies of symlinked packages from the link location "
                             "instead of the real path",
                        action="store_true")
    parser.add_argument("-j", "--jobs",
                        dest="JOBS",
                        help=f"Number of packages copied in parallel (default: {Constants.COPY_MAX_WORKERS})",
                        action="store",
                        type=int)

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=Constants.LOG_LEVELS)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
