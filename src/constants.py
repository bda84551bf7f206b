"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FAILURE = 2


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROG_NAME = "copy-production-deps"
    PACKAGE_JSON_FILE = "package.json"
    DEPENDENCIES_DIR = "node_modules"
    DEPENDENCIES_FIELD = "dependencies"
    IGNORE_FILE = ".npmignore"

    ROOT_PACKAGE_NAME = "root"
    ROOT_PACKAGE_VERSION = "n/a"

    DEFAULT_PACKAGE_DIR = "."
    DEFAULT_DIST_DIR = "./dist"

    # Always excluded from copied packages, even without an ignore file.
    DEFAULT_IGNORE_PATTERNS = [
        ".git",
        ".svn",
        ".hg",
        "CVS",
        ".lock-wscript",
        ".wafpickle-*",
        ".*.swp",
        ".DS_Store",
        "._*",
        "npm-debug.log",
        ".npmrc",
        "*.orig",
        ".npmignore",
    ]

    COPY_MAX_WORKERS = 8
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
    ENV_LOG_LEVEL = "DEPCOPY_LOG_LEVEL"
    LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

    CONFIG_KEYS = [
        "exclude",
        "exclude_from",
        "dry_run",
        "verbose",
        "workspace_root",
        "preserve_symlinks",
        "jobs",
        "log_level",
    ]
