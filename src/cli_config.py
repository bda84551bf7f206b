"""Configuration file support for the CLI.

A config file provides defaults for the command-line options. CLI flags have
the highest precedence; list options (``exclude``, ``exclude_from``) are
concatenated with the config values first.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from constants import Constants
from errors import ConfigError
from materialize.ignore import PathPredicate, glob_list_filter, load_pattern_file

logger = logging.getLogger(__name__)

# config key -> argparse dest
_LIST_KEYS = {"exclude": "EXCLUDE", "exclude_from": "EXCLUDE_FROM"}
_FLAG_KEYS = {"dry_run": "DRY_RUN", "verbose": "VERBOSE", "preserve_symlinks": "PRESERVE_SYMLINKS"}
_VALUE_KEYS = {"workspace_root": "WORKSPACE_ROOT", "jobs": "JOBS", "log_level": "LOG_LEVEL"}


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Load configuration from a YAML or JSON file.

    Args:
        config_path: Path to the file; None or empty means no config.

    Returns:
        Mapping of recognised keys to values.

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping.
    """
    if not config_path:
        return {}
    if not os.path.isfile(config_path):
        raise ConfigError(f"config file not found: {config_path}")
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to load config {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config {config_path} must contain a mapping")

    config = {}
    for key, value in data.items():
        if key not in Constants.CONFIG_KEYS:
            logger.warning("Ignoring unknown config key '%s' in %s", key, config_path)
            continue
        config[key] = value
    logger.debug("Loaded config from %s: %s", config_path, sorted(config))
    return config


def _as_list(key: str, value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"config key '{key}' must be a string or a list of strings")


def apply_config(args, config: Dict[str, Any]) -> None:
    """Fill ``args`` from ``config`` wherever the CLI left the default."""
    for key, dest in _LIST_KEYS.items():
        if key in config:
            setattr(args, dest, _as_list(key, config[key]) + list(getattr(args, dest, []) or []))
    for key, dest in _FLAG_KEYS.items():
        if key in config and not getattr(args, dest, False):
            setattr(args, dest, bool(config[key]))
    for key, dest in _VALUE_KEYS.items():
        if key in config and getattr(args, dest, None) is None:
            setattr(args, dest, config[key])

    if getattr(args, "JOBS", None) is not None:
        try:
            args.JOBS = int(args.JOBS)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"jobs must be an integer, got {args.JOBS!r}") from e
        if args.JOBS < 1:
            raise ConfigError(f"jobs must be at least 1, got {args.JOBS}")
    if getattr(args, "LOG_LEVEL", None) is not None:
        level = str(args.LOG_LEVEL).upper()
        if level not in Constants.LOG_LEVELS:
            raise ConfigError(f"unknown log level {args.LOG_LEVEL!r}")
        args.LOG_LEVEL = level


def build_exclude_predicate(args) -> Optional[PathPredicate]:
    """Combine ``--exclude`` globs and ``--exclude-from`` lists into one predicate.

    Returns None when no pattern was given.
    """
    globs = list(getattr(args, "EXCLUDE", []) or [])
    for exclude_from in getattr(args, "EXCLUDE_FROM", []) or []:
        globs.extend(load_pattern_file(exclude_from))
    if not globs:
        return None
    logger.debug("Excluding %d patterns: %s", len(globs), globs)
    return glob_list_filter(globs)
