"""package.json reading for workspace packages."""

from __future__ import annotations

import json
import logging
import os
from typing import List

from constants import Constants
from errors import ManifestError
from .models import DependencyRequirement, Manifest

logger = logging.getLogger(__name__)


def manifest_path(package_dir: str) -> str:
    return os.path.join(package_dir, Constants.PACKAGE_JSON_FILE)


def has_manifest(package_dir: str) -> bool:
    """Return True if ``package_dir`` contains a package.json file."""
    return os.path.isfile(manifest_path(package_dir))


def _parse_dependencies(path: str, raw) -> List[DependencyRequirement]:
    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise ManifestError(path, f"'{Constants.DEPENDENCIES_FIELD}' must be an object")
    requirements = []
    for name, spec in raw.items():
        if not isinstance(spec, str):
            raise ManifestError(path, f"range of dependency '{name}' must be a string")
        requirements.append(DependencyRequirement(name=name, version_range=spec))
    return requirements


def read_manifest(package_dir: str) -> Manifest:
    """Read name, version and production dependencies of a package.

    Only the ``dependencies`` section is read; dev, peer and optional
    dependencies are not part of a production tree. Declaration order is
    preserved.

    Args:
        package_dir: Directory holding package.json.

    Returns:
        Manifest for the package.

    Raises:
        ManifestError: If the file is missing, unreadable or malformed.
    """
    path = manifest_path(package_dir)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(path, str(e)) from e
    except json.JSONDecodeError as e:
        raise ManifestError(path, f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(path, "top level must be an object")

    name = data.get("name")
    version = data.get("version")
    if name is not None and not isinstance(name, str):
        raise ManifestError(path, "'name' must be a string")
    if version is not None and not isinstance(version, str):
        raise ManifestError(path, "'version' must be a string")

    dependencies = _parse_dependencies(path, data.get(Constants.DEPENDENCIES_FIELD))
    logger.debug("Read %s: %s@%s with %d dependencies", path, name, version, len(dependencies))
    return Manifest(name=name, version=version, dependencies=dependencies)
