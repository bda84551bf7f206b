"""npm range matching for installed package versions.

A range that cannot be parsed (dist-tags such as ``latest``, ``file:`` or
``workspace:`` protocols, git URLs) matches every version: the package
manager already picked what is on disk and we only mirror that choice.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Optional, Union

import semantic_version

logger = logging.getLogger(__name__)

_ANY_RANGES = ("", "*", "x", "X", "latest")

RangeSpec = Union[semantic_version.NpmSpec, semantic_version.SimpleSpec]


def _normalize_spec(spec_str: str) -> str:
    """Normalize npm range syntax (hyphen, x-ranges) into SimpleSpec-compatible form."""
    s = spec_str.strip()

    # Hyphen ranges: "1.2.3 - 1.4.5" => ">=1.2.3,<=1.4.5"
    m = re.match(r'^\s*([0-9A-Za-z\.\-\+]+)\s+-\s+([0-9A-Za-z\.\-\+]+)\s*$', s)
    if m:
        return f">={m.group(1)},<={m.group(2)}"

    s2 = s.replace('*', 'x').lower()
    m = re.match(r'^\s*(\d+)\.(\d+)\.x\s*$', s2)
    if m:
        major, minor = int(m.group(1)), int(m.group(2))
        return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

    m = re.match(r'^\s*(\d+)(?:\.x)?\s*$', s2)
    if m:
        major = int(m.group(1))
        return f">={major}.0.0,<{major + 1}.0.0"

    return s


@lru_cache(maxsize=1024)
def parse_range(spec_str: str) -> Optional[RangeSpec]:
    """Parse an npm range; None means the range is not a semver range."""
    if spec_str is None:
        return None
    text = spec_str.strip()
    if text in _ANY_RANGES:
        return None
    try:
        return semantic_version.NpmSpec(text)
    except ValueError:
        try:
            return semantic_version.SimpleSpec(_normalize_spec(text))
        except ValueError:
            logger.debug("Treating unparseable range %r as matching any version", spec_str)
            return None


def parse_version(version: str) -> Optional[semantic_version.Version]:
    """Parse an installed version, tolerating npm's leading ``v``/``=``."""
    if not isinstance(version, str):
        return None
    text = version.strip().lstrip("=v").strip()
    try:
        return semantic_version.Version(text)
    except ValueError:
        return None


def is_valid_range(spec_str: str) -> bool:
    """Return True when ``spec_str`` is a real semver range."""
    return parse_range(spec_str) is not None


def satisfies(version: str, spec_str: str) -> bool:
    """Return True if ``version`` satisfies the npm range ``spec_str``.

    Unparseable ranges match anything; unparseable versions match only such
    ranges.
    """
    spec = parse_range(spec_str)
    if spec is None:
        return True
    ver = parse_version(version)
    if ver is None:
        return False
    is_match = getattr(spec, "match", None)
    if callable(is_match):
        return bool(spec.match(ver))
    return ver in spec
