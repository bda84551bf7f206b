"""Copying of placed packages into the distribution directory."""

from .ignore import PackageIgnore, glob_list_filter, load_pattern_file, parse_pattern_list
from .copier import copy_package, materialize, reset_output

__all__ = [
    "PackageIgnore",
    "glob_list_filter",
    "load_pattern_file",
    "parse_pattern_list",
    "copy_package",
    "materialize",
    "reset_output",
]
