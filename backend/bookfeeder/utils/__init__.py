"""Utility modules for bookfeeder."""

from bookfeeder.utils.paths import (
    PathOutsideRootError,
    is_within,
    relative_to_root,
    validate_path_in_directory,
)

__all__ = [
    "PathOutsideRootError",
    "is_within",
    "relative_to_root",
    "validate_path_in_directory",
]
