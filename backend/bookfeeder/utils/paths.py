"""Path containment helpers."""

from pathlib import Path


class PathOutsideRootError(ValueError):
    """Raised when a path is not inside the directory it must belong to."""
    pass


def validate_path_in_directory(path: Path | str, allowed_dir: Path | str) -> Path:
    """
    Validate that a path is within an allowed directory.

    Only the parent directory is resolved, so a symlink or hardlink at the
    final component is not followed.

    Args:
        path: The path to validate
        allowed_dir: The directory the path must be within

    Returns:
        The normalized path if valid

    Raises:
        PathOutsideRootError: If path is outside allowed directory
    """
    path = Path(path)
    path = path.parent.resolve() / path.name
    allowed_dir = Path(allowed_dir).resolve()

    try:
        path.relative_to(allowed_dir)
        return path
    except ValueError:
        raise PathOutsideRootError(
            f"Path '{path}' is outside allowed directory '{allowed_dir}'"
        )


def relative_to_root(path: Path | str, root: Path | str) -> Path:
    """Return path relative to root, raising PathOutsideRootError if outside."""
    normalized = validate_path_in_directory(path, root)
    return normalized.relative_to(Path(root).resolve())


def is_within(path: Path | str, directory: Path | str) -> bool:
    """Check whether path equals or lies beneath directory (both resolved)."""
    try:
        Path(path).resolve().relative_to(Path(directory).resolve())
        return True
    except ValueError:
        return False
