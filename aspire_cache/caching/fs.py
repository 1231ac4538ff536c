"""Filesystem helpers for the file cache."""

import shutil
from pathlib import Path


def add_filename_prefix(path: Path, prefix: str) -> Path:
    """Add a prefix to the final component of a path.

    Example: lists/1234.json with prefix "." gives lists/.1234.json
    """
    return path.with_name(f"{prefix}{path.name}")


def add_filename_suffix(path: Path, suffix: str) -> Path:
    """Add a suffix before the extension of a path.

    Example: lists/1234.json with suffix "-json" gives lists/1234-json.json
    """
    return path.with_name(f"{path.stem}{suffix}{path.suffix}")


def strip_filename_prefix(path: Path, prefix: str) -> Path:
    """Remove a prefix from the final component of a path, if present."""
    if path.name.startswith(prefix):
        return path.with_name(path.name[len(prefix) :])
    return path


def strip_ext(path: Path) -> Path:
    """Remove the extension from a path."""
    return path.with_suffix("")


def remove_file(path: Path | None) -> None:
    """Delete a file, ignoring files which do not exist.

    Raises:
        OSError: If the file exists but cannot be deleted.
    """
    if path is not None:
        path.unlink(missing_ok=True)


def remove_tree(path: Path) -> None:
    """Delete a directory tree, ignoring trees which do not exist.

    Raises:
        OSError: If the tree exists but cannot be deleted.
    """
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        remove_file(path)


def clear_directory(path: Path) -> None:
    """Delete the contents of a directory but not the directory itself."""
    if not path.is_dir():
        return
    for child in path.iterdir():
        remove_tree(child)


def remove_empty_parents(path: Path, root: Path) -> None:
    """Remove empty directories on a file's path below a root directory.

    Walks up from the parent of path, removing each directory until one is
    not empty or the root is reached. The root itself is never removed.

    Args:
        path: The starting file path.
        root: The directory at which to stop.

    Raises:
        OSError: If an empty directory cannot be removed.
    """
    root = root.resolve()
    directory = path.parent.resolve()
    while directory != root and root in directory.parents:
        try:
            directory.rmdir()
        except OSError:
            if not directory.exists() or any(directory.iterdir()):
                return
            raise
        directory = directory.parent


def make_dirs(path: Path, mode: int) -> None:
    """Create a directory and any missing parents with the given mode.

    Unlike Path.mkdir(parents=True), the mode applies to every directory
    created, not just the last one.

    Raises:
        OSError: If a directory cannot be created.
    """
    missing: list[Path] = []
    directory = path
    while not directory.exists():
        missing.append(directory)
        if directory.parent == directory:
            break
        directory = directory.parent
    for directory in reversed(missing):
        directory.mkdir(mode=mode, exist_ok=True)
