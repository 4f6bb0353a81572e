"""Discovery of collection roots inside a repository tree.

``discover`` / ``find_roots`` walk the tree and collect the entries a
collector predicate accepts. ``normalize``, ``squash`` and ``split_paths``
reduce those marker paths to the directories a generator should run in.
"""

import os
from typing import Callable, Dict, List

from sbom_collector.exceptions import NoRootsFoundError, RootDiscoveryError
from sbom_collector.logging_config import logger

from .protocol import ProjectRoot

# Directory names never visited during discovery
PRUNED_DIRECTORIES = frozenset({".git", "test", "tests"})

Matcher = Callable[[bool, str], bool]


def discover(tree_root: str, matcher: Matcher) -> List[str]:
    """
    Walk a tree depth-first and return the entries accepted by ``matcher``.

    The matcher is called exactly once per visited entry, including the tree
    root itself (as ``"."``), with paths relative to ``tree_root``. Entries of
    a directory are visited in lexical order. Pruned directories are neither
    matched nor entered.

    Args:
        tree_root: Directory to walk
        matcher: Predicate ``(is_dir, relative_path) -> bool``

    Returns:
        Relative paths of matched entries, in visit order (may be empty)

    Raises:
        RootDiscoveryError: If the tree can't be read
    """
    matches: List[str] = []
    if not os.path.isdir(tree_root):
        raise RootDiscoveryError(f"Not a directory: {tree_root}")

    if matcher(True, "."):
        matches.append(".")

    def walk(relative_dir: str) -> None:
        absolute_dir = os.path.join(tree_root, relative_dir) if relative_dir else tree_root
        with os.scandir(absolute_dir) as it:
            entries = sorted(it, key=lambda entry: entry.name)

        for entry in entries:
            is_dir = entry.is_dir(follow_symlinks=False)
            if is_dir and entry.name in PRUNED_DIRECTORIES:
                continue
            relative_path = os.path.join(relative_dir, entry.name) if relative_dir else entry.name
            if matcher(is_dir, relative_path):
                matches.append(relative_path)
            if is_dir:
                walk(relative_path)

    try:
        walk("")
    except OSError as e:
        raise RootDiscoveryError(f"Failed to walk {tree_root}: {e}") from e

    return matches


def find_roots(tree_root: str, matcher: Matcher) -> List[str]:
    """
    Discover matching entries and return them as absolute paths.

    Raises:
        NoRootsFoundError: If nothing matched
        RootDiscoveryError: If the tree can't be read
    """
    matches = discover(tree_root, matcher)
    if not matches:
        raise NoRootsFoundError(f"No matching files found in {tree_root}")

    base = os.path.abspath(tree_root)
    return [os.path.normpath(os.path.join(base, path)) for path in matches]


def _group_by_directory(paths: List[str]) -> Dict[str, List[str]]:
    groups: Dict[str, List[str]] = {}
    for path in paths:
        groups.setdefault(os.path.dirname(path), []).append(path)
    return groups


def normalize(preferred_filename: str, paths: List[str]) -> List[str]:
    """
    Keep one marker per directory.

    A directory with a single marker keeps it. A directory with several keeps
    the one named ``preferred_filename`` (typically the lockfile), or the
    lexically first marker if the preferred one isn't there.

    Args:
        preferred_filename: Base name to prefer, e.g. "Gemfile.lock"
        paths: Marker paths

    Returns:
        One path per directory, ordered by directory
    """
    result = []
    for directory, markers in sorted(_group_by_directory(paths).items()):
        if len(markers) == 1:
            result.append(markers[0])
            continue
        preferred = os.path.join(directory, preferred_filename)
        if preferred in markers:
            result.append(preferred)
        else:
            logger.debug(f"{preferred_filename} not found in {directory}, using first marker")
            result.append(sorted(markers)[0])
    return result


def squash(paths: List[str]) -> List[str]:
    """Sorted, unique parent directories of the given paths."""
    return sorted({os.path.dirname(path) for path in paths})


def split_paths(paths: List[str]) -> List[ProjectRoot]:
    """Group marker paths into ProjectRoots, ordered by directory."""
    return [
        ProjectRoot(directory=directory, markers=tuple(sorted(os.path.basename(p) for p in markers)))
        for directory, markers in sorted(_group_by_directory(paths).items())
    ]


def is_under(path: str, directory_name: str) -> bool:
    """Check whether any parent directory of a relative path is named ``directory_name``."""
    return directory_name in os.path.dirname(path).split(os.sep)
