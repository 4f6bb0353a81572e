"""Collector Protocols for SBOM collection plugins.

This module defines the core protocols and types for the collection plugin
system. A collector is either project-scoped (discovers its own roots inside a
repository and produces one partial BOM per root) or repository-scoped (runs a
single generator over the whole tree).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from cyclonedx.model.bom import Bom


class CollectorKind(str, Enum):
    """How a collector is dispatched by the orchestrator."""

    PROJECT = "project"
    REPOSITORY = "repository"


@dataclass(frozen=True)
class MarkerFile:
    """
    A path matched by a collector predicate during discovery.

    Attributes:
        path: Absolute path of the matched file or directory
        collector_name: Name of the collector whose predicate matched
    """

    path: str
    collector_name: str


@dataclass(frozen=True)
class ProjectRoot:
    """
    A directory and the marker files found directly inside it.

    Attributes:
        directory: Absolute directory path
        markers: Marker file names (not paths), in lexical order
    """

    directory: str
    markers: tuple[str, ...]

    def has_only(self, marker: str) -> bool:
        """Check whether ``marker`` is the only marker in this root."""
        return self.markers == (marker,)


class ProjectCollector(Protocol):
    """
    Protocol for ecosystem collectors that work per project root.

    The orchestrator drives each collector through three steps:

    1. ``match`` is called once per filesystem entry of the repository
       (with a path relative to the repository root) to discover markers.
    2. ``bootstrap`` turns the matched marker paths into the list of roots to
       generate for. It may write lock data and drop roots it can't prepare.
    3. ``generate`` produces one partial BOM per root.

    Example:
        class RustCollector:
            name = "rust"
            kind = CollectorKind.PROJECT

            def match(self, is_dir: bool, path: str) -> bool:
                return not is_dir and os.path.basename(path) in ("Cargo.toml", "Cargo.lock")

            def bootstrap(self, paths: list[str]) -> list[str]:
                return squash(paths)

            def generate(self, root: str) -> Bom:
                return self._executor.bom_from_cdxgen(root, "rust")
    """

    @property
    def name(self) -> str:
        """Short collector name used in logs and summaries (e.g. "golang")."""
        ...

    @property
    def kind(self) -> CollectorKind:
        """Always ``CollectorKind.PROJECT``."""
        ...

    def match(self, is_dir: bool, path: str) -> bool:
        """
        Decide whether a filesystem entry is a marker for this ecosystem.

        Must be pure: no side effects, no filesystem access.

        Args:
            is_dir: Whether the entry is a directory
            path: Entry path relative to the repository root

        Returns:
            True if the entry is a marker
        """
        ...

    def bootstrap(self, paths: list[str]) -> list[str]:
        """
        Reduce marker paths to generation roots.

        Args:
            paths: Absolute marker paths from discovery

        Returns:
            Absolute paths of the roots to generate for
        """
        ...

    def generate(self, root: str) -> Bom:
        """
        Produce a partial BOM for one root.

        Raises:
            GenerationError: If the external generator fails
        """
        ...


class RepositoryCollector(Protocol):
    """
    Protocol for generic collectors that scan a whole repository at once.

    Repository collectors have no discovery or bootstrap step.
    """

    @property
    def name(self) -> str:
        """Short collector name used in logs and summaries (e.g. "trivy")."""
        ...

    @property
    def kind(self) -> CollectorKind:
        """Always ``CollectorKind.REPOSITORY``."""
        ...

    def generate(self, repository_root: str) -> Bom:
        """
        Produce a partial BOM for the whole repository.

        Raises:
            GenerationError: If the external generator fails
        """
        ...
