"""SBOM Collection Plugin Architecture.

This module provides a plugin-based system for collecting CycloneDX BOMs from
a repository:
- Per-project collectors that discover their own roots (go.mod, Gemfile, ...)
- Repository-wide collectors that scan the whole tree (trivy, retire.js, ...)
- A concurrent orchestrator that merges every partial BOM into one

Usage:
    from sbom_collector._collection import (
        CollectionOrchestrator,
        ShellExecutor,
        create_default_registry,
    )

    executor = ShellExecutor()
    orchestrator = CollectionOrchestrator(create_default_registry(executor))
    result = orchestrator.collect("/path/to/repository")
"""

from .executor import CommandExecutor, ShellExecutor
from .orchestrator import CollectionOrchestrator, CollectionState, create_default_registry
from .protocol import CollectorKind, MarkerFile, ProjectCollector, ProjectRoot, RepositoryCollector
from .registry import CollectorRegistry
from .result import CollectionOutcome, CollectionResult
from .roots import discover, find_roots, normalize, split_paths, squash

__all__ = [
    # Orchestration
    "CollectionOrchestrator",
    "CollectionState",
    "create_default_registry",
    # Registry and protocols
    "CollectorRegistry",
    "CollectorKind",
    "ProjectCollector",
    "RepositoryCollector",
    "MarkerFile",
    "ProjectRoot",
    # Execution
    "CommandExecutor",
    "ShellExecutor",
    # Results
    "CollectionOutcome",
    "CollectionResult",
    # Roots
    "discover",
    "find_roots",
    "normalize",
    "split_paths",
    "squash",
]
