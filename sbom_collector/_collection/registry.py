"""Collector registry for SBOM collection plugins."""

from typing import Any, Dict, Iterable, List, Tuple, Union

from sbom_collector.logging_config import logger

from .protocol import CollectorKind, ProjectCollector, RepositoryCollector

Collector = Union[ProjectCollector, RepositoryCollector]


class CollectorRegistry:
    """
    Immutable set of collectors, split by kind.

    The registry is built once and passed into the orchestrator; collectors
    are stateless and reused across repositories.

    Example:
        registry = CollectorRegistry([GolangCollector(executor), TrivyCollector(executor)])
        registry.project_collectors     # (GolangCollector,)
        registry.repository_collectors  # (TrivyCollector,)
    """

    def __init__(self, collectors: Iterable[Collector] = ()) -> None:
        project: List[ProjectCollector] = []
        repository: List[RepositoryCollector] = []
        seen: set = set()

        for collector in collectors:
            if collector.name in seen:
                raise ValueError(f"Duplicate collector name: {collector.name}")
            seen.add(collector.name)

            if collector.kind == CollectorKind.PROJECT:
                project.append(collector)  # type: ignore[arg-type]
            elif collector.kind == CollectorKind.REPOSITORY:
                repository.append(collector)  # type: ignore[arg-type]
            else:
                raise ValueError(f"Unknown collector kind for {collector.name}: {collector.kind}")
            logger.debug(f"Registered collector: {collector.name} ({collector.kind.value})")

        self._project: Tuple[ProjectCollector, ...] = tuple(project)
        self._repository: Tuple[RepositoryCollector, ...] = tuple(repository)

    @property
    def project_collectors(self) -> Tuple[ProjectCollector, ...]:
        return self._project

    @property
    def repository_collectors(self) -> Tuple[RepositoryCollector, ...]:
        return self._repository

    def __len__(self) -> int:
        return len(self._project) + len(self._repository)

    def list_collectors(self) -> List[Dict[str, Any]]:
        """
        List all registered collectors.

        Returns:
            List of {"name", "kind"} dicts, project collectors first
        """
        return [{"name": c.name, "kind": c.kind.value} for c in (*self._project, *self._repository)]
