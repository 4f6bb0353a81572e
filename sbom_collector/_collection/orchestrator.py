"""Collection orchestrator and factory functions."""

import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import List, Optional, Tuple, Union

from cyclonedx.model.component import ComponentScope

from sbom_collector._merge import attach_cpes, filter_out_by_scope, merge_boms
from sbom_collector._merge.filters import CPEAttacher
from sbom_collector.exceptions import (
    BootstrapError,
    CollectionCancelledError,
    CommandExecutionError,
    GenerationError,
    NoRootsFoundError,
    RootDiscoveryError,
    SBOMDecodeError,
    UnsupportedRepositoryError,
)
from sbom_collector.logging_config import logger

from .collectors import (
    CdxgenRecursiveCollector,
    GolangCollector,
    JavaScriptCollector,
    JVMCollector,
    PythonCollector,
    RetireJSCollector,
    RubyCollector,
    RustCollector,
    TrivyCollector,
)
from .executor import CommandExecutor, ShellExecutor
from .protocol import MarkerFile, ProjectCollector, RepositoryCollector
from .registry import CollectorRegistry
from .result import CollectionOutcome, CollectionResult
from .roots import find_roots

# Upper bound on concurrently running generators
DEFAULT_MAX_WORKERS = 4

GenerationTask = Tuple[Union[ProjectCollector, RepositoryCollector], str]


class CollectionState(str, Enum):
    DISCOVER = "discover"
    BOOTSTRAP = "bootstrap"
    GENERATE = "generate"
    MERGE = "merge"
    FILTER = "filter"
    DONE = "done"


def create_default_registry(
    executor: CommandExecutor,
    include_repository_collectors: bool = False,
) -> CollectorRegistry:
    """
    Create a CollectorRegistry with the built-in collectors.

    Per-project collectors (always registered):
    - golang, javascript, jvm, python, ruby, rust

    Repository-wide collectors (``include_repository_collectors=True``):
    - trivy: ``trivy fs`` over the whole checkout
    - retirejs: vendored JavaScript libraries
    - cdxgen: cdxgen in recursive mode

    Args:
        executor: Executor shared by all collectors
        include_repository_collectors: Also register the repository-wide collectors

    Returns:
        Configured CollectorRegistry
    """
    collectors: List[Union[ProjectCollector, RepositoryCollector]] = [
        GolangCollector(executor),
        JavaScriptCollector(executor),
        JVMCollector(executor),
        PythonCollector(executor),
        RubyCollector(executor),
        RustCollector(executor),
    ]
    if include_repository_collectors:
        collectors.extend(
            [
                TrivyCollector(executor),
                RetireJSCollector(executor),
                CdxgenRecursiveCollector(executor),
            ]
        )
    return CollectorRegistry(collectors)


class CollectionOrchestrator:
    """
    Runs every registered collector over a repository and merges the results.

    A run goes through DISCOVER -> BOOTSTRAP -> GENERATE -> MERGE -> FILTER ->
    DONE. Discovery and bootstrap run per project collector, in registry
    order. Generation attempts (one per project root, one per repository
    collector) run on a thread pool, and merging waits for all of them.

    Failures of a single collector or root are recorded as failed outcomes and
    never abort the run. The run fails only when nothing produced a BOM, or
    when it is cancelled.

    Example:
        cancel_event = threading.Event()
        executor = ShellExecutor(cancel_event)
        orchestrator = CollectionOrchestrator(
            create_default_registry(executor),
            cancel_event=cancel_event,
            excluded_scope=ComponentScope.OPTIONAL,
        )
        result = orchestrator.collect("/tmp/checkouts/my-repo-x1y2")
        print(len(result.bom.components))
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        executor: Optional[CommandExecutor] = None,
        cancel_event: Optional[threading.Event] = None,
        max_workers: Optional[int] = None,
        excluded_scope: Optional[ComponentScope] = None,
        cpe_attacher: Optional[CPEAttacher] = None,
    ) -> None:
        """
        Initialize the CollectionOrchestrator.

        Args:
            registry: Collectors to run. Defaults to the built-in per-project
                collectors backed by ``executor``.
            executor: Executor for the default registry (a ShellExecutor
                sharing ``cancel_event`` if not provided)
            cancel_event: Event that cancels the run when set
            max_workers: Thread pool size for generation
            excluded_scope: Drop components with this scope from the result
            cpe_attacher: Fill missing CPEs with this callable
        """
        self._cancel_event = cancel_event or threading.Event()
        if registry is None:
            registry = create_default_registry(executor or ShellExecutor(self._cancel_event))
        self._registry = registry
        self._max_workers = max_workers or DEFAULT_MAX_WORKERS
        self._excluded_scope = excluded_scope
        self._cpe_attacher = cpe_attacher
        self._state = CollectionState.DONE

    @property
    def registry(self) -> CollectorRegistry:
        """Get the collector registry."""
        return self._registry

    @property
    def state(self) -> CollectionState:
        return self._state

    def collect(self, repository_path: str) -> CollectionResult:
        """
        Collect, merge and filter the BOMs of a repository.

        Args:
            repository_path: Root of the checked-out repository

        Returns:
            CollectionResult with the final BOM and every generation outcome

        Raises:
            UnsupportedRepositoryError: If no collector produced a BOM
            CollectionCancelledError: If the run was cancelled
        """
        logger.info(f"Collecting BOMs for {repository_path} with {len(self._registry)} collector(s)")

        self._transition(CollectionState.DISCOVER)
        discovered = self._discover(repository_path)
        markers = [
            MarkerFile(path=path, collector_name=collector.name) for collector, paths in discovered for path in paths
        ]

        self._transition(CollectionState.BOOTSTRAP)
        tasks = self._bootstrap(discovered)
        tasks.extend((collector, repository_path) for collector in self._registry.repository_collectors)

        self._transition(CollectionState.GENERATE)
        outcomes = self._generate_all(tasks)

        self._transition(CollectionState.MERGE)
        boms = [outcome.bom for outcome in outcomes if outcome.success and outcome.bom is not None]
        if not boms:
            self._state = CollectionState.DONE
            raise UnsupportedRepositoryError(f"No collector produced a BOM for {repository_path}")
        bom = merge_boms(*boms)

        self._transition(CollectionState.FILTER)
        if self._excluded_scope is not None:
            bom = filter_out_by_scope(bom, self._excluded_scope)
        if self._cpe_attacher is not None:
            bom = attach_cpes(bom, self._cpe_attacher)

        self._transition(CollectionState.DONE)
        logger.info(
            f"Collected {len(bom.components)} component(s) from {len(boms)} partial BOM(s) "
            f"({len(outcomes) - len(boms)} failed)"
        )
        return CollectionResult(bom=bom, outcomes=outcomes, markers=markers)

    def _transition(self, state: CollectionState) -> None:
        if self._cancel_event.is_set():
            self._state = CollectionState.DONE
            raise CollectionCancelledError(f"Collection cancelled before {state.value}")
        logger.debug(f"Collection state: {self._state.value} -> {state.value}")
        self._state = state

    def _discover(self, repository_path: str) -> List[Tuple[ProjectCollector, List[str]]]:
        discovered = []
        for collector in self._registry.project_collectors:
            try:
                paths = find_roots(repository_path, collector.match)
            except NoRootsFoundError:
                logger.debug(f"{collector.name}: no roots found")
                continue
            except RootDiscoveryError as e:
                logger.warning(f"{collector.name}: root discovery failed: {e}")
                continue
            logger.info(f"{collector.name}: found {len(paths)} marker(s)")
            discovered.append((collector, paths))
        return discovered

    def _bootstrap(self, discovered: List[Tuple[ProjectCollector, List[str]]]) -> List[GenerationTask]:
        tasks: List[GenerationTask] = []
        for collector, paths in discovered:
            if self._cancel_event.is_set():
                raise CollectionCancelledError("Collection cancelled during bootstrap")
            try:
                roots = collector.bootstrap(paths)
            except (BootstrapError, CommandExecutionError, OSError) as e:
                logger.warning(f"{collector.name}: bootstrap failed, skipping collector: {e}")
                continue
            logger.info(f"{collector.name}: {len(roots)} root(s) to generate")
            tasks.extend((collector, root) for root in roots)
        return tasks

    def _generate_all(self, tasks: List[GenerationTask]) -> List[CollectionOutcome]:
        if not tasks:
            return []

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="collector") as pool:
            futures = [pool.submit(self._generate, collector, root) for collector, root in tasks]
            try:
                outcomes = [future.result() for future in futures]
            except CollectionCancelledError:
                pool.shutdown(wait=True, cancel_futures=True)
                self._state = CollectionState.DONE
                raise

        if self._cancel_event.is_set():
            self._state = CollectionState.DONE
            raise CollectionCancelledError("Collection cancelled during generation")
        return outcomes

    def _generate(self, collector: Union[ProjectCollector, RepositoryCollector], root: str) -> CollectionOutcome:
        if self._cancel_event.is_set():
            raise CollectionCancelledError(f"{collector.name} not started: collection cancelled")

        logger.info(f"{collector.name}: generating BOM for {root}")
        try:
            bom = collector.generate(root)
        except (GenerationError, CommandExecutionError, SBOMDecodeError) as e:
            logger.warning(f"{collector.name}: generation failed for {root}: {e}")
            return CollectionOutcome.failure_result(collector.name, root, str(e))
        except CollectionCancelledError:
            raise
        except Exception as e:
            logger.exception(f"{collector.name}: unexpected error generating BOM for {root}")
            return CollectionOutcome.failure_result(collector.name, root, f"Unexpected error: {e}")

        logger.info(f"{collector.name}: {len(bom.components)} component(s) from {root}")
        return CollectionOutcome.success_result(collector.name, root, bom)
