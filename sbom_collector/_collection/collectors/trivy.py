"""Trivy repository-wide collector."""

from cyclonedx.model.bom import Bom

from sbom_collector.exceptions import CommandExecutionError, GenerationError

from ..executor import CommandExecutor, bom_from_output
from ..protocol import CollectorKind
from ..utils import TRIVY_TIMEOUT


class TrivyCollector:
    """Scans the whole repository with ``trivy fs`` (CycloneDX JSON on stdout)."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "trivy"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.REPOSITORY

    def generate(self, repository_root: str) -> Bom:
        cmd = ["trivy", "--quiet", "fs", "--format", "cyclonedx", repository_root]
        try:
            output = self._executor.run(cmd, "trivy", timeout=TRIVY_TIMEOUT)
        except CommandExecutionError as e:
            raise GenerationError(f"trivy failed for {repository_root}: {e}") from e
        return bom_from_output(output, "trivy", "json")
