"""Syft repository-wide collector, used for plain filesystem scans."""

from typing import Sequence

from cyclonedx.model.bom import Bom

from sbom_collector.exceptions import CommandExecutionError, GenerationError

from ..executor import CommandExecutor, bom_from_output
from ..protocol import CollectorKind
from ..utils import SYFT_TIMEOUT


class SyftCollector:
    """
    Scans a directory with ``syft scan dir:<path>``.

    Args:
        executor: Command executor
        exclude: Glob patterns passed to syft as ``--exclude``
    """

    def __init__(self, executor: CommandExecutor, exclude: Sequence[str] = ()) -> None:
        self._executor = executor
        self._exclude = tuple(exclude)

    @property
    def name(self) -> str:
        return "syft"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.REPOSITORY

    def generate(self, repository_root: str) -> Bom:
        cmd = ["syft", "scan", f"dir:{repository_root}", "-o", "cyclonedx-json"]
        for pattern in self._exclude:
            cmd.extend(["--exclude", pattern])
        try:
            output = self._executor.run(cmd, "syft", timeout=SYFT_TIMEOUT)
        except CommandExecutionError as e:
            raise GenerationError(f"syft failed for {repository_root}: {e}") from e
        return bom_from_output(output, "syft", "json")
