"""retire.js repository-wide collector.

retire.js finds vendored JavaScript libraries (copied ``jquery.min.js`` and
the like) that no package manifest declares.
"""

from cyclonedx.model.bom import Bom

from sbom_collector.exceptions import CommandExecutionError, GenerationError

from ..executor import CommandExecutor, bom_from_output
from ..protocol import CollectorKind
from ..utils import RETIREJS_TIMEOUT


class RetireJSCollector:
    """Scans the repository's JavaScript files with retire.js (CycloneDX XML on stdout)."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "retirejs"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.REPOSITORY

    def generate(self, repository_root: str) -> Bom:
        cmd = ["retire", "--jspath", repository_root, "--outputformat", "cyclonedx", "--exitwith", "0"]
        try:
            output = self._executor.run(cmd, "retire", timeout=RETIREJS_TIMEOUT)
        except CommandExecutionError as e:
            raise GenerationError(f"retire.js failed for {repository_root}: {e}") from e
        return bom_from_output(output, "retire.js", "xml")
