"""cdxgen recursive repository-wide collector."""

import tempfile
from pathlib import Path

from cyclonedx.model.bom import Bom

from sbom_collector.exceptions import CommandExecutionError, GenerationError

from ..executor import CommandExecutor, cdxgen_env, read_cdxgen_output
from ..protocol import CollectorKind
from ..utils import CDXGEN_RECURSIVE_TIMEOUT


class CdxgenRecursiveCollector:
    """
    Runs cdxgen in recursive mode over the whole repository.

    Licenses are not fetched; the recursive scan is already the slowest
    collector.
    """

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "cdxgen"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.REPOSITORY

    def generate(self, repository_root: str) -> Bom:
        with tempfile.TemporaryDirectory(prefix="cdxgen-") as output_dir:
            output_file = Path(output_dir) / "bom.json"
            cmd = ["cdxgen", "--recursive", "-o", str(output_file)]
            try:
                stdout = self._executor.run(
                    cmd,
                    "cdxgen",
                    timeout=CDXGEN_RECURSIVE_TIMEOUT,
                    cwd=repository_root,
                    env=cdxgen_env(fetch_license=False),
                )
            except CommandExecutionError as e:
                raise GenerationError(f"cdxgen failed for {repository_root}: {e}") from e
            return read_cdxgen_output(stdout, output_file)
