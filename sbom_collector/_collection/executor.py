"""Execution boundary between collectors and external generators."""

import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from cyclonedx.model.bom import Bom

from sbom_collector.exceptions import CommandExecutionError, GenerationError, SBOMDecodeError
from sbom_collector.logging_config import logger
from sbom_collector.serialization import decode_bom

from .utils import (
    CDXGEN_LICENSE_TIMEOUT,
    CDXGEN_TIMEOUT,
    DEFAULT_TIMEOUT,
    FAILURE_MARKER,
    Command,
    run_command,
)

CDXGEN_OUTPUT_FILE = "bom.json"


class CommandExecutor(Protocol):
    """
    Protocol for running external tools.

    Collectors never spawn processes themselves; they go through an executor
    so that tests can substitute a fake.
    """

    def run(
        self,
        cmd: Command,
        command_name: str,
        timeout: int = DEFAULT_TIMEOUT,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Run a command and return its stdout.

        Raises:
            CommandExecutionError: If the command fails
            CollectionCancelledError: If the run was cancelled
        """
        ...

    def bom_from_cdxgen(self, root: str, language: str, multi_module: bool = False) -> Bom:
        """
        Run cdxgen for one ecosystem in ``root`` and decode its output.

        Raises:
            GenerationError: If cdxgen produced no usable BOM
            CollectionCancelledError: If the run was cancelled
        """
        ...


def check_cdxgen_output(output: str) -> None:
    """
    Reject empty cdxgen output or cdxgen's failure marker.

    Raises:
        GenerationError: If the output is not a BOM
    """
    if not output.strip():
        raise GenerationError("cdxgen produced an empty BOM")
    if output.lstrip().startswith(FAILURE_MARKER):
        raise GenerationError(f"cdxgen failed: {output.strip()}")


def read_cdxgen_output(stdout: str, output_file: Path) -> Bom:
    """
    Decode the BOM cdxgen wrote to ``output_file``.

    Raises:
        GenerationError: If cdxgen reported a failure or wrote no usable BOM
    """
    if stdout.lstrip().startswith(FAILURE_MARKER):
        raise GenerationError(f"cdxgen failed: {stdout.strip()}")
    if not output_file.exists():
        raise GenerationError("cdxgen wrote no BOM")
    try:
        output = output_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise GenerationError(f"Can't read cdxgen output {output_file}: {e}") from e
    check_cdxgen_output(output)
    return bom_from_output(output, "cdxgen", "json")


def cdxgen_env(fetch_license: bool, multi_module: bool = False) -> Dict[str, str]:
    """Environment for a cdxgen run."""
    env = dict(os.environ)
    env["FETCH_LICENSE"] = "true" if fetch_license else "false"
    if multi_module:
        env["GRADLE_MULTI_PROJECT_MODE"] = "1"
    else:
        env.pop("GRADLE_MULTI_PROJECT_MODE", None)
    return env


class ShellExecutor:
    """
    CommandExecutor that runs real processes.

    Every process is started in its own process group and is terminated when
    ``cancel_event`` is set.
    """

    def __init__(self, cancel_event: Optional[threading.Event] = None) -> None:
        self._cancel_event = cancel_event or threading.Event()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def run(
        self,
        cmd: Command,
        command_name: str,
        timeout: int = DEFAULT_TIMEOUT,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        return run_command(cmd, command_name, timeout=timeout, cwd=cwd, env=env, cancel_event=self._cancel_event)

    def bom_from_cdxgen(self, root: str, language: str, multi_module: bool = False) -> Bom:
        """Run cdxgen with license fetching, falling back to a run without it."""
        try:
            return self._run_cdxgen(root, language, multi_module, fetch_license=True)
        except (CommandExecutionError, GenerationError) as e:
            logger.warning(f"cdxgen with license fetching failed in {root}: {e}. Retrying without licenses")
        try:
            return self._run_cdxgen(root, language, multi_module, fetch_license=False)
        except CommandExecutionError as e:
            raise GenerationError(f"cdxgen failed for {language} in {root}: {e}") from e

    def _run_cdxgen(self, root: str, language: str, multi_module: bool, fetch_license: bool) -> Bom:
        with tempfile.TemporaryDirectory(prefix="cdxgen-") as output_dir:
            output_file = Path(output_dir) / CDXGEN_OUTPUT_FILE
            cmd: List[str] = ["cdxgen", "--no-install-deps", "--type", language, "-o", str(output_file)]
            stdout = self.run(
                cmd,
                "cdxgen",
                timeout=CDXGEN_LICENSE_TIMEOUT if fetch_license else CDXGEN_TIMEOUT,
                cwd=root,
                env=cdxgen_env(fetch_license, multi_module),
            )
            return read_cdxgen_output(stdout, output_file)


def run_first_successful(
    executor: CommandExecutor,
    commands: List[List[str]],
    command_name: str,
    cwd: str,
    timeout: int = DEFAULT_TIMEOUT,
) -> str:
    """
    Run alternative commands in order until one succeeds.

    Returns:
        stdout of the first successful command

    Raises:
        CommandExecutionError: If every alternative failed
    """
    errors = []
    for cmd in commands:
        try:
            return executor.run(cmd, command_name, timeout=timeout, cwd=cwd)
        except CommandExecutionError as e:
            logger.debug(f"{' '.join(cmd)} failed in {cwd}: {e}")
            errors.append(str(e))
    raise CommandExecutionError(f"All {command_name} alternatives failed in {cwd}: {'; '.join(errors)}")


def bom_from_output(output: str, tool: str, fmt: Optional[str] = None) -> Bom:
    """
    Decode a generator's output, treating empty or undecodable output as a failure.

    Raises:
        GenerationError: If the output is not a BOM
    """
    if not output.strip():
        raise GenerationError(f"{tool} produced an empty BOM")
    try:
        return decode_bom(output, fmt)
    except SBOMDecodeError as e:
        raise GenerationError(f"{tool} output is not a BOM: {e}") from e
