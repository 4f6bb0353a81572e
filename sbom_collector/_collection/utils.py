"""Shared utilities for SBOM collection."""

import os
import signal
import subprocess
import threading
import time
from typing import Dict, List, Optional, Union

from sbom_collector.exceptions import CollectionCancelledError, CommandExecutionError
from sbom_collector.logging_config import logger

# Per-command timeouts in seconds
CDXGEN_LICENSE_TIMEOUT = 15 * 60
CDXGEN_TIMEOUT = 10 * 60
CDXGEN_RECURSIVE_TIMEOUT = 15 * 60
TRIVY_TIMEOUT = 5 * 60
RETIREJS_TIMEOUT = 2 * 60
SYFT_TIMEOUT = 15 * 60
BOOTSTRAP_TIMEOUT = 10 * 60
GIT_TIMEOUT = 10 * 60

# Default command timeout in seconds
DEFAULT_TIMEOUT = 30 * 60

# Progress indicator interval in seconds
PROGRESS_INTERVAL = 60

# How often a running command checks for cancellation, in seconds
POLL_INTERVAL = 0.5

# Seconds to wait after SIGTERM before sending SIGKILL
KILL_GRACE_PERIOD = 5

# cdxgen reports some failures on stdout with a zero exit code
FAILURE_MARKER = "Unable to produce BOM"

Command = Union[List[str], str]


def log_command_error(command_name: str, stderr: str) -> None:
    """
    Log command errors with a standardized format.

    Args:
        command_name: The name of the command that failed
        stderr: The stderr output from the command
    """
    if stderr:
        logger.error(f"[{command_name}] error: {stderr.strip()}")


def _terminate(process: subprocess.Popen) -> None:
    """Terminate a command's whole process group, escalating to SIGKILL."""
    try:
        os.killpg(process.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        process.wait(timeout=KILL_GRACE_PERIOD)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        process.wait()


def run_command(
    cmd: Command,
    command_name: str,
    timeout: int = DEFAULT_TIMEOUT,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    cancel_event: Optional[threading.Event] = None,
    display: Optional[str] = None,
) -> str:
    """
    Run a command and return its stdout.

    The command runs in its own process group so that cancellation and
    timeouts also stop the children it spawns. For long-running commands,
    logs progress every PROGRESS_INTERVAL seconds.

    Args:
        cmd: Command to run as a list (or a shell string)
        command_name: Name of the command for error reporting
        timeout: Command timeout in seconds
        cwd: Working directory for the command (optional)
        env: Full environment for the command (optional, inherits by default)
        cancel_event: Event that aborts the command when set (optional)
        display: Command text to log instead of ``cmd`` (optional)

    Returns:
        The command's stdout

    Raises:
        CommandExecutionError: If the command fails, times out or is missing
        CollectionCancelledError: If ``cancel_event`` was set while running
    """
    shell = isinstance(cmd, str)
    printable = display or (cmd if shell else " ".join(cmd))
    cwd_info = f" (cwd: {cwd})" if cwd else ""
    logger.info(f"Running command: {printable}{cwd_info}")

    if cancel_event is not None and cancel_event.is_set():
        raise CollectionCancelledError(f"{command_name} not started: collection cancelled")

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            shell=shell,
            cwd=cwd,
            env=env,
            start_new_session=True,
        )
    except FileNotFoundError:
        logger.error(f"{command_name} command not found")
        raise CommandExecutionError(f"{command_name} command not found - is it installed?")

    start_time = time.time()
    last_progress = start_time

    while True:
        try:
            stdout, stderr = process.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            pass

        now = time.time()
        elapsed = int(now - start_time)

        if cancel_event is not None and cancel_event.is_set():
            logger.warning(f"Cancelling {command_name} after {elapsed}s")
            _terminate(process)
            raise CollectionCancelledError(f"{command_name} cancelled")

        if elapsed >= timeout:
            logger.error(f"{command_name} command timed out after {elapsed}s (limit: {timeout}s)")
            _terminate(process)
            raise CommandExecutionError(f"{command_name} command timed out")

        if now - last_progress >= PROGRESS_INTERVAL:
            last_progress = now
            minutes, seconds = divmod(elapsed, 60)
            logger.info(f"{command_name} still running... ({minutes}m {seconds}s elapsed, timeout: {timeout // 60}m)")

    if process.returncode != 0:
        logger.error(f"{command_name} command failed with return code {process.returncode}")
        log_command_error(command_name, stderr or "")
        raise CommandExecutionError(f"{command_name} command failed with return code {process.returncode}")

    return stdout or ""
