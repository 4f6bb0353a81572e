"""Ruby (Bundler) collector."""

import os

from cyclonedx.model.bom import Bom

from sbom_collector.exceptions import CommandExecutionError
from sbom_collector.logging_config import logger

from ..executor import CommandExecutor, run_first_successful
from ..protocol import CollectorKind
from ..roots import normalize, split_paths
from ..utils import BOOTSTRAP_TIMEOUT

GEMFILE = "Gemfile"
GEMFILE_LOCK = "Gemfile.lock"

# Current bundler first, then the versions old projects were locked with
BUNDLER_INSTALL_COMMANDS = [
    ["bundler", "install"],
    ["bundler", "_1.9_", "install"],
    ["bundler", "_1.17.3_", "install"],
]


class RubyCollector:
    """Collects Bundler dependencies with cdxgen, generating missing lockfiles first."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "ruby"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.PROJECT

    def match(self, is_dir: bool, path: str) -> bool:
        return not is_dir and os.path.basename(path) in (GEMFILE, GEMFILE_LOCK)

    def bootstrap(self, paths: list[str]) -> list[str]:
        markers = []
        for root in split_paths(paths):
            if root.has_only(GEMFILE):
                try:
                    run_first_successful(
                        self._executor,
                        BUNDLER_INSTALL_COMMANDS,
                        "bundler",
                        cwd=root.directory,
                        timeout=BOOTSTRAP_TIMEOUT,
                    )
                except CommandExecutionError as e:
                    logger.warning(f"Failed to bootstrap {root.directory}, skipping it: {e}")
                    continue
                markers.append(os.path.join(root.directory, GEMFILE_LOCK))
            else:
                markers.extend(os.path.join(root.directory, marker) for marker in root.markers)

        return [os.path.dirname(lockfile) for lockfile in normalize(GEMFILE_LOCK, markers)]

    def generate(self, root: str) -> Bom:
        return self._executor.bom_from_cdxgen(root, "ruby")
