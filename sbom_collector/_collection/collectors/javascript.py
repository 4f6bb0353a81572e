"""JavaScript / TypeScript collector.

Markers are the npm, yarn, pnpm and bower manifests and lockfiles. A
``node_modules`` directory also counts, for projects that ship their installed
dependencies without any lockfile. Nothing inside ``node_modules`` is a marker.
"""

import os

from cyclonedx.model.bom import Bom

from sbom_collector.exceptions import CommandExecutionError
from sbom_collector.logging_config import logger

from ..executor import CommandExecutor, run_first_successful
from ..protocol import CollectorKind
from ..roots import is_under, split_paths
from ..utils import BOOTSTRAP_TIMEOUT

JAVASCRIPT_MARKERS = ("yarn.lock", "bower.json", "package.json", "pnpm-lock.yaml", "package-lock.json")
NODE_MODULES = "node_modules"

# Tried in order until one succeeds
INSTALL_COMMANDS = [
    ["pnpm", "install"],
    ["npm", "install"],
    ["yarn", "install"],
]


class JavaScriptCollector:
    """
    Collects npm-ecosystem dependencies with cdxgen.

    A directory with a bare package.json has no resolved versions yet, so it
    is installed first. Directories that can't be installed are skipped.
    """

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "javascript"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.PROJECT

    def match(self, is_dir: bool, path: str) -> bool:
        if is_under(path, NODE_MODULES):
            return False
        filename = os.path.basename(path)
        if is_dir:
            return filename == NODE_MODULES
        return filename in JAVASCRIPT_MARKERS

    def bootstrap(self, paths: list[str]) -> list[str]:
        roots = []
        for root in split_paths(paths):
            if root.has_only("package.json"):
                try:
                    run_first_successful(
                        self._executor, INSTALL_COMMANDS, "install", cwd=root.directory, timeout=BOOTSTRAP_TIMEOUT
                    )
                except CommandExecutionError as e:
                    logger.warning(f"Failed to bootstrap {root.directory}, skipping it: {e}")
                    continue
            roots.append(root.directory)
        return roots

    def generate(self, root: str) -> Bom:
        return self._executor.bom_from_cdxgen(root, "javascript")
