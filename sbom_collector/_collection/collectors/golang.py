"""Go modules collector.

Markers: go.mod, go.sum and dep's Gopkg.lock, outside of vendor/ trees.
"""

import os

from cyclonedx.model.bom import Bom

from ..executor import CommandExecutor
from ..protocol import CollectorKind
from ..roots import is_under, squash

GOLANG_MARKERS = ("go.mod", "go.sum", "Gopkg.lock")


class GolangCollector:
    """Collects Go module dependencies with cdxgen."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "golang"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.PROJECT

    def match(self, is_dir: bool, path: str) -> bool:
        if is_dir or is_under(path, "vendor"):
            return False
        return os.path.basename(path) in GOLANG_MARKERS

    def bootstrap(self, paths: list[str]) -> list[str]:
        return squash(paths)

    def generate(self, root: str) -> Bom:
        return self._executor.bom_from_cdxgen(root, "golang")
