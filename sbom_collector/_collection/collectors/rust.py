"""Rust (Cargo) collector."""

import os

from cyclonedx.model.bom import Bom

from ..executor import CommandExecutor
from ..protocol import CollectorKind
from ..roots import squash

RUST_MARKERS = ("Cargo.toml", "Cargo.lock")


class RustCollector:
    """Collects Cargo dependencies with cdxgen."""

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "rust"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.PROJECT

    def match(self, is_dir: bool, path: str) -> bool:
        return not is_dir and os.path.basename(path) in RUST_MARKERS

    def bootstrap(self, paths: list[str]) -> list[str]:
        return squash(paths)

    def generate(self, root: str) -> Bom:
        return self._executor.bom_from_cdxgen(root, "rust")
