"""JVM collector (Maven, Gradle, sbt)."""

import os
from typing import Optional

from cyclonedx.model.bom import Bom

from sbom_collector._merge.merge import merge_boms
from sbom_collector.exceptions import GenerationError
from sbom_collector.logging_config import logger

from ..executor import CommandExecutor
from ..protocol import CollectorKind
from ..roots import squash

JVM_MARKERS = ("pom.xml", "gradlew", "sbt", "build.sbt")


class JVMCollector:
    """
    Collects Maven, Gradle and sbt dependencies with cdxgen.

    Gradle multi-project builds only resolve when cdxgen runs in multi-project
    mode. When a single-module run fails or finds no components, the root is
    generated again in that mode, and both results are merged if both exist.
    """

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "jvm"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.PROJECT

    def match(self, is_dir: bool, path: str) -> bool:
        return not is_dir and os.path.basename(path) in JVM_MARKERS

    def bootstrap(self, paths: list[str]) -> list[str]:
        return squash(paths)

    def generate(self, root: str) -> Bom:
        single: Optional[Bom] = None
        try:
            single = self._executor.bom_from_cdxgen(root, "jvm")
        except GenerationError as e:
            logger.info(f"Single-module generation failed in {root}: {e}")

        if single is not None and len(single.components) > 0:
            return single

        logger.info(f"Retrying {root} in multi-module mode")
        try:
            multi = self._executor.bom_from_cdxgen(root, "jvm", multi_module=True)
        except GenerationError:
            if single is not None:
                return single
            raise

        if single is None:
            return multi
        return merge_boms(single, multi)
