"""Python collector (pip, pipenv, poetry, conda)."""

import os
import re

from cyclonedx.model.bom import Bom

from sbom_collector.logging_config import logger

from ..executor import CommandExecutor
from ..protocol import CollectorKind
from ..roots import split_paths, squash

PYTHON_MARKERS = ("setup.py", "requirements.txt", "Pipfile.lock", "poetry.lock")
CONDA_DEV_ENVIRONMENTS = ("environment-dev.yml", "environment-dev.yaml")
REQUIREMENTS_FILE = "requirements.txt"

CONDA_ENV_PATTERN = re.compile(r"environment.*\.ya?ml")
CONDA_DEPENDENCY_PATTERN = re.compile(r"- .*=\d.*")
# name=1.2 with a single "=", which pip reads only as name==1.2
CONDA_LOOSE_DEPENDENCY_PATTERN = re.compile(r"^[\w-]*=\d.*$")


def is_conda_environment(filename: str) -> bool:
    if filename in CONDA_DEV_ENVIRONMENTS:
        return False
    return CONDA_ENV_PATTERN.search(filename) is not None


def conda_requirements(environment: str) -> list[str]:
    """
    Extract pinned dependencies from a conda environment file.

    Args:
        environment: Contents of an environment.yml

    Returns:
        requirements.txt lines, in file order
    """
    requirements = []
    for match in CONDA_DEPENDENCY_PATTERN.findall(environment):
        dependency = match[len("- ") :] if match.startswith("- ") else match
        if CONDA_LOOSE_DEPENDENCY_PATTERN.match(dependency) and len(dependency.split("=")) == 2:
            dependency = "==".join(dependency.split("="))
        requirements.append(dependency)
    return requirements


class PythonCollector:
    """
    Collects Python dependencies with cdxgen.

    cdxgen doesn't read conda environments, so bootstrap folds their pinned
    dependencies into the directory's requirements.txt.
    """

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    @property
    def name(self) -> str:
        return "python"

    @property
    def kind(self) -> CollectorKind:
        return CollectorKind.PROJECT

    def match(self, is_dir: bool, path: str) -> bool:
        if is_dir:
            return False
        filename = os.path.basename(path)
        return filename in PYTHON_MARKERS or is_conda_environment(filename)

    def bootstrap(self, paths: list[str]) -> list[str]:
        self.conda_to_requirements(paths)
        return squash(paths)

    def conda_to_requirements(self, paths: list[str]) -> None:
        """Write the conda dependencies of each root into its requirements.txt."""
        for root in split_paths(paths):
            requirements: list[str] = []
            for marker in root.markers:
                if not is_conda_environment(marker):
                    continue
                try:
                    with open(os.path.join(root.directory, marker), encoding="utf-8") as f:
                        requirements.extend(conda_requirements(f.read()))
                except OSError as e:
                    logger.warning(f"Can't read conda environment {marker} in {root.directory}: {e}")

            if not requirements:
                continue

            requirements_path = os.path.join(root.directory, REQUIREMENTS_FILE)
            if os.path.exists(requirements_path):
                with open(requirements_path, encoding="utf-8") as f:
                    requirements.extend(f.read().split())

            try:
                with open(requirements_path, "w", encoding="utf-8") as f:
                    f.write("\n".join(sorted(set(requirements))))
            except OSError as e:
                logger.warning(f"Can't write {requirements_path}: {e}")
                continue
            logger.debug(f"Wrote {len(set(requirements))} conda requirement(s) to {requirements_path}")

    def generate(self, root: str) -> Bom:
        return self._executor.bom_from_cdxgen(root, "python")
