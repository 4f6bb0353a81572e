"""Collector plugin implementations.

Per-project collectors (discover their own roots):
- GolangCollector: go.mod / go.sum / Gopkg.lock
- JavaScriptCollector: npm, yarn, pnpm and bower projects
- JVMCollector: Maven, Gradle and sbt builds
- PythonCollector: pip, pipenv, poetry and conda projects
- RubyCollector: Bundler projects
- RustCollector: Cargo projects

Repository-wide collectors (scan the whole tree once):
- TrivyCollector, RetireJSCollector, CdxgenRecursiveCollector, SyftCollector
"""

from .cdxgen import CdxgenRecursiveCollector
from .golang import GolangCollector
from .javascript import JavaScriptCollector
from .jvm import JVMCollector
from .python import PythonCollector
from .retirejs import RetireJSCollector
from .ruby import RubyCollector
from .rust import RustCollector
from .syft import SyftCollector
from .trivy import TrivyCollector

__all__ = [
    "CdxgenRecursiveCollector",
    "GolangCollector",
    "JavaScriptCollector",
    "JVMCollector",
    "PythonCollector",
    "RetireJSCollector",
    "RubyCollector",
    "RustCollector",
    "SyftCollector",
    "TrivyCollector",
]
