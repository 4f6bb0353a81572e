"""CLI module for sbom-collector.

This module provides the command-line interface. Every option can also be
set through an ``SBOM_COLLECTOR_*`` environment variable.
"""

from .main import (
    Config,
    build_config,
    cli,
    evaluate_boolean,
    main,
    run_pipeline,
)

__all__ = [
    "cli",
    "main",
    "Config",
    "build_config",
    "run_pipeline",
    "evaluate_boolean",
]
