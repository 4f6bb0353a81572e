"""Rich console utilities for sbom-collector.

This module provides a shared Rich Console instance and helper functions for
CLI output. Everything is written to stderr so that a BOM printed to stdout
can be piped as-is.
"""

import os
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

# Detect CI environments
IS_GITHUB_ACTIONS = os.getenv("GITHUB_ACTIONS") == "true"
IS_CI = os.getenv("CI") == "true" or IS_GITHUB_ACTIONS

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "step": "bold blue",
        "highlight": "magenta",
    }
)

# Shared console instance
console = Console(
    theme=custom_theme,
    stderr=True,
    force_terminal=IS_GITHUB_ACTIONS or None,
    color_system="auto",
)


def print_banner(version: str = "unknown") -> None:
    """Print the one-line run header."""
    version_display = f"v{version}" if version and version[0:1].isdigit() else version
    console.print(f"[step]sbom-collector[/step] [highlight]{version_display}[/highlight]")


def print_step_header(title: str) -> None:
    """
    Print a styled step header.

    In GitHub Actions, uses ::group:: for collapsible sections.
    """
    if IS_GITHUB_ACTIONS:
        print(f"::group::{title}")
        console.print(f"[step]{title}[/step]")
    else:
        console.print()
        console.rule(f"[step]{title}[/step]", style="blue")


def print_step_end() -> None:
    """Close a GitHub Actions group opened by print_step_header."""
    if IS_GITHUB_ACTIONS:
        print("::endgroup::")


def print_summary_table(
    title: str,
    data: List[Tuple[str, Any]],
    show_if_empty: bool = False,
) -> None:
    """
    Print a summary table.

    Args:
        title: Table title
        data: List of (label, value) tuples
        show_if_empty: Whether to show the table if all values are 0/empty
    """
    if not show_if_empty:
        data = [(label, value) for label, value in data if value]

    if not data:
        return

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    for label, value in data:
        table.add_row(label, str(value))

    console.print(table)


def print_collection_summary(summary: Dict[str, Dict[str, int]], total_components: int) -> None:
    """
    Print per-collector results as a Rich table.

    Args:
        summary: Mapping of collector name to {"roots", "failed", "components"}
        total_components: Component count of the merged BOM
    """
    if not summary:
        return

    table = Table(title="Collection Summary", show_header=True, header_style="bold")
    table.add_column("Collector", style="cyan")
    table.add_column("Roots", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Components", justify="right")

    for name, counts in sorted(summary.items()):
        failed = counts.get("failed", 0)
        table.add_row(
            name,
            str(counts.get("roots", 0)),
            f"[error]{failed}[/error]" if failed else "0",
            str(counts.get("components", 0)),
        )

    console.print(table)
    console.print(f"Merged BOM: [highlight]{total_components}[/highlight] unique component(s)")


def print_upload_summary(
    destination: str,
    success: bool,
    project: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    """
    Print upload result summary.

    Args:
        destination: Upload destination name
        success: Whether upload succeeded
        project: Optional project name the BOM was uploaded to
        error_message: Optional error message if failed
    """
    if success:
        console.print(f"[success]✓ Uploaded to {destination}[/success]")
        if project:
            console.print(f"  Project: {project}")
    else:
        console.print(f"[error]✗ Upload to {destination} failed[/error]")
        if error_message:
            console.print(f"  Error: {error_message}")


def print_final_failure(message: str) -> None:
    """Print final failure message."""
    if IS_GITHUB_ACTIONS:
        print(f"::error title=SBOM Collection Failed::{message}")
    else:
        console.print(f"[error]✗ {message}[/error]")
