"""Upload destination implementations."""

from .dependency_track import DependencyTrackConfig, DependencyTrackDestination

__all__ = [
    "DependencyTrackConfig",
    "DependencyTrackDestination",
]
