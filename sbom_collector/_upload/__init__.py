"""BOM Upload Plugin Architecture.

Usage:
    from sbom_collector._upload import DependencyTrackDestination, UploadInput

    destination = DependencyTrackDestination()
    if destination.is_configured():
        result = destination.upload(UploadInput(bom_data=bom_json, project_name="my-repo", tags=["acme"]))
"""

from .destinations import DependencyTrackConfig, DependencyTrackDestination
from .protocol import Destination, DestinationConfig, UploadInput
from .result import UploadResult

__all__ = [
    "DependencyTrackConfig",
    "DependencyTrackDestination",
    "Destination",
    "DestinationConfig",
    "UploadInput",
    "UploadResult",
]
