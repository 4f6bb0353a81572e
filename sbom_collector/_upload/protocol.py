"""Destination protocol for BOM upload plugins.

This module defines the core protocol and types for the upload plugin system.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from .result import UploadResult


@dataclass
class UploadInput:
    """
    Input parameters for a BOM upload (BOM-specific, not destination-specific).

    Attributes:
        bom_data: Encoded CycloneDX JSON document
        project_name: Name of the project the BOM belongs to
        tags: Project tags (e.g. the owning organization or team)
        code_owners: E-mail addresses of the project's maintainers
    """

    bom_data: str
    project_name: str
    tags: List[str] = field(default_factory=list)
    code_owners: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate input parameters."""
        if not self.bom_data:
            raise ValueError("bom_data is required")
        if not self.project_name:
            raise ValueError("project_name is required")


class DestinationConfig(ABC):
    """
    Abstract base class for destination-specific configuration.

    Destinations implement their own config class that loads from namespaced
    environment variables (e.g., DTRACK_API_KEY).
    """

    ENV_PREFIX: str = ""

    @classmethod
    @abstractmethod
    def from_env(cls) -> Optional["DestinationConfig"]:
        """
        Load configuration from environment variables.

        Returns:
            Config instance if required env vars are set, None otherwise.
        """
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if this destination is configured for upload."""
        ...

    @classmethod
    def _get_env(cls, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get environment variable with prefix."""
        full_key = f"{cls.ENV_PREFIX}_{key}" if cls.ENV_PREFIX else key
        return os.getenv(full_key, default)

    @classmethod
    def _get_env_int(cls, key: str, default: int) -> int:
        """Get integer environment variable with prefix."""
        value = cls._get_env(key)
        if value is None or not value.strip():
            return default
        try:
            return int(value)
        except ValueError:
            return default


class Destination(Protocol):
    """
    Protocol defining the interface for upload destination plugins.

    Example:
        class DependencyTrackDestination:
            name = "dependency-track"

            def is_configured(self) -> bool:
                return self._config is not None

            def upload(self, input: UploadInput) -> UploadResult:
                # Create the project, upload the BOM and return the result
                ...
    """

    @property
    def name(self) -> str:
        """
        Human-readable name of this destination.

        Used for logging and tracking which destination uploaded the BOM.
        """
        ...

    def is_configured(self) -> bool:
        """Check if this destination is configured and ready for upload."""
        ...

    def upload(self, input: UploadInput) -> "UploadResult":
        """
        Upload a BOM to this destination.

        Args:
            input: UploadInput with the encoded BOM and project details

        Returns:
            UploadResult with upload outcome and metadata
        """
        ...
