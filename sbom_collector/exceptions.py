"""Custom exceptions for sbom-collector."""


class SbomCollectorError(Exception):
    """Base exception for all sbom-collector operations."""


class ConfigurationError(SbomCollectorError):
    """Raised when configuration validation fails."""


class CommandExecutionError(SbomCollectorError):
    """Raised when external command execution fails."""


class CollectionCancelledError(SbomCollectorError):
    """Raised when a collection run is cancelled by the operator or a deadline."""


class RootDiscoveryError(SbomCollectorError):
    """Raised when walking a tree for collection roots fails."""


class NoRootsFoundError(SbomCollectorError):
    """Raised when a collector's predicate matched nothing in a tree."""


class BootstrapError(SbomCollectorError):
    """Raised when materializing lock data for a collection root fails."""


class GenerationError(SbomCollectorError):
    """Raised when an external generator fails to produce a BOM."""


class UnsupportedRepositoryError(SbomCollectorError):
    """Raised when no collector produced any BOM for a repository."""


class MergeRejectedError(SbomCollectorError):
    """Raised when the merge engine receives an empty list or a missing BOM."""


class BadFormatError(SbomCollectorError):
    """Raised when an unknown BOM encoding is requested."""


class SBOMDecodeError(SbomCollectorError):
    """Raised when BOM bytes cannot be decoded."""


class CheckoutError(SbomCollectorError):
    """Raised when a repository cannot be checked out."""


class APIError(SbomCollectorError):
    """Raised when API operations fail."""
