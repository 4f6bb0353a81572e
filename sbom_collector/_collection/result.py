"""Result dataclasses for SBOM collection."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from cyclonedx.model.bom import Bom

from .protocol import MarkerFile


@dataclass
class CollectionOutcome:
    """
    Result of one generation attempt (one collector, one root).

    Attributes:
        success: Whether the attempt produced a BOM
        collector_name: Name of the collector
        root: Root directory the attempt ran on
        bom: The partial BOM (if successful)
        error_message: Error message if the attempt failed
    """

    success: bool
    collector_name: str
    root: str
    bom: Optional[Bom] = None
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate result state."""
        if self.success and self.bom is None:
            raise ValueError("Successful outcome must have a bom")
        if not self.success and not self.error_message:
            raise ValueError("Failed outcome must have error_message")

    @property
    def component_count(self) -> int:
        """Number of components in the partial BOM (0 on failure)."""
        return len(self.bom.components) if self.bom is not None else 0

    @classmethod
    def success_result(cls, collector_name: str, root: str, bom: Bom) -> "CollectionOutcome":
        """Create a successful outcome."""
        return cls(success=True, collector_name=collector_name, root=root, bom=bom)

    @classmethod
    def failure_result(cls, collector_name: str, root: str, error_message: str) -> "CollectionOutcome":
        """Create a failed outcome."""
        return cls(success=False, collector_name=collector_name, root=root, error_message=error_message)


@dataclass
class CollectionResult:
    """
    Result of a full collection run over one repository.

    Attributes:
        bom: The merged and filtered BOM
        outcomes: Every generation attempt, in submission order
        markers: Marker files found during discovery
    """

    bom: Bom
    outcomes: List[CollectionOutcome] = field(default_factory=list)
    markers: List[MarkerFile] = field(default_factory=list)

    @property
    def failures(self) -> List[CollectionOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    def summary(self) -> Dict[str, Dict[str, int]]:
        """
        Per-collector counts of roots, failures and collected components.

        Returns:
            Mapping of collector name to {"roots", "failed", "components"}
        """
        summary: Dict[str, Dict[str, int]] = {}
        for outcome in self.outcomes:
            entry = summary.setdefault(outcome.collector_name, {"roots": 0, "failed": 0, "components": 0})
            entry["roots"] += 1
            if outcome.success:
                entry["components"] += outcome.component_count
            else:
                entry["failed"] += 1
        return summary
