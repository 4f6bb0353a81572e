"""Post-processors applied to merged BOMs.

Each filter returns a new Bom and leaves its input untouched.
"""

import copy
import time
from typing import Callable, Optional

from cyclonedx.model import Property
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentScope
from cyclonedx.model.dependency import Dependency

from sbom_collector.logging_config import logger

CPE_TEMPLATE = "cpe:2.3:a:%s:%s:%s:*:*:*:*:*:*:*"
CREATED_AT_PROPERTY = "createdAt"

CPEAttacher = Callable[[Component], Optional[str]]


def _cpe_sanitize(value: str) -> str:
    return value.replace(":", "")


def cpe_from_component(component: Component) -> str:
    """
    Build a CPE 2.3 string for a component.

    The vendor part is the component's group, else its author, else its name.
    """
    vendor = component.group or component.author or component.name
    return CPE_TEMPLATE % (
        _cpe_sanitize(vendor),
        _cpe_sanitize(component.name),
        _cpe_sanitize(component.version or ""),
    )


def filter_out_by_scope(bom: Bom, scope: ComponentScope) -> Bom:
    """
    Drop components with the given scope, and their dependency entries.

    A BOM without components is returned as-is.
    """
    if len(bom.components) == 0:
        return bom

    result = copy.deepcopy(bom)
    removed = {c.bom_ref.value for c in result.components if c.scope == scope and c.bom_ref.value}
    kept = [c for c in result.components if c.scope != scope]
    dropped = len(result.components) - len(kept)
    result.components = kept

    if removed:
        result.dependencies = [
            Dependency(
                ref=dependency.ref,
                dependencies=[child for child in dependency.dependencies if child.ref.value not in removed],
            )
            for dependency in result.dependencies
            if dependency.ref.value not in removed
        ]

    logger.debug(f"Filtered out {dropped} component(s) with scope {scope.value}")
    return result


def attach_cpes(bom: Bom, attacher: CPEAttacher = cpe_from_component) -> Bom:
    """
    Fill in CPEs for components that have none.

    Args:
        bom: The BOM to process
        attacher: Callable returning a CPE for a component (or None to skip it)

    Returns:
        A new Bom
    """
    result = copy.deepcopy(bom)
    attached = 0
    for component in result.components:
        if component.cpe:
            continue
        cpe = attacher(component)
        if cpe:
            component.cpe = cpe
            attached += 1
    logger.debug(f"Attached CPEs to {attached} component(s)")
    return result


def strip_cpes(bom: Bom) -> Bom:
    """Remove the CPE of every component."""
    result = copy.deepcopy(bom)
    for component in result.components:
        component.cpe = None
    return result


def set_created_at_property(bom: Bom, created_at: Optional[int] = None) -> Bom:
    """
    Add a BOM-level ``createdAt`` property holding a unix timestamp.

    Args:
        bom: The BOM to process
        created_at: Unix timestamp (defaults to now)

    Returns:
        A new Bom
    """
    result = copy.deepcopy(bom)
    timestamp = int(time.time()) if created_at is None else created_at
    result.properties.add(Property(name=CREATED_AT_PROPERTY, value=str(timestamp)))
    return result
