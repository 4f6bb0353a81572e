"""BOM merge engine and post-processors.

Usage:
    from sbom_collector._merge import merge_boms, filter_out_by_scope

    merged = merge_boms(golang_bom, trivy_bom)
    merged = filter_out_by_scope(merged, ComponentScope.OPTIONAL)
"""

from .filters import (
    CPE_TEMPLATE,
    attach_cpes,
    cpe_from_component,
    filter_out_by_scope,
    set_created_at_property,
    strip_cpes,
)
from .merge import (
    TOOL_NAME,
    component_key,
    merge_boms,
    normalize_component,
    normalize_purl,
    sorted_components,
    strip_checksum,
)

__all__ = [
    "CPE_TEMPLATE",
    "TOOL_NAME",
    "attach_cpes",
    "component_key",
    "cpe_from_component",
    "filter_out_by_scope",
    "merge_boms",
    "normalize_component",
    "normalize_purl",
    "set_created_at_property",
    "sorted_components",
    "strip_checksum",
    "strip_cpes",
]
