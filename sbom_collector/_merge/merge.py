"""Merge engine: reconcile partial BOMs into one deduplicated BOM.

Components are keyed by their normalized package URL. Every stage works on
fresh copies, so the input BOMs are left untouched.
"""

import copy
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar
from uuid import uuid4

from cyclonedx.model.bom import Bom, OrganizationalEntity, Tool
from cyclonedx.model.bom_ref import BomRef
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.model.dependency import Dependency
from packageurl import PackageURL

from sbom_collector import __version__
from sbom_collector.exceptions import MergeRejectedError
from sbom_collector.logging_config import logger
from sbom_collector.serialization import component_identity

TOOL_NAME = "sbom-collector"
TOOL_VENDOR = "sbom-collector"

# pkg:npm/%40actions/core@1.2.4 -> pkg:npm/actions/core@1.2.4
_ENCODED_SCOPE_RE = re.compile(r"pkg:\w+/%40[-.\w]+/")
# pkg:golang/github.com/foo/bar@v1.2.3 -> pkg:golang/github.com/foo/bar@1.2.3
_PREFIXED_VERSION_RE = re.compile(r"@v([-.\w]+)$")
# next@11.1.4_6ae8aab56bccab9c135b13f4dcebcfdd -> next@11.1.4
_CHECKSUM_RE = re.compile(r"([-.\w]+)_[0-9a-f]{32}")

T = TypeVar("T")


def strip_checksum(candidate: str) -> str:
    """Strip a trailing ``_<md5>`` checksum from a purl or CPE string."""
    return _CHECKSUM_RE.sub(r"\1", candidate, count=1)


def normalize_purl(purl: PackageURL) -> PackageURL:
    """
    Canonicalize a package URL for use as an identity key.

    Drops the percent-encoded scope marker of scoped package names, the ``v``
    prefix of versions, trailing checksums, and all qualifiers and subpaths.

    Args:
        purl: Package URL as found in a generator's output

    Returns:
        A new, normalized PackageURL
    """
    bare = PackageURL(type=purl.type, namespace=purl.namespace, name=purl.name, version=purl.version)
    normalized = bare.to_string()

    if _ENCODED_SCOPE_RE.match(normalized):
        normalized = normalized.replace("%40", "", 1)
    normalized = _PREFIXED_VERSION_RE.sub(r"@\1", normalized)
    normalized = strip_checksum(normalized)

    try:
        return PackageURL.from_string(normalized)
    except ValueError:
        logger.debug(f"Can't parse normalized purl {normalized}, keeping {bare}")
        return bare


def normalize_name(name: str) -> str:
    """Trim a leading ``@`` scope marker from a component name."""
    return name[1:] if name.startswith("@") else name


def normalize_component(component: Component) -> Component:
    """
    Return a normalized copy of a component.

    Application components keep their package URL as-is since it is not a
    dependable identity key.
    """
    normalized = copy.deepcopy(component)
    if normalized.purl is not None and normalized.type != ComponentType.APPLICATION:
        normalized.purl = normalize_purl(normalized.purl)
    normalized.name = normalize_name(normalized.name)
    if normalized.cpe:
        normalized.cpe = strip_checksum(normalized.cpe)
    return normalized


def component_key(component: Component) -> str:
    """Identity key of a (normalized) component: its purl, or a fallback."""
    return component_identity(
        component.purl.to_string() if component.purl is not None else None,
        component.type.value,
        component.group,
        component.name,
        component.version,
    )


def sorted_components(bom: Bom) -> List[Component]:
    """Components of a BOM in package URL order."""
    return sorted(bom.components, key=component_key)


def _last_non_empty(values: Iterable[Optional[T]]) -> Optional[T]:
    result = None
    for value in values:
        if value:
            result = value
    return result


def _union(collections: Iterable[Iterable[T]]) -> List[T]:
    """Structural-equality union that keeps first-seen order."""
    merged: List[T] = []
    for collection in collections:
        for item in collection:
            if item not in merged:
                merged.append(copy.deepcopy(item))
    return merged


def _merge_group(group: Sequence[Component]) -> Component:
    """Merge components that share an identity key into one new component."""
    first = group[0]
    if first.type != ComponentType.LIBRARY:
        # Only libraries carry a purl we trust as identity
        return first

    purl = first.purl
    bom_ref = purl.to_string() if purl is not None else first.bom_ref.value

    return Component(
        type=_last_non_empty(c.type for c in group) or ComponentType.LIBRARY,
        name=_last_non_empty(c.name for c in group) or first.name,
        group=_last_non_empty(c.group for c in group),
        version=_last_non_empty(c.version for c in group),
        description=_last_non_empty(c.description for c in group),
        scope=_last_non_empty(c.scope for c in group),
        cpe=_last_non_empty(c.cpe for c in group),
        purl=purl,
        bom_ref=bom_ref,
        hashes=_union(c.hashes for c in group),
        licenses=_union(c.licenses for c in group),
        properties=_union(c.properties for c in group),
        external_references=_union(c.external_references for c in group),
    )


def _rewrite_dependencies(source: Bom, merged_by_key: Dict[str, Component]) -> List[Dependency]:
    """
    Copy the dependency graph of ``source`` onto the merged components.

    bom-refs of the source components are mapped to the refs of the merged
    components that replaced them. The source's root component keeps its ref,
    the merged BOM carries it over as its own root. Edges touching a ref that
    is not part of the merged BOM are dropped.
    """
    ref_map: Dict[str, str] = {}
    root = source.metadata.component
    if root is not None and root.bom_ref.value:
        ref_map[root.bom_ref.value] = root.bom_ref.value
    for component in source.components:
        merged = merged_by_key.get(component_key(normalize_component(component)))
        if component.bom_ref.value and merged is not None and merged.bom_ref.value:
            ref_map[component.bom_ref.value] = merged.bom_ref.value

    edges: Dict[str, List[str]] = {}
    for dependency in source.dependencies:
        ref = ref_map.get(dependency.ref.value or "")
        if ref is None:
            logger.debug(f"Dropping dependency entry for unknown bom-ref {dependency.ref.value}")
            continue
        children = edges.setdefault(ref, [])
        for child in dependency.dependencies:
            child_ref = ref_map.get(child.ref.value or "")
            if child_ref is not None and child_ref not in children:
                children.append(child_ref)

    return [
        Dependency(ref=BomRef(ref), dependencies=[Dependency(ref=BomRef(child)) for child in children])
        for ref, children in edges.items()
    ]


def merge_boms(*boms: Optional[Bom]) -> Bom:
    """
    Merge partial BOMs into one BOM with components unique by package URL.

    Scalar fields of merged library components take the last non-empty value
    (in input order); hashes, licenses, properties and external references are
    unioned. The dependency graph (with its root component) and top-level
    external references are copied from the first input that has any.

    Args:
        *boms: Partial BOMs in input order

    Returns:
        A new Bom

    Raises:
        MergeRejectedError: If no BOMs are given or any of them is None
    """
    if not boms:
        raise MergeRejectedError("Can't merge an empty list of BOMs")
    if any(bom is None for bom in boms):
        raise MergeRejectedError("Can't merge a missing BOM")

    checked: List[Bom] = [bom for bom in boms if bom is not None]

    groups: Dict[str, List[Component]] = {}
    for bom in checked:
        for component in bom.components:
            normalized = normalize_component(component)
            groups.setdefault(component_key(normalized), []).append(normalized)

    merged_by_key = {key: _merge_group(group) for key, group in groups.items()}

    result = Bom()
    result.serial_number = uuid4()
    result.metadata.timestamp = datetime.now(tz=timezone.utc)
    result.metadata.tools.tools.add(
        Tool(vendor=OrganizationalEntity(name=TOOL_VENDOR), name=TOOL_NAME, version=__version__)
    )
    result.components = [merged_by_key[key] for key in sorted(merged_by_key)]

    for bom in checked:
        if len(bom.dependencies) > 0:
            if bom.metadata.component is not None:
                result.metadata.component = copy.deepcopy(bom.metadata.component)
            result.dependencies = _rewrite_dependencies(bom, merged_by_key)
            break

    for bom in checked:
        if len(bom.external_references) > 0:
            result.external_references = copy.deepcopy(list(bom.external_references))
            break

    logger.debug(f"Merged {len(checked)} BOM(s) into {len(result.components)} component(s)")
    return result
