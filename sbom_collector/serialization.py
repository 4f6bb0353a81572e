"""
CycloneDX serialization utilities.

This module provides the encoding boundary of the collector: decoding raw
generator output (CycloneDX JSON or XML) into ``Bom`` objects, encoding merged
BOMs back out, and converting between the two encodings.
"""

import importlib
import io
import json
import xml.etree.ElementTree as ET
from typing import Any, Dict, Literal, Optional, Tuple, Type, Union

from cyclonedx.model.bom import Bom

from .exceptions import BadFormatError, SBOMDecodeError
from .logging_config import logger

BOMFormat = Literal["json", "xml"]

SUPPORTED_FORMATS = ("json", "xml")

# Default version to use when none is requested
DEFAULT_CYCLONEDX_VERSION = "1.6"

# Outputter class names per (format, spec version) in cyclonedx.output.<format>
_OUTPUTTER_NAMES: Dict[Tuple[str, str], str] = {
    ("json", "1.4"): "JsonV1Dot4",
    ("json", "1.5"): "JsonV1Dot5",
    ("json", "1.6"): "JsonV1Dot6",
    ("xml", "1.4"): "XmlV1Dot4",
    ("xml", "1.5"): "XmlV1Dot5",
    ("xml", "1.6"): "XmlV1Dot6",
}

# Lazily imported outputter classes
_CYCLONEDX_OUTPUTTERS: Dict[Tuple[str, str], Type] = {}


def _check_format(fmt: str) -> None:
    if fmt not in SUPPORTED_FORMATS:
        raise BadFormatError(f"Unsupported BOM format: {fmt}. Supported formats: {', '.join(SUPPORTED_FORMATS)}")


def _get_cyclonedx_outputter(fmt: str, spec_version: str) -> Type:
    """
    Get the CycloneDX outputter class for a format and spec version.

    Args:
        fmt: "json" or "xml"
        spec_version: CycloneDX spec version (e.g., "1.5", "1.6")

    Returns:
        Outputter class

    Raises:
        BadFormatError: If the format or version is not supported
    """
    _check_format(fmt)
    major_minor = ".".join(spec_version.split(".")[:2]) if spec_version else DEFAULT_CYCLONEDX_VERSION
    key = (fmt, major_minor)

    if key not in _OUTPUTTER_NAMES:
        supported = sorted({version for _, version in _OUTPUTTER_NAMES})
        raise BadFormatError(f"Unsupported CycloneDX version: {spec_version}. Supported versions: {', '.join(supported)}")

    if key not in _CYCLONEDX_OUTPUTTERS:
        module = importlib.import_module(f"cyclonedx.output.{fmt}")
        _CYCLONEDX_OUTPUTTERS[key] = getattr(module, _OUTPUTTER_NAMES[key])

    return _CYCLONEDX_OUTPUTTERS[key]


def component_identity(
    purl: Optional[str],
    component_type: str = "",
    group: Optional[str] = None,
    name: str = "",
    version: Optional[str] = None,
) -> str:
    """
    Identity string used to group and order components.

    Components with a package URL are identified by it. Components without one
    get a fallback key that sorts after every ``pkg:`` URL.
    """
    if purl:
        return purl
    return f"~{component_type}:{group or ''}/{name}@{version or ''}"


def detect_format(data: str) -> BOMFormat:
    """
    Detect the encoding of a CycloneDX document from its first character.

    Raises:
        SBOMDecodeError: If the content is neither JSON nor XML
    """
    stripped = data.lstrip()
    if stripped.startswith("{"):
        return "json"
    if stripped.startswith("<"):
        return "xml"
    raise SBOMDecodeError("Can't detect BOM format: content is neither CycloneDX JSON nor XML")


def decode_bom(data: Union[bytes, str], fmt: Optional[str] = None) -> Bom:
    """
    Decode CycloneDX JSON or XML into a Bom.

    Args:
        data: Raw BOM content
        fmt: "json", "xml" or None to detect from the content

    Returns:
        Decoded Bom

    Raises:
        BadFormatError: If an unknown format is requested
        SBOMDecodeError: If the content can't be decoded
    """
    text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
    if fmt is None:
        fmt = detect_format(text)
    _check_format(fmt)

    try:
        if fmt == "json":
            return Bom.from_json(json.loads(text))  # type: ignore[attr-defined]
        return Bom.from_xml(io.StringIO(text))  # type: ignore[attr-defined]
    except Exception as e:
        raise SBOMDecodeError(f"Can't decode CycloneDX {fmt.upper()} BOM: {e}") from e


def encode_bom(bom: Bom, fmt: str = "json", spec_version: str = DEFAULT_CYCLONEDX_VERSION) -> str:
    """
    Encode a Bom as pretty-printed CycloneDX JSON or XML.

    Components are listed in package URL order in both encodings.

    Args:
        bom: The BOM to encode
        fmt: "json" or "xml"
        spec_version: CycloneDX spec version to emit

    Returns:
        Encoded BOM string

    Raises:
        BadFormatError: If the format or version is not supported
    """
    outputter_class = _get_cyclonedx_outputter(fmt, spec_version)

    logger.debug(f"Serializing CycloneDX BOM as {fmt} {spec_version}")
    output = outputter_class(bom).output_as_string(indent=2)

    if fmt == "json":
        return _order_json_components(output)
    return _order_xml_components(output)


def convert_bom(
    data: Union[bytes, str],
    target_fmt: str,
    source_fmt: Optional[str] = None,
    spec_version: str = DEFAULT_CYCLONEDX_VERSION,
) -> str:
    """
    Convert a CycloneDX document between JSON and XML.

    Raises:
        BadFormatError: If either format is unknown
        SBOMDecodeError: If the source can't be decoded
    """
    _check_format(target_fmt)
    return encode_bom(decode_bom(data, source_fmt), target_fmt, spec_version)


def _json_component_key(component: Dict[str, Any]) -> str:
    return component_identity(
        component.get("purl"),
        component.get("type", ""),
        component.get("group"),
        component.get("name", ""),
        component.get("version"),
    )


def _order_json_components(output: str) -> str:
    document = json.loads(output)
    components = document.get("components")
    if components:
        document["components"] = sorted(components, key=_json_component_key)
    return json.dumps(document, indent=2)


def _xml_component_key(component: ET.Element, namespace: str) -> str:
    def child_text(tag: str) -> Optional[str]:
        return component.findtext(f"{namespace}{tag}")

    return component_identity(
        child_text("purl"),
        component.get("type", ""),
        child_text("group"),
        child_text("name") or "",
        child_text("version"),
    )


def _order_xml_components(output: str) -> str:
    root = ET.fromstring(output)
    namespace = ""
    if root.tag.startswith("{"):
        uri = root.tag[1:].split("}", 1)[0]
        namespace = f"{{{uri}}}"
        # Keep the CycloneDX namespace as the default one on output
        ET.register_namespace("", uri)

    components = root.find(f"{namespace}components")
    if components is None or len(components) == 0:
        return output

    ordered = sorted(components, key=lambda c: _xml_component_key(c, namespace))
    for component in list(components):
        components.remove(component)
    components.extend(ordered)

    ET.indent(root, space="  ")
    return '<?xml version="1.0" ?>\n' + ET.tostring(root, encoding="unicode")
