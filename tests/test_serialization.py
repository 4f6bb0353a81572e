"""Tests for CycloneDX encoding and decoding."""

import json
import unittest
import xml.etree.ElementTree as ET

from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType
from packageurl import PackageURL

from sbom_collector.exceptions import BadFormatError, SBOMDecodeError
from sbom_collector.serialization import convert_bom, decode_bom, detect_format, encode_bom

TRIVY_STYLE_JSON = """
{
  "bomFormat": "CycloneDX",
  "specVersion": "1.5",
  "version": 1,
  "components": [
    {
      "bom-ref": "pkg:pypi/requests@2.31.0",
      "type": "library",
      "name": "requests",
      "version": "2.31.0",
      "purl": "pkg:pypi/requests@2.31.0"
    },
    {
      "bom-ref": "pkg:pypi/idna@3.4",
      "type": "library",
      "name": "idna",
      "version": "3.4",
      "purl": "pkg:pypi/idna@3.4"
    }
  ]
}
"""


def _bom(*names: str) -> Bom:
    return Bom(
        components=[
            Component(
                type=ComponentType.LIBRARY,
                name=name,
                version="1.0",
                purl=PackageURL(type="npm", name=name, version="1.0"),
                bom_ref=f"pkg:npm/{name}@1.0",
            )
            for name in names
        ]
    )


class TestDetectFormat(unittest.TestCase):
    def test_json(self):
        self.assertEqual(detect_format('  {"bomFormat": "CycloneDX"}'), "json")

    def test_xml(self):
        self.assertEqual(detect_format('<?xml version="1.0"?><bom/>'), "xml")

    def test_unknown(self):
        with self.assertRaises(SBOMDecodeError):
            detect_format("Unable to produce BOM")


class TestDecodeBom(unittest.TestCase):
    """Tests for decode_bom."""

    def test_decode_generator_json(self):
        bom = decode_bom(TRIVY_STYLE_JSON)
        self.assertEqual(sorted(c.name for c in bom.components), ["idna", "requests"])

    def test_decode_bytes(self):
        bom = decode_bom(TRIVY_STYLE_JSON.encode("utf-8"), "json")
        self.assertEqual(len(bom.components), 2)

    def test_unknown_format_raises_bad_format(self):
        with self.assertRaises(BadFormatError):
            decode_bom(TRIVY_STYLE_JSON, "yaml")

    def test_malformed_json_raises_decode_error(self):
        with self.assertRaises(SBOMDecodeError):
            decode_bom("{not json", "json")

    def test_plain_text_raises_decode_error(self):
        with self.assertRaises(SBOMDecodeError):
            decode_bom("this is not a BOM")


class TestEncodeBom(unittest.TestCase):
    """Tests for encode_bom and convert_bom."""

    def test_json_components_are_ordered_by_purl(self):
        document = json.loads(encode_bom(_bom("zeta", "alpha", "mid")))
        self.assertEqual([c["purl"] for c in document["components"]], [
            "pkg:npm/alpha@1.0",
            "pkg:npm/mid@1.0",
            "pkg:npm/zeta@1.0",
        ])
        self.assertEqual(document["specVersion"], "1.6")

    def test_xml_components_are_ordered_by_purl(self):
        bom = Bom(
            components=[
                Component(
                    type=ComponentType.LIBRARY,
                    name=name,
                    version="1.0.0",
                    purl=PackageURL(type=purl_type, name=name, version="1.0.0"),
                    bom_ref=f"pkg:{purl_type}/{name}@1.0.0",
                )
                for purl_type, name in (("npm", "alpha"), ("gem", "zeta"))
            ]
        )

        output = encode_bom(bom, "xml")

        root = ET.fromstring(output)
        namespace = root.tag.split("}", 1)[0] + "}"
        purls = [c.findtext(f"{namespace}purl") for c in root.find(f"{namespace}components")]
        self.assertEqual(purls, ["pkg:gem/zeta@1.0.0", "pkg:npm/alpha@1.0.0"])
        self.assertTrue(output.startswith("<?xml"))

    def test_xml_output_decodes_back(self):
        decoded = decode_bom(encode_bom(_bom("zeta", "alpha"), "xml"), "xml")
        self.assertEqual(sorted(c.name for c in decoded.components), ["alpha", "zeta"])

    def test_xml_output(self):
        output = encode_bom(_bom("alpha"), "xml")
        self.assertEqual(detect_format(output), "xml")
        self.assertIn("alpha", output)

    def test_unknown_format_raises_bad_format(self):
        with self.assertRaises(BadFormatError):
            encode_bom(_bom("alpha"), "yaml")

    def test_unknown_spec_version_raises_bad_format(self):
        with self.assertRaises(BadFormatError):
            encode_bom(_bom("alpha"), "json", spec_version="0.9")

    def test_convert_json_to_xml_and_back(self):
        xml_output = convert_bom(TRIVY_STYLE_JSON, "xml")
        self.assertEqual(detect_format(xml_output), "xml")

        json_output = convert_bom(xml_output, "json", source_fmt="xml")
        names = [c["name"] for c in json.loads(json_output)["components"]]
        self.assertEqual(names, ["idna", "requests"])

    def test_convert_to_unknown_format(self):
        with self.assertRaises(BadFormatError):
            convert_bom(TRIVY_STYLE_JSON, "spdx")


if __name__ == "__main__":
    unittest.main()
