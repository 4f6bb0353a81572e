"""Tests for the merge engine."""

import unittest

from cyclonedx.model import ExternalReference, ExternalReferenceType, HashAlgorithm, HashType, XsUri
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.model.dependency import Dependency
from cyclonedx.model.license import DisjunctiveLicense
from packageurl import PackageURL

from sbom_collector._merge import (
    TOOL_NAME,
    component_key,
    merge_boms,
    normalize_component,
    normalize_purl,
    sorted_components,
    strip_checksum,
)
from sbom_collector.exceptions import MergeRejectedError


def _library(purl: str, **kwargs) -> Component:
    parsed = PackageURL.from_string(purl)
    kwargs.setdefault("name", parsed.name)
    kwargs.setdefault("version", parsed.version)
    return Component(type=ComponentType.LIBRARY, purl=parsed, **kwargs)


def _purls(bom: Bom) -> list:
    return [c.purl.to_string() for c in sorted_components(bom)]


class TestNormalizePurl(unittest.TestCase):
    """Tests for package URL normalization."""

    def test_encoded_scope_is_dropped(self):
        purl = PackageURL.from_string("pkg:npm/%40actions/core@1.2.4")
        self.assertEqual(normalize_purl(purl).to_string(), "pkg:npm/actions/core@1.2.4")

    def test_version_prefix_is_dropped(self):
        purl = PackageURL.from_string("pkg:golang/github.com/foo/bar@v1.2.3")
        self.assertEqual(normalize_purl(purl).to_string(), "pkg:golang/github.com/foo/bar@1.2.3")

    def test_checksum_suffix_is_dropped(self):
        purl = PackageURL.from_string("pkg:npm/next@11.1.4_6ae8aab56bccab9c135b13f4dcebcfdd")
        self.assertEqual(normalize_purl(purl).to_string(), "pkg:npm/next@11.1.4")

    def test_qualifiers_and_subpath_are_dropped(self):
        purl = PackageURL.from_string("pkg:maven/org.apache/commons-lang3@3.12.0?type=jar#sub/path")
        self.assertEqual(normalize_purl(purl).to_string(), "pkg:maven/org.apache/commons-lang3@3.12.0")

    def test_plain_purl_is_unchanged(self):
        purl = PackageURL.from_string("pkg:pypi/requests@2.31.0")
        self.assertEqual(normalize_purl(purl).to_string(), "pkg:pypi/requests@2.31.0")

    def test_strip_checksum_on_cpe(self):
        cpe = "cpe:2.3:a:next:next:11.1.4_6ae8aab56bccab9c135b13f4dcebcfdd:*:*:*:*:*:*:*"
        self.assertEqual(strip_checksum(cpe), "cpe:2.3:a:next:next:11.1.4:*:*:*:*:*:*:*")

    def test_normalize_component_leaves_input_untouched(self):
        component = _library("pkg:npm/%40actions/core@1.2.4", name="@actions/core")
        normalized = normalize_component(component)
        self.assertEqual(normalized.name, "actions/core")
        self.assertEqual(normalized.purl.to_string(), "pkg:npm/actions/core@1.2.4")
        self.assertEqual(component.name, "@actions/core")
        self.assertEqual(component.purl.to_string(), "pkg:npm/%40actions/core@1.2.4")

    def test_application_purl_is_kept(self):
        component = Component(
            type=ComponentType.APPLICATION,
            name="app",
            purl=PackageURL.from_string("pkg:npm/app@v1.0.0"),
        )
        self.assertEqual(normalize_component(component).purl.to_string(), "pkg:npm/app@v1.0.0")


class TestMergeBoms(unittest.TestCase):
    """Tests for merge_boms."""

    def test_components_are_unioned_and_ordered(self):
        first = Bom(components=[_library("pkg:npm/a@1"), _library("pkg:npm/b@1")])
        second = Bom(components=[_library("pkg:npm/c@1")])
        third = Bom(components=[_library("pkg:npm/c@1"), _library("pkg:npm/b@1"), _library("pkg:npm/d@1")])

        merged = merge_boms(first, second, third)

        self.assertEqual(_purls(merged), ["pkg:npm/a@1", "pkg:npm/b@1", "pkg:npm/c@1", "pkg:npm/d@1"])

    def test_equivalent_purls_merge_into_one_component(self):
        first = Bom(components=[_library("pkg:golang/github.com/foo/bar@v1.2.3")])
        second = Bom(components=[_library("pkg:golang/github.com/foo/bar@1.2.3")])

        merged = merge_boms(first, second)

        self.assertEqual(_purls(merged), ["pkg:golang/github.com/foo/bar@1.2.3"])

    def test_no_duplicate_purls(self):
        boms = [
            Bom(components=[_library("pkg:npm/%40scope/pkg@1.0.0"), _library("pkg:npm/left-pad@1.3.0")]),
            Bom(components=[_library("pkg:npm/scope/pkg@1.0.0")]),
            Bom(components=[_library("pkg:npm/left-pad@v1.3.0")]),
        ]
        purls = _purls(merge_boms(*boms))
        self.assertEqual(len(purls), len(set(purls)))
        self.assertEqual(len(purls), 2)

    def test_licenses_are_unioned(self):
        """The same license reported by two generators appears once."""
        mit = DisjunctiveLicense(id="MIT")
        first = Bom(components=[_library("pkg:gem/rake@13.0.6", licenses=[mit])])
        second = Bom(components=[_library("pkg:gem/rake@13.0.6", licenses=[DisjunctiveLicense(id="MIT")])])

        merged = merge_boms(first, second)

        (rake,) = list(merged.components)
        self.assertEqual([license.id for license in rake.licenses], ["MIT"])

    def test_hashes_and_scalars_are_merged(self):
        first = Bom(
            components=[
                _library(
                    "pkg:npm/a@1",
                    description="first",
                    hashes=[HashType(alg=HashAlgorithm.SHA_256, content="a" * 64)],
                )
            ]
        )
        second = Bom(
            components=[
                _library(
                    "pkg:npm/a@1",
                    description="second",
                    hashes=[HashType(alg=HashAlgorithm.SHA_1, content="b" * 40)],
                )
            ]
        )

        (merged,) = list(merge_boms(first, second).components)

        self.assertEqual(merged.description, "second")
        self.assertEqual(len(merged.hashes), 2)

    def test_empty_scalar_does_not_override(self):
        first = Bom(components=[_library("pkg:npm/a@1", description="kept")])
        second = Bom(components=[_library("pkg:npm/a@1")])

        (merged,) = list(merge_boms(first, second).components)

        self.assertEqual(merged.description, "kept")

    def test_merged_library_bom_ref_is_its_purl(self):
        (merged,) = list(merge_boms(Bom(components=[_library("pkg:npm/a@1", bom_ref="ref-a")])).components)
        self.assertEqual(merged.bom_ref.value, "pkg:npm/a@1")

    def test_duplicate_inputs_are_idempotent(self):
        bom = Bom(components=[_library("pkg:npm/a@1"), _library("pkg:npm/b@2")])
        self.assertEqual(_purls(merge_boms(bom, bom)), _purls(merge_boms(bom)))

    def test_single_bom_keeps_its_components(self):
        bom = Bom(components=[_library("pkg:pypi/requests@2.31.0")])
        self.assertEqual(_purls(merge_boms(bom)), ["pkg:pypi/requests@2.31.0"])

    def test_result_is_a_new_bom(self):
        bom = Bom(components=[_library("pkg:pypi/requests@2.31.0")])
        merged = merge_boms(bom)
        self.assertIsNot(merged, bom)
        self.assertIsNotNone(merged.serial_number)
        self.assertIsNotNone(merged.metadata.timestamp)
        self.assertIn(TOOL_NAME, [tool.name for tool in merged.metadata.tools.tools])

    def test_inputs_are_not_mutated(self):
        component = _library("pkg:npm/%40actions/core@1.2.4", name="@actions/core")
        bom = Bom(components=[component])

        merge_boms(bom, Bom(components=[_library("pkg:npm/x@1")]))

        self.assertEqual(len(bom.components), 1)
        self.assertEqual(component.name, "@actions/core")
        self.assertEqual(component.purl.to_string(), "pkg:npm/%40actions/core@1.2.4")

    def test_empty_input_is_rejected(self):
        with self.assertRaises(MergeRejectedError):
            merge_boms()

    def test_missing_bom_is_rejected(self):
        with self.assertRaises(MergeRejectedError):
            merge_boms(Bom(), None)

    def test_components_without_purl_are_kept(self):
        application = Component(type=ComponentType.APPLICATION, name="service", version="1.0")
        merged = merge_boms(Bom(components=[application]), Bom(components=[_library("pkg:npm/a@1")]))
        self.assertEqual(len(merged.components), 2)
        self.assertTrue(component_key(sorted_components(merged)[-1]).startswith("~"))


class TestMergeGraph(unittest.TestCase):
    """Tests for the dependency graph and external references of merged BOMs."""

    def _bom_with_edge(self, parent: str, child: str) -> Bom:
        parent_component = _library(f"pkg:npm/{parent}@1", bom_ref=f"{parent}-ref")
        child_component = _library(f"pkg:npm/{child}@1", bom_ref=f"{child}-ref")
        return Bom(
            components=[parent_component, child_component],
            dependencies=[
                Dependency(ref=parent_component.bom_ref, dependencies=[Dependency(ref=child_component.bom_ref)]),
            ],
        )

    @staticmethod
    def _edges(bom: Bom) -> dict:
        return {d.ref.value: sorted(c.ref.value for c in d.dependencies) for d in bom.dependencies}

    def test_first_non_empty_graph_wins(self):
        merged = merge_boms(Bom(), self._bom_with_edge("a", "b"), self._bom_with_edge("b", "a"))
        self.assertEqual(self._edges(merged), {"pkg:npm/a@1": ["pkg:npm/b@1"]})

    def test_graph_refs_point_at_merged_components(self):
        merged = merge_boms(self._bom_with_edge("a", "b"))
        refs = {c.bom_ref.value for c in merged.components}
        for dependency in merged.dependencies:
            self.assertIn(dependency.ref.value, refs)
            for child in dependency.dependencies:
                self.assertIn(child.ref.value, refs)

    def test_edges_from_the_root_component_are_kept(self):
        app = Component(type=ComponentType.APPLICATION, name="app", bom_ref="app-ref")
        rake = _library("pkg:gem/rake@13.0.6", bom_ref="rake-ref")
        bom = Bom(
            components=[rake],
            dependencies=[Dependency(ref=app.bom_ref, dependencies=[Dependency(ref=rake.bom_ref)])],
        )
        bom.metadata.component = app

        merged = merge_boms(Bom(components=[_library("pkg:npm/a@1")]), bom)

        self.assertEqual(merged.metadata.component.bom_ref.value, "app-ref")
        self.assertEqual(self._edges(merged)["app-ref"], ["pkg:gem/rake@13.0.6"])
        self.assertIsNot(merged.metadata.component, app)

    def test_root_component_is_not_added_without_a_graph(self):
        bom = Bom(components=[_library("pkg:npm/a@1")])
        bom.metadata.component = Component(type=ComponentType.APPLICATION, name="app", bom_ref="app-ref")

        merged = merge_boms(bom)

        self.assertIsNone(merged.metadata.component)

    def test_first_non_empty_external_references_win(self):
        first = Bom(components=[_library("pkg:npm/a@1")])
        second = Bom(
            external_references=[ExternalReference(type=ExternalReferenceType.VCS, url=XsUri("https://example.com/a"))]
        )
        third = Bom(
            external_references=[ExternalReference(type=ExternalReferenceType.VCS, url=XsUri("https://example.com/b"))]
        )

        merged = merge_boms(first, second, third)

        self.assertEqual([str(ref.url) for ref in merged.external_references], ["https://example.com/a"])


if __name__ == "__main__":
    unittest.main()
