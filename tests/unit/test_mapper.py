"""Unit tests for kindwatch.collector.mapper."""

from __future__ import annotations

import pytest

from kindwatch.collector.mapper import (
    DEFAULT_KINDS,
    descriptor_for,
    plural_for,
    resource_name,
    split_group_version,
)
from kindwatch.models.events import ResourceKindDescriptor


class TestResourceName:
    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            ("Pod", "pods"),
            ("Deployment", "deployments"),
            ("ConfigMap", "configmaps"),
            ("Ingress", "ingresses"),
            ("ClusterRoleBinding", "clusterrolebindings"),
            ("CustomResourceDefinition", "customresourcedefinitions"),
        ],
    )
    def test_well_known_kinds(self, kind: str, expected: str) -> None:
        assert resource_name(kind) == expected

    def test_unknown_kind_uses_lowercase_plus_s(self) -> None:
        assert resource_name("Widget") == "widgets"

    def test_fallback_only_lowercases_first_character(self) -> None:
        assert resource_name("KafkaTopic") == "kafkaTopics"

    def test_irregular_plural_is_not_handled(self) -> None:
        """Known limitation: naive pluralization."""
        assert resource_name("Policy") == "policys"

    def test_table_is_read_only(self) -> None:
        from kindwatch.collector import mapper

        with pytest.raises(TypeError):
            mapper._KIND_TO_RESOURCE["Pod"] = "pawns"  # type: ignore[index]

    def test_plural_for_prefers_discovered_plural(self) -> None:
        resource = ResourceKindDescriptor(
            kind="NetworkPolicy",
            group="networking.k8s.io",
            version="v1",
            plural="networkpolicies",
        )
        assert plural_for(resource) == "networkpolicies"

    def test_plural_for_falls_back_to_heuristic(self) -> None:
        resource = ResourceKindDescriptor(kind="Widget", group="example.com", version="v1")
        assert plural_for(resource) == "widgets"


class TestSplitGroupVersion:
    def test_core_v1(self) -> None:
        assert split_group_version("v1") == ("", "v1")

    def test_group_and_version(self) -> None:
        assert split_group_version("apps/v1") == ("apps", "v1")

    def test_splits_on_first_slash_only(self) -> None:
        assert split_group_version("a/b/c") == ("a", "b/c")

    def test_bare_version_has_empty_group(self) -> None:
        assert split_group_version("v2beta1") == ("", "v2beta1")

    def test_empty_string_never_fails(self) -> None:
        assert split_group_version("") == ("", "")


class TestDescriptors:
    def test_descriptor_for_grouped_kind(self) -> None:
        d = descriptor_for("Deployment", "apps/v1")
        assert d == ResourceKindDescriptor(kind="Deployment", group="apps", version="v1", namespaced=True)
        assert d.api_version == "apps/v1"
        assert d.display == "Deployment.apps/v1"

    def test_descriptor_for_core_kind(self) -> None:
        d = descriptor_for("Pod", "v1")
        assert d.api_version == "v1"
        assert d.display == "Pod/v1"

    def test_default_kinds(self) -> None:
        assert [d.kind for d in DEFAULT_KINDS] == ["Pod", "Deployment", "Service", "ConfigMap", "Namespace"]
        namespace = DEFAULT_KINDS[-1]
        assert namespace.namespaced is False
