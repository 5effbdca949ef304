"""Unit tests for schema model validation.

Field-level rules only; compiler behavior is covered in the compiler tests.
"""

from __future__ import annotations

from types import MappingProxyType

import pydantic
import pytest

from clusterforge.schemas import (
    ConfigurationLayer,
    DisruptionBudgetSpec,
    EgressRule,
    ExternalValues,
    IngressRule,
    NamespaceQuotaSpec,
    PolicyPort,
    ResourceQuotaSpec,
)


class TestConfigurationLayer:
    """Tests for ConfigurationLayer."""

    def test_values_are_detached(self) -> None:
        """Test mutating the source dict does not reach the layer."""
        source = {"network": {"nat_gateways": 1}}
        layer = ConfigurationLayer(name="dev", values=source)

        source["network"]["nat_gateways"] = 3

        assert layer.values["network"]["nat_gateways"] == 1

    def test_values_are_read_only(self) -> None:
        """Test nested mappings reject writes and lists become tuples."""
        layer = ConfigurationLayer(name="dev", values={"network": {"azs": ["a", "b"]}})

        with pytest.raises(TypeError):
            layer.values["network"]["nat_gateways"] = 3
        assert layer.values["network"]["azs"] == ("a", "b")

    def test_default_values_are_read_only(self) -> None:
        """Test a layer built without values is read-only too."""
        with pytest.raises(TypeError):
            ConfigurationLayer(name="empty").values["network"] = {}

    def test_rejects_bad_name(self) -> None:
        """Test layer names must start with a letter."""
        with pytest.raises(pydantic.ValidationError):
            ConfigurationLayer(name="1-dev", values={})


class TestExternalValues:
    """Tests for ExternalValues."""

    def test_blank_means_absent(self) -> None:
        """Test empty and whitespace strings become None."""
        external = ExternalValues(domain_name="", hosted_zone_id="  ")

        assert external.domain_name is None
        assert external.hosted_zone_id is None

    def test_from_environ(self) -> None:
        """Test CLUSTERFORGE_* variables are read."""
        external = ExternalValues.from_environ(
            {
                "CLUSTERFORGE_DOMAIN_NAME": "acme.io",
                "CLUSTERFORGE_GITOPS_REPO_URL": "https://github.com/acme/gitops.git",
                "CLUSTERFORGE_ADMIN_ROLE_ARN": "",
                "UNRELATED": "x",
            }
        )

        assert external.domain_name == "acme.io"
        assert external.git_ops_repo_url == "https://github.com/acme/gitops.git"
        assert external.admin_role_arn is None
        assert external.github_org is None


class TestPolicyPort:
    """Tests for PolicyPort."""

    @pytest.mark.parametrize("port", [53, "443", "http-metrics"])
    def test_valid_ports(self, port: int | str) -> None:
        """Test numbers, numeric strings and names are accepted."""
        assert PolicyPort(port=port).port == port

    @pytest.mark.parametrize("port", [0, 65536, "70000", True, "Not_A_Name"])
    def test_invalid_ports(self, port: object) -> None:
        """Test out-of-range numbers, booleans and bad names are rejected."""
        with pytest.raises(pydantic.ValidationError):
            PolicyPort(port=port)


class TestRulePeers:
    """Tests for CIDR and FQDN peers."""

    def test_cidr_requires_prefix(self) -> None:
        """Test a bare address is not a CIDR block."""
        with pytest.raises(pydantic.ValidationError):
            IngressRule(from_cidr=["10.0.0.1"])

    def test_cidr_rejects_host_bits(self) -> None:
        """Test host bits set under the prefix are rejected."""
        with pytest.raises(pydantic.ValidationError):
            EgressRule(to_cidr=["10.0.0.1/8"])

    def test_fqdn_wildcard(self) -> None:
        """Test a leading wildcard label is allowed."""
        rule = EgressRule(to_fqdns=["*.amazonaws.com", "api.github.com"])

        assert rule.to_fqdns == ["*.amazonaws.com", "api.github.com"]

    def test_fqdn_rejects_url(self) -> None:
        """Test URLs are not FQDNs."""
        with pytest.raises(pydantic.ValidationError):
            EgressRule(to_fqdns=["https://api.github.com"])


class TestDisruptionBudgetSpec:
    """Tests for DisruptionBudgetSpec amounts."""

    @pytest.mark.parametrize("amount", [0, 2, "0%", "25%", "100%"])
    def test_valid_amounts(self, amount: int | str) -> None:
        """Test counts and percentages are accepted."""
        spec = DisruptionBudgetSpec(
            name="api-pdb", namespace="team-a", selector={"app": "api"}, min_available=amount
        )

        assert spec.min_available == amount

    @pytest.mark.parametrize("amount", [-1, True, "101%", "25", "half"])
    def test_invalid_amounts(self, amount: object) -> None:
        """Test negative counts, booleans and malformed percentages are rejected."""
        with pytest.raises(pydantic.ValidationError):
            DisruptionBudgetSpec(
                name="api-pdb",
                namespace="team-a",
                selector={"app": "api"},
                max_unavailable=amount,
            )

    def test_selector_required(self) -> None:
        """Test an empty selector is rejected."""
        with pytest.raises(pydantic.ValidationError):
            DisruptionBudgetSpec(name="api-pdb", namespace="team-a", selector={})


class TestQuotaQuantities:
    """Tests for quota quantity coercion."""

    def test_read_only_mapping_accepted(self) -> None:
        """Test custom limits given as a read-only mapping are stringified."""
        spec = NamespaceQuotaSpec(
            namespace="team-a", custom_limits=MappingProxyType({"pods": 75, "requests.cpu": "4"})
        )

        assert spec.custom_limits == {"pods": "75", "requests.cpu": "4"}

    def test_hard_rejects_boolean(self) -> None:
        """Test a boolean is not a quantity."""
        with pytest.raises(pydantic.ValidationError):
            ResourceQuotaSpec(name="q", namespace="team-a", hard={"pods": True})
