"""Unit tests for ConfigurationResolver.

Tests layer folding, conditional external values, caller overrides,
derived fields and the conversion of schema failures into clusterforge
errors.
"""

from __future__ import annotations

import pytest

from clusterforge.compiler.config_resolver import (
    ConfigurationResolver,
    apply_derivations,
    apply_external_values,
    argocd_from_external,
    resolve_configuration,
)
from clusterforge.defaults import BASE_LAYER, environment_layers
from clusterforge.errors import ResolutionError, ValidationError
from clusterforge.schemas import ConfigurationLayer, Environment, ExternalValues

ACCOUNT_ID = "123456789012"
REGION = "us-west-2"


class TestLayerResolution:
    """Tests for folding compiled-in layers."""

    def test_later_layer_overrides_scalar(self) -> None:
        """Test the environment layer wins over the base layer."""
        config = resolve_configuration(environment_layers("dev", ACCOUNT_ID, REGION))

        assert config.network.nat_gateways == 1
        assert config.network.vpc_cidr == "10.0.0.0/16"
        assert config.environment == Environment.DEV

    def test_identity_layer_supplies_account(self) -> None:
        """Test account and region come from the identity layer."""
        config = resolve_configuration(environment_layers("staging", ACCOUNT_ID, "eu-west-1"))

        assert config.aws.account_id == ACCOUNT_ID
        assert config.aws.region == "eu-west-1"

    def test_tags_merge_across_layers(self) -> None:
        """Test tag mappings merge key by key."""
        config = resolve_configuration(environment_layers("dev", ACCOUNT_ID, REGION))

        assert config.tags["managed-by"] == "clusterforge"
        assert config.tags["environment"] == "dev"

    def test_missing_required_field_raises_resolution_error(self) -> None:
        """Test a required field left unset names its path."""
        with pytest.raises(ResolutionError) as exc_info:
            resolve_configuration([BASE_LAYER])

        assert exc_info.value.field_path == "environment"
        assert exc_info.value.layers == ["base"]

    def test_missing_nested_field_path(self) -> None:
        """Test the dotted path of a nested missing field."""
        identity = ConfigurationLayer(
            name="identity",
            values={"environment": "dev", "aws": {"account_id": ACCOUNT_ID}},
        )

        with pytest.raises(ResolutionError) as exc_info:
            resolve_configuration([BASE_LAYER, identity])

        assert exc_info.value.field_path == "aws.region"

    def test_wrong_type_raises_validation_error(self) -> None:
        """Test a malformed value becomes ValidationError, not ResolutionError."""
        layers = (
            *environment_layers("dev", ACCOUNT_ID, REGION),
            ConfigurationLayer(name="broken", values={"network": {"nat_gateways": "many"}}),
        )

        with pytest.raises(ValidationError) as exc_info:
            resolve_configuration(layers)

        assert exc_info.value.field_path == "network.nat_gateways"

    def test_production_requires_gitops_repo(self) -> None:
        """Test production cannot resolve without an external repository URL."""
        with pytest.raises(ResolutionError) as exc_info:
            resolve_configuration(environment_layers("production", ACCOUNT_ID, REGION))

        assert exc_info.value.field_path == "argocd.git_ops_repo_url"

    def test_layers_are_not_mutated(self) -> None:
        """Test resolving twice yields equal results."""
        layers = environment_layers("dev", ACCOUNT_ID, REGION)

        assert resolve_configuration(layers) == resolve_configuration(layers)

    def test_default_layers_are_read_only(self) -> None:
        """Test compiled-in layers reject edits and later resolutions are unaffected."""
        with pytest.raises(TypeError):
            BASE_LAYER.values["cluster"]["version"] = "9.99"
        with pytest.raises(AttributeError):
            BASE_LAYER.values["security"]["allowed_registries"].append("evil.io")

        config = resolve_configuration(environment_layers("staging", ACCOUNT_ID, REGION))

        assert config.cluster.version == "1.35"
        assert config.security.allowed_registries == []

    def test_caller_layer_detached(self) -> None:
        """Test editing the source dict after building a layer has no effect."""
        values = {"network": {"nat_gateways": 2}}
        layer = ConfigurationLayer(name="custom", values=values)
        values["network"]["nat_gateways"] = 5

        config = resolve_configuration([*environment_layers("dev", ACCOUNT_ID, REGION), layer])

        assert config.network.nat_gateways == 2


class TestExternalValues:
    """Tests for conditional external values."""

    def test_unknown_key_raises_validation_error(self) -> None:
        """Test an unknown external value key fails with the key named."""
        with pytest.raises(ValidationError) as exc_info:
            resolve_configuration(
                environment_layers("staging", ACCOUNT_ID, REGION),
                external_values={"domain": "acme.io"},
            )

        assert exc_info.value.record == "external_values"
        assert exc_info.value.field_path == "domain"

    def test_domain_overrides_layer_value(self) -> None:
        """Test a supplied domain replaces the layer's domain."""
        config = resolve_configuration(
            environment_layers("staging", ACCOUNT_ID, REGION),
            external_values=ExternalValues(domain_name="acme.io"),
        )

        assert config.dns.domain_name == "acme.io"
        assert config.argocd is not None
        assert config.argocd.hostname == "argocd.acme.io"

    def test_absent_values_keep_layer_values(self) -> None:
        """Test unsupplied external values never replace layer values."""
        config = resolve_configuration(
            environment_layers("staging", ACCOUNT_ID, REGION),
            external_values=ExternalValues(hosted_zone_id="Z123"),
        )

        assert config.dns.hosted_zone_id == "Z123"
        assert config.dns.domain_name == "staging.example.com"

    def test_blank_strings_are_absent(self) -> None:
        """Test empty strings are treated as not supplied."""
        config = resolve_configuration(
            environment_layers("staging", ACCOUNT_ID, REGION),
            external_values={"domain_name": "", "github_org": "  "},
        )

        assert config.dns.domain_name == "staging.example.com"
        assert config.argocd is not None
        assert config.argocd.github_org is None

    def test_admin_role_becomes_admin_principal(
        self, production_external_values: ExternalValues
    ) -> None:
        """Test admin_role_arn adds a named admin principal."""
        config = resolve_configuration(
            environment_layers("production", ACCOUNT_ID, REGION),
            external_values=production_external_values,
        )

        admins = config.security.cluster_access.admins
        assert [a.arn for a in admins] == [production_external_values.admin_role_arn]
        assert admins[0].name == "admin"

    def test_from_environ(self) -> None:
        """Test ExternalValues reads CLUSTERFORGE_* variables."""
        values = ExternalValues.from_environ(
            {
                "CLUSTERFORGE_DOMAIN_NAME": "acme.io",
                "CLUSTERFORGE_GITOPS_REPO_URL": "https://github.com/acme/gitops.git",
                "UNRELATED": "ignored",
            }
        )

        assert values.domain_name == "acme.io"
        assert values.git_ops_repo_url == "https://github.com/acme/gitops.git"
        assert values.hosted_zone_id is None

    def test_repo_url_creates_disabled_section(self) -> None:
        """Test a repository URL is kept when no GitOps section exists."""
        section = argocd_from_external({}, ExternalValues(git_ops_repo_url="https://x/y.git"))

        assert section["argocd"]["enabled"] is False
        assert section["argocd"]["git_ops_repo_url"] == "https://x/y.git"

    def test_org_alone_does_not_create_section(self) -> None:
        """Test an organization alone does not create a GitOps section."""
        assert argocd_from_external({}, ExternalValues(github_org="acme")) == {}

    def test_apply_external_values_skips_unset(self) -> None:
        """Test UNSET fields leave the tree untouched."""
        tree = {"dns": {"hosted_zone_id": "Z1", "domain_name": "a.io"}}

        result = apply_external_values(tree, ExternalValues(domain_name="b.io"))

        assert result == {"dns": {"hosted_zone_id": "Z1", "domain_name": "b.io"}}


class TestOverridesAndDerivations:
    """Tests for caller overrides and derived fields."""

    def test_overrides_take_precedence(self) -> None:
        """Test caller overrides win over layers and external values."""
        config = resolve_configuration(
            environment_layers("staging", ACCOUNT_ID, REGION),
            external_values=ExternalValues(domain_name="acme.io"),
            overrides={"dns": {"domain_name": "override.io"}, "network": {"max_azs": 2}},
        )

        assert config.dns.domain_name == "override.io"
        assert config.network.max_azs == 2

    def test_derivations_see_overrides(self) -> None:
        """Test derived hostname uses the final domain."""
        config = resolve_configuration(
            environment_layers("staging", ACCOUNT_ID, REGION),
            overrides={"dns": {"domain_name": "override.io"}},
        )

        assert config.argocd is not None
        assert config.argocd.hostname == "argocd.override.io"

    def test_explicit_hostname_never_overwritten(self) -> None:
        """Test an explicit hostname survives derivation."""
        config = resolve_configuration(
            environment_layers("staging", ACCOUNT_ID, REGION),
            overrides={"argocd": {"hostname": "gitops.internal"}},
        )

        assert config.argocd is not None
        assert config.argocd.hostname == "gitops.internal"

    def test_oauth_secret_name_derived(self) -> None:
        """Test the OAuth secret name follows the environment."""
        config = resolve_configuration(environment_layers("dev", ACCOUNT_ID, REGION))

        assert config.argocd is not None
        assert config.argocd.oauth_secret_name == "dev-argocd-github-oauth"

    def test_cluster_name_unchanged(self) -> None:
        """Test the cluster name is not derived."""
        config = resolve_configuration(environment_layers("dev", ACCOUNT_ID, REGION))

        assert config.cluster.name == "eks"
        assert config.full_cluster_name == "dev-eks"

    def test_no_gitops_section_no_derivation(self) -> None:
        """Test derivations do nothing without a GitOps section."""
        tree = {"environment": "dev", "dns": {"domain_name": "a.io"}}

        assert apply_derivations(tree) == tree

    def test_hostname_not_derived_without_domain(self) -> None:
        """Test no hostname is derived when the domain is empty."""
        tree = {"environment": "dev", "argocd": {"enabled": True}, "dns": {"domain_name": ""}}

        result = apply_derivations(tree)

        assert "hostname" not in result["argocd"]
        assert result["argocd"]["oauth_secret_name"] == "dev-argocd-github-oauth"

    def test_resolver_instance_is_reusable(self) -> None:
        """Test one resolver resolves several environments."""
        resolver = ConfigurationResolver()

        dev = resolver.resolve(environment_layers("dev", ACCOUNT_ID, REGION))
        staging = resolver.resolve(environment_layers("staging", ACCOUNT_ID, REGION))

        assert dev.environment == Environment.DEV
        assert staging.environment == Environment.STAGING
