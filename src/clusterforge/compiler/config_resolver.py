"""Configuration resolver for clusterforge.

This module resolves an ordered stack of configuration layers into one
fully-specified EnvironmentConfig:
- ConfigurationResolver: Layer folding, external values, overrides, derivations
- resolve_configuration: Module-level convenience wrapper

Precedence (lowest first): layers in the given order < external values <
caller overrides. Derived fields are filled in last and never overwrite an
explicit value.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import pydantic

from clusterforge.compiler.coercion import coerce_record, error_location
from clusterforge.errors import ResolutionError, ValidationError
from clusterforge.merge import UNSET, deep_merge, merge_all
from clusterforge.schemas.environment_config import (
    ConfigurationLayer,
    EnvironmentConfig,
    ExternalValues,
)

logger = logging.getLogger(__name__)

# Prefix of the derived GitOps UI hostname
ARGOCD_HOSTNAME_PREFIX = "argocd"

# Suffix of the derived OAuth secret name
OAUTH_SECRET_SUFFIX = "argocd-github-oauth"

# Display name of the principal created from ``admin_role_arn``
EXTERNAL_ADMIN_NAME = "admin"


def _supplied(value: str | None) -> Any:
    return value if value else UNSET


def _section(tree: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = tree.get(key)
    return value if isinstance(value, Mapping) else None


# =============================================================================
# External values: one defaulting function per field group
# =============================================================================


def dns_from_external(external: ExternalValues) -> dict[str, Any]:
    """DNS zone and domain, when supplied."""
    if not external.hosted_zone_id and not external.domain_name:
        return {}
    return {
        "dns": {
            "hosted_zone_id": _supplied(external.hosted_zone_id),
            "domain_name": _supplied(external.domain_name),
        }
    }


def argocd_from_external(tree: Mapping[str, Any], external: ExternalValues) -> dict[str, Any]:
    """GitOps repository URL and organization, when supplied.

    A missing GitOps section is created disabled when a repository URL is
    supplied, so the value is not lost.
    """
    if not external.git_ops_repo_url and not external.github_org:
        return {}
    section: dict[str, Any] = {
        "git_ops_repo_url": _supplied(external.git_ops_repo_url),
        "github_org": _supplied(external.github_org),
    }
    if _section(tree, "argocd") is None:
        if not external.git_ops_repo_url:
            return {}
        section["enabled"] = False
    return {"argocd": section}


def admins_from_external(external: ExternalValues) -> dict[str, Any]:
    """Cluster admin principal from ``admin_role_arn``, when supplied."""
    if not external.admin_role_arn:
        return {}
    return {
        "security": {
            "cluster_access": {
                "admins": [{"arn": external.admin_role_arn, "name": EXTERNAL_ADMIN_NAME}],
            }
        }
    }


def apply_external_values(
    tree: Mapping[str, Any],
    external: ExternalValues,
) -> dict[str, Any]:
    """Merge supplied external values onto ``tree``.

    Absent values never replace a value already present in ``tree``.
    """
    return merge_all(
        [
            tree,
            dns_from_external(external),
            argocd_from_external(tree, external),
            admins_from_external(external),
        ]
    )


# =============================================================================
# Derived fields: computed after every direct value is in place
# =============================================================================


def derive_argocd_hostname(tree: Mapping[str, Any]) -> Any:
    """``argocd.<domain>`` when the GitOps section exists, the domain is
    known and no hostname was set; UNSET otherwise."""
    argocd = _section(tree, "argocd")
    if argocd is None or argocd.get("hostname"):
        return UNSET
    dns = _section(tree, "dns") or {}
    domain = dns.get("domain_name")
    if not domain:
        return UNSET
    return f"{ARGOCD_HOSTNAME_PREFIX}.{domain}"


def derive_oauth_secret_name(tree: Mapping[str, Any]) -> Any:
    """``<environment>-argocd-github-oauth`` when unset; UNSET otherwise."""
    argocd = _section(tree, "argocd")
    if argocd is None or argocd.get("oauth_secret_name"):
        return UNSET
    environment = tree.get("environment")
    if not isinstance(environment, str) or not environment:
        return UNSET
    return f"{environment}-{OAUTH_SECRET_SUFFIX}"


def apply_derivations(tree: Mapping[str, Any]) -> dict[str, Any]:
    """Fill in derived fields without touching explicit values."""
    if _section(tree, "argocd") is None:
        return deep_merge(tree, {})
    return deep_merge(
        tree,
        {
            "argocd": {
                "hostname": derive_argocd_hostname(tree),
                "oauth_secret_name": derive_oauth_secret_name(tree),
            }
        },
    )


class ConfigurationResolver:
    """Resolves configuration layers into an EnvironmentConfig.

    The resolver holds no state; default layers are passed in by the caller.

    Example:
        >>> from clusterforge.defaults import environment_layers
        >>> resolver = ConfigurationResolver()
        >>> config = resolver.resolve(
        ...     environment_layers("staging", "123456789012", "us-west-2"),
        ...     external_values=ExternalValues(domain_name="example.com"),
        ... )
        >>> config.argocd.hostname
        'argocd.example.com'
    """

    def resolve(
        self,
        layers: Sequence[ConfigurationLayer],
        external_values: ExternalValues | Mapping[str, str | None] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> EnvironmentConfig:
        """Resolve ``layers`` into a fully-specified configuration.

        Args:
            layers: Layers in precedence order (later layers win).
            external_values: Org-specific runtime values; absent values are skipped.
            overrides: Caller overrides, applied above everything else.

        Returns:
            The resolved, validated EnvironmentConfig.

        Raises:
            ResolutionError: If a required field is still missing.
            ValidationError: If a value has the wrong type or shape.
        """
        layer_names = [layer.name for layer in layers]
        logger.debug("Resolving configuration from layers: %s", ", ".join(layer_names))

        tree = merge_all(layer.values for layer in layers)

        if external_values is not None:
            external_values = coerce_record(
                ExternalValues, external_values, record="external_values"
            )
            tree = apply_external_values(tree, external_values)

        if overrides:
            tree = deep_merge(tree, overrides)
            layer_names.append("overrides")

        tree = apply_derivations(tree)
        config = self._validate(tree, layer_names)

        logger.info(
            "Resolved configuration for environment '%s' from %d layers",
            config.environment.value,
            len(layers),
        )
        return config

    def _validate(self, tree: dict[str, Any], layer_names: list[str]) -> EnvironmentConfig:
        try:
            return EnvironmentConfig.model_validate(tree)
        except pydantic.ValidationError as e:
            missing = [err for err in e.errors() if err.get("type") == "missing"]
            if missing:
                field_path = ".".join(str(part) for part in missing[0]["loc"])
                logger.warning("Required field '%s' missing after layering", field_path)
                raise ResolutionError(
                    field_path,
                    layers=layer_names,
                    internal_details=str(e),
                ) from e
            raise ValidationError(
                "Resolved configuration is invalid",
                field_path=error_location(e),
                internal_details=str(e),
            ) from e


def resolve_configuration(
    layers: Sequence[ConfigurationLayer],
    external_values: ExternalValues | Mapping[str, str | None] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EnvironmentConfig:
    """Resolve ``layers`` with a fresh ConfigurationResolver."""
    return ConfigurationResolver().resolve(layers, external_values, overrides)
