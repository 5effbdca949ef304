"""Compiled-in configuration layers.

These layers are read-only constants. Callers pass them to the resolver
explicitly; the resolver never reads them on its own.

Layer order for an environment (lowest precedence first):
1. BASE_LAYER: values shared by every environment
2. Identity layer: environment name, AWS account and region
3. DEV_LAYER / STAGING_LAYER / PRODUCTION_LAYER: environment overrides

Example:
    >>> from clusterforge.compiler import resolve_configuration
    >>> layers = environment_layers("dev", "123456789012", "us-west-2")
    >>> config = resolve_configuration(layers)
    >>> config.network.nat_gateways
    1
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from clusterforge.schemas.environment_config import ConfigurationLayer, Environment

BASE_LAYER = ConfigurationLayer(
    name="base",
    values={
        "features": {
            "multi_az_nat": True,
            "trivy_admission": True,
            "velero_backups": True,
            "goldilocks": True,
            "cost_allocation_tags": True,
            "vpc_endpoints": True,
            "node_local_dns": True,
            "default_network_policies": True,
            "priority_classes": True,
            "resource_quotas": True,
            "pod_disruption_budgets": True,
            "argocd_enabled": True,
            "backstage_enabled": False,
        },
        "network": {
            "vpc_cidr": "10.0.0.0/16",
            "nat_gateways": 2,
            "max_azs": 3,
            "flow_logs": True,
        },
        "cluster": {
            "version": "1.35",
            "name": "eks",
            "private_endpoint": True,
            "public_endpoint": True,
            "logging": ["api", "audit", "authenticator", "controllerManager", "scheduler"],
            "secrets_encryption": True,
        },
        "system_node_group": {
            "instance_types": ["m5a.large", "m5.large"],
            "min_size": 2,
            "max_size": 6,
            "desired_size": 2,
            "disk_size": 100,
            "ami_type": "BOTTLEROCKET_x86_64",
        },
        "karpenter": {
            "node_pool_name": "default",
            "instance_categories": ["m", "c", "r"],
            "instance_sizes": ["medium", "large", "xlarge", "2xlarge"],
            "spot_enabled": True,
            "cpu_limit": 100,
            "memory_limit_gi": 200,
            "consolidation_policy": "WhenEmptyOrUnderutilized",
            "consolidate_after": "1m",
        },
        "observability": {
            "loki_retention_days": 30,
            "tempo_retention_days": 7,
            "container_insights": True,
        },
        "backup": {
            # Set per environment
            "bucket_name": "",
            "daily_retention_days": 30,
            "weekly_retention_days": 90,
            "included_namespaces": [],
        },
        "dns": {
            # Set per environment or from external values
            "hosted_zone_id": "",
            "domain_name": "",
            "wildcard_cert": True,
        },
        "security": {
            "allowed_registries": [],
            "trivy_severity_threshold": "HIGH",
            "cluster_access": {
                "authentication_mode": "API_AND_CONFIG_MAP",
                "add_deployer_as_admin": True,
            },
        },
        "tags": {
            "managed-by": "clusterforge",
            "project": "aws-eks",
        },
    },
)

DEV_LAYER = ConfigurationLayer(
    name="dev",
    values={
        "features": {
            "multi_az_nat": False,
            "trivy_admission": False,
            "velero_backups": False,
            "default_network_policies": False,
            "resource_quotas": False,
            "pod_disruption_budgets": False,
        },
        "argocd": {
            "enabled": True,
            "git_ops_repo_url": "https://github.com/example/aws-eks-gitops.git",
            "git_ops_revision": "main",
            "git_ops_path": "applicationsets",
            "platform_project_name": "platform",
            "sso_enabled": False,
            "rbac_default_policy": "role:admin",
        },
        "network": {
            "nat_gateways": 1,
            "flow_logs": False,
        },
        "system_node_group": {
            "min_size": 2,
            "max_size": 4,
            "desired_size": 2,
            "disk_size": 50,
        },
        "karpenter": {
            "cpu_limit": 50,
            "memory_limit_gi": 100,
        },
        "observability": {
            "loki_retention_days": 7,
            "tempo_retention_days": 3,
            "container_insights": False,
        },
        "backup": {
            "bucket_name": "aws-eks-dev-backups",
            "daily_retention_days": 7,
            "weekly_retention_days": 14,
        },
        "dns": {
            "domain_name": "dev.example.com",
        },
        "security": {
            "trivy_severity_threshold": "CRITICAL",
        },
        "tags": {
            "environment": "dev",
            "cost-center": "development",
        },
    },
)

STAGING_LAYER = ConfigurationLayer(
    name="staging",
    values={
        "argocd": {
            "enabled": True,
            "git_ops_repo_url": "https://github.com/example/aws-eks-gitops.git",
            "sso_enabled": False,
        },
        "network": {
            "nat_gateways": 2,
            "flow_logs": True,
        },
        "karpenter": {
            "cpu_limit": 75,
            "memory_limit_gi": 150,
        },
        "observability": {
            "loki_retention_days": 14,
            "tempo_retention_days": 7,
        },
        "backup": {
            "bucket_name": "aws-eks-staging-backups",
            "daily_retention_days": 14,
            "weekly_retention_days": 30,
        },
        "dns": {
            "domain_name": "staging.example.com",
        },
        "tags": {
            "environment": "staging",
            "cost-center": "staging",
        },
    },
)

# The GitOps repository URL is org-specific and comes from external values
PRODUCTION_LAYER = ConfigurationLayer(
    name="production",
    values={
        "features": {
            "backstage_enabled": True,
        },
        "argocd": {
            "enabled": True,
            "sso_enabled": False,
        },
        "network": {
            "nat_gateways": 3,
            "flow_logs": True,
        },
        "cluster": {
            "public_endpoint": False,
        },
        "system_node_group": {
            "min_size": 3,
            "max_size": 10,
            "desired_size": 3,
        },
        "karpenter": {
            "cpu_limit": 200,
            "memory_limit_gi": 400,
            "instance_categories": ["m", "c", "r", "i"],
            "instance_sizes": ["large", "xlarge", "2xlarge", "4xlarge"],
        },
        "observability": {
            "loki_retention_days": 90,
            "tempo_retention_days": 30,
        },
        "backup": {
            "bucket_name": "aws-eks-production-backups",
        },
        "tags": {
            "environment": "production",
            "cost-center": "production",
            "compliance": "soc2,hipaa,pci-dss",
            "data-classification": "confidential",
        },
    },
)

ENVIRONMENT_LAYERS: Mapping[Environment, ConfigurationLayer] = MappingProxyType(
    {
        Environment.DEV: DEV_LAYER,
        Environment.STAGING: STAGING_LAYER,
        Environment.PRODUCTION: PRODUCTION_LAYER,
    }
)


def identity_layer(
    environment: Environment | str,
    account_id: str,
    region: str,
) -> ConfigurationLayer:
    """Build the layer carrying the environment name and AWS identity."""
    env = Environment(environment)
    return ConfigurationLayer(
        name=f"{env.value}-identity",
        values={
            "environment": env.value,
            "aws": {"account_id": account_id, "region": region},
        },
    )


def environment_layers(
    environment: Environment | str,
    account_id: str,
    region: str,
) -> tuple[ConfigurationLayer, ...]:
    """Return the compiled-in layer stack for an environment.

    Args:
        environment: Target environment ("dev", "staging" or "production").
        account_id: 12-digit AWS account ID.
        region: AWS region (e.g., "us-west-2").

    Returns:
        Ordered tuple (base, identity, environment overrides).

    Raises:
        ValueError: If ``environment`` is not a known environment.
    """
    env = Environment(environment)
    return (
        BASE_LAYER,
        identity_layer(env, account_id, region),
        ENVIRONMENT_LAYERS[env],
    )
