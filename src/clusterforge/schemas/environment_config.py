"""Environment configuration models for clusterforge.

This module defines the resolved configuration tree and its inputs:
- ConfigurationLayer: One named, partial configuration tree
- ExternalValues: Org-specific runtime values supplied from outside
- EnvironmentConfig: The fully resolved configuration (every required field set)

Every section of EnvironmentConfig is required; defaults live in the
compiled-in layers (see clusterforge.defaults), not in the schema.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clusterforge.merge import freeze_tree
from clusterforge.schemas.access_config import ClusterAccessConfig

# Prefix for external value environment variables
EXTERNAL_ENV_PREFIX = "CLUSTERFORGE_"

# Pattern for layer names (diagnostics only)
LAYER_NAME_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_.:-]*$"


class Environment(str, Enum):
    """Deployment environment.

    Values:
        DEV: Cost-optimized development cluster.
        STAGING: Pre-production cluster.
        PRODUCTION: Production cluster (policies enforced).
    """

    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class ConfigurationLayer(BaseModel):
    """One partial configuration tree in the resolution stack.

    The tree has the same shape as EnvironmentConfig with every field optional.
    Values are copied into a read-only tree on construction: nested mappings
    become read-only views and lists become tuples, so a layer can be shared
    as a constant and the caller's dict can be reused.

    Attributes:
        name: Layer name, used only in diagnostics.
        values: Partial configuration tree.

    Example:
        >>> layer = ConfigurationLayer(name="dev", values={"network": {"nat_gateways": 1}})
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        pattern=LAYER_NAME_PATTERN,
        description="Layer name for diagnostics",
    )
    values: Mapping[str, Any] = Field(
        default_factory=dict,
        validate_default=True,
        description="Partial configuration tree",
    )

    @field_validator("values")
    @classmethod
    def freeze_values(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        """Detach the layer from the caller's mapping and make it read-only."""
        return freeze_tree(v)


class ExternalValues(BaseModel):
    """Org-specific values supplied at runtime.

    Every field is optional; an empty string counts as not supplied.

    Attributes:
        hosted_zone_id: DNS hosted zone ID.
        domain_name: Base DNS domain.
        git_ops_repo_url: GitOps repository URL.
        github_org: GitHub organization for SSO.
        admin_role_arn: IAM role ARN granted cluster admin.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    hosted_zone_id: str | None = None
    domain_name: str | None = None
    git_ops_repo_url: str | None = None
    github_org: str | None = None
    admin_role_arn: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> ExternalValues:
        """Build ExternalValues from ``CLUSTERFORGE_*`` variables.

        Args:
            environ: Mapping of variable names to values (e.g., ``os.environ``).

        Returns:
            ExternalValues with every variable that was present.

        Example:
            >>> ExternalValues.from_environ({"CLUSTERFORGE_DOMAIN_NAME": "example.com"})
            ExternalValues(hosted_zone_id=None, domain_name='example.com', ...)
        """
        return cls(
            hosted_zone_id=environ.get(f"{EXTERNAL_ENV_PREFIX}HOSTED_ZONE_ID"),
            domain_name=environ.get(f"{EXTERNAL_ENV_PREFIX}DOMAIN_NAME"),
            git_ops_repo_url=environ.get(f"{EXTERNAL_ENV_PREFIX}GITOPS_REPO_URL"),
            github_org=environ.get(f"{EXTERNAL_ENV_PREFIX}GITHUB_ORG"),
            admin_role_arn=environ.get(f"{EXTERNAL_ENV_PREFIX}ADMIN_ROLE_ARN"),
        )


# =============================================================================
# Resolved configuration sections
# =============================================================================


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class AwsConfig(_Section):
    """AWS account and region."""

    account_id: str = Field(..., description="12-digit AWS account ID")
    region: str = Field(..., description="AWS region (e.g., us-west-2)")


class FeatureFlags(_Section):
    """Feature toggles gating which documents are compiled."""

    multi_az_nat: bool
    trivy_admission: bool
    velero_backups: bool
    goldilocks: bool
    cost_allocation_tags: bool
    vpc_endpoints: bool
    node_local_dns: bool
    default_network_policies: bool
    priority_classes: bool
    resource_quotas: bool
    pod_disruption_budgets: bool
    argocd_enabled: bool
    backstage_enabled: bool


class NetworkConfig(_Section):
    """VPC network configuration."""

    vpc_cidr: str = Field(..., description="VPC CIDR block")
    nat_gateways: int = Field(..., description="Number of NAT gateways")
    max_azs: int = Field(..., description="Maximum availability zones")
    flow_logs: bool = Field(..., description="Enable VPC flow logs")


class ClusterConfig(_Section):
    """Control plane configuration."""

    version: str = Field(..., description="Kubernetes version (e.g., 1.31)")
    name: str = Field(..., description="Cluster name suffix")
    private_endpoint: bool
    public_endpoint: bool
    logging: list[str] = Field(..., description="Control plane log types")
    secrets_encryption: bool


class SystemNodeGroupConfig(_Section):
    """Managed node group for system components."""

    instance_types: list[str]
    min_size: int
    max_size: int
    desired_size: int
    disk_size: int = Field(..., description="Root volume size in GB")
    ami_type: str


class KarpenterConfig(_Section):
    """Node autoscaler configuration."""

    node_pool_name: str
    instance_categories: list[str]
    instance_sizes: list[str]
    spot_enabled: bool
    cpu_limit: int
    memory_limit_gi: int
    consolidation_policy: str
    consolidate_after: str


class ObservabilityConfig(_Section):
    """Log and trace retention."""

    loki_retention_days: int
    tempo_retention_days: int
    container_insights: bool


class BackupConfig(_Section):
    """Cluster backup configuration."""

    bucket_name: str
    daily_retention_days: int
    weekly_retention_days: int
    included_namespaces: list[str] = Field(
        ...,
        description="Namespaces to back up (empty = all)",
    )


class DnsConfig(_Section):
    """DNS configuration."""

    hosted_zone_id: str
    domain_name: str
    wildcard_cert: bool


class SecurityConfig(_Section):
    """Admission and access configuration."""

    allowed_registries: list[str] = Field(
        ...,
        description="Image registry prefixes allowed in workloads (empty = any)",
    )
    trivy_severity_threshold: str
    cluster_access: ClusterAccessConfig


class ArgoCDConfig(_Section):
    """GitOps controller configuration.

    ``hostname`` and ``oauth_secret_name`` are derived by the resolver when
    left unset.
    """

    enabled: bool
    git_ops_repo_url: str
    git_ops_revision: str = "main"
    git_ops_path: str = "applicationsets"
    platform_project_name: str = "platform"
    hostname: str | None = None
    sso_enabled: bool = False
    github_org: str | None = None
    oauth_secret_name: str | None = None
    rbac_default_policy: str = "role:readonly"


class EnvironmentConfig(_Section):
    """Fully resolved configuration for one environment.

    Created by ConfigurationResolver; treat as a value.

    Attributes:
        environment: Deployment environment.
        aws: Account and region.
        features: Feature flags.
        network: VPC configuration.
        cluster: Control plane configuration.
        system_node_group: System node group.
        karpenter: Node autoscaler.
        observability: Retention settings.
        backup: Backup settings.
        dns: DNS settings.
        security: Admission and access settings.
        tags: Resource tags.
        argocd: Optional GitOps settings.
    """

    environment: Environment
    aws: AwsConfig
    features: FeatureFlags
    network: NetworkConfig
    cluster: ClusterConfig
    system_node_group: SystemNodeGroupConfig
    karpenter: KarpenterConfig
    observability: ObservabilityConfig
    backup: BackupConfig
    dns: DnsConfig
    security: SecurityConfig
    tags: dict[str, str]
    argocd: ArgoCDConfig | None = None

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def full_cluster_name(self) -> str:
        """Cluster name as ``<environment>-<name>``."""
        return f"{self.environment.value}-{self.cluster.name}"
