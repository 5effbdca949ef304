"""Pydantic schemas for clusterforge.

This module exports the input models consumed by the resolver and compilers:
- Environment configuration (layers, external values, resolved tree)
- Security, network and resource intent records
- Cluster access configuration
"""

from __future__ import annotations

from clusterforge.schemas.access_config import (
    AccessEntryType,
    AccessPrincipal,
    AccessScopeType,
    AuthenticationMode,
    ClusterAccessConfig,
    CustomAccessPrincipal,
    Persona,
)
from clusterforge.schemas.environment_config import (
    ArgoCDConfig,
    AwsConfig,
    BackupConfig,
    ClusterConfig,
    ConfigurationLayer,
    DnsConfig,
    Environment,
    EnvironmentConfig,
    ExternalValues,
    FeatureFlags,
    KarpenterConfig,
    NetworkConfig,
    ObservabilityConfig,
    SecurityConfig,
    SystemNodeGroupConfig,
)
from clusterforge.schemas.network_policy import (
    DefaultDenySpec,
    EgressRule,
    EndpointSelector,
    IngressRule,
    NetworkPolicySpec,
    PolicyDirection,
    PolicyPort,
    Protocol,
)
from clusterforge.schemas.resource_policy import (
    STANDARD_QUOTA_TIERS,
    DisruptionBudgetSpec,
    LimitRangeSpec,
    NamespaceQuotaSpec,
    PreemptionPolicy,
    PriorityLevel,
    PriorityTier,
    QuotaTier,
    ResourceQuotaSpec,
    StandardPriorityValues,
)
from clusterforge.schemas.security_policy import (
    CanonicalPattern,
    ClusterPolicySpec,
    ComplianceFramework,
    Condition,
    DenyCondition,
    EnforcementAction,
    EnvironmentPolicySpec,
    PodSecurityIntent,
    PolicyCategory,
    PolicyIntent,
    PolicyRule,
    RuleExclude,
    RuleMatch,
)

__all__: list[str] = [
    # Environment configuration
    "Environment",
    "ConfigurationLayer",
    "ExternalValues",
    "EnvironmentConfig",
    "AwsConfig",
    "FeatureFlags",
    "NetworkConfig",
    "ClusterConfig",
    "SystemNodeGroupConfig",
    "KarpenterConfig",
    "ObservabilityConfig",
    "BackupConfig",
    "DnsConfig",
    "SecurityConfig",
    "ArgoCDConfig",
    # Access
    "AuthenticationMode",
    "AccessEntryType",
    "AccessScopeType",
    "Persona",
    "AccessPrincipal",
    "CustomAccessPrincipal",
    "ClusterAccessConfig",
    # Security policies
    "EnforcementAction",
    "PolicyCategory",
    "ComplianceFramework",
    "RuleMatch",
    "RuleExclude",
    "CanonicalPattern",
    "Condition",
    "DenyCondition",
    "PodSecurityIntent",
    "PolicyIntent",
    "PolicyRule",
    "ClusterPolicySpec",
    "EnvironmentPolicySpec",
    # Network policies
    "Protocol",
    "PolicyDirection",
    "EndpointSelector",
    "PolicyPort",
    "IngressRule",
    "EgressRule",
    "NetworkPolicySpec",
    "DefaultDenySpec",
    # Resource policies
    "QuotaTier",
    "STANDARD_QUOTA_TIERS",
    "ResourceQuotaSpec",
    "NamespaceQuotaSpec",
    "LimitRangeSpec",
    "PriorityTier",
    "PreemptionPolicy",
    "StandardPriorityValues",
    "PriorityLevel",
    "DisruptionBudgetSpec",
]
