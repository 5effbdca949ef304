"""Compiler module for clusterforge.

This module exports the resolver, compilers and output models:
- ConfigurationResolver: Resolve layers into an EnvironmentConfig
- validate_config: Semantic checks over a resolved configuration
- Security, network and resource compilers: Intent records to documents
- AccessPrincipalResolver: Personas and custom principals to access documents
- PlatformCompiler: Fan-out over every compiler into a CompiledBundle
- CompiledDocument / CompiledBundle: Output models
"""

from __future__ import annotations

from clusterforge.compiler.access_resolver import (
    PERSONA_ENTITLEMENTS,
    AccessPrincipalResolver,
    PersonaEntitlement,
    create_access_config,
    persona_entitlement,
    principal_identifier,
    resolve_access,
)
from clusterforge.compiler.config_resolver import (
    ConfigurationResolver,
    apply_derivations,
    apply_external_values,
    resolve_configuration,
)
from clusterforge.compiler.config_validator import (
    ConfigIssue,
    ConfigValidationResult,
    IssueSeverity,
    assert_valid_config,
    validate_config,
)
from clusterforge.compiler.document import (
    MANAGED_BY_LABEL,
    CompiledBundle,
    CompiledDocument,
    DocumentMetadata,
    compute_source_hash,
)
from clusterforge.compiler.network_compiler import (
    allow_fqdn_egress,
    allow_namespace_ingress,
    build_egress_rule,
    build_endpoint_selector,
    build_ingress_rule,
    compile_default_deny,
    compile_network_policy,
    database_access,
    normalize_ports,
)
from clusterforge.compiler.platform_compiler import (
    PlatformCompiler,
    PlatformIntents,
    compile_platform,
)
from clusterforge.compiler.resource_compiler import (
    application_disruption_budget,
    compile_disruption_budget,
    compile_limit_range,
    compile_namespace_quota,
    compile_priority_classes,
    compile_resource_quota,
    standard_priority_levels,
    system_disruption_budgets,
)
from clusterforge.compiler.security_compiler import (
    SecurityPolicies,
    build_rule,
    compile_cluster_policy,
    compile_environment_policy,
    compile_security_baseline,
    expand_pod_security,
    resolve_enforcement_action,
)

__all__: list[str] = [
    # Configuration resolution
    "ConfigurationResolver",
    "resolve_configuration",
    "apply_external_values",
    "apply_derivations",
    # Configuration validation
    "validate_config",
    "assert_valid_config",
    "ConfigValidationResult",
    "ConfigIssue",
    "IssueSeverity",
    # Security policies
    "resolve_enforcement_action",
    "expand_pod_security",
    "build_rule",
    "compile_cluster_policy",
    "compile_environment_policy",
    "compile_security_baseline",
    "SecurityPolicies",
    # Network policies
    "build_endpoint_selector",
    "normalize_ports",
    "build_ingress_rule",
    "build_egress_rule",
    "compile_network_policy",
    "compile_default_deny",
    "allow_namespace_ingress",
    "allow_fqdn_egress",
    "database_access",
    # Resource policies
    "compile_namespace_quota",
    "compile_resource_quota",
    "compile_limit_range",
    "standard_priority_levels",
    "compile_priority_classes",
    "compile_disruption_budget",
    "system_disruption_budgets",
    "application_disruption_budget",
    # Access
    "AccessPrincipalResolver",
    "PERSONA_ENTITLEMENTS",
    "PersonaEntitlement",
    "persona_entitlement",
    "principal_identifier",
    "resolve_access",
    "create_access_config",
    # Platform compilation
    "PlatformCompiler",
    "PlatformIntents",
    "compile_platform",
    # Output models
    "CompiledDocument",
    "CompiledBundle",
    "DocumentMetadata",
    "compute_source_hash",
    "MANAGED_BY_LABEL",
]
