"""Platform compiler for clusterforge.

This module fans a resolved configuration out to every compiler:
- PlatformIntents: Caller-supplied intent records for one environment
- PlatformCompiler: Compiles configuration + intents into a CompiledBundle

Feature flags in the resolved configuration gate which document families are
emitted. Every supplied intent record is compiled, and so validated, whether
or not its family is enabled.
A failure in any compiler aborts the compile; no partial bundle is returned.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from clusterforge.compiler.access_resolver import AccessPrincipalResolver
from clusterforge.compiler.coercion import coerce_record
from clusterforge.compiler.document import CompiledBundle, CompiledDocument
from clusterforge.compiler.network_compiler import compile_default_deny, compile_network_policy
from clusterforge.compiler.resource_compiler import (
    compile_disruption_budget,
    compile_limit_range,
    compile_namespace_quota,
    compile_priority_classes,
    compile_resource_quota,
    system_disruption_budgets,
)
from clusterforge.compiler.security_compiler import (
    compile_environment_policy,
    compile_security_baseline,
)
from clusterforge.schemas.environment_config import EnvironmentConfig
from clusterforge.schemas.network_policy import DefaultDenySpec, NetworkPolicySpec
from clusterforge.schemas.resource_policy import (
    DisruptionBudgetSpec,
    LimitRangeSpec,
    NamespaceQuotaSpec,
    PriorityLevel,
    ResourceQuotaSpec,
)
from clusterforge.schemas.security_policy import EnvironmentPolicySpec

logger = structlog.get_logger(__name__)


class PlatformIntents(BaseModel):
    """Intent records compiled alongside the resolved configuration.

    Attributes:
        security_baseline: Emit the built-in security policy catalog.
        policies: Additional environment-aware admission policies.
        network_policies: Reachability policies.
        default_deny: Namespaces to lock down by default.
        namespace_quotas: Tier-based namespace quotas.
        resource_quotas: Fully custom quotas.
        limit_ranges: Container default requests/limits.
        priority_levels: Priority hierarchy (None = standard levels).
        system_disruption_budgets: Emit budgets for platform components.
        disruption_budgets: Application disruption budgets.
        access: Emit access documents from ``security.cluster_access``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    security_baseline: bool = True
    policies: list[EnvironmentPolicySpec] = Field(default_factory=list)
    network_policies: list[NetworkPolicySpec] = Field(default_factory=list)
    default_deny: list[DefaultDenySpec] = Field(default_factory=list)
    namespace_quotas: list[NamespaceQuotaSpec] = Field(default_factory=list)
    resource_quotas: list[ResourceQuotaSpec] = Field(default_factory=list)
    limit_ranges: list[LimitRangeSpec] = Field(default_factory=list)
    priority_levels: list[PriorityLevel] | None = None
    system_disruption_budgets: bool = True
    disruption_budgets: list[DisruptionBudgetSpec] = Field(default_factory=list)
    access: bool = True


class PlatformCompiler:
    """Compile a resolved configuration and intents into a CompiledBundle.

    Document families are emitted in a fixed order: security policies,
    network policies, quotas and limit ranges, priority classes, disruption
    budgets, access documents.

    Example:
        >>> compiler = PlatformCompiler(config)
        >>> bundle = compiler.compile({"namespace_quotas": [{"namespace": "team-a"}]})
        >>> [doc.kind for doc in bundle.by_kind("ResourceQuota")]
        ['ResourceQuota']
    """

    def __init__(self, config: EnvironmentConfig) -> None:
        self.config = config
        self._log = logger.bind(
            component="platform_compiler",
            environment=config.environment.value,
        )

    def compile(
        self,
        intents: PlatformIntents | Mapping[str, Any] | None = None,
    ) -> CompiledBundle:
        """Compile every intent record and keep the enabled document families.

        Args:
            intents: Intent records; defaults only when None.

        Returns:
            Bundle with documents in emission order and their source hash.

        Raises:
            ValidationError: If any intent record is invalid, including
                records of a disabled family.
        """
        intents = coerce_record(PlatformIntents, intents or {}, record="platform_intents")
        documents: list[CompiledDocument] = []
        documents += self._security(intents)
        documents += self._network(intents)
        documents += self._quotas(intents)
        documents += self._priorities(intents)
        documents += self._disruption_budgets(intents)
        if intents.access:
            documents += AccessPrincipalResolver(self.config.security.cluster_access).resolve()

        bundle = CompiledBundle.from_documents(
            self.config.environment.value,
            self.config.full_cluster_name,
            documents,
        )
        self._log.info(
            "platform_compiled",
            cluster=bundle.cluster_name,
            documents=len(bundle.documents),
            source_hash=bundle.source_hash[:12],
        )
        return bundle

    def _security(self, intents: PlatformIntents) -> list[CompiledDocument]:
        documents = compile_security_baseline(self.config) if intents.security_baseline else []
        documents += [
            compile_environment_policy(policy, self.config.environment)
            for policy in intents.policies
        ]
        return documents

    def _gated(self, feature: str, documents: list[CompiledDocument]) -> list[CompiledDocument]:
        # documents are already compiled, so invalid records fail even when disabled
        if getattr(self.config.features, feature):
            return documents
        self._log.debug(
            "documents_skipped",
            feature=feature,
            reason="feature disabled",
            documents=len(documents),
        )
        return []

    def _network(self, intents: PlatformIntents) -> list[CompiledDocument]:
        documents: list[CompiledDocument] = []
        for deny in intents.default_deny:
            documents += compile_default_deny(deny)
        documents += [compile_network_policy(policy) for policy in intents.network_policies]
        return self._gated("default_network_policies", documents)

    def _quotas(self, intents: PlatformIntents) -> list[CompiledDocument]:
        documents = [
            compile_namespace_quota(quota.namespace, quota.tier, quota.custom_limits)
            for quota in intents.namespace_quotas
        ]
        documents += [compile_resource_quota(quota) for quota in intents.resource_quotas]
        documents += [compile_limit_range(limits) for limits in intents.limit_ranges]
        return self._gated("resource_quotas", documents)

    def _priorities(self, intents: PlatformIntents) -> list[CompiledDocument]:
        return self._gated("priority_classes", compile_priority_classes(intents.priority_levels))

    def _disruption_budgets(self, intents: PlatformIntents) -> list[CompiledDocument]:
        documents = system_disruption_budgets() if intents.system_disruption_budgets else []
        documents += [compile_disruption_budget(budget) for budget in intents.disruption_budgets]
        return self._gated("pod_disruption_budgets", documents)


def compile_platform(
    config: EnvironmentConfig,
    intents: PlatformIntents | Mapping[str, Any] | None = None,
) -> CompiledBundle:
    """Compile with a fresh PlatformCompiler."""
    return PlatformCompiler(config).compile(intents)
