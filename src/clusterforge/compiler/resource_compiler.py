"""Tiered resource compiler for clusterforge.

Expands presets and custom records into resource documents:
- compile_namespace_quota / compile_resource_quota: ResourceQuota
- compile_limit_range: LimitRange with container defaults
- standard_priority_levels / compile_priority_classes: PriorityClass batch
- compile_disruption_budget: PodDisruptionBudget
- system_disruption_budgets / application_disruption_budget: PDB presets

Batch-level rules (one implicit default, ordered values) are checked over the
whole batch before any document is returned.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog

from clusterforge.compiler.coercion import coerce_record
from clusterforge.compiler.document import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    CompiledDocument,
    DocumentMetadata,
)
from clusterforge.errors import TierNotFoundError, ValidationError
from clusterforge.merge import deep_merge
from clusterforge.schemas.resource_policy import (
    DEFAULT_QUOTA_TIER,
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

logger = structlog.get_logger(__name__)

QUOTA_TIER_LABEL = "quota-tier"
LIMIT_RANGE_NAME = "default-limits"
MONITORING_NAMESPACE = "monitoring"
SYSTEM_NAMESPACE = "kube-system"


def _managed_labels(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    labels = {MANAGED_BY_LABEL: MANAGED_BY_VALUE}
    if extra:
        labels.update(extra)
    return labels


# =============================================================================
# Quotas
# =============================================================================


def tier_limits(tier: QuotaTier | str) -> dict[str, str]:
    """Return a copy of a tier's base table.

    Raises:
        TierNotFoundError: If ``tier`` is not a known preset.
    """
    try:
        quota_tier = QuotaTier(tier)
    except ValueError:
        raise TierNotFoundError(str(tier), [t.value for t in QuotaTier]) from None
    return dict(STANDARD_QUOTA_TIERS[quota_tier])


def compile_resource_quota(spec: ResourceQuotaSpec | Mapping[str, Any]) -> CompiledDocument:
    """Compile a fully custom quota."""
    spec = coerce_record(ResourceQuotaSpec, spec)
    return CompiledDocument(
        api_version="v1",
        kind="ResourceQuota",
        metadata=DocumentMetadata(
            name=spec.name,
            namespace=spec.namespace,
            labels=_managed_labels(spec.labels),
            annotations=dict(spec.annotations),
        ),
        body={"spec": {"hard": dict(spec.hard)}},
    )


def compile_namespace_quota(
    namespace: str,
    tier: QuotaTier | str = DEFAULT_QUOTA_TIER,
    custom_limits: Mapping[str, str | int] | None = None,
) -> CompiledDocument:
    """Compile a tier preset for a namespace.

    The tier's table is looked up and ``custom_limits`` is merged on top;
    the override wins per key and every other key is unchanged.

    Args:
        namespace: Target namespace.
        tier: Preset name (default "medium").
        custom_limits: Per-key overrides.

    Returns:
        A ResourceQuota named ``<namespace>-quota``.

    Raises:
        TierNotFoundError: If ``tier`` is unknown.
        ValidationError: If the namespace or an override is malformed.

    Example:
        >>> doc = compile_namespace_quota("team-a", "medium", {"pods": 75})
        >>> doc.body["spec"]["hard"]["pods"]
        '75'
    """
    spec = coerce_record(
        NamespaceQuotaSpec,
        {"namespace": namespace, "tier": tier, "custom_limits": dict(custom_limits or {})},
        record=f"{namespace}-quota",
    )
    hard = deep_merge(tier_limits(spec.tier), spec.custom_limits)

    logger.debug(
        "namespace_quota_compiled",
        component="resource_compiler",
        namespace=spec.namespace,
        tier=spec.tier,
        overrides=sorted(spec.custom_limits),
    )
    return compile_resource_quota(
        ResourceQuotaSpec(
            name=f"{spec.namespace}-quota",
            namespace=spec.namespace,
            hard=hard,
            labels={QUOTA_TIER_LABEL: spec.tier},
        )
    )


def compile_limit_range(spec: LimitRangeSpec | Mapping[str, Any]) -> CompiledDocument:
    """Compile default container requests/limits for a namespace."""
    spec = coerce_record(LimitRangeSpec, spec, record=LIMIT_RANGE_NAME)
    limit: dict[str, Any] = {
        "type": "Container",
        "default": {"cpu": spec.default_cpu_limit, "memory": spec.default_memory_limit},
        "defaultRequest": {"cpu": spec.default_cpu_request, "memory": spec.default_memory_request},
    }
    for key, cpu, memory in (
        ("max", spec.max_cpu, spec.max_memory),
        ("min", spec.min_cpu, spec.min_memory),
    ):
        bound: dict[str, str] = {}
        if cpu:
            bound["cpu"] = cpu
        if memory:
            bound["memory"] = memory
        if bound:
            limit[key] = bound

    return CompiledDocument(
        api_version="v1",
        kind="LimitRange",
        metadata=DocumentMetadata(
            name=LIMIT_RANGE_NAME,
            namespace=spec.namespace,
            labels=_managed_labels(),
        ),
        body={"spec": {"limits": [limit]}},
    )


# =============================================================================
# Priority classes
# =============================================================================


def standard_priority_levels(
    create_platform: bool = True,
    create_workload: bool = True,
) -> list[PriorityLevel]:
    """Return the standard priority hierarchy, highest first.

    ``workload-standard`` is the implicit default; ``workload-preemptible``
    never preempts other pods.
    """
    levels: list[PriorityLevel] = []
    if create_platform:
        levels += [
            PriorityLevel(
                name="platform-critical",
                tier=PriorityTier.PLATFORM,
                value=StandardPriorityValues.PLATFORM_HIGH.value,
                description="Critical platform services (CNI, monitoring agents, etc.)",
            ),
            PriorityLevel(
                name="platform-standard",
                tier=PriorityTier.PLATFORM,
                value=StandardPriorityValues.PLATFORM_MEDIUM.value,
                description="Standard platform services (dashboards, optional components)",
            ),
        ]
    if create_workload:
        levels += [
            PriorityLevel(
                name="workload-critical",
                tier=PriorityTier.WORKLOAD,
                value=StandardPriorityValues.WORKLOAD_HIGH.value,
                description="Business-critical workloads requiring high availability",
            ),
            PriorityLevel(
                name="workload-standard",
                tier=PriorityTier.WORKLOAD,
                value=StandardPriorityValues.WORKLOAD_MEDIUM.value,
                global_default=True,
                description="Standard workloads (default priority class)",
            ),
            PriorityLevel(
                name="workload-low",
                tier=PriorityTier.WORKLOAD,
                value=StandardPriorityValues.WORKLOAD_LOW.value,
                description="Low-priority batch workloads",
            ),
            PriorityLevel(
                name="workload-preemptible",
                tier=PriorityTier.WORKLOAD,
                value=StandardPriorityValues.WORKLOAD_BEST_EFFORT.value,
                preemption_policy=PreemptionPolicy.NEVER,
                description="Best-effort workloads that can be preempted",
            ),
        ]
    return levels


def validate_priority_batch(levels: Sequence[PriorityLevel]) -> None:
    """Check batch-wide priority rules.

    - At most one level is the implicit default
    - Names are unique
    - Values strictly decrease in emission order
    - Every platform level sits above every workload level

    Raises:
        ValidationError: On the first rule that fails.
    """
    defaults = [level.name for level in levels if level.global_default]
    if len(defaults) > 1:
        raise ValidationError(
            "Only one priority level may be the global default",
            record=", ".join(defaults),
            field_path="global_default",
        )

    seen: set[str] = set()
    for level in levels:
        if level.name in seen:
            raise ValidationError(
                "Duplicate priority level name",
                record=level.name,
                field_path="name",
            )
        seen.add(level.name)

    for previous, current in zip(levels, levels[1:]):
        if current.value >= previous.value:
            raise ValidationError(
                f"Priority values must strictly decrease ({previous.name}={previous.value}, "
                f"{current.name}={current.value})",
                record=current.name,
                field_path="value",
            )

    platform = [level.value for level in levels if level.tier == PriorityTier.PLATFORM]
    workload = [level.value for level in levels if level.tier == PriorityTier.WORKLOAD]
    if platform and workload and min(platform) <= max(workload):
        raise ValidationError(
            "Platform priority levels must be above every workload level",
            field_path="value",
        )


def compile_priority_classes(
    levels: Iterable[PriorityLevel | Mapping[str, Any]] | None = None,
) -> list[CompiledDocument]:
    """Compile a batch of priority levels.

    Args:
        levels: Levels in emission order; the standard hierarchy when None.

    Returns:
        One PriorityClass per level, in the given order.

    Raises:
        ValidationError: If a level or the batch as a whole is invalid.
    """
    batch = [
        coerce_record(PriorityLevel, level)
        for level in (standard_priority_levels() if levels is None else levels)
    ]
    validate_priority_batch(batch)

    documents = []
    for level in batch:
        body: dict[str, Any] = {
            "value": int(level.value),
            "globalDefault": level.global_default,
            "preemptionPolicy": level.preemption_policy.value,
        }
        if level.description:
            body["description"] = level.description
        documents.append(
            CompiledDocument(
                api_version="scheduling.k8s.io/v1",
                kind="PriorityClass",
                metadata=DocumentMetadata(
                    name=level.name,
                    labels=_managed_labels({"priority-tier": level.tier.value}),
                ),
                body=body,
            )
        )

    logger.debug("priority_classes_compiled", component="resource_compiler", count=len(documents))
    return documents


# =============================================================================
# Disruption budgets
# =============================================================================


def compile_disruption_budget(spec: DisruptionBudgetSpec | Mapping[str, Any]) -> CompiledDocument:
    """Compile one disruption budget.

    Raises:
        ValidationError: If both or neither of ``min_available`` and
            ``max_unavailable`` are set, or a value is malformed.

    Example:
        >>> doc = compile_disruption_budget(
        ...     {"name": "api-pdb", "namespace": "team-a", "selector": {"app": "api"},
        ...      "max_unavailable": "25%"}
        ... )
        >>> doc.body["spec"]["maxUnavailable"]
        '25%'
    """
    spec = coerce_record(DisruptionBudgetSpec, spec)
    if spec.min_available is not None and spec.max_unavailable is not None:
        raise ValidationError(
            "Cannot specify both min_available and max_unavailable",
            record=spec.name,
            field_path="min_available",
        )
    if spec.min_available is None and spec.max_unavailable is None:
        raise ValidationError(
            "Must specify either min_available or max_unavailable",
            record=spec.name,
            field_path="min_available",
        )

    budget: dict[str, Any] = {"selector": {"matchLabels": dict(spec.selector)}}
    if spec.min_available is not None:
        budget["minAvailable"] = spec.min_available
    else:
        budget["maxUnavailable"] = spec.max_unavailable

    return CompiledDocument(
        api_version="policy/v1",
        kind="PodDisruptionBudget",
        metadata=DocumentMetadata(
            name=spec.name,
            namespace=spec.namespace,
            labels=_managed_labels(spec.labels),
        ),
        body={"spec": budget},
    )


def system_disruption_budgets(
    coredns: bool = True,
    cilium: bool = True,
    karpenter: bool = True,
    monitoring: bool = True,
) -> list[CompiledDocument]:
    """Disruption budgets for platform components."""
    specs: list[DisruptionBudgetSpec] = []
    if coredns:
        specs.append(
            DisruptionBudgetSpec(
                name="coredns-pdb",
                namespace=SYSTEM_NAMESPACE,
                selector={"k8s-app": "kube-dns"},
                min_available=1,
                labels={"component": "coredns"},
            )
        )
    if cilium:
        specs += [
            DisruptionBudgetSpec(
                name="cilium-operator-pdb",
                namespace=SYSTEM_NAMESPACE,
                selector={"name": "cilium-operator"},
                min_available=1,
                labels={"component": "cilium"},
            ),
            DisruptionBudgetSpec(
                name="hubble-relay-pdb",
                namespace=SYSTEM_NAMESPACE,
                selector={"k8s-app": "hubble-relay"},
                min_available=1,
                labels={"component": "cilium"},
            ),
        ]
    if karpenter:
        specs.append(
            DisruptionBudgetSpec(
                name="karpenter-pdb",
                namespace=SYSTEM_NAMESPACE,
                selector={"app.kubernetes.io/name": "karpenter"},
                min_available=1,
                labels={"component": "karpenter"},
            )
        )
    if monitoring:
        specs += [
            DisruptionBudgetSpec(
                name="prometheus-pdb",
                namespace=MONITORING_NAMESPACE,
                selector={"app.kubernetes.io/name": "prometheus"},
                min_available=1,
                labels={"component": "monitoring"},
            ),
            DisruptionBudgetSpec(
                name="grafana-agent-pdb",
                namespace=MONITORING_NAMESPACE,
                selector={"app.kubernetes.io/name": "grafana-agent"},
                max_unavailable="25%",
                labels={"component": "monitoring"},
            ),
            DisruptionBudgetSpec(
                name="loki-pdb",
                namespace=MONITORING_NAMESPACE,
                selector={"app.kubernetes.io/name": "loki"},
                min_available=1,
                labels={"component": "monitoring"},
            ),
        ]
    return [compile_disruption_budget(spec) for spec in specs]


def application_disruption_budget(
    name: str,
    namespace: str,
    app_label: str,
    min_available: int | str | None = None,
    max_unavailable: int | str | None = None,
) -> CompiledDocument:
    """Disruption budget for an application selected by its ``app`` label.

    With neither value given the budget allows one unavailable pod.

    Raises:
        ValidationError: If both values are given.
    """
    record: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "selector": {"app": app_label},
        "labels": {"app": app_label},
    }
    if min_available is None and max_unavailable is None:
        max_unavailable = 1
    if min_available is not None:
        record["min_available"] = min_available
    if max_unavailable is not None:
        record["max_unavailable"] = max_unavailable
    return compile_disruption_budget(record)
