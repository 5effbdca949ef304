"""Tiered resource intent models for clusterforge.

This module defines quota tiers, priority levels and disruption budgets:
- QuotaTier / STANDARD_QUOTA_TIERS: Compiled-in quota presets
- ResourceQuotaSpec / NamespaceQuotaSpec / LimitRangeSpec: Namespace limits
- PriorityLevel / StandardPriorityValues: Scheduling priority hierarchy
- DisruptionBudgetSpec: Voluntary disruption limits
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clusterforge.schemas.access_config import NAMESPACE_PATTERN

# Percentage form for disruption budgets (e.g., "25%")
PERCENTAGE_PATTERN = r"^(100|[1-9]?[0-9])%$"

# Object name pattern (RFC 1123 subdomain)
OBJECT_NAME_PATTERN = r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$"


class QuotaTier(str, Enum):
    """Named quota preset.

    Values:
        SMALL: Developer sandboxes and lightweight services.
        MEDIUM: Default tier; fits most team workloads.
        LARGE: Data-intensive or high-throughput services.
        PLATFORM: Infrastructure namespaces (monitoring, CI runners).
    """

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    PLATFORM = "platform"


DEFAULT_QUOTA_TIER = QuotaTier.MEDIUM

STANDARD_QUOTA_TIERS: Mapping[QuotaTier, Mapping[str, str]] = MappingProxyType(
    {
        QuotaTier.SMALL: MappingProxyType(
            {
                "requests.cpu": "4",
                "requests.memory": "8Gi",
                "limits.cpu": "8",
                "limits.memory": "16Gi",
                "pods": "20",
                "services": "5",
                "secrets": "20",
                "configmaps": "20",
                "persistentvolumeclaims": "5",
            }
        ),
        QuotaTier.MEDIUM: MappingProxyType(
            {
                "requests.cpu": "16",
                "requests.memory": "32Gi",
                "limits.cpu": "32",
                "limits.memory": "64Gi",
                "pods": "50",
                "services": "15",
                "secrets": "50",
                "configmaps": "50",
                "persistentvolumeclaims": "15",
            }
        ),
        QuotaTier.LARGE: MappingProxyType(
            {
                "requests.cpu": "64",
                "requests.memory": "128Gi",
                "limits.cpu": "128",
                "limits.memory": "256Gi",
                "pods": "200",
                "services": "50",
                "secrets": "100",
                "configmaps": "100",
                "persistentvolumeclaims": "50",
            }
        ),
        QuotaTier.PLATFORM: MappingProxyType(
            {
                "requests.cpu": "32",
                "requests.memory": "64Gi",
                "limits.cpu": "64",
                "limits.memory": "128Gi",
                "pods": "100",
                "services": "30",
                "secrets": "100",
                "configmaps": "100",
                "persistentvolumeclaims": "20",
            }
        ),
    }
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


def _stringify_quantities(v: Mapping[str, object]) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, value in v.items():
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"quantity for {key!r} must be a string or integer")
        result[key] = str(value)
    return result


class ResourceQuotaSpec(_Frozen):
    """A fully custom namespace quota.

    Attributes:
        name: Quota name.
        namespace: Target namespace.
        hard: Resource name to quantity.
        labels: Extra labels.
        annotations: Extra annotations.
    """

    name: str = Field(..., pattern=OBJECT_NAME_PATTERN, max_length=253)
    namespace: str = Field(..., pattern=NAMESPACE_PATTERN, max_length=63)
    hard: dict[str, str] = Field(..., min_length=1)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    @field_validator("hard", mode="before")
    @classmethod
    def stringify(cls, v: object) -> object:
        if isinstance(v, Mapping):
            return _stringify_quantities(v)
        return v


class NamespaceQuotaSpec(_Frozen):
    """A tier preset applied to a namespace.

    Attributes:
        namespace: Target namespace.
        tier: Preset name.
        custom_limits: Per-key overrides of the preset (override wins).

    Example:
        >>> NamespaceQuotaSpec(namespace="team-a", tier="medium", custom_limits={"pods": 75})
    """

    namespace: str = Field(..., pattern=NAMESPACE_PATTERN, max_length=63)
    tier: str = Field(default=DEFAULT_QUOTA_TIER.value, min_length=1)
    custom_limits: dict[str, str] = Field(default_factory=dict)

    @field_validator("tier", mode="before")
    @classmethod
    def tier_value(cls, v: object) -> object:
        if isinstance(v, QuotaTier):
            return v.value
        return v

    @field_validator("custom_limits", mode="before")
    @classmethod
    def stringify(cls, v: object) -> object:
        if isinstance(v, Mapping):
            return _stringify_quantities(v)
        return v


class LimitRangeSpec(_Frozen):
    """Default and bounded container resources for a namespace."""

    namespace: str = Field(..., pattern=NAMESPACE_PATTERN, max_length=63)
    default_cpu_request: str = "100m"
    default_memory_request: str = "128Mi"
    default_cpu_limit: str = "500m"
    default_memory_limit: str = "512Mi"
    max_cpu: str | None = None
    max_memory: str | None = None
    min_cpu: str | None = None
    min_memory: str | None = None


class PriorityTier(str, Enum):
    """Priority hierarchy tier; platform levels sit above workload levels."""

    PLATFORM = "platform"
    WORKLOAD = "workload"


class PreemptionPolicy(str, Enum):
    """Pod preemption policy."""

    PREEMPT_LOWER_PRIORITY = "PreemptLowerPriority"
    NEVER = "Never"


class StandardPriorityValues(int, Enum):
    """Recommended priority values."""

    SYSTEM_CLUSTER_CRITICAL = 2_000_000_000
    SYSTEM_NODE_CRITICAL = 2_000_001_000
    PLATFORM_HIGH = 1_000_000
    PLATFORM_MEDIUM = 500_000
    WORKLOAD_HIGH = 100_000
    WORKLOAD_MEDIUM = 50_000
    WORKLOAD_LOW = 10_000
    WORKLOAD_BEST_EFFORT = 1_000


# User-defined priority values must stay below the system-reserved range
MAX_USER_PRIORITY = 1_000_000_000


class PriorityLevel(_Frozen):
    """One named scheduling priority level.

    Attributes:
        name: Level name.
        tier: Platform or workload tier.
        value: Priority value (higher schedules first).
        global_default: Implicit default for pods without a class.
        preemption_policy: Whether pods of this level preempt others.
        description: Human-readable purpose.
    """

    name: str = Field(..., pattern=OBJECT_NAME_PATTERN, max_length=253)
    tier: PriorityTier
    value: int = Field(..., ge=-MAX_USER_PRIORITY, le=MAX_USER_PRIORITY)
    global_default: bool = False
    preemption_policy: PreemptionPolicy = PreemptionPolicy.PREEMPT_LOWER_PRIORITY
    description: str | None = None


class DisruptionBudgetSpec(_Frozen):
    """Voluntary disruption limit for a workload.

    Exactly one of ``min_available`` or ``max_unavailable`` must be set; the
    compiler enforces this. Each accepts an absolute count or a percentage.

    Attributes:
        name: Budget name.
        namespace: Workload namespace.
        selector: Pod labels selecting the workload.
        min_available: Pods that must stay available.
        max_unavailable: Pods that may be unavailable.
        labels: Extra labels.
    """

    name: str = Field(..., pattern=OBJECT_NAME_PATTERN, max_length=253)
    namespace: str = Field(..., pattern=NAMESPACE_PATTERN, max_length=63)
    selector: dict[str, str] = Field(..., min_length=1)
    min_available: int | str | None = None
    max_unavailable: int | str | None = None
    labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("min_available", "max_unavailable", mode="before")
    @classmethod
    def validate_amount(cls, v: object) -> object:
        """Accept a non-negative count or a percentage string."""
        if v is None:
            return v
        if isinstance(v, bool):
            raise ValueError("expected a count or a percentage")
        if isinstance(v, int):
            if v < 0:
                raise ValueError("count cannot be negative")
            return v
        if not isinstance(v, str):
            return v
        if not re.match(PERCENTAGE_PATTERN, v):
            raise ValueError(f"invalid percentage {v!r}; expected e.g. '25%'")
        return v
