"""Security policy intent models for clusterforge.

A policy rule carries exactly one intent, discriminated by ``kind``:
- ``pattern``: canonical admission pattern, emitted as-is
- ``deny``: deny conditions, emitted as-is
- ``pod_security``: shorthand toggles expanded into a canonical pattern

The compiler switches on ``kind``; it never probes field presence.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Self

# Pattern for policy and rule names (Kubernetes object names)
POLICY_NAME_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


class EnforcementAction(str, Enum):
    """Admission failure action.

    Values:
        ENFORCE: Reject violating resources.
        AUDIT: Admit and report violations.
    """

    ENFORCE = "Enforce"
    AUDIT = "Audit"


class PolicyCategory(str, Enum):
    """Policy category annotation."""

    SECURITY = "security"
    BEST_PRACTICES = "best-practices"
    COMPLIANCE = "compliance"
    OPERATIONAL = "operational"


class ComplianceFramework(str, Enum):
    """Compliance frameworks a policy supports."""

    SOC2 = "SOC2"
    HIPAA = "HIPAA"
    PCI_DSS = "PCI-DSS"


ResourceKind = Literal[
    "Pod",
    "Deployment",
    "StatefulSet",
    "DaemonSet",
    "ReplicaSet",
    "Job",
    "CronJob",
    "Service",
    "ConfigMap",
    "Secret",
    "Namespace",
]

ConditionOperator = Literal["Equals", "NotEquals", "In", "NotIn", "Exists", "DoesNotExist"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class RuleMatch(_Frozen):
    """Resources a rule applies to.

    Attributes:
        kinds: Resource kinds to match.
        namespaces: Namespaces to include (empty = all).
    """

    kinds: list[ResourceKind] = Field(..., min_length=1)
    namespaces: list[str] = Field(default_factory=list)


class RuleExclude(_Frozen):
    """Resources a rule skips.

    Attributes:
        namespaces: Namespaces excluded from the rule.
        labels: Label selector; matching resources are skipped.
    """

    namespaces: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)


class CanonicalPattern(_Frozen):
    """Explicit admission pattern."""

    kind: Literal["pattern"] = "pattern"
    pattern: dict[str, Any] = Field(..., min_length=1)


class Condition(_Frozen):
    """Single deny condition."""

    key: str = Field(..., min_length=1)
    operator: ConditionOperator
    value: Any = None


class DenyCondition(_Frozen):
    """Deny conditions; at least one of ``all`` or ``any`` is required."""

    kind: Literal["deny"] = "deny"
    all: list[Condition] = Field(default_factory=list)
    any: list[Condition] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_conditions(self) -> Self:
        if not self.all and not self.any:
            raise ValueError("deny intent requires 'all' or 'any' conditions")
        return self


class PodSecurityIntent(_Frozen):
    """Shorthand container security toggles.

    Unset toggles contribute nothing to the expanded pattern; at least one
    toggle must be set.

    Attributes:
        run_as_non_root: Require ``runAsNonRoot``.
        read_only_root_filesystem: Require ``readOnlyRootFilesystem``.
        allow_privilege_escalation: Required ``allowPrivilegeEscalation`` value.
        drop_capabilities: Capabilities that must be dropped.
    """

    kind: Literal["pod_security"] = "pod_security"
    run_as_non_root: bool | None = None
    read_only_root_filesystem: bool | None = None
    allow_privilege_escalation: bool | None = None
    drop_capabilities: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_toggles(self) -> Self:
        if (
            self.run_as_non_root is None
            and self.read_only_root_filesystem is None
            and self.allow_privilege_escalation is None
            and not self.drop_capabilities
        ):
            raise ValueError("pod_security intent requires at least one toggle")
        return self


PolicyIntent = Annotated[
    Union[CanonicalPattern, DenyCondition, PodSecurityIntent],
    Field(discriminator="kind"),
]


class PolicyRule(_Frozen):
    """One validation rule of a cluster policy.

    Attributes:
        name: Rule name.
        match: Resources the rule applies to.
        exclude: Resources the rule skips (None = no exclusions).
        message: Message shown on violation.
        intent: The rule's validation intent.

    Example:
        >>> rule = PolicyRule(
        ...     name="require-non-root",
        ...     match=RuleMatch(kinds=["Pod"]),
        ...     message="Containers must run as non-root",
        ...     intent=PodSecurityIntent(run_as_non_root=True),
        ... )
    """

    name: str = Field(..., pattern=POLICY_NAME_PATTERN, max_length=63)
    match: RuleMatch
    exclude: RuleExclude | None = None
    message: str = Field(..., min_length=1)
    intent: PolicyIntent


class ClusterPolicySpec(_Frozen):
    """A cluster-wide admission policy.

    Attributes:
        name: Policy name (unique cluster-wide).
        description: Policy description annotation.
        action: Validation failure action.
        background: Enable background scanning.
        rules: Validation rules.
        category: Category annotation.
        compliance: Compliance frameworks annotation.
    """

    name: str = Field(..., pattern=POLICY_NAME_PATTERN, max_length=63)
    description: str | None = None
    action: EnforcementAction
    background: bool = True
    rules: list[PolicyRule] = Field(..., min_length=1)
    category: PolicyCategory | None = None
    compliance: list[ComplianceFramework] = Field(default_factory=list)


class EnvironmentPolicySpec(_Frozen):
    """A cluster policy whose action follows the environment.

    Attributes:
        always_enforce: Enforce regardless of environment.
        always_audit: Audit regardless of environment.
    """

    name: str = Field(..., pattern=POLICY_NAME_PATTERN, max_length=63)
    description: str | None = None
    background: bool = True
    rules: list[PolicyRule] = Field(..., min_length=1)
    category: PolicyCategory | None = None
    compliance: list[ComplianceFramework] = Field(default_factory=list)
    always_enforce: bool = False
    always_audit: bool = False
