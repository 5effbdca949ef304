"""Security policy compiler for clusterforge.

Compiles admission policy intents into Kyverno ClusterPolicy documents:
- resolve_enforcement_action: Enforcement decision table
- expand_pod_security: Shorthand toggles to a canonical container pattern
- build_rule: One PolicyRule to its canonical match/exclude/validate form
- compile_cluster_policy / compile_environment_policy: Whole documents
- SecurityPolicies: Built-in policy catalog
- compile_security_baseline: The catalog for a resolved configuration
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from clusterforge.compiler.coercion import coerce_record
from clusterforge.compiler.document import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    CompiledDocument,
    DocumentMetadata,
)
from clusterforge.errors import ValidationError
from clusterforge.schemas.environment_config import Environment, EnvironmentConfig
from clusterforge.schemas.security_policy import (
    CanonicalPattern,
    ClusterPolicySpec,
    ComplianceFramework,
    DenyCondition,
    EnforcementAction,
    EnvironmentPolicySpec,
    PodSecurityIntent,
    PolicyCategory,
    PolicyRule,
    RuleExclude,
    RuleMatch,
)

logger = structlog.get_logger(__name__)

KYVERNO_API_VERSION = "kyverno.io/v1"
CLUSTER_POLICY_KIND = "ClusterPolicy"

CATEGORY_ANNOTATION = "policies.kyverno.io/category"
DESCRIPTION_ANNOTATION = "policies.kyverno.io/description"
COMPLIANCE_ANNOTATION = "policies.kyverno.io/compliance"

# System namespaces excluded from every built-in policy
DEFAULT_EXCLUDED_NAMESPACES: tuple[str, ...] = ("kube-system", "kube-public", "kube-node-lease")

# Namespaces hosting the security tooling itself
SECURITY_NAMESPACES: tuple[str, ...] = ("falco-system", "trivy-system", "kyverno")

# Runtime security agent; needs privileged containers
FALCO_NAMESPACE = "falco-system"

# CNI agent; needs host networking
CILIUM_NAMESPACE = "cilium-system"

_SYSTEM_AND_SECURITY: tuple[str, ...] = (*DEFAULT_EXCLUDED_NAMESPACES, *SECURITY_NAMESPACES)


def resolve_enforcement_action(
    environment: Environment | str,
    *,
    always_enforce: bool = False,
    always_audit: bool = False,
) -> EnforcementAction:
    """Pick the admission failure action.

    Precedence (highest first): ``always_enforce``, ``always_audit``, then
    the environment default (production enforces, everything else audits).

    Raises:
        ValidationError: If ``environment`` is not a known environment.

    Example:
        >>> resolve_enforcement_action("dev")
        <EnforcementAction.AUDIT: 'Audit'>
        >>> resolve_enforcement_action("dev", always_enforce=True)
        <EnforcementAction.ENFORCE: 'Enforce'>
    """
    env = _environment(environment)
    if always_enforce:
        return EnforcementAction.ENFORCE
    if always_audit:
        return EnforcementAction.AUDIT
    if env == Environment.PRODUCTION:
        return EnforcementAction.ENFORCE
    return EnforcementAction.AUDIT


def _environment(value: Environment | str) -> Environment:
    try:
        return Environment(value)
    except ValueError:
        available = ", ".join(env.value for env in Environment)
        raise ValidationError(
            f"Unknown environment '{value}'. Available: {available}",
            field_path="environment",
        ) from None


def expand_pod_security(intent: PodSecurityIntent) -> dict[str, Any]:
    """Expand shorthand toggles into a canonical container pattern.

    Each set toggle contributes one ``securityContext`` fragment; unset
    toggles contribute nothing.

    Example:
        >>> expand_pod_security(PodSecurityIntent(run_as_non_root=True))
        {'spec': {'containers': [{'securityContext': {'runAsNonRoot': True}}]}}
    """
    security_context: dict[str, Any] = {}
    if intent.run_as_non_root is not None:
        security_context["runAsNonRoot"] = intent.run_as_non_root
    if intent.read_only_root_filesystem is not None:
        security_context["readOnlyRootFilesystem"] = intent.read_only_root_filesystem
    if intent.allow_privilege_escalation is not None:
        security_context["allowPrivilegeEscalation"] = intent.allow_privilege_escalation
    if intent.drop_capabilities:
        security_context["capabilities"] = {"drop": list(intent.drop_capabilities)}
    return {"spec": {"containers": [{"securityContext": security_context}]}}


def _build_deny(intent: DenyCondition) -> dict[str, Any]:
    conditions: dict[str, Any] = {}
    for group_name, group in (("all", intent.all), ("any", intent.any)):
        if not group:
            continue
        rendered = []
        for condition in group:
            entry: dict[str, Any] = {"key": condition.key, "operator": condition.operator}
            if condition.value is not None:
                entry["value"] = condition.value
            rendered.append(entry)
        conditions[group_name] = rendered
    return {"conditions": conditions}


def _build_match(match: RuleMatch) -> dict[str, Any]:
    resources: dict[str, Any] = {"kinds": list(match.kinds)}
    if match.namespaces:
        resources["namespaces"] = list(match.namespaces)
    return {"any": [{"resources": resources}]}


def _build_exclude(exclude: RuleExclude) -> dict[str, Any] | None:
    exclude_any: list[dict[str, Any]] = []
    if exclude.namespaces:
        exclude_any.append({"resources": {"namespaces": list(exclude.namespaces)}})
    if exclude.labels:
        exclude_any.append({"resources": {"selector": {"matchLabels": dict(exclude.labels)}}})
    return {"any": exclude_any} if exclude_any else None


def build_rule(rule: PolicyRule | Mapping[str, Any]) -> dict[str, Any]:
    """Render one rule in canonical match/exclude/validate form.

    Raises:
        ValidationError: If the rule is malformed or carries no intent.
    """
    rule = coerce_record(PolicyRule, rule)
    rendered: dict[str, Any] = {"name": rule.name, "match": _build_match(rule.match)}

    if rule.exclude is not None:
        exclude = _build_exclude(rule.exclude)
        if exclude is not None:
            rendered["exclude"] = exclude

    intent = rule.intent
    if isinstance(intent, CanonicalPattern):
        validate = {"message": rule.message, "pattern": copy.deepcopy(intent.pattern)}
    elif isinstance(intent, DenyCondition):
        validate = {"message": rule.message, "deny": _build_deny(intent)}
    elif isinstance(intent, PodSecurityIntent):
        validate = {"message": rule.message, "pattern": expand_pod_security(intent)}
    else:
        raise ValidationError(
            "Policy rule has no validation intent",
            record=rule.name,
            field_path="intent",
        )
    rendered["validate"] = validate
    return rendered


def _annotations(
    category: PolicyCategory | None,
    description: str | None,
    compliance: Sequence[ComplianceFramework],
) -> dict[str, str]:
    annotations: dict[str, str] = {}
    if category is not None:
        annotations[CATEGORY_ANNOTATION] = category.value
    if description:
        annotations[DESCRIPTION_ANNOTATION] = description
    if compliance:
        annotations[COMPLIANCE_ANNOTATION] = ", ".join(c.value for c in compliance)
    return annotations


def compile_cluster_policy(spec: ClusterPolicySpec | Mapping[str, Any]) -> CompiledDocument:
    """Compile a cluster policy into a ClusterPolicy document.

    Args:
        spec: Policy spec, or a mapping validated as one.

    Returns:
        The compiled ClusterPolicy.

    Raises:
        ValidationError: If the policy or any rule is invalid.
    """
    spec = coerce_record(ClusterPolicySpec, spec)
    rules = [build_rule(rule) for rule in spec.rules]

    logger.debug(
        "cluster_policy_compiled",
        component="security_compiler",
        policy=spec.name,
        action=spec.action.value,
        rules=len(rules),
    )
    return CompiledDocument(
        api_version=KYVERNO_API_VERSION,
        kind=CLUSTER_POLICY_KIND,
        metadata=DocumentMetadata(
            name=spec.name,
            labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            annotations=_annotations(spec.category, spec.description, spec.compliance),
        ),
        body={
            "spec": {
                "validationFailureAction": spec.action.value,
                "background": spec.background,
                "rules": rules,
            }
        },
    )


def compile_environment_policy(
    spec: EnvironmentPolicySpec | Mapping[str, Any],
    environment: Environment | str,
) -> CompiledDocument:
    """Compile a policy whose action follows the environment.

    The policy's ``always_enforce``/``always_audit`` flags take precedence over
    the environment default.
    """
    spec = coerce_record(EnvironmentPolicySpec, spec)
    action = resolve_enforcement_action(
        environment,
        always_enforce=spec.always_enforce,
        always_audit=spec.always_audit,
    )
    return compile_cluster_policy(
        ClusterPolicySpec(
            name=spec.name,
            description=spec.description,
            action=action,
            background=spec.background,
            rules=spec.rules,
            category=spec.category,
            compliance=spec.compliance,
        )
    )


def _exclusions(
    override: Sequence[str] | None,
    defaults: Sequence[str],
) -> RuleExclude:
    namespaces = list(defaults) if override is None else list(override)
    return RuleExclude(namespaces=namespaces)


_POD = RuleMatch(kinds=["Pod"])
_WORKLOADS = RuleMatch(kinds=["Deployment", "StatefulSet", "DaemonSet"])

_PROBE_PATTERN: dict[str, Any] = {
    "=(httpGet)": {"path": "?*", "port": "?*"},
    "=(tcpSocket)": {"port": "?*"},
    "=(exec)": {"command": "?*"},
}


class SecurityPolicies:
    """Built-in admission policies.

    Policies that guard against host compromise always enforce. The rest
    follow the environment (see resolve_enforcement_action). Every method
    takes ``exclude_namespaces``; None keeps the policy's default list.

    Example:
        >>> doc = SecurityPolicies.disallow_latest_tag("production")
        >>> doc.body["spec"]["validationFailureAction"]
        'Enforce'
    """

    @staticmethod
    def disallow_privileged(exclude_namespaces: Sequence[str] | None = None) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, (*DEFAULT_EXCLUDED_NAMESPACES, FALCO_NAMESPACE))
        return compile_cluster_policy(
            ClusterPolicySpec(
                name="disallow-privileged",
                description="Privileged containers can access host resources and should be blocked",
                category=PolicyCategory.SECURITY,
                compliance=[ComplianceFramework.SOC2, ComplianceFramework.PCI_DSS],
                action=EnforcementAction.ENFORCE,
                rules=[
                    PolicyRule(
                        name="disallow-privileged",
                        match=_POD,
                        exclude=exclude,
                        message="Privileged containers are not allowed. "
                        "Set securityContext.privileged to false.",
                        intent=CanonicalPattern(
                            pattern={
                                "spec": {
                                    "containers": [
                                        {"=(securityContext)": {"=(privileged)": False}}
                                    ]
                                }
                            }
                        ),
                    )
                ],
            )
        )

    @staticmethod
    def disallow_host_path(exclude_namespaces: Sequence[str] | None = None) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, _SYSTEM_AND_SECURITY)
        return compile_cluster_policy(
            ClusterPolicySpec(
                name="disallow-host-path",
                description="Host path volumes can access the host filesystem "
                "and should be blocked",
                category=PolicyCategory.SECURITY,
                compliance=[
                    ComplianceFramework.SOC2,
                    ComplianceFramework.HIPAA,
                    ComplianceFramework.PCI_DSS,
                ],
                action=EnforcementAction.ENFORCE,
                rules=[
                    PolicyRule(
                        name="disallow-host-path",
                        match=_POD,
                        exclude=exclude,
                        message="HostPath volumes are not allowed. Use persistent volumes instead.",
                        intent=CanonicalPattern(
                            pattern={"spec": {"=(volumes)": [{"X(hostPath)": None}]}}
                        ),
                    )
                ],
            )
        )

    @staticmethod
    def disallow_host_network(exclude_namespaces: Sequence[str] | None = None) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, (*DEFAULT_EXCLUDED_NAMESPACES, CILIUM_NAMESPACE))
        return compile_cluster_policy(
            ClusterPolicySpec(
                name="disallow-host-network",
                description="Host networking provides access to the host network stack "
                "and should be blocked",
                category=PolicyCategory.SECURITY,
                compliance=[ComplianceFramework.SOC2, ComplianceFramework.PCI_DSS],
                action=EnforcementAction.ENFORCE,
                rules=[
                    PolicyRule(
                        name="disallow-host-network",
                        match=_POD,
                        exclude=exclude,
                        message="Host network is not allowed. Set spec.hostNetwork to false.",
                        intent=CanonicalPattern(pattern={"spec": {"=(hostNetwork)": False}}),
                    ),
                    PolicyRule(
                        name="disallow-host-ports",
                        match=_POD,
                        exclude=exclude,
                        message="Host ports are not allowed. Remove hostPort from container ports.",
                        intent=CanonicalPattern(
                            pattern={
                                "spec": {"containers": [{"=(ports)": [{"=(hostPort)": None}]}]}
                            }
                        ),
                    ),
                ],
            )
        )

    @staticmethod
    def disallow_latest_tag(
        environment: Environment | str,
        exclude_namespaces: Sequence[str] | None = None,
    ) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, DEFAULT_EXCLUDED_NAMESPACES)
        return compile_environment_policy(
            EnvironmentPolicySpec(
                name="disallow-latest-tag",
                description="Images with latest tag are mutable and can cause deployment issues",
                category=PolicyCategory.BEST_PRACTICES,
                rules=[
                    PolicyRule(
                        name="disallow-latest-tag",
                        match=_POD,
                        exclude=exclude,
                        message="Images with :latest tag are not allowed. "
                        "Use a specific version tag.",
                        intent=CanonicalPattern(
                            pattern={"spec": {"containers": [{"image": "!*:latest"}]}}
                        ),
                    )
                ],
            ),
            environment,
        )

    @staticmethod
    def require_run_as_non_root(
        environment: Environment | str,
        exclude_namespaces: Sequence[str] | None = None,
    ) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, _SYSTEM_AND_SECURITY)
        return compile_environment_policy(
            EnvironmentPolicySpec(
                name="require-run-as-non-root",
                description="Containers should run as non-root to follow least privilege",
                category=PolicyCategory.SECURITY,
                compliance=[
                    ComplianceFramework.SOC2,
                    ComplianceFramework.HIPAA,
                    ComplianceFramework.PCI_DSS,
                ],
                rules=[
                    PolicyRule(
                        name="require-run-as-non-root",
                        match=_POD,
                        exclude=exclude,
                        message="Containers must run as non-root. "
                        "Set securityContext.runAsNonRoot to true.",
                        intent=PodSecurityIntent(run_as_non_root=True),
                    )
                ],
            ),
            environment,
        )

    @staticmethod
    def disallow_privilege_escalation(
        exclude_namespaces: Sequence[str] | None = None,
    ) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, _SYSTEM_AND_SECURITY)
        return compile_cluster_policy(
            ClusterPolicySpec(
                name="disallow-privilege-escalation",
                description="Privilege escalation allows processes to gain more privileges "
                "than their parent",
                category=PolicyCategory.SECURITY,
                compliance=[
                    ComplianceFramework.SOC2,
                    ComplianceFramework.HIPAA,
                    ComplianceFramework.PCI_DSS,
                ],
                action=EnforcementAction.ENFORCE,
                rules=[
                    PolicyRule(
                        name="disallow-privilege-escalation",
                        match=_POD,
                        exclude=exclude,
                        message="Privilege escalation is not allowed. "
                        "Set securityContext.allowPrivilegeEscalation to false.",
                        intent=PodSecurityIntent(allow_privilege_escalation=False),
                    )
                ],
            )
        )

    @staticmethod
    def require_read_only_root_filesystem(
        environment: Environment | str,
        exclude_namespaces: Sequence[str] | None = None,
    ) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, _SYSTEM_AND_SECURITY)
        return compile_environment_policy(
            EnvironmentPolicySpec(
                name="require-ro-rootfs",
                description="Read-only root filesystem prevents modifications "
                "to the container filesystem",
                category=PolicyCategory.SECURITY,
                compliance=[ComplianceFramework.SOC2, ComplianceFramework.HIPAA],
                rules=[
                    PolicyRule(
                        name="require-ro-rootfs",
                        match=_POD,
                        exclude=exclude,
                        message="Root filesystem must be read-only. "
                        "Set securityContext.readOnlyRootFilesystem to true.",
                        intent=PodSecurityIntent(read_only_root_filesystem=True),
                    )
                ],
            ),
            environment,
        )

    @staticmethod
    def require_drop_capabilities(
        environment: Environment | str,
        exclude_namespaces: Sequence[str] | None = None,
    ) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, _SYSTEM_AND_SECURITY)
        return compile_environment_policy(
            EnvironmentPolicySpec(
                name="require-drop-capabilities",
                description="Containers should drop all capabilities and only add required ones",
                category=PolicyCategory.SECURITY,
                compliance=[ComplianceFramework.SOC2, ComplianceFramework.PCI_DSS],
                rules=[
                    PolicyRule(
                        name="require-drop-all",
                        match=_POD,
                        exclude=exclude,
                        message='Containers must drop all capabilities. '
                        'Add securityContext.capabilities.drop: ["ALL"].',
                        intent=PodSecurityIntent(drop_capabilities=["ALL"]),
                    )
                ],
            ),
            environment,
        )

    @staticmethod
    def require_pod_probes(
        environment: Environment | str,
        exclude_namespaces: Sequence[str] | None = None,
    ) -> CompiledDocument:
        exclude = _exclusions(exclude_namespaces, _SYSTEM_AND_SECURITY)
        rules = [
            PolicyRule(
                name=f"require-{probe}-probe",
                match=_WORKLOADS,
                exclude=exclude,
                message=message,
                intent=CanonicalPattern(
                    pattern={
                        "spec": {
                            "template": {
                                "spec": {
                                    "containers": [
                                        {f"{probe}Probe": copy.deepcopy(_PROBE_PATTERN)}
                                    ]
                                }
                            }
                        }
                    }
                ),
            )
            for probe, message in (
                (
                    "readiness",
                    "Readiness probe is required for proper load balancing. "
                    "Add spec.containers[*].readinessProbe.",
                ),
                (
                    "liveness",
                    "Liveness probe is required for automatic recovery. "
                    "Add spec.containers[*].livenessProbe.",
                ),
            )
        ]
        return compile_environment_policy(
            EnvironmentPolicySpec(
                name="require-pod-probes",
                description="Require readiness and liveness probes for proper health checking "
                "and load balancing",
                category=PolicyCategory.BEST_PRACTICES,
                rules=rules,
            ),
            environment,
        )

    @staticmethod
    def restrict_image_registries(
        environment: Environment | str,
        allowed_registries: Sequence[str],
        exclude_namespaces: Sequence[str] | None = None,
    ) -> CompiledDocument:
        """Only admit images pulled from ``allowed_registries``.

        Raises:
            ValidationError: If ``allowed_registries`` is empty.
        """
        if not allowed_registries:
            raise ValidationError(
                "At least one allowed registry is required",
                record="restrict-image-registries",
                field_path="allowed_registries",
            )
        exclude = _exclusions(exclude_namespaces, _SYSTEM_AND_SECURITY)
        image_pattern = " | ".join(f"{registry.rstrip('/')}/*" for registry in allowed_registries)
        return compile_environment_policy(
            EnvironmentPolicySpec(
                name="restrict-image-registries",
                description="Images must come from approved registries",
                category=PolicyCategory.SECURITY,
                compliance=[ComplianceFramework.SOC2, ComplianceFramework.PCI_DSS],
                rules=[
                    PolicyRule(
                        name="validate-registries",
                        match=_POD,
                        exclude=exclude,
                        message="Images must be pulled from an approved registry: "
                        + ", ".join(allowed_registries),
                        intent=CanonicalPattern(
                            pattern={"spec": {"containers": [{"image": image_pattern}]}}
                        ),
                    )
                ],
            ),
            environment,
        )


def compile_security_baseline(config: EnvironmentConfig) -> list[CompiledDocument]:
    """Compile the built-in policy catalog for a resolved configuration.

    ``restrict-image-registries`` is only emitted when the configuration
    lists allowed registries.
    """
    environment = config.environment
    documents = [
        SecurityPolicies.disallow_privileged(),
        SecurityPolicies.disallow_host_path(),
        SecurityPolicies.disallow_host_network(),
        SecurityPolicies.disallow_privilege_escalation(),
        SecurityPolicies.disallow_latest_tag(environment),
        SecurityPolicies.require_run_as_non_root(environment),
        SecurityPolicies.require_read_only_root_filesystem(environment),
        SecurityPolicies.require_drop_capabilities(environment),
        SecurityPolicies.require_pod_probes(environment),
    ]
    if config.security.allowed_registries:
        documents.append(
            SecurityPolicies.restrict_image_registries(
                environment, config.security.allowed_registries
            )
        )

    logger.info(
        "security_baseline_compiled",
        component="security_compiler",
        environment=environment.value,
        policies=len(documents),
    )
    return documents
