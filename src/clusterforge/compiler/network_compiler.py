"""Network policy compiler for clusterforge.

Compiles reachability intents into Cilium network policy documents:
- build_endpoint_selector / normalize_ports: Selector and port fragments
- build_ingress_rule / build_egress_rule: One rule each
- compile_network_policy: A full CiliumNetworkPolicy
- compile_default_deny: Deny-all documents with DNS/kube-system exceptions
- allow_namespace_ingress / allow_fqdn_egress / database_access: Templates
"""

from __future__ import annotations

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
from clusterforge.schemas.network_policy import (
    DEFAULT_PROTOCOL,
    DefaultDenySpec,
    EgressRule,
    EndpointSelector,
    IngressRule,
    NetworkPolicySpec,
    PolicyPort,
)

logger = structlog.get_logger(__name__)

CILIUM_API_VERSION = "cilium.io/v2"
NETWORK_POLICY_KIND = "CiliumNetworkPolicy"

DESCRIPTION_ANNOTATION = "description"

# Cilium label prefixes
POD_NAMESPACE_LABEL = "k8s:io.kubernetes.pod.namespace"
NAMESPACE_LABEL_PREFIX = "k8s:io.cilium.k8s.namespace.labels."

# Well-known label carrying a namespace's own name
NAMESPACE_NAME_LABEL = "kubernetes.io/metadata.name"

SYSTEM_NAMESPACE = "kube-system"
DNS_PORT = "53"
HTTPS_PORT = 443
POSTGRES_PORT = 5432

DENY_INGRESS_NAME = "default-deny-ingress"
DENY_EGRESS_NAME = "default-deny-egress"

_DNS_ENDPOINT: dict[str, str] = {POD_NAMESPACE_LABEL: SYSTEM_NAMESPACE, "k8s-app": "kube-dns"}


def build_endpoint_selector(selector: EndpointSelector) -> dict[str, Any]:
    """Render a selector; an empty selector renders as ``{}``.

    Namespace labels become ``k8s:io.cilium.k8s.namespace.labels.<key>``
    match labels.

    Example:
        >>> build_endpoint_selector(EndpointSelector(match_labels={"app": "api"}))
        {'matchLabels': {'app': 'api'}}
    """
    match_labels: dict[str, str] = dict(selector.match_labels)
    for key, value in selector.match_namespace_labels.items():
        match_labels[f"{NAMESPACE_LABEL_PREFIX}{key}"] = value
    if not match_labels:
        return {}
    return {"matchLabels": match_labels}


def normalize_ports(ports: Sequence[PolicyPort]) -> list[dict[str, Any]]:
    """Render ports as ``toPorts`` entries with string ports.

    Returns an empty list when no ports are given (all ports allowed).

    Example:
        >>> normalize_ports([PolicyPort(port=8080)])
        [{'ports': [{'port': '8080', 'protocol': 'TCP'}]}]
    """
    if not ports:
        return []
    return [
        {
            "ports": [
                {
                    "port": str(port.port),
                    "protocol": port.protocol.value if port.protocol else DEFAULT_PROTOCOL,
                }
                for port in ports
            ]
        }
    ]


def build_ingress_rule(rule: IngressRule) -> dict[str, Any]:
    rendered: dict[str, Any] = {}
    if rule.from_endpoints:
        rendered["fromEndpoints"] = [build_endpoint_selector(ep) for ep in rule.from_endpoints]
    if rule.from_cidr:
        rendered["fromCIDR"] = list(rule.from_cidr)
    to_ports = normalize_ports(rule.to_ports)
    if to_ports:
        rendered["toPorts"] = to_ports
    return rendered


def build_egress_rule(rule: EgressRule) -> dict[str, Any]:
    """Render one egress rule.

    Domain patterns are added alongside endpoint and CIDR destinations.
    """
    rendered: dict[str, Any] = {}
    if rule.to_endpoints:
        rendered["toEndpoints"] = [build_endpoint_selector(ep) for ep in rule.to_endpoints]
    if rule.to_cidr:
        rendered["toCIDR"] = list(rule.to_cidr)
    if rule.to_fqdns:
        rendered["toFQDNs"] = [{"matchPattern": fqdn} for fqdn in rule.to_fqdns]
    to_ports = normalize_ports(rule.to_ports)
    if to_ports:
        rendered["toPorts"] = to_ports
    return rendered


def _document(
    name: str,
    namespace: str,
    description: str | None,
    spec: dict[str, Any],
) -> CompiledDocument:
    return CompiledDocument(
        api_version=CILIUM_API_VERSION,
        kind=NETWORK_POLICY_KIND,
        metadata=DocumentMetadata(
            name=name,
            namespace=namespace,
            labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            annotations={DESCRIPTION_ANNOTATION: description} if description else {},
        ),
        body={"spec": spec},
    )


def compile_network_policy(spec: NetworkPolicySpec | Mapping[str, Any]) -> CompiledDocument:
    """Compile one reachability policy.

    Args:
        spec: Policy spec, or a mapping validated as one.

    Returns:
        The compiled CiliumNetworkPolicy.

    Raises:
        ValidationError: If a CIDR block, port or domain pattern is malformed.
    """
    spec = coerce_record(NetworkPolicySpec, spec)
    policy: dict[str, Any] = {"endpointSelector": build_endpoint_selector(spec.endpoint_selector)}
    if spec.ingress:
        policy["ingress"] = [build_ingress_rule(rule) for rule in spec.ingress]
    if spec.egress:
        policy["egress"] = [build_egress_rule(rule) for rule in spec.egress]

    logger.debug(
        "network_policy_compiled",
        component="network_compiler",
        policy=spec.name,
        namespace=spec.namespace,
        ingress_rules=len(spec.ingress),
        egress_rules=len(spec.egress),
    )
    return _document(spec.name, spec.namespace, spec.description, policy)


def _egress_exceptions(spec: DefaultDenySpec) -> list[dict[str, Any]]:
    exceptions: list[dict[str, Any]] = []
    if spec.allow_dns:
        exceptions.append(
            {
                "toEndpoints": [{"matchLabels": dict(_DNS_ENDPOINT)}],
                "toPorts": [
                    {
                        "ports": [
                            {"port": DNS_PORT, "protocol": "UDP"},
                            {"port": DNS_PORT, "protocol": "TCP"},
                        ]
                    }
                ],
            }
        )
    if spec.allow_kube_system:
        exceptions.append(
            {"toEndpoints": [{"matchLabels": {POD_NAMESPACE_LABEL: SYSTEM_NAMESPACE}}]}
        )
    return exceptions


def compile_default_deny(spec: DefaultDenySpec | Mapping[str, Any]) -> list[CompiledDocument]:
    """Compile deny-all documents for a namespace.

    An empty rule (``[{}]``) under an empty selector denies all traffic in
    that direction. Egress exceptions for DNS and the system namespace are
    added when enabled.

    Returns:
        One document per denied direction (ingress first).
    """
    spec = coerce_record(DefaultDenySpec, spec)
    documents: list[CompiledDocument] = []

    if spec.direction.includes_ingress:
        documents.append(
            _document(
                DENY_INGRESS_NAME,
                spec.namespace,
                "Default deny all ingress traffic",
                {"endpointSelector": {}, "ingress": [{}]},
            )
        )

    if spec.direction.includes_egress:
        exceptions = _egress_exceptions(spec)
        documents.append(
            _document(
                DENY_EGRESS_NAME,
                spec.namespace,
                "Default deny egress with DNS and kube-system exceptions"
                if exceptions
                else "Default deny all egress traffic",
                {"endpointSelector": {}, "egress": exceptions or [{}]},
            )
        )

    logger.debug(
        "default_deny_compiled",
        component="network_compiler",
        namespace=spec.namespace,
        direction=spec.direction.value,
        documents=len(documents),
    )
    return documents


def _namespace_peer(namespace: str) -> EndpointSelector:
    return EndpointSelector(match_namespace_labels={NAMESPACE_NAME_LABEL: namespace})


def allow_namespace_ingress(
    target_namespace: str,
    source_namespace: str,
    ports: Sequence[PolicyPort | Mapping[str, Any]] | None = None,
) -> CompiledDocument:
    """Allow every workload in ``source_namespace`` to reach ``target_namespace``."""
    return compile_network_policy(
        {
            "name": f"allow-from-{source_namespace}",
            "namespace": target_namespace,
            "description": f"Allow ingress from {source_namespace} namespace",
            "ingress": [
                {
                    "from_endpoints": [_namespace_peer(source_namespace)],
                    "to_ports": list(ports or []),
                }
            ],
        }
    )


def allow_fqdn_egress(
    namespace: str,
    fqdns: Sequence[str],
    selector: EndpointSelector | Mapping[str, Any] | None = None,
    ports: Sequence[PolicyPort | Mapping[str, Any]] | None = None,
) -> CompiledDocument:
    """Allow egress to external domains (HTTPS by default)."""
    return compile_network_policy(
        {
            "name": "allow-external-apis",
            "namespace": namespace,
            "description": f"Allow egress to external APIs: {', '.join(fqdns)}",
            "endpoint_selector": selector if selector is not None else {},
            "egress": [
                {
                    "to_fqdns": list(fqdns),
                    "to_ports": list(ports) if ports else [{"port": HTTPS_PORT}],
                }
            ],
        }
    )


def database_access(
    namespace: str,
    selector: EndpointSelector | Mapping[str, Any],
    allowed_namespaces: Sequence[str],
    port: int = POSTGRES_PORT,
) -> CompiledDocument:
    """Allow the listed namespaces to reach a database on ``port``."""
    return compile_network_policy(
        {
            "name": "database-access",
            "namespace": namespace,
            "description": f"Allow database access from: {', '.join(allowed_namespaces)}",
            "endpoint_selector": selector,
            "ingress": [
                {
                    "from_endpoints": [_namespace_peer(source)],
                    "to_ports": [{"port": port, "protocol": DEFAULT_PROTOCOL}],
                }
                for source in allowed_namespaces
            ],
        }
    )
