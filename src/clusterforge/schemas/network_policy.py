"""Network reachability intent models for clusterforge.

This module defines the inputs of the network policy compiler:
- EndpointSelector: Label-match predicate (empty = every workload)
- PolicyPort: Port with optional protocol
- IngressRule / EgressRule: Peer selectors, CIDRs, FQDN patterns and ports
- NetworkPolicySpec: One reachability policy
- DefaultDenySpec: Deny-all generation with optional narrow exceptions
"""

from __future__ import annotations

import ipaddress
import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clusterforge.schemas.access_config import NAMESPACE_PATTERN

# Named container ports (IANA_SVC_NAME)
PORT_NAME_PATTERN = r"^[a-z0-9]([a-z0-9-]{0,13}[a-z0-9])?$"

# FQDN patterns, with optional wildcards (e.g., *.amazonaws.com)
FQDN_PATTERN = (
    r"^(\*|[a-zA-Z0-9*]([a-zA-Z0-9*-]*[a-zA-Z0-9*])?)"
    r"(\.[a-zA-Z0-9*]([a-zA-Z0-9*-]*[a-zA-Z0-9*])?)*\.?$"
)

DEFAULT_PROTOCOL = "TCP"


class Protocol(str, Enum):
    """Transport protocol."""

    TCP = "TCP"
    UDP = "UDP"
    SCTP = "SCTP"


class PolicyDirection(str, Enum):
    """Traffic direction for default-deny generation."""

    INGRESS = "ingress"
    EGRESS = "egress"
    BOTH = "both"

    @property
    def includes_ingress(self) -> bool:
        return self in (PolicyDirection.INGRESS, PolicyDirection.BOTH)

    @property
    def includes_egress(self) -> bool:
        return self in (PolicyDirection.EGRESS, PolicyDirection.BOTH)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class EndpointSelector(_Frozen):
    """Label-match predicate selecting workloads.

    Attributes:
        match_labels: Pod labels to match.
        match_namespace_labels: Namespace labels to match.

    Example:
        >>> EndpointSelector(match_labels={"app": "backend"})
    """

    match_labels: dict[str, str] = Field(default_factory=dict)
    match_namespace_labels: dict[str, str] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_namespace_labels


class PolicyPort(_Frozen):
    """Port specification.

    Attributes:
        port: Port number (1-65535) or named port.
        protocol: Transport protocol (TCP when unset).
    """

    port: int | str
    protocol: Protocol | None = None

    @field_validator("port", mode="before")
    @classmethod
    def validate_port(cls, v: object) -> object:
        """Accept 1-65535, numeric strings in range, or a port name."""
        if isinstance(v, bool):
            raise ValueError("port must be a number or a name")
        if isinstance(v, int):
            if not 1 <= v <= 65535:
                raise ValueError(f"port {v} out of range 1-65535")
            return v
        if not isinstance(v, str):
            return v
        if v.isdigit():
            if not 1 <= int(v) <= 65535:
                raise ValueError(f"port {v} out of range 1-65535")
            return v
        if not re.match(PORT_NAME_PATTERN, v):
            raise ValueError(f"invalid port name: {v!r}")
        return v


def _validate_cidrs(values: list[str]) -> list[str]:
    for value in values:
        try:
            ipaddress.ip_network(value, strict=True)
        except ValueError as e:
            raise ValueError(f"invalid CIDR block {value!r}: {e}") from e
        if "/" not in value:
            raise ValueError(f"CIDR block {value!r} is missing a prefix length")
    return values


class IngressRule(_Frozen):
    """Allowed ingress traffic.

    Attributes:
        from_endpoints: Source workloads.
        from_cidr: Source CIDR blocks.
        to_ports: Destination ports (empty = all ports).
    """

    from_endpoints: list[EndpointSelector] = Field(default_factory=list)
    from_cidr: list[str] = Field(default_factory=list)
    to_ports: list[PolicyPort] = Field(default_factory=list)

    @field_validator("from_cidr")
    @classmethod
    def validate_cidr(cls, v: list[str]) -> list[str]:
        return _validate_cidrs(v)


class EgressRule(_Frozen):
    """Allowed egress traffic.

    Attributes:
        to_endpoints: Destination workloads.
        to_cidr: Destination CIDR blocks.
        to_fqdns: Destination domain patterns (wildcards allowed).
        to_ports: Destination ports (empty = all ports).
    """

    to_endpoints: list[EndpointSelector] = Field(default_factory=list)
    to_cidr: list[str] = Field(default_factory=list)
    to_fqdns: list[str] = Field(default_factory=list)
    to_ports: list[PolicyPort] = Field(default_factory=list)

    @field_validator("to_cidr")
    @classmethod
    def validate_cidr(cls, v: list[str]) -> list[str]:
        return _validate_cidrs(v)

    @field_validator("to_fqdns")
    @classmethod
    def validate_fqdns(cls, v: list[str]) -> list[str]:
        for fqdn in v:
            if len(fqdn) > 253 or not re.match(FQDN_PATTERN, fqdn):
                raise ValueError(f"invalid domain pattern: {fqdn!r}")
        return v


class NetworkPolicySpec(_Frozen):
    """One reachability policy for a namespace.

    An empty endpoint selector selects every workload in the namespace.

    Attributes:
        name: Policy name.
        namespace: Target namespace.
        description: Description annotation.
        endpoint_selector: Workloads the policy applies to.
        ingress: Ingress rules.
        egress: Egress rules.

    Example:
        >>> spec = NetworkPolicySpec(
        ...     name="allow-frontend-to-backend",
        ...     namespace="production",
        ...     endpoint_selector=EndpointSelector(match_labels={"app": "backend"}),
        ...     ingress=[
        ...         IngressRule(
        ...             from_endpoints=[EndpointSelector(match_labels={"app": "frontend"})],
        ...             to_ports=[PolicyPort(port=8080)],
        ...         )
        ...     ],
        ... )
    """

    name: str = Field(..., pattern=NAMESPACE_PATTERN, max_length=253)
    namespace: str = Field(..., pattern=NAMESPACE_PATTERN, max_length=63)
    description: str | None = None
    endpoint_selector: EndpointSelector = Field(default_factory=EndpointSelector)
    ingress: list[IngressRule] = Field(default_factory=list)
    egress: list[EgressRule] = Field(default_factory=list)


class DefaultDenySpec(_Frozen):
    """Default-deny generation for a namespace.

    Attributes:
        namespace: Target namespace.
        direction: Direction(s) to deny.
        allow_dns: Keep DNS resolution reachable when egress is denied.
        allow_kube_system: Keep the system namespace reachable when egress is denied.
    """

    namespace: str = Field(..., pattern=NAMESPACE_PATTERN, max_length=63)
    direction: PolicyDirection = PolicyDirection.BOTH
    allow_dns: bool = True
    allow_kube_system: bool = True
