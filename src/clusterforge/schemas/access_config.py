"""Cluster access configuration models for clusterforge.

This module defines persona-based cluster access:
- AuthenticationMode: Which entitlement representations to emit
- Persona: Named, predefined access levels
- AccessPrincipal: IAM role or user reference
- CustomAccessPrincipal: Principal with an explicit entitlement and scope
- ClusterAccessConfig: Personas plus custom entries
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Self

# Pattern for IAM principal ARNs (roles and users, any partition)
PRINCIPAL_ARN_PATTERN = r"^arn:aws[a-zA-Z-]*:(iam|sts)::\d{12}:[a-zA-Z-]+/[\w+=,.@/-]+$"

# Pattern for EKS access policy ARNs
ACCESS_POLICY_ARN_PATTERN = r"^arn:aws[a-zA-Z-]*:eks::aws:cluster-access-policy/[A-Za-z0-9]+$"

# Pattern for Kubernetes namespace names (RFC 1123 label)
NAMESPACE_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


class AuthenticationMode(str, Enum):
    """Cluster authentication mode.

    Values:
        API: Access entries only (structured entitlement records).
        CONFIG_MAP: Legacy aws-auth group mappings only.
        API_AND_CONFIG_MAP: Both representations for every principal.
    """

    API = "API"
    CONFIG_MAP = "CONFIG_MAP"
    API_AND_CONFIG_MAP = "API_AND_CONFIG_MAP"

    @property
    def uses_access_entries(self) -> bool:
        return self in (AuthenticationMode.API, AuthenticationMode.API_AND_CONFIG_MAP)

    @property
    def uses_group_mappings(self) -> bool:
        return self in (AuthenticationMode.CONFIG_MAP, AuthenticationMode.API_AND_CONFIG_MAP)


class AccessEntryType(str, Enum):
    """Access entry type."""

    STANDARD = "STANDARD"
    FARGATE_LINUX = "FARGATE_LINUX"
    EC2_LINUX = "EC2_LINUX"
    EC2_WINDOWS = "EC2_WINDOWS"


class Persona(str, Enum):
    """Predefined access levels.

    Values:
        ADMIN: Full cluster administration.
        POWER_USER: Manage workloads, not cluster-level RBAC.
        DEVELOPER: Edit namespaced resources.
        VIEWER: Read-only access.
    """

    ADMIN = "admin"
    POWER_USER = "power_user"
    DEVELOPER = "developer"
    VIEWER = "viewer"


class AccessScopeType(str, Enum):
    """Scope of an entitlement."""

    CLUSTER = "cluster"
    NAMESPACE = "namespace"


class AccessPrincipal(BaseModel):
    """IAM principal granted cluster access.

    Attributes:
        arn: ARN of the IAM role or user.
        name: Human-readable display name.
        type: Access entry type.
        username: Kubernetes username (defaults to the display name).
        groups: Kubernetes groups; the persona's default groups apply when unset.

    Example:
        >>> principal = AccessPrincipal(
        ...     arn="arn:aws:iam::123456789012:role/PlatformAdmin",
        ...     name="platform-admin",
        ... )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    arn: str = Field(
        ...,
        pattern=PRINCIPAL_ARN_PATTERN,
        description="ARN of the IAM role or user",
    )
    name: str | None = Field(
        default=None,
        min_length=1,
        description="Human-readable display name",
    )
    type: AccessEntryType = Field(
        default=AccessEntryType.STANDARD,
        description="Access entry type",
    )
    username: str | None = Field(
        default=None,
        min_length=1,
        description="Kubernetes username",
    )
    groups: list[str] | None = Field(
        default=None,
        description="Kubernetes groups for group mappings",
    )


class CustomAccessPrincipal(AccessPrincipal):
    """Principal with an explicit entitlement reference and scope.

    Attributes:
        policy_arn: Access policy ARN granted to the principal.
        access_scope_type: Cluster-wide or namespace-limited.
        namespaces: Namespaces the entitlement is limited to.

    Example:
        >>> custom = CustomAccessPrincipal(
        ...     arn="arn:aws:iam::123456789012:role/TeamA",
        ...     policy_arn="arn:aws:eks::aws:cluster-access-policy/AmazonEKSEditPolicy",
        ...     access_scope_type=AccessScopeType.NAMESPACE,
        ...     namespaces=["team-a"],
        ... )
    """

    policy_arn: str = Field(
        ...,
        pattern=ACCESS_POLICY_ARN_PATTERN,
        description="Access policy ARN",
    )
    access_scope_type: AccessScopeType = Field(
        ...,
        description="Entitlement scope type",
    )
    namespaces: list[str] = Field(
        default_factory=list,
        description="Namespaces for namespace-scoped entitlements",
    )

    @model_validator(mode="after")
    def validate_scope(self) -> Self:
        """Namespace scope needs namespaces; cluster scope must not list any."""
        if self.access_scope_type == AccessScopeType.NAMESPACE and not self.namespaces:
            raise ValueError("namespace-scoped access requires at least one namespace")
        if self.access_scope_type == AccessScopeType.CLUSTER and self.namespaces:
            raise ValueError("cluster-scoped access cannot list namespaces")
        for namespace in self.namespaces:
            if not _is_namespace(namespace):
                raise ValueError(f"invalid namespace name: {namespace!r}")
        return self


def _is_namespace(value: str) -> bool:
    return len(value) <= 63 and re.match(NAMESPACE_PATTERN, value) is not None


class ClusterAccessConfig(BaseModel):
    """Cluster access configuration with persona-based access.

    Attributes:
        authentication_mode: Which entitlement representations to emit.
        add_deployer_as_admin: Keep the deploying role as cluster admin.
        admins: Cluster administrators.
        power_users: Workload administrators.
        developers: Namespace editors.
        viewers: Read-only users.
        custom_access: Principals with explicit entitlements.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    authentication_mode: AuthenticationMode = Field(
        default=AuthenticationMode.API_AND_CONFIG_MAP,
        description="Authentication mode",
    )
    add_deployer_as_admin: bool = Field(
        default=True,
        description="Keep the deploying role as cluster admin",
    )
    admins: list[AccessPrincipal] = Field(default_factory=list)
    power_users: list[AccessPrincipal] = Field(default_factory=list)
    developers: list[AccessPrincipal] = Field(default_factory=list)
    viewers: list[AccessPrincipal] = Field(default_factory=list)
    custom_access: list[CustomAccessPrincipal] = Field(default_factory=list)

    def principals_for(self, persona: Persona) -> list[AccessPrincipal]:
        """Return the principals configured for ``persona``."""
        return {
            Persona.ADMIN: self.admins,
            Persona.POWER_USER: self.power_users,
            Persona.DEVELOPER: self.developers,
            Persona.VIEWER: self.viewers,
        }[persona]
