"""Access principal resolver for clusterforge.

Maps personas and custom principals to cluster entitlements and emits one
or both access representations, chosen by the authentication mode:
- AccessEntry: Structured entitlement record (access entries API)
- RoleMapping: Legacy aws-auth group mapping

Scope (cluster-wide or a namespace list) is copied unchanged into both.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import Any, NamedTuple

import structlog

from clusterforge.compiler.coercion import coerce_record
from clusterforge.compiler.document import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    CompiledDocument,
    DocumentMetadata,
)
from clusterforge.errors import PersonaNotFoundError
from clusterforge.schemas.access_config import (
    AccessPrincipal,
    AccessScopeType,
    AuthenticationMode,
    ClusterAccessConfig,
    CustomAccessPrincipal,
    Persona,
)

logger = structlog.get_logger(__name__)

ACCESS_API_VERSION = "access.clusterforge.io/v1"
ACCESS_ENTRY_KIND = "AccessEntry"
ROLE_MAPPING_KIND = "RoleMapping"

# Namespace of the legacy aws-auth ConfigMap
AWS_AUTH_NAMESPACE = "kube-system"

PERSONA_LABEL = "clusterforge.io/persona"
CUSTOM_PERSONA = "custom"

ACCESS_POLICY_PREFIX = "arn:aws:eks::aws:cluster-access-policy/"

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


class PersonaEntitlement(NamedTuple):
    """Access policy and default groups granted to a persona."""

    policy_arn: str
    groups: tuple[str, ...]


PERSONA_ENTITLEMENTS: Mapping[Persona, PersonaEntitlement] = MappingProxyType({
    Persona.ADMIN: PersonaEntitlement(
        f"{ACCESS_POLICY_PREFIX}AmazonEKSClusterAdminPolicy", ("system:masters",)
    ),
    Persona.POWER_USER: PersonaEntitlement(
        f"{ACCESS_POLICY_PREFIX}AmazonEKSAdminPolicy", ("system:authenticated",)
    ),
    Persona.DEVELOPER: PersonaEntitlement(
        f"{ACCESS_POLICY_PREFIX}AmazonEKSEditPolicy", ("system:authenticated",)
    ),
    Persona.VIEWER: PersonaEntitlement(
        f"{ACCESS_POLICY_PREFIX}AmazonEKSViewPolicy", ("system:authenticated",)
    ),
})


def persona_entitlement(persona: Persona | str) -> PersonaEntitlement:
    """Look up a persona's entitlement.

    Accepts the persona value (``"power_user"``) or its camelCase alias
    (``"powerUser"``).

    Raises:
        PersonaNotFoundError: If the persona is unknown.
    """
    if isinstance(persona, str) and not isinstance(persona, Persona):
        persona = re.sub(r"(?<!^)(?=[A-Z])", "_", persona).lower()
    try:
        return PERSONA_ENTITLEMENTS[Persona(persona)]
    except ValueError:
        raise PersonaNotFoundError(str(persona), [p.value for p in Persona]) from None


def principal_identifier(principal: AccessPrincipal) -> str:
    """Stable alphanumeric token for a principal.

    The display name when set, otherwise the ARN, with every
    non-alphanumeric character removed.

    Example:
        >>> principal_identifier(AccessPrincipal(arn="arn:aws:iam::123456789012:role/Dev"))
        'arnawsiam123456789012roleDev'
    """
    return _NON_ALPHANUMERIC.sub("", principal.name or principal.arn)


def principal_username(principal: AccessPrincipal) -> str:
    """Kubernetes username: explicit, display name, or a session template."""
    if principal.username:
        return principal.username
    if principal.name:
        return principal.name
    return f"{principal_identifier(principal)}:{{{{SessionName}}}}"


def _access_scope(scope_type: AccessScopeType, namespaces: Sequence[str]) -> dict[str, Any]:
    scope: dict[str, Any] = {"type": scope_type.value}
    if scope_type == AccessScopeType.NAMESPACE:
        scope["namespaces"] = list(namespaces)
    return scope


class _Grant(NamedTuple):
    persona: str
    principal: AccessPrincipal
    policy_arn: str
    groups: list[str]
    scope: dict[str, Any]


class AccessPrincipalResolver:
    """Resolves cluster access configuration into access documents.

    Args:
        access_config: Access configuration, or a mapping validated as one.

    Example:
        >>> resolver = AccessPrincipalResolver(
        ...     {"authentication_mode": "API",
        ...      "viewers": [{"arn": "arn:aws:iam::123456789012:role/Audit"}]}
        ... )
        >>> [doc.kind for doc in resolver.resolve()]
        ['AccessEntry']
    """

    def __init__(self, access_config: ClusterAccessConfig | Mapping[str, Any]) -> None:
        self.config = coerce_record(ClusterAccessConfig, access_config, record="cluster_access")
        self._log = logger.bind(component="access_resolver")

    @property
    def authentication_mode(self) -> AuthenticationMode:
        return self.config.authentication_mode

    def _grants(self) -> Iterator[_Grant]:
        cluster_scope = _access_scope(AccessScopeType.CLUSTER, [])
        for persona in Persona:
            entitlement = PERSONA_ENTITLEMENTS[persona]
            for principal in self.config.principals_for(persona):
                groups = (
                    list(principal.groups)
                    if principal.groups is not None
                    else list(entitlement.groups)
                )
                yield _Grant(
                    persona.value,
                    principal,
                    entitlement.policy_arn,
                    groups,
                    cluster_scope,
                )
        for custom in self.config.custom_access:
            yield _Grant(
                CUSTOM_PERSONA,
                custom,
                custom.policy_arn,
                list(custom.groups or []),
                _access_scope(custom.access_scope_type, custom.namespaces),
            )

    def resolve(self) -> list[CompiledDocument]:
        """Emit access documents for every principal.

        Returns:
            Per principal, its AccessEntry (API modes) followed by its
            RoleMapping (CONFIG_MAP modes). Persona order is admin,
            power_user, developer, viewer, then custom entries.
        """
        mode = self.authentication_mode
        documents: list[CompiledDocument] = []
        for grant in self._grants():
            if mode.uses_access_entries:
                documents.append(access_entry(grant))
            if mode.uses_group_mappings:
                documents.append(role_mapping(grant))

        self._log.debug(
            "access_resolved",
            authentication_mode=mode.value,
            documents=len(documents),
        )
        return documents


def _metadata(grant: _Grant, namespace: str | None = None) -> DocumentMetadata:
    slug = grant.persona.replace("_", "-")
    return DocumentMetadata(
        name=f"{slug}-{principal_identifier(grant.principal).lower()}",
        namespace=namespace,
        labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE, PERSONA_LABEL: grant.persona},
    )


def access_entry(grant: _Grant) -> CompiledDocument:
    principal = grant.principal
    spec: dict[str, Any] = {
        "principalArn": principal.arn,
        "type": principal.type.value,
        "username": principal_username(principal),
        "accessPolicies": [
            {"policyArn": grant.policy_arn, "accessScope": copy.deepcopy(grant.scope)}
        ],
    }
    return CompiledDocument(
        api_version=ACCESS_API_VERSION,
        kind=ACCESS_ENTRY_KIND,
        metadata=_metadata(grant),
        body={"spec": spec},
    )


def role_mapping(grant: _Grant) -> CompiledDocument:
    """aws-auth mapping; user ARNs map as ``userarn``, everything else as ``rolearn``."""
    principal = grant.principal
    arn_key = "userarn" if ":user/" in principal.arn else "rolearn"
    spec: dict[str, Any] = {
        arn_key: principal.arn,
        "username": principal_username(principal),
        "groups": list(grant.groups),
        "accessScope": copy.deepcopy(grant.scope),
    }
    return CompiledDocument(
        api_version=ACCESS_API_VERSION,
        kind=ROLE_MAPPING_KIND,
        metadata=_metadata(grant, AWS_AUTH_NAMESPACE),
        body={"spec": spec},
    )


def resolve_access(
    access_config: ClusterAccessConfig | Mapping[str, Any],
) -> list[CompiledDocument]:
    """Resolve access documents with a fresh AccessPrincipalResolver."""
    return AccessPrincipalResolver(access_config).resolve()


def create_access_config(
    *,
    admin_role_arns: Sequence[str] = (),
    power_user_role_arns: Sequence[str] = (),
    developer_role_arns: Sequence[str] = (),
    viewer_role_arns: Sequence[str] = (),
    custom_access: Sequence[CustomAccessPrincipal | Mapping[str, Any]] = (),
    authentication_mode: AuthenticationMode | str = AuthenticationMode.API_AND_CONFIG_MAP,
    add_deployer_as_admin: bool = True,
) -> ClusterAccessConfig:
    """Build a ClusterAccessConfig from plain ARN lists.

    Example:
        >>> config = create_access_config(
        ...     admin_role_arns=["arn:aws:iam::123456789012:role/AdminRole"],
        ...     authentication_mode="API",
        ... )
        >>> config.admins[0].arn
        'arn:aws:iam::123456789012:role/AdminRole'
    """
    return coerce_record(
        ClusterAccessConfig,
        {
            "authentication_mode": authentication_mode,
            "add_deployer_as_admin": add_deployer_as_admin,
            "admins": [{"arn": arn} for arn in admin_role_arns],
            "power_users": [{"arn": arn} for arn in power_user_role_arns],
            "developers": [{"arn": arn} for arn in developer_role_arns],
            "viewers": [{"arn": arn} for arn in viewer_role_arns],
            "custom_access": list(custom_access),
        },
        record="cluster_access",
    )
