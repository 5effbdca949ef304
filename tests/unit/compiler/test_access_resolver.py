"""Unit tests for the access principal resolver.

Tests authentication modes, persona entitlements, custom scopes and
principal naming.
"""

from __future__ import annotations

from typing import Any

import pytest

from clusterforge.compiler.access_resolver import (
    PERSONA_ENTITLEMENTS,
    AccessPrincipalResolver,
    create_access_config,
    persona_entitlement,
    principal_identifier,
    principal_username,
    resolve_access,
)
from clusterforge.errors import PersonaNotFoundError, ValidationError
from clusterforge.schemas import AccessPrincipal, AuthenticationMode, Persona

ADMIN_ARN = "arn:aws:iam::123456789012:role/PlatformAdmin"
DEV_ARN = "arn:aws:iam::123456789012:role/Developer"
USER_ARN = "arn:aws:iam::123456789012:user/alice"
TEAM_ARN = "arn:aws:iam::123456789012:role/TeamA"
EDIT_POLICY = "arn:aws:eks::aws:cluster-access-policy/AmazonEKSEditPolicy"


def _team_access(**extra: Any) -> dict[str, Any]:
    return {
        "arn": TEAM_ARN,
        "name": "team-a",
        "policy_arn": EDIT_POLICY,
        "access_scope_type": "namespace",
        "namespaces": ["team-a", "team-a-jobs"],
        **extra,
    }


class TestAuthenticationModes:
    """Tests for the representations emitted per mode."""

    @pytest.mark.parametrize(
        ("mode", "kinds"),
        [
            ("API", ["AccessEntry"]),
            ("CONFIG_MAP", ["RoleMapping"]),
            ("API_AND_CONFIG_MAP", ["AccessEntry", "RoleMapping"]),
        ],
    )
    def test_kinds_per_mode(self, mode: str, kinds: list[str]) -> None:
        """Test each mode emits its representations, entry first."""
        docs = resolve_access({"authentication_mode": mode, "admins": [{"arn": ADMIN_ARN}]})

        assert [doc.kind for doc in docs] == kinds

    def test_both_modes_interleave_per_principal(self) -> None:
        """Test each principal's entry is followed by its mapping."""
        docs = resolve_access(
            {
                "authentication_mode": "API_AND_CONFIG_MAP",
                "admins": [{"arn": ADMIN_ARN, "name": "admin"}],
                "developers": [{"arn": DEV_ARN, "name": "dev"}],
            }
        )

        assert [(doc.kind, doc.name) for doc in docs] == [
            ("AccessEntry", "admin-admin"),
            ("RoleMapping", "admin-admin"),
            ("AccessEntry", "developer-dev"),
            ("RoleMapping", "developer-dev"),
        ]

    def test_empty_config_emits_nothing(self) -> None:
        """Test no principals means no documents."""
        assert resolve_access({}) == []

    def test_mode_property(self) -> None:
        """Test the resolver exposes the configured mode."""
        resolver = AccessPrincipalResolver({"authentication_mode": "CONFIG_MAP"})

        assert resolver.authentication_mode is AuthenticationMode.CONFIG_MAP


class TestPersonas:
    """Tests for persona entitlements."""

    def test_persona_order(self) -> None:
        """Test personas are emitted admin, power user, developer, viewer."""
        arn = "arn:aws:iam::123456789012:role/{}"
        docs = resolve_access(
            {
                "authentication_mode": "API",
                "viewers": [{"arn": arn.format("V")}],
                "developers": [{"arn": arn.format("D")}],
                "power_users": [{"arn": arn.format("P")}],
                "admins": [{"arn": arn.format("A")}],
            }
        )

        personas = [doc.metadata.labels["clusterforge.io/persona"] for doc in docs]
        assert personas == ["admin", "power_user", "developer", "viewer"]

    def test_admin_entry(self) -> None:
        """Test the admin entry carries the cluster admin policy at cluster scope."""
        (doc,) = resolve_access({"authentication_mode": "API", "admins": [{"arn": ADMIN_ARN}]})

        policies = doc.body["spec"]["accessPolicies"]
        assert policies == [
            {
                "policyArn": "arn:aws:eks::aws:cluster-access-policy/AmazonEKSClusterAdminPolicy",
                "accessScope": {"type": "cluster"},
            }
        ]
        assert doc.namespace is None
        assert doc.body["spec"]["type"] == "STANDARD"

    def test_default_groups(self) -> None:
        """Test mappings fall back to the persona's default groups."""
        docs = resolve_access(
            {
                "authentication_mode": "CONFIG_MAP",
                "admins": [{"arn": ADMIN_ARN}],
                "viewers": [{"arn": DEV_ARN}],
            }
        )

        assert docs[0].body["spec"]["groups"] == ["system:masters"]
        assert docs[1].body["spec"]["groups"] == ["system:authenticated"]

    def test_explicit_groups_replace_defaults(self) -> None:
        """Test principal groups replace the persona defaults."""
        (doc,) = resolve_access(
            {
                "authentication_mode": "CONFIG_MAP",
                "developers": [{"arn": DEV_ARN, "groups": ["devs"]}],
            }
        )

        assert doc.body["spec"]["groups"] == ["devs"]

    def test_lookup_by_value_and_alias(self) -> None:
        """Test personas resolve from value, enum and camelCase alias."""
        expected = PERSONA_ENTITLEMENTS[Persona.POWER_USER]

        assert persona_entitlement("power_user") == expected
        assert persona_entitlement("powerUser") == expected
        assert persona_entitlement(Persona.POWER_USER) == expected

    def test_unknown_persona(self) -> None:
        """Test an unknown persona raises PersonaNotFoundError."""
        with pytest.raises(PersonaNotFoundError) as exc_info:
            persona_entitlement("superuser")

        assert exc_info.value.persona_name == "superuser"
        assert "viewer" in exc_info.value.available_personas


class TestCustomAccess:
    """Tests for custom principals."""

    def test_scope_in_both_representations(self) -> None:
        """Test the namespace scope is copied into entry and mapping."""
        entry, mapping = resolve_access({"custom_access": [_team_access()]})
        scope = {"type": "namespace", "namespaces": ["team-a", "team-a-jobs"]}

        assert entry.body["spec"]["accessPolicies"] == [
            {"policyArn": EDIT_POLICY, "accessScope": scope}
        ]
        assert mapping.body["spec"]["accessScope"] == scope
        assert entry.metadata.labels["clusterforge.io/persona"] == "custom"
        assert entry.name == "custom-teama"

    def test_custom_without_groups(self) -> None:
        """Test a custom mapping without groups carries an empty list."""
        (mapping,) = resolve_access(
            {"authentication_mode": "CONFIG_MAP", "custom_access": [_team_access()]}
        )

        assert mapping.body["spec"]["groups"] == []

    def test_custom_after_personas(self) -> None:
        """Test custom principals follow every persona."""
        docs = resolve_access(
            {
                "authentication_mode": "API",
                "custom_access": [_team_access()],
                "viewers": [{"arn": DEV_ARN}],
            }
        )

        assert [doc.metadata.labels["clusterforge.io/persona"] for doc in docs] == [
            "viewer",
            "custom",
        ]

    def test_namespace_scope_requires_namespaces(self) -> None:
        """Test namespace scope without namespaces is rejected."""
        with pytest.raises(ValidationError):
            AccessPrincipalResolver({"custom_access": [_team_access(namespaces=[])]})

    def test_cluster_scope_rejects_namespaces(self) -> None:
        """Test cluster scope listing namespaces is rejected."""
        with pytest.raises(ValidationError):
            AccessPrincipalResolver(
                {"custom_access": [_team_access(access_scope_type="cluster")]}
            )


class TestPrincipalNaming:
    """Tests for identifiers, usernames and mapping keys."""

    def test_identifier_from_name(self) -> None:
        """Test the display name wins and is stripped to alphanumerics."""
        principal = AccessPrincipal(arn=ADMIN_ARN, name="platform-admin")

        assert principal_identifier(principal) == "platformadmin"

    def test_identifier_from_arn(self) -> None:
        """Test the identifier falls back to the stripped ARN."""
        principal = AccessPrincipal(arn=ADMIN_ARN)

        assert principal_identifier(principal) == "arnawsiam123456789012rolePlatformAdmin"

    def test_identifier_is_deterministic(self) -> None:
        """Test repeated resolution yields identical names."""
        config = {"admins": [{"arn": ADMIN_ARN}]}

        first = [doc.name for doc in resolve_access(config)]
        second = [doc.name for doc in resolve_access(config)]

        assert first == second

    def test_username_fallbacks(self) -> None:
        """Test username, then display name, then a session template."""
        assert principal_username(AccessPrincipal(arn=ADMIN_ARN, username="ops")) == "ops"
        assert principal_username(AccessPrincipal(arn=ADMIN_ARN, name="admin")) == "admin"
        assert (
            principal_username(AccessPrincipal(arn=ADMIN_ARN))
            == "arnawsiam123456789012rolePlatformAdmin:{{SessionName}}"
        )

    def test_user_arn_maps_as_userarn(self) -> None:
        """Test IAM users map under userarn and roles under rolearn."""
        docs = resolve_access(
            {
                "authentication_mode": "CONFIG_MAP",
                "admins": [{"arn": ADMIN_ARN}],
                "viewers": [{"arn": USER_ARN}],
            }
        )

        assert docs[0].body["spec"]["rolearn"] == ADMIN_ARN
        assert docs[1].body["spec"]["userarn"] == USER_ARN
        assert docs[1].namespace == "kube-system"

    def test_invalid_arn(self) -> None:
        """Test a malformed principal ARN is rejected with its path."""
        with pytest.raises(ValidationError) as exc_info:
            resolve_access({"admins": [{"arn": "not-an-arn"}]})

        assert exc_info.value.field_path == "admins.0.arn"


class TestCreateAccessConfig:
    """Tests for create_access_config."""

    def test_builds_personas(self) -> None:
        """Test ARN lists land in the matching persona lists."""
        config = create_access_config(
            admin_role_arns=[ADMIN_ARN],
            developer_role_arns=[DEV_ARN],
            authentication_mode="API",
            add_deployer_as_admin=False,
        )

        assert [p.arn for p in config.admins] == [ADMIN_ARN]
        assert [p.arn for p in config.developers] == [DEV_ARN]
        assert config.power_users == []
        assert config.authentication_mode is AuthenticationMode.API
        assert config.add_deployer_as_admin is False

    def test_custom_access_passthrough(self) -> None:
        """Test custom entries are validated into the config."""
        config = create_access_config(custom_access=[_team_access()])

        assert config.custom_access[0].namespaces == ["team-a", "team-a-jobs"]
