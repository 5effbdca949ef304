"""Custom exception hierarchy for clusterforge.

This module defines the exception classes used throughout clusterforge:
- ForgeError: Base exception for all clusterforge errors
- MergeAmbiguity: Raised by strict merges on undefined-vs-null overrides
- ResolutionError: Raised when a required field is unset after layering
- ValidationError: Raised when a compiler receives invalid intent records
- TierNotFoundError / PersonaNotFoundError: Unknown preset names

User-facing messages are safe to display. Technical details are logged
internally via structlog and never included in the message.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

logger = structlog.get_logger(__name__)


class ForgeError(Exception):
    """Base exception for clusterforge.

    Args:
        user_message: Safe message to display to the user.
        internal_details: Optional technical details for logging. This is
            logged internally but never exposed to the user.

    Example:
        >>> raise ForgeError(
        ...     "Configuration invalid",
        ...     internal_details="network.vpc_cidr failed to parse: '10.0.0.0/33'"
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.error(
                "forge_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


def _with_context(user_message: str, parts: list[str]) -> str:
    if parts:
        return f"{user_message} ({', '.join(parts)})"
    return user_message


class MergeAmbiguity(ForgeError):
    """Raised by a strict merge when an override sets a mapping to ``None``.

    Non-strict merges never raise this; the override wins.

    Attributes:
        field_path: Dot-separated path of the ambiguous key.
    """

    def __init__(
        self,
        field_path: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            _with_context("Override replaces a section with null", [f"field '{field_path}'"]),
            internal_details=internal_details,
        )
        self.field_path = field_path


class ResolutionError(ForgeError):
    """Raised when a required field remains unset after all layers are applied.

    Attributes:
        field_path: Dot-separated path to the missing field (e.g., "aws.account_id").
        layers: Names of the layers that were applied, for diagnostics.

    Example:
        >>> raise ResolutionError("aws.region", layers=["base", "dev"])
        # User sees: "Required configuration field is missing (field 'aws.region')"
    """

    def __init__(
        self,
        field_path: str,
        *,
        layers: Sequence[str] = (),
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            _with_context("Required configuration field is missing", [f"field '{field_path}'"]),
            internal_details=internal_details,
        )
        self.field_path = field_path
        self.layers = list(layers)


class ValidationError(ForgeError):
    """Raised when a compiler receives structurally invalid input.

    Use this exception when:
    - Mutually exclusive fields are both set, or neither is set
    - A tier or persona name is unknown
    - A CIDR block or port specification is malformed
    - A priority batch declares more than one default level

    Attributes:
        record: Name of the offending record (policy, budget, principal...).
        field_path: Dot-separated path to the offending field.

    Example:
        >>> raise ValidationError(
        ...     "Cannot specify both min_available and max_unavailable",
        ...     record="coredns-pdb",
        ...     field_path="min_available",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        record: str | None = None,
        field_path: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        context_parts: list[str] = []
        if record:
            context_parts.append(f"record '{record}'")
        if field_path:
            context_parts.append(f"field '{field_path}'")

        super().__init__(
            _with_context(user_message, context_parts),
            internal_details=internal_details,
        )
        self.record = record
        self.field_path = field_path


class TierNotFoundError(ValidationError):
    """Raised when a quota tier name is not one of the compiled-in presets.

    Attributes:
        tier_name: The requested tier.
        available_tiers: Names of the known tiers.

    Example:
        >>> raise TierNotFoundError("huge", ["small", "medium", "large", "platform"])
        # User sees: "Quota tier 'huge' not found. Available: small, medium, large, platform"
    """

    def __init__(
        self,
        tier_name: str,
        available_tiers: Sequence[str],
        *,
        record: str | None = None,
    ) -> None:
        available_str = ", ".join(available_tiers) if available_tiers else "none"
        super().__init__(
            f"Quota tier '{tier_name}' not found. Available: {available_str}",
            record=record,
            field_path="tier",
        )
        self.tier_name = tier_name
        self.available_tiers = list(available_tiers)


class PersonaNotFoundError(ValidationError):
    """Raised when an access persona name is unknown.

    Attributes:
        persona_name: The requested persona.
        available_personas: Names of the known personas.
    """

    def __init__(
        self,
        persona_name: str,
        available_personas: Sequence[str],
    ) -> None:
        available_str = ", ".join(available_personas) if available_personas else "none"
        super().__init__(
            f"Access persona '{persona_name}' not found. Available: {available_str}",
            field_path="persona",
        )
        self.persona_name = persona_name
        self.available_personas = list(available_personas)
