"""Semantic validation of resolved configuration.

The schema guarantees every field is present with the right type; this
module checks the values themselves (formats, ranges, cross-field rules).
Every issue is collected so callers can report them all at once.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from clusterforge.errors import ValidationError
from clusterforge.schemas.environment_config import EnvironmentConfig

logger = logging.getLogger(__name__)

ACCOUNT_ID_PATTERN = re.compile(r"^\d{12}$")
REGION_PATTERN = re.compile(r"^[a-z]{2}-[a-z]+-\d$")
KUBERNETES_VERSION_PATTERN = re.compile(r"^1\.\d+$")

MIN_DISK_SIZE_GB = 20
MAX_AZS = 6


class IssueSeverity(str, Enum):
    """Severity of a configuration issue."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ConfigIssue:
    """A single configuration issue.

    Attributes:
        code: Stable identifier for programmatic handling.
        message: Human-readable description.
        field_path: Dotted path of the offending field.
        severity: Error or warning.
    """

    code: str
    message: str
    field_path: str
    severity: IssueSeverity = IssueSeverity.ERROR


@dataclass
class ConfigValidationResult:
    """Result of configuration validation.

    Attributes:
        errors: Issues that make the configuration unusable.
        warnings: Issues worth reporting that do not block compilation.
    """

    errors: list[ConfigIssue] = field(default_factory=list)
    warnings: list[ConfigIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, field_path: str) -> None:
        self.errors.append(ConfigIssue(code, message, field_path))

    def warning(self, code: str, message: str, field_path: str) -> None:
        self.warnings.append(ConfigIssue(code, message, field_path, IssueSeverity.WARNING))


def _check_aws(config: EnvironmentConfig, result: ConfigValidationResult) -> None:
    if not ACCOUNT_ID_PATTERN.match(config.aws.account_id):
        result.error(
            "INVALID_ACCOUNT_ID",
            "AWS account ID must be exactly 12 digits",
            "aws.account_id",
        )
    if not REGION_PATTERN.match(config.aws.region):
        result.error("INVALID_REGION", "Invalid AWS region format (e.g., us-west-2)", "aws.region")


def _check_network(config: EnvironmentConfig, result: ConfigValidationResult) -> None:
    network = config.network
    try:
        ipaddress.IPv4Network(network.vpc_cidr, strict=True)
    except ValueError:
        result.error("INVALID_CIDR", "VPC CIDR block is invalid", "network.vpc_cidr")
    else:
        if "/" not in network.vpc_cidr:
            result.error(
                "INVALID_CIDR",
                "VPC CIDR block needs a prefix length",
                "network.vpc_cidr",
            )

    if network.nat_gateways < 1:
        result.error(
            "INVALID_NAT_GATEWAYS",
            "At least one NAT gateway is required",
            "network.nat_gateways",
        )
    if not 1 <= network.max_azs <= MAX_AZS:
        result.error(
            "INVALID_MAX_AZS",
            f"Max availability zones must be between 1 and {MAX_AZS}",
            "network.max_azs",
        )


def _check_cluster(config: EnvironmentConfig, result: ConfigValidationResult) -> None:
    cluster = config.cluster
    if not KUBERNETES_VERSION_PATTERN.match(cluster.version):
        result.error(
            "INVALID_VERSION",
            "Kubernetes version must be in format 1.XX",
            "cluster.version",
        )
    if not cluster.name:
        result.error("MISSING_CLUSTER_NAME", "Cluster name is required", "cluster.name")
    if not cluster.private_endpoint and not cluster.public_endpoint:
        result.error(
            "NO_ENDPOINT",
            "At least one endpoint (private or public) must be enabled",
            "cluster.private_endpoint",
        )
    if config.is_production and cluster.public_endpoint:
        result.warning(
            "PUBLIC_ENDPOINT",
            "Production cluster exposes a public API endpoint",
            "cluster.public_endpoint",
        )


def _check_node_group(config: EnvironmentConfig, result: ConfigValidationResult) -> None:
    group = config.system_node_group
    if group.min_size < 0:
        result.error(
            "INVALID_MIN_SIZE",
            "minSize cannot be negative",
            "system_node_group.min_size",
        )
    if group.max_size < group.min_size:
        result.error(
            "INVALID_MAX_SIZE",
            "maxSize must be >= minSize",
            "system_node_group.max_size",
        )
    if not group.min_size <= group.desired_size <= group.max_size:
        result.error(
            "INVALID_DESIRED_SIZE",
            "desiredSize must be between minSize and maxSize",
            "system_node_group.desired_size",
        )
    if group.disk_size < MIN_DISK_SIZE_GB:
        result.error(
            "INVALID_DISK_SIZE",
            f"Disk size must be at least {MIN_DISK_SIZE_GB} GB",
            "system_node_group.disk_size",
        )
    if not group.instance_types:
        result.error(
            "NO_INSTANCE_TYPES",
            "At least one instance type is required",
            "system_node_group.instance_types",
        )


def _check_limits(config: EnvironmentConfig, result: ConfigValidationResult) -> None:
    karpenter = config.karpenter
    if karpenter.cpu_limit < 1:
        result.error("INVALID_CPU_LIMIT", "CPU limit must be at least 1", "karpenter.cpu_limit")
    if karpenter.memory_limit_gi < 1:
        result.error(
            "INVALID_MEMORY_LIMIT",
            "Memory limit must be at least 1 Gi",
            "karpenter.memory_limit_gi",
        )

    observability = config.observability
    if observability.loki_retention_days < 1:
        result.error(
            "INVALID_RETENTION",
            "Log retention must be at least 1 day",
            "observability.loki_retention_days",
        )
    if observability.tempo_retention_days < 1:
        result.error(
            "INVALID_RETENTION",
            "Trace retention must be at least 1 day",
            "observability.tempo_retention_days",
        )


def _check_backup(config: EnvironmentConfig, result: ConfigValidationResult) -> None:
    if not config.features.velero_backups:
        return
    backup = config.backup
    if backup.daily_retention_days < 1:
        result.error(
            "INVALID_RETENTION",
            "Daily backup retention must be at least 1 day",
            "backup.daily_retention_days",
        )
    if backup.weekly_retention_days < backup.daily_retention_days:
        result.error(
            "INVALID_RETENTION",
            "Weekly backup retention must be >= daily retention",
            "backup.weekly_retention_days",
        )


def _check_production(config: EnvironmentConfig, result: ConfigValidationResult) -> None:
    if config.is_production and not config.features.multi_az_nat:
        result.error(
            "SINGLE_AZ_NAT",
            "Production requires multi-AZ NAT gateways",
            "features.multi_az_nat",
        )


_CHECKS = (
    _check_aws,
    _check_network,
    _check_cluster,
    _check_node_group,
    _check_limits,
    _check_backup,
    _check_production,
)


def validate_config(config: EnvironmentConfig) -> ConfigValidationResult:
    """Check the values of a resolved configuration.

    Args:
        config: Resolved configuration.

    Returns:
        ConfigValidationResult with every error and warning found.

    Example:
        >>> result = validate_config(config)
        >>> if not result.valid:
        ...     for issue in result.errors:
        ...         print(issue.field_path, issue.message)
    """
    result = ConfigValidationResult()
    for check in _CHECKS:
        check(config, result)

    for warning in result.warnings:
        logger.warning("Configuration warning at %s: %s", warning.field_path, warning.message)
    if result.errors:
        logger.debug("Configuration has %d errors", len(result.errors))
    return result


def assert_valid_config(config: EnvironmentConfig) -> EnvironmentConfig:
    """Return ``config`` unchanged, or raise on the first error.

    Raises:
        ValidationError: If any check reports an error.
    """
    result = validate_config(config)
    if not result.valid:
        first = result.errors[0]
        raise ValidationError(
            first.message,
            field_path=first.field_path,
            internal_details="; ".join(f"{e.field_path}: {e.message}" for e in result.errors),
        )
    return config
