"""Shared pytest fixtures for clusterforge tests.

This module provides common fixtures used across the unit tests:
structlog configuration for output capture, and resolved configurations
for each compiled-in environment.
"""

from __future__ import annotations

import sys
from typing import Any

import pytest
import structlog

from clusterforge.compiler.config_resolver import resolve_configuration
from clusterforge.defaults import environment_layers
from clusterforge.schemas import EnvironmentConfig, ExternalValues

ACCOUNT_ID = "123456789012"
REGION = "us-west-2"
GITOPS_REPO_URL = "https://github.com/acme/platform-gitops.git"
ADMIN_ROLE_ARN = "arn:aws:iam::123456789012:role/PlatformAdmin"


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture.

    Without this, structlog may use different processors depending on
    test execution order, and capsys would not see the output.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture
def dev_config() -> EnvironmentConfig:
    """Return the resolved dev configuration from the compiled-in layers."""
    return resolve_configuration(environment_layers("dev", ACCOUNT_ID, REGION))


@pytest.fixture
def staging_config() -> EnvironmentConfig:
    """Return the resolved staging configuration from the compiled-in layers."""
    return resolve_configuration(environment_layers("staging", ACCOUNT_ID, REGION))


@pytest.fixture
def production_external_values() -> ExternalValues:
    """Return the external values production needs to resolve."""
    return ExternalValues(
        domain_name="acme.io",
        hosted_zone_id="Z0123456789ABC",
        git_ops_repo_url=GITOPS_REPO_URL,
        admin_role_arn=ADMIN_ROLE_ARN,
    )


@pytest.fixture
def production_config(production_external_values: ExternalValues) -> EnvironmentConfig:
    """Return the resolved production configuration."""
    return resolve_configuration(
        environment_layers("production", ACCOUNT_ID, REGION),
        external_values=production_external_values,
    )


@pytest.fixture
def sample_pdb() -> dict[str, Any]:
    """Return a minimal valid disruption budget record (count-based)."""
    return {
        "name": "api-pdb",
        "namespace": "team-a",
        "selector": {"app": "api"},
        "min_available": 2,
    }
