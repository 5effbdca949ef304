"""clusterforge: Layered configuration and policy compilation for EKS platforms.

This package provides:
- Deep merge of layered configuration with compiled-in environment defaults
- ConfigurationResolver: Layers + external values → EnvironmentConfig
- Compilers for admission, network, resource and access intents
- PlatformCompiler: Resolved configuration → CompiledBundle
- JSON Schema export utilities
"""

from __future__ import annotations

__version__ = "0.1.0"

# Compilers and output models
from clusterforge.compiler import (
    AccessPrincipalResolver,
    CompiledBundle,
    CompiledDocument,
    ConfigurationResolver,
    PlatformCompiler,
    PlatformIntents,
    SecurityPolicies,
    assert_valid_config,
    compile_platform,
    resolve_configuration,
    validate_config,
)

# Compiled-in default layers
from clusterforge.defaults import (
    BASE_LAYER,
    DEV_LAYER,
    PRODUCTION_LAYER,
    STAGING_LAYER,
    environment_layers,
)

# Error types
from clusterforge.errors import (
    ForgeError,
    MergeAmbiguity,
    PersonaNotFoundError,
    ResolutionError,
    TierNotFoundError,
    ValidationError,
)

# JSON Schema export functions
from clusterforge.export import (
    export_compiled_bundle_schema,
    export_environment_config_schema,
    export_platform_intents_schema,
)

# Deep merge
from clusterforge.merge import UNSET, deep_merge, merge_all

# Schema models
from clusterforge.schemas import (
    ClusterAccessConfig,
    ConfigurationLayer,
    Environment,
    EnvironmentConfig,
    ExternalValues,
)

__all__ = [
    "__version__",
    # Merge
    "deep_merge",
    "merge_all",
    "UNSET",
    # Resolution
    "ConfigurationResolver",
    "resolve_configuration",
    "validate_config",
    "assert_valid_config",
    "BASE_LAYER",
    "DEV_LAYER",
    "STAGING_LAYER",
    "PRODUCTION_LAYER",
    "environment_layers",
    # Compilation
    "PlatformCompiler",
    "PlatformIntents",
    "compile_platform",
    "SecurityPolicies",
    "AccessPrincipalResolver",
    "CompiledDocument",
    "CompiledBundle",
    # Errors
    "ForgeError",
    "MergeAmbiguity",
    "ResolutionError",
    "ValidationError",
    "TierNotFoundError",
    "PersonaNotFoundError",
    # JSON Schema exports
    "export_environment_config_schema",
    "export_platform_intents_schema",
    "export_compiled_bundle_schema",
    # Schema models
    "Environment",
    "ConfigurationLayer",
    "ExternalValues",
    "EnvironmentConfig",
    "ClusterAccessConfig",
]
