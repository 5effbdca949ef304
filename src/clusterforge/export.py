"""JSON Schema export functions for clusterforge.

Exports JSON Schema Draft 2020-12 documents from the pydantic models so
configuration layers and compiled bundles can be validated by editors and
by tooling written in other languages.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from clusterforge.compiler.document import CompiledBundle
from clusterforge.compiler.platform_compiler import PlatformIntents
from clusterforge.schemas.environment_config import EnvironmentConfig

JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"
SCHEMA_BASE_URL = "https://clusterforge.dev/schemas"


def _export(
    model: type[BaseModel],
    schema_name: str,
    output_path: Path | str | None,
) -> dict[str, Any]:
    schema = model.model_json_schema()
    schema["$schema"] = JSON_SCHEMA_DIALECT
    schema["$id"] = f"{SCHEMA_BASE_URL}/{schema_name}.schema.json"
    schema.setdefault("additionalProperties", False)

    if output_path is not None:
        _write_schema_file(schema, output_path)
    return schema


def export_environment_config_schema(
    output_path: Path | str | None = None,
) -> dict[str, Any]:
    """Export the resolved configuration schema.

    Args:
        output_path: Optional path to write the schema file. Parent
            directories are created as needed.

    Returns:
        Dictionary containing the JSON Schema.

    Example:
        >>> schema = export_environment_config_schema()
        >>> schema["$schema"]
        'https://json-schema.org/draft/2020-12/schema'
    """
    return _export(EnvironmentConfig, "environment-config", output_path)


def export_platform_intents_schema(
    output_path: Path | str | None = None,
) -> dict[str, Any]:
    """Export the PlatformIntents schema for intent files."""
    return _export(PlatformIntents, "platform-intents", output_path)


def export_compiled_bundle_schema(
    output_path: Path | str | None = None,
) -> dict[str, Any]:
    """Export the CompiledBundle schema for the actuation collaborator.

    Example:
        >>> export_compiled_bundle_schema()["title"]
        'CompiledBundle'
    """
    return _export(CompiledBundle, "compiled-bundle", output_path)


def _write_schema_file(schema: dict[str, Any], path: Path | str) -> None:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(schema, indent=2))
