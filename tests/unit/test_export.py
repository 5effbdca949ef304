"""Unit tests for JSON Schema export."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from clusterforge.export import (
    export_compiled_bundle_schema,
    export_environment_config_schema,
    export_platform_intents_schema,
)


class TestSchemaExport:
    """Tests for the schema export functions."""

    @pytest.mark.parametrize(
        ("export", "title", "schema_id"),
        [
            (export_environment_config_schema, "EnvironmentConfig", "environment-config"),
            (export_platform_intents_schema, "PlatformIntents", "platform-intents"),
            (export_compiled_bundle_schema, "CompiledBundle", "compiled-bundle"),
        ],
    )
    def test_schema_headers(
        self, export: Callable[[], dict[str, Any]], title: str, schema_id: str
    ) -> None:
        """Test each schema carries the dialect, id and model title."""
        schema = export()

        assert schema["$schema"] == "https://json-schema.org/draft/2020-12/schema"
        assert schema["$id"] == f"https://clusterforge.dev/schemas/{schema_id}.schema.json"
        assert schema["title"] == title
        assert schema["additionalProperties"] is False

    def test_environment_config_properties(self) -> None:
        """Test the resolved configuration schema lists its sections."""
        schema = export_environment_config_schema()

        assert {"environment", "features", "security"} <= set(schema["properties"])
        assert "$defs" in schema

    def test_writes_file(self, tmp_path: Path) -> None:
        """Test the schema is written as JSON, creating parent directories."""
        output = tmp_path / "schemas" / "platform-intents.schema.json"

        schema = export_platform_intents_schema(output)

        assert output.exists()
        assert json.loads(output.read_text()) == schema
