"""Unit tests for compiled documents and bundles."""

from __future__ import annotations

import yaml

from clusterforge.compiler.document import (
    CompiledBundle,
    CompiledDocument,
    DocumentMetadata,
    compute_source_hash,
)


def _quota(name: str = "team-a-quota", pods: str = "50") -> CompiledDocument:
    return CompiledDocument(
        api_version="v1",
        kind="ResourceQuota",
        metadata=DocumentMetadata(name=name, namespace="team-a", labels={"tier": "small"}),
        body={"spec": {"hard": {"pods": pods}}},
    )


def _priority() -> CompiledDocument:
    return CompiledDocument(
        api_version="scheduling.k8s.io/v1",
        kind="PriorityClass",
        metadata=DocumentMetadata(name="platform-critical"),
        body={"value": 1000000, "globalDefault": False},
    )


class TestCompiledDocument:
    """Tests for CompiledDocument rendering."""

    def test_manifest_layout(self) -> None:
        """Test header fields come first and the body is merged in."""
        manifest = _quota().to_manifest()

        assert list(manifest) == ["apiVersion", "kind", "metadata", "spec"]
        assert manifest["metadata"] == {
            "name": "team-a-quota",
            "namespace": "team-a",
            "labels": {"tier": "small"},
        }

    def test_cluster_scoped_metadata(self) -> None:
        """Test empty namespace, labels and annotations are omitted."""
        assert _priority().to_manifest()["metadata"] == {"name": "platform-critical"}

    def test_manifest_is_a_copy(self) -> None:
        """Test mutating a rendered manifest leaves the document unchanged."""
        doc = _quota()
        manifest = doc.to_manifest()
        manifest["spec"]["hard"]["pods"] = "999"

        assert doc.body["spec"]["hard"]["pods"] == "50"

    def test_yaml_round_trips(self) -> None:
        """Test the YAML rendering parses back to the manifest."""
        doc = _priority()
        rendered = doc.to_yaml()

        assert rendered.startswith("apiVersion: scheduling.k8s.io/v1\nkind: PriorityClass\n")
        assert yaml.safe_load(rendered) == doc.to_manifest()

    def test_digest_is_deterministic(self) -> None:
        """Test equal documents share a digest and different ones do not."""
        assert _quota().digest() == _quota().digest()
        assert _quota().digest() != _quota(pods="51").digest()
        assert len(_quota().digest()) == 64


class TestCompiledBundle:
    """Tests for CompiledBundle."""

    def test_from_documents(self) -> None:
        """Test the bundle keeps order and computes the source hash."""
        docs = [_quota(), _priority()]

        bundle = CompiledBundle.from_documents("dev", "dev-platform", docs)

        assert bundle.documents == tuple(docs)
        assert bundle.source_hash == compute_source_hash(docs)

    def test_source_hash_depends_on_order(self) -> None:
        """Test reordering documents changes the source hash."""
        assert compute_source_hash([_quota(), _priority()]) != compute_source_hash(
            [_priority(), _quota()]
        )

    def test_by_kind(self) -> None:
        """Test documents are filtered by kind in emission order."""
        bundle = CompiledBundle.from_documents(
            "dev",
            "dev-platform",
            [_quota("a-quota"), _priority(), _quota("b-quota")],
        )

        assert [doc.name for doc in bundle.by_kind("ResourceQuota")] == ["a-quota", "b-quota"]
        assert bundle.by_kind("LimitRange") == []

    def test_to_yaml_stream(self) -> None:
        """Test the bundle renders one YAML document per compiled document."""
        bundle = CompiledBundle.from_documents("dev", "dev-platform", [_quota(), _priority()])

        loaded = list(yaml.safe_load_all(bundle.to_yaml()))

        assert [doc["kind"] for doc in loaded] == ["ResourceQuota", "PriorityClass"]

    def test_empty_bundle(self) -> None:
        """Test an empty bundle still carries a source hash."""
        bundle = CompiledBundle.from_documents("dev", "dev-platform", [])

        assert bundle.documents == ()
        assert len(bundle.source_hash) == 64
