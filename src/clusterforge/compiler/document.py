"""Compiled output models for clusterforge.

This module defines the output units handed to the actuation collaborator:
- DocumentMetadata: Name, namespace, labels and annotations
- CompiledDocument: One self-describing manifest (apiVersion + kind + metadata + body)
- CompiledBundle: Ordered documents for one environment with a source hash

Documents are pure values. Rendering is deterministic: identical inputs
always produce byte-identical YAML and identical digests.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Iterable
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

# Label applied to every compiled document
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "clusterforge"


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class DocumentMetadata(BaseModel):
    """Object metadata of a compiled document.

    Attributes:
        name: Object name.
        namespace: Target namespace (None for cluster-scoped objects).
        labels: Object labels.
        annotations: Object annotations.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Object name")
    namespace: str | None = Field(default=None, description="Target namespace")
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    def to_manifest(self) -> dict[str, Any]:
        manifest: dict[str, Any] = {"name": self.name}
        if self.namespace is not None:
            manifest["namespace"] = self.namespace
        if self.labels:
            manifest["labels"] = dict(self.labels)
        if self.annotations:
            manifest["annotations"] = dict(self.annotations)
        return manifest


class CompiledDocument(BaseModel):
    """One compiled declarative document.

    ``body`` holds every top-level manifest field other than apiVersion,
    kind and metadata (e.g., ``spec``, ``value``, ``rules``).

    Attributes:
        api_version: API group/version (e.g., "kyverno.io/v1").
        kind: Document kind (e.g., "ClusterPolicy").
        metadata: Object metadata.
        body: Remaining manifest fields.

    Example:
        >>> doc = CompiledDocument(
        ...     api_version="v1",
        ...     kind="ResourceQuota",
        ...     metadata=DocumentMetadata(name="team-a-quota", namespace="team-a"),
        ...     body={"spec": {"hard": {"pods": "50"}}},
        ... )
        >>> doc.to_manifest()["metadata"]["name"]
        'team-a-quota'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_version: str = Field(..., min_length=1, description="API group/version")
    kind: str = Field(..., min_length=1, description="Document kind")
    metadata: DocumentMetadata
    body: dict[str, Any] = Field(default_factory=dict, description="Manifest body")

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str | None:
        return self.metadata.namespace

    def to_manifest(self) -> dict[str, Any]:
        """Render the full manifest as a new dict."""
        manifest: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_manifest(),
        }
        manifest.update(copy.deepcopy(self.body))
        return manifest

    def to_yaml(self) -> str:
        """Render the manifest as YAML, keeping field order."""
        return yaml.safe_dump(self.to_manifest(), sort_keys=False, default_flow_style=False)

    def digest(self) -> str:
        """SHA-256 of the canonical JSON form of the manifest."""
        return hashlib.sha256(_canonical_json(self.to_manifest()).encode("utf-8")).hexdigest()


def compute_source_hash(documents: Iterable[CompiledDocument]) -> str:
    """Hash an ordered document sequence.

    Args:
        documents: Documents in emission order.

    Returns:
        SHA-256 hex digest over the documents' digests.
    """
    hasher = hashlib.sha256()
    for document in documents:
        hasher.update(document.digest().encode("ascii"))
        hasher.update(b"\n")
    return hasher.hexdigest()


class CompiledBundle(BaseModel):
    """Every document compiled for one environment.

    Attributes:
        environment: Environment the bundle was compiled for.
        cluster_name: Full cluster name.
        documents: Documents in emission order.
        source_hash: Hash of the documents, for change detection.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str
    cluster_name: str
    documents: tuple[CompiledDocument, ...] = Field(default_factory=tuple)
    source_hash: str = Field(..., min_length=64, max_length=64)

    @classmethod
    def from_documents(
        cls,
        environment: str,
        cluster_name: str,
        documents: Iterable[CompiledDocument],
    ) -> CompiledBundle:
        docs = tuple(documents)
        return cls(
            environment=environment,
            cluster_name=cluster_name,
            documents=docs,
            source_hash=compute_source_hash(docs),
        )

    def by_kind(self, kind: str) -> list[CompiledDocument]:
        """Return the documents of the given kind, in emission order."""
        return [doc for doc in self.documents if doc.kind == kind]

    def to_yaml(self) -> str:
        """Render every document as one multi-document YAML stream."""
        return yaml.safe_dump_all(
            [doc.to_manifest() for doc in self.documents],
            sort_keys=False,
            default_flow_style=False,
        )
