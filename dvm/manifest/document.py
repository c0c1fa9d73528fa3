"""Manifest documents: parsing and serialization.

A manifest is a Kubernetes-style YAML document::

    apiVersion: devopsmaestro.io/v1
    kind: NvimPlugin
    metadata:
      name: telescope
    spec:
      repo: nvim-telescope/telescope.nvim

A file may hold several documents separated by ``---``.
"""

import json
from dataclasses import dataclass, field
from typing import Any

import yaml

from dvm.constants import API_VERSION
from dvm.exceptions import ManifestParseError


@dataclass
class Manifest:
    """One portable resource document."""

    kind: str
    metadata: dict[str, Any]
    spec: dict[str, Any] = field(default_factory=dict)
    api_version: str = API_VERSION

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @classmethod
    def from_dict(cls, data: Any, source: str = "<manifest>") -> "Manifest":
        """Validate the document envelope and build a Manifest.

        Only the envelope is checked here (apiVersion, kind, metadata.name and
        the section types). Field-level validation belongs to the codec.

        Raises:
            ManifestParseError: If the envelope is malformed
        """
        if not isinstance(data, dict):
            raise ManifestParseError(f"{source}: manifest must be a mapping, got {type(data).__name__}")

        api_version = data.get("apiVersion", API_VERSION)
        if api_version != API_VERSION:
            raise ManifestParseError(
                f"{source}: unsupported apiVersion '{api_version}' (expected '{API_VERSION}')"
            )

        kind = data.get("kind")
        if not kind or not isinstance(kind, str):
            raise ManifestParseError(f"{source}: YAML missing required 'kind' field")

        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            raise ManifestParseError(f"{source}: {kind} manifest requires a 'metadata' mapping")
        name = metadata.get("name")
        if not name or not isinstance(name, str) or not name.strip():
            raise ManifestParseError(f"{source}: {kind} metadata.name is required")

        spec = data.get("spec")
        if spec is None:
            spec = {}
        if not isinstance(spec, dict):
            raise ManifestParseError(f"{source}: {kind} '{name}' spec must be a mapping")

        return cls(kind=kind, metadata=dict(metadata), spec=dict(spec), api_version=api_version)

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain data in canonical key order."""
        data: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata,
        }
        if self.spec:
            data["spec"] = self.spec
        return data


def load_manifests(text: str, source: str = "<manifest>") -> list[Manifest]:
    """Parse every document in a YAML (or JSON) stream.

    Empty documents are skipped.

    Args:
        text: File contents
        source: Label used in error messages (usually the file path)

    Returns:
        Parsed manifests in document order

    Raises:
        ManifestParseError: If the stream is not valid YAML or a document
            envelope is malformed
    """
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ManifestParseError(f"{source}: invalid YAML: {e}")

    manifests = []
    for index, document in enumerate(documents):
        if document is None:
            continue
        label = source if len(documents) == 1 else f"{source} (document {index + 1})"
        manifests.append(Manifest.from_dict(document, label))
    return manifests


def detect_kind(text: str) -> str:
    """Read the ``kind`` header of the first document.

    Raises:
        ManifestParseError: If the text is not YAML or has no kind
    """
    try:
        documents = yaml.safe_load_all(text)
        first = next((doc for doc in documents if doc is not None), None)
    except yaml.YAMLError as e:
        raise ManifestParseError(f"invalid YAML: {e}")
    if not isinstance(first, dict) or not first.get("kind"):
        raise ManifestParseError("YAML missing required 'kind' field")
    return str(first["kind"])


class _BlockStyleDumper(yaml.SafeDumper):
    """SafeDumper that writes multi-line strings as literal blocks."""


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    if "\n" in value:
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", value)


_BlockStyleDumper.add_representer(str, _represent_str)


def dump_manifests(manifests: list[Manifest], fmt: str = "yaml") -> str:
    """Serialize manifests as YAML documents or JSON.

    Args:
        manifests: Manifests to write
        fmt: "yaml" (multi-document stream) or "json" (an object, or an
            array when there is more than one manifest)

    Returns:
        The serialized text

    Raises:
        ValueError: If fmt is not supported
    """
    if fmt == "json":
        data = [m.to_dict() for m in manifests]
        payload = data[0] if len(data) == 1 else data
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        return yaml.dump_all(
            [m.to_dict() for m in manifests],
            Dumper=_BlockStyleDumper,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
            explicit_start=len(manifests) > 1,
        )
    raise ValueError(f"Unsupported output format: {fmt}")
