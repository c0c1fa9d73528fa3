"""Bidirectional transcoding between resource records and manifests.

One :class:`ManifestCodec` is built per kind from its :class:`KindSpec`.
Both directions share the same rules:

- ``to_manifest`` never fails on a readable record. Attributes that are
  absent, empty or (in lenient mode) undecodable are omitted.
- ``from_manifest`` validates field shapes, applies kind defaults and
  leaves empty fields absent instead of encoding empty containers.
"""

import logging
import re
from typing import Any

from dvm.core.record import ResourceRecord
from dvm.core.registry import get_kind_spec, resolve_kind
from dvm.core.resource import FieldSpec, KindSpec, ResourceKind
from dvm.core.union import (
    DecodeMode,
    ListValue,
    ObjectValue,
    Scalar,
    Shape,
    UnionValue,
    classify,
    decode_blob,
    encode_value,
    is_empty,
    shape_mismatch,
    string_items,
    to_native,
)
from dvm.exceptions import ManifestParseError, UnknownKindError
from dvm.manifest.document import Manifest, load_manifests

logger = logging.getLogger(__name__)

_STRINGISH = (Shape.TEXT, Shape.CODE, Shape.STRING_OR_LIST, Shape.STRING_LIST, Shape.STRING_MAP)

_MISSING = object()


def _stringify(value: UnionValue) -> UnionValue:
    if isinstance(value, Scalar) and not isinstance(value.value, str):
        raw = value.value
        if isinstance(raw, bool):
            return Scalar("true" if raw else "false")
        return Scalar(str(raw))
    return value


def _coerce(value: UnionValue, shape: Shape) -> UnionValue:
    """Turn YAML numbers and bools into strings where a string is expected."""
    if shape not in _STRINGISH:
        return value
    if isinstance(value, ListValue):
        return ListValue(tuple(_stringify(item) for item in value.items))
    if isinstance(value, ObjectValue):
        return ObjectValue({key: _stringify(item) for key, item in value.fields.items()})
    return _stringify(value)


def _lookup(section: dict[str, Any], path: tuple[str, ...], label: str) -> Any:
    current: Any = section
    for depth, key in enumerate(path):
        if not isinstance(current, dict):
            parent = ".".join(path[:depth])
            raise ManifestParseError(f"{label}: '{parent}' must be a mapping")
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return None
    return current


def _assign(section: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    current = section
    for key in path[:-1]:
        current = current.setdefault(key, {})
    current[path[-1]] = value


class ManifestCodec:
    """Converts records of one kind to and from manifests."""

    def __init__(self, spec: KindSpec):
        self.spec = spec

    # --- record -> manifest ---

    def to_manifest(self, record: ResourceRecord, mode: DecodeMode = DecodeMode.LENIENT) -> Manifest:
        """Build the portable manifest for a record.

        Args:
            record: Stored record of this codec's kind
            mode: How malformed stored attributes are handled

        Returns:
            A minimal manifest: unset and empty fields are omitted

        Raises:
            MalformedAttributeError: In strict mode, for an undecodable attribute
        """
        metadata: dict[str, Any] = {"name": record.name}
        if record.description:
            metadata["description"] = record.description
        if record.category:
            metadata["category"] = record.category
        tags = decode_blob(record.tags, Shape.STRING_LIST, mode=mode, field_name="tags")
        if not is_empty(tags):
            metadata["tags"] = to_native(tags)

        spec: dict[str, Any] = {}
        if self.spec.source_path and record.source_ref:
            _assign(spec, self.spec.source_path, record.source_ref)
        if self.spec.builtin_path and record.builtin_ref:
            _assign(spec, self.spec.builtin_path, record.builtin_ref)

        for field in self.spec.fields:
            value = decode_blob(record.attribute(field.name), field.shape, mode=mode, field_name=field.name)
            if is_empty(value):
                continue
            target = metadata if field.section == "metadata" else spec
            _assign(target, field.path, to_native(value))

        if not record.enabled:
            spec["enabled"] = False

        return Manifest(kind=self.spec.name, metadata=metadata, spec=spec)

    # --- manifest -> record ---

    def from_manifest(self, manifest: Manifest, source: str = "<manifest>") -> ResourceRecord:
        """Build a storage record from a manifest.

        Args:
            manifest: Parsed manifest of this codec's kind
            source: Label used in error messages

        Returns:
            A new record. Timestamps are left for the store to fill in.

        Raises:
            ManifestParseError: If the kind does not match, a required field is
                missing or a field has the wrong shape
        """
        label = f"{source}: {self.spec.name} '{manifest.name}'"
        if manifest.kind != self.spec.name:
            raise ManifestParseError(f"{label}: expected kind {self.spec.name}, got {manifest.kind}")

        record = ResourceRecord(
            kind=self.spec.name,
            name=manifest.name,
            description=self._metadata_text(manifest, "description", label),
            category=self._metadata_text(manifest, "category", label),
        )

        tags = _coerce(self._classify(manifest.metadata.get("tags"), "metadata.tags", label), Shape.STRING_OR_LIST)
        reason = shape_mismatch(tags, Shape.STRING_OR_LIST)
        if reason:
            raise ManifestParseError(f"{label}: field 'metadata.tags' {reason}")
        tag_list = [tag for tag in string_items(tags) if tag]
        record.tags = encode_value(classify(tag_list), Shape.STRING_LIST)

        record.source_ref, record.builtin_ref = self._identifiers(manifest, label)

        for field in self.spec.fields:
            blob = encode_value(self._field_value(manifest, field, label), field.shape)
            if blob.valid:
                record.attributes[field.name] = blob

        enabled = manifest.spec.get("enabled")
        if enabled is not None and not isinstance(enabled, bool):
            raise ManifestParseError(f"{label}: field 'spec.enabled' expected a boolean")
        record.enabled = enabled is not False

        self._warn_unknown_fields(manifest, label)
        return record

    def _metadata_text(self, manifest: Manifest, key: str, label: str) -> str:
        value = manifest.metadata.get(key)
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ManifestParseError(f"{label}: field 'metadata.{key}' expected a string")
        return value

    @staticmethod
    def _classify(native: Any, dotted: str, label: str) -> UnionValue:
        try:
            return classify(native)
        except ValueError as e:
            raise ManifestParseError(f"{label}: field '{dotted}' has an {e}")

    def _identifiers(self, manifest: Manifest, label: str) -> tuple[str, str]:
        source = self._identifier(manifest, self.spec.source_path, label)
        builtin = self._identifier(manifest, self.spec.builtin_path, label)

        if self.spec.builtin_path is not None:
            if bool(source) == bool(builtin):
                raise ManifestParseError(
                    f"{label}: exactly one of 'spec.{'.'.join(self.spec.source_path or ())}' "
                    f"or 'spec.{'.'.join(self.spec.builtin_path)}' must be set"
                )
        elif self.spec.source_path is not None and not source:
            raise ManifestParseError(f"{label}: 'spec.{'.'.join(self.spec.source_path)}' is required")
        return source, builtin

    @staticmethod
    def _identifier(manifest: Manifest, path: tuple[str, ...] | None, label: str) -> str:
        if path is None:
            return ""
        value = _lookup(manifest.spec, path, label)
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ManifestParseError(f"{label}: field 'spec.{'.'.join(path)}' expected a string")
        return value.strip()

    def _field_value(self, manifest: Manifest, field: FieldSpec, label: str) -> UnionValue:
        section = manifest.metadata if field.section == "metadata" else manifest.spec
        value = _coerce(self._classify(_lookup(section, field.path, label), field.dotted, label), field.shape)

        reason = shape_mismatch(value, field.shape)
        if reason:
            raise ManifestParseError(f"{label}: field '{field.dotted}' {reason}")

        if is_empty(value) and field.default is not None:
            return classify(field.default)

        if field.choices and isinstance(value, Scalar) and value.value not in field.choices:
            allowed = ", ".join(field.choices)
            raise ManifestParseError(
                f"{label}: field '{field.dotted}' must be one of {allowed}, got '{value.value}'"
            )

        if field.value_pattern:
            for item in self._string_values(value):
                if not re.match(field.value_pattern, item):
                    raise ManifestParseError(f"{label}: field '{field.dotted}' has invalid value '{item}'")

        if field.key_pattern and isinstance(value, ObjectValue):
            for key in value.fields:
                if not re.fullmatch(field.key_pattern, key):
                    raise ManifestParseError(f"{label}: field '{field.dotted}' has invalid key '{key}'")
        return value

    @staticmethod
    def _string_values(value: UnionValue) -> list[str]:
        if isinstance(value, ObjectValue):
            return [item.value for item in value.fields.values() if isinstance(item, Scalar) and isinstance(item.value, str)]
        return string_items(value)

    def _warn_unknown_fields(self, manifest: Manifest, label: str) -> None:
        known = {"enabled"}
        for path in (self.spec.source_path, self.spec.builtin_path):
            if path:
                known.add(path[0])
        known.update(field.path[0] for field in self.spec.fields if field.section == "spec")
        for key in manifest.spec:
            if key not in known:
                logger.warning("%s: ignoring unknown field 'spec.%s'", label, key)


def codec_for(kind: str | ResourceKind) -> ManifestCodec:
    """Get the codec for a kind, given its enum member, name or alias.

    Raises:
        UnknownKindError: If the kind is not registered
    """
    if isinstance(kind, ResourceKind):
        spec = get_kind_spec(kind)
        if spec is None:
            raise UnknownKindError(f"Resource kind '{kind.value}' is not registered")
        return ManifestCodec(spec)
    return ManifestCodec(resolve_kind(kind))


def parse_records(text: str, source: str = "<manifest>") -> list[ResourceRecord]:
    """Parse a manifest stream into records, one per document.

    The whole stream is validated before anything is returned, so a bad
    document aborts the batch.

    Raises:
        ManifestParseError: If any document is malformed or of an unknown kind
    """
    records = []
    for manifest in load_manifests(text, source):
        try:
            codec = codec_for(manifest.kind)
        except UnknownKindError as e:
            raise ManifestParseError(f"{source}: {e}")
        records.append(codec.from_manifest(manifest, source))
    return records
