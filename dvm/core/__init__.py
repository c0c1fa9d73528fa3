"""Core abstractions: union values, records and kind schemas.

Public exports:
- UnionValue variants: ABSENT, Scalar, ListValue, ObjectValue
- Blob, ResourceRecord: storage-shaped records
- ResourceKind, KindSpec, FieldSpec: schema descriptors
- Registry helpers: get_kind_spec, resolve_kind, get_all_kind_specs
"""

from dvm.core.record import NULL_BLOB, Blob, ResourceRecord
from dvm.core.registry import get_all_kind_specs, get_kind_spec, resolve_kind
from dvm.core.resource import FieldSpec, KindSpec, ResourceKind
from dvm.core.union import (
    ABSENT,
    Absent,
    DecodeMode,
    ListValue,
    ObjectValue,
    Scalar,
    Shape,
    UnionValue,
    classify,
    decode_blob,
    encode_value,
    to_native,
)

__all__ = [
    "ABSENT",
    "Absent",
    "Blob",
    "DecodeMode",
    "FieldSpec",
    "KindSpec",
    "ListValue",
    "NULL_BLOB",
    "ObjectValue",
    "ResourceKind",
    "ResourceRecord",
    "Scalar",
    "Shape",
    "UnionValue",
    "classify",
    "decode_blob",
    "encode_value",
    "get_all_kind_specs",
    "get_kind_spec",
    "resolve_kind",
    "to_native",
]
