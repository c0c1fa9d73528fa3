"""Manifest documents and the record <-> manifest codec."""

from dvm.manifest.codec import ManifestCodec, codec_for, parse_records
from dvm.manifest.document import Manifest, detect_kind, dump_manifests, load_manifests

__all__ = [
    "Manifest",
    "ManifestCodec",
    "codec_for",
    "detect_kind",
    "dump_manifests",
    "load_manifests",
    "parse_records",
]
