"""Test configuration and fixtures."""

from pathlib import Path

import pytest

from dvm.core.record import Blob, ResourceRecord
from dvm.core.registry import resolve_kind
from dvm.core.union import classify, encode_value
from dvm.store import MemoryStore


TELESCOPE_YAML = """\
apiVersion: devopsmaestro.io/v1
kind: NvimPlugin
metadata:
  name: telescope
  description: Fuzzy finder
  category: navigation
  tags: [search, core]
spec:
  repo: nvim-telescope/telescope.nvim
  branch: 0.1.x
  lazy: true
  cmd: [Telescope]
  dependencies:
    - nvim-lua/plenary.nvim
    - repo: nvim-telescope/telescope-fzf-native.nvim
      build: make
  keys:
    - key: <leader>ff
      action: find_files
      desc: Find files
  config: |
    local telescope = require("telescope")

    telescope.setup({})
  opts:
    defaults:
      prompt_prefix: "> "
    pickers:
      find_files:
        hidden: true
"""


def make_record(kind: str, name: str, source_ref: str = "", builtin_ref: str = "", **attributes) -> ResourceRecord:
    """Build a record, encoding plain Python attribute values the way the codec does.

    Values that are already a Blob are stored as given.
    """
    spec = resolve_kind(kind)
    record = ResourceRecord(kind=spec.name, name=name, source_ref=source_ref, builtin_ref=builtin_ref)
    for field_name, value in attributes.items():
        if isinstance(value, Blob):
            record.attributes[field_name] = value
            continue
        blob = encode_value(classify(value), spec.field(field_name).shape)
        if blob.valid:
            record.attributes[field_name] = blob
    return record


@pytest.fixture
def record_factory():
    """Provide make_record() to tests."""
    return make_record


@pytest.fixture
def telescope_yaml() -> str:
    """A fully populated NvimPlugin manifest."""
    return TELESCOPE_YAML


@pytest.fixture
def memory_store() -> MemoryStore:
    """An empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def manifest_file(tmp_path: Path):
    """Write manifest text to a file and return its path."""
    def _write(text: str, name: str = "manifest.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write
