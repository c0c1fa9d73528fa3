"""Tests for manifest parsing and the record <-> manifest codec."""

import json

import pytest
import yaml

from dvm.core.record import Blob
from dvm.core.resource import ResourceKind
from dvm.core.union import DecodeMode, Shape, decode_blob
from dvm.exceptions import MalformedAttributeError, ManifestParseError, UnknownKindError
from dvm.manifest import (
    Manifest,
    codec_for,
    detect_kind,
    dump_manifests,
    load_manifests,
    parse_records,
)


_METADATA = """\
metadata:
  name: {name}
  description: Fully populated {name}
  category: testing
  tags: [one, two]
  labels:
    team: platform
  annotations:
    owner: dvm
"""

FULL_MANIFESTS = {
    "NvimPlugin": """\
apiVersion: devopsmaestro.io/v1
kind: NvimPlugin
""" + _METADATA.format(name="harpoon") + """\
spec:
  repo: ThePrimeagen/harpoon
  branch: harpoon2
  version: "^2.0"
  priority: 50
  lazy: true
  event: [BufReadPost, BufNewFile]
  ft: lua
  cmd: Harpoon
  keys:
    - key: <leader>a
      action: add
      desc: Add file
      mode: [n, v]
  dependencies:
    - nvim-lua/plenary.nvim
    - repo: nvim-telescope/telescope.nvim
      branch: 0.1.x
      config: true
  build: make
  init: vim.g.harpoon_loaded = 1
  config: require("harpoon"):setup()
  opts:
    settings:
      save_on_toggle: true
  keymaps:
    - key: <C-e>
      action: <cmd>Harpoon<cr>
""",
    "NvimTheme": """\
apiVersion: devopsmaestro.io/v1
kind: NvimTheme
""" + _METADATA.format(name="tokyonight") + """\
  author: folke
spec:
  plugin:
    repo: folke/tokyonight.nvim
    branch: main
    tag: v4.0.0
  style: night
  transparent: true
  colors:
    bg: "#1a1b26"
  options:
    terminal_colors: true
""",
    "NvimPackage": """\
apiVersion: devopsmaestro.io/v1
kind: NvimPackage
""" + _METADATA.format(name="editing") + """\
spec:
  extends: core
  plugins: [harpoon, telescope]
""",
    "TerminalPlugin": """\
apiVersion: devopsmaestro.io/v1
kind: TerminalPlugin
""" + _METADATA.format(name="autosuggestions") + """\
spec:
  repo: zsh-users/zsh-autosuggestions
  source: https://github.com/zsh-users/zsh-autosuggestions.git
  branch: develop
  tag: v0.7.0
  shell: bash
  manager: zinit
  loadMode: deferred
  sourceFiles: [zsh-autosuggestions.zsh]
  config: bindkey '^ ' autosuggest-accept
  env:
    ZSH_AUTOSUGGEST_STRATEGY: history
  dependencies: [fzf]
  priority: 10
""",
    "TerminalProfile": """\
apiVersion: devopsmaestro.io/v1
kind: TerminalProfile
""" + _METADATA.format(name="work") + """\
spec:
  promptRef: starship
  pluginRefs: [autosuggestions, fzf]
  shellRef: zsh
  themeRef: dracula
  enabled: false
""",
    "TerminalPackage": """\
apiVersion: devopsmaestro.io/v1
kind: TerminalPackage
""" + _METADATA.format(name="full") + """\
spec:
  extends: base
  plugins: [autosuggestions]
  prompts: starship
  profiles: [work]
  wezterm:
    fontSize: 14
    colorScheme: Dracula
""",
}


def _manifest(kind: str, name: str, spec: dict | None = None, **metadata) -> str:
    data = {"apiVersion": "devopsmaestro.io/v1", "kind": kind, "metadata": {"name": name, **metadata}}
    if spec is not None:
        data["spec"] = spec
    return yaml.safe_dump(data, sort_keys=False)


class TestManifestEnvelope:
    """Tests for load_manifests() and Manifest.from_dict()."""

    def test_missing_kind(self):
        """A document without kind is rejected."""
        with pytest.raises(ManifestParseError, match="missing required 'kind'"):
            load_manifests("metadata:\n  name: x\n")

    def test_missing_name(self):
        """metadata.name is required."""
        with pytest.raises(ManifestParseError, match="metadata.name is required"):
            load_manifests("kind: NvimPlugin\nmetadata: {}\n")

    def test_blank_name(self):
        """A whitespace-only name counts as missing."""
        with pytest.raises(ManifestParseError, match="metadata.name is required"):
            load_manifests("kind: NvimPlugin\nmetadata:\n  name: '  '\n")

    def test_wrong_api_version(self):
        """Only the devopsmaestro.io/v1 apiVersion is accepted."""
        with pytest.raises(ManifestParseError, match="unsupported apiVersion"):
            load_manifests("apiVersion: v2\nkind: NvimPlugin\nmetadata:\n  name: x\n")

    def test_missing_api_version_is_allowed(self):
        """Omitting apiVersion falls back to the current one."""
        manifests = load_manifests("kind: NvimPlugin\nmetadata:\n  name: x\n")
        assert manifests[0].api_version == "devopsmaestro.io/v1"

    def test_spec_must_be_mapping(self):
        """A list spec is rejected."""
        with pytest.raises(ManifestParseError, match="spec must be a mapping"):
            load_manifests("kind: NvimPlugin\nmetadata:\n  name: x\nspec: [a]\n")

    def test_invalid_yaml(self):
        """Syntax errors are reported as parse errors."""
        with pytest.raises(ManifestParseError, match="invalid YAML"):
            load_manifests("kind: [unclosed\n", "broken.yaml")

    def test_multiple_documents(self):
        """Documents are returned in order and empty ones are skipped."""
        text = _manifest("NvimPlugin", "a", {"repo": "x/a"}) + "---\n---\n" + _manifest("NvimPlugin", "b", {"repo": "x/b"})
        assert [m.name for m in load_manifests(text)] == ["a", "b"]

    def test_detect_kind(self, telescope_yaml):
        """detect_kind() reads the header of the first document."""
        assert detect_kind(telescope_yaml) == "NvimPlugin"

    def test_detect_kind_without_kind(self):
        """A document without kind cannot be detected."""
        with pytest.raises(ManifestParseError):
            detect_kind("metadata:\n  name: x\n")


class TestFromManifest:
    """Tests for ManifestCodec.from_manifest()."""

    def test_telescope(self, telescope_yaml):
        """A full plugin manifest populates identity, metadata and attributes."""
        [record] = parse_records(telescope_yaml)

        assert record.kind == "NvimPlugin"
        assert record.name == "telescope"
        assert record.description == "Fuzzy finder"
        assert record.category == "navigation"
        assert record.source_ref == "nvim-telescope/telescope.nvim"
        assert json.loads(record.tags.value) == ["search", "core"]
        assert record.attribute("branch") == Blob.of("0.1.x")
        assert json.loads(record.attribute("cmd").value) == ["Telescope"]
        assert record.attribute("config").value.startswith('local telescope = require("telescope")')
        assert record.enabled is True

    def test_unset_fields_stay_absent(self, telescope_yaml):
        """Fields missing from the manifest are not stored as empty values."""
        [record] = parse_records(telescope_yaml)
        assert not record.attribute("event").valid
        assert not record.attribute("ft").valid
        assert "priority" not in record.attributes

    def test_empty_containers_stay_absent(self):
        """event: [] and opts: {} are equivalent to leaving the fields out."""
        text = _manifest("NvimPlugin", "x", {"repo": "a/x", "event": [], "opts": {}, "build": ""})
        [record] = parse_records(text)
        assert record.attributes == {}

    def test_missing_repo(self):
        """An NvimPlugin needs its repository."""
        with pytest.raises(ManifestParseError, match="'spec.repo' is required"):
            parse_records(_manifest("NvimPlugin", "x", {"lazy": True}))

    def test_theme_repo_is_nested(self):
        """NvimTheme reads its repository from spec.plugin.repo."""
        text = _manifest("NvimTheme", "mocha", {"plugin": {"repo": "catppuccin/nvim", "tag": "v1.9.0"}, "style": "mocha"})
        [record] = parse_records(text)
        assert record.source_ref == "catppuccin/nvim"
        assert record.attribute("tag") == Blob.of("v1.9.0")

    def test_invalid_hex_color(self):
        """Theme colors must be hex values."""
        text = _manifest("NvimTheme", "t", {"plugin": {"repo": "a/t"}, "colors": {"bg": "blue"}})
        with pytest.raises(ManifestParseError, match="invalid value 'blue'"):
            parse_records(text)

    def test_valid_hex_colors(self):
        """Short and long hex colors are both accepted."""
        text = _manifest("NvimTheme", "t", {"plugin": {"repo": "a/t"}, "colors": {"bg": "#1e1e2e", "fg": "#fff"}})
        [record] = parse_records(text)
        assert json.loads(record.attribute("colors").value) == {"bg": "#1e1e2e", "fg": "#fff"}

    def test_wrong_shape(self):
        """A mapping where a string or list is expected is rejected."""
        text = _manifest("NvimPlugin", "x", {"repo": "a/x", "event": {"on": "BufRead"}})
        with pytest.raises(ManifestParseError, match="spec.event"):
            parse_records(text)

    def test_numbers_are_coerced_for_string_fields(self):
        """YAML numbers in string fields are stored as text."""
        text = _manifest("NvimPlugin", "x", {"repo": "a/x", "version": 2})
        [record] = parse_records(text)
        assert record.attribute("version") == Blob.of("2")

    def test_enabled_false(self):
        """spec.enabled: false disables the record."""
        [record] = parse_records(_manifest("NvimPlugin", "x", {"repo": "a/x", "enabled": False}))
        assert record.enabled is False

    def test_enabled_must_be_bool(self):
        """spec.enabled only accepts booleans."""
        with pytest.raises(ManifestParseError, match="spec.enabled"):
            parse_records(_manifest("NvimPlugin", "x", {"repo": "a/x", "enabled": "no"}))

    def test_unknown_kind(self):
        """Unknown kinds are reported as parse errors."""
        with pytest.raises(ManifestParseError, match="Unknown resource kind 'Workspace'"):
            parse_records(_manifest("Workspace", "x", {}))

    def test_unknown_field_is_ignored(self, caplog):
        """Unknown spec fields are logged and dropped."""
        [record] = parse_records(_manifest("NvimPlugin", "x", {"repo": "a/x", "colour": "red"}))
        assert "colour" not in record.attributes
        assert "unknown field 'spec.colour'" in caplog.text

    def test_bad_document_aborts_batch(self):
        """One malformed document rejects the whole stream."""
        text = _manifest("NvimPlugin", "good", {"repo": "a/good"}) + "---\n" + _manifest("NvimPlugin", "bad", {})
        with pytest.raises(ManifestParseError):
            parse_records(text)

    def test_kind_mismatch(self):
        """A codec refuses manifests of another kind."""
        codec = codec_for(ResourceKind.NVIM_THEME)
        manifest = Manifest(kind="NvimPlugin", metadata={"name": "x"}, spec={"repo": "a/x"})
        with pytest.raises(ManifestParseError, match="expected kind NvimTheme"):
            codec.from_manifest(manifest)

    def test_codec_for_alias(self):
        """codec_for() accepts aliases and rejects unknown names."""
        assert codec_for("tp").spec.name == "TerminalPlugin"
        with pytest.raises(UnknownKindError):
            codec_for("nope")


class TestTerminalPluginManifest:
    """Tests for TerminalPlugin identifiers and defaults."""

    def test_defaults_applied(self):
        """shell, manager and loadMode get their defaults."""
        [record] = parse_records(_manifest("TerminalPlugin", "autosuggest", {"repo": "zsh-users/zsh-autosuggestions"}))
        assert record.attribute("shell") == Blob.of("zsh")
        assert record.attribute("manager") == Blob.of("manual")
        assert record.attribute("load_mode") == Blob.of("immediate")

    def test_builtin_plugin(self):
        """An oh-my-zsh builtin is identified by ohmyzshPlugin."""
        [record] = parse_records(_manifest("TerminalPlugin", "git", {"ohmyzshPlugin": "git", "manager": "oh-my-zsh"}))
        assert record.builtin_ref == "git"
        assert record.source_ref == ""

    def test_repo_and_builtin_are_exclusive(self):
        """Setting both identifiers is rejected."""
        text = _manifest("TerminalPlugin", "git", {"repo": "a/git", "ohmyzshPlugin": "git"})
        with pytest.raises(ManifestParseError, match="exactly one of"):
            parse_records(text)

    def test_identifier_required(self):
        """Setting neither identifier is rejected."""
        with pytest.raises(ManifestParseError, match="exactly one of"):
            parse_records(_manifest("TerminalPlugin", "git", {"manager": "zinit"}))

    def test_unknown_manager(self):
        """Managers are limited to the supported set."""
        text = _manifest("TerminalPlugin", "x", {"repo": "a/x", "manager": "zplug"})
        with pytest.raises(ManifestParseError, match="must be one of"):
            parse_records(text)

    def test_camel_case_paths(self):
        """loadMode and sourceFiles map to their attributes."""
        text = _manifest(
            "TerminalPlugin", "x",
            {"repo": "a/x", "loadMode": "deferred", "sourceFiles": ["x.zsh"], "env": {"X_LIMIT": 20}},
        )
        [record] = parse_records(text)
        assert record.attribute("load_mode") == Blob.of("deferred")
        assert json.loads(record.attribute("source_files").value) == ["x.zsh"]
        assert json.loads(record.attribute("env").value) == {"X_LIMIT": "20"}

    @pytest.mark.parametrize("key", ["X=1; touch /tmp/owned; Y", "HAS SPACE", "1ABC", "A-B", "OK\n"])
    def test_env_key_must_be_variable_name(self, key):
        """env keys that are not shell variable names are rejected."""
        text = _manifest("TerminalPlugin", "x", {"repo": "a/x", "env": {key: "v"}})
        with pytest.raises(ManifestParseError, match="invalid key"):
            parse_records(text)


class TestToManifest:
    """Tests for ManifestCodec.to_manifest() and dump_manifests()."""

    def test_round_trip(self, telescope_yaml):
        """Exporting a parsed manifest reproduces the original document."""
        [record] = parse_records(telescope_yaml)
        manifest = codec_for(record.kind).to_manifest(record)
        assert manifest.to_dict() == yaml.safe_load(telescope_yaml)

    @pytest.mark.parametrize("kind", sorted(FULL_MANIFESTS))
    def test_full_round_trip(self, kind):
        """Every field of every kind survives record -> manifest -> record."""
        text = FULL_MANIFESTS[kind]
        [record] = parse_records(text)
        codec = codec_for(kind)
        assert set(record.attributes) == {field.name for field in codec.spec.fields}

        manifest = codec.to_manifest(record)
        assert manifest.to_dict() == yaml.safe_load(text)
        assert codec.from_manifest(manifest) == record

    def test_record_round_trip(self, telescope_yaml):
        """A record survives export and re-import with the same stored fields."""
        [record] = parse_records(telescope_yaml)
        codec = codec_for(record.kind)
        again = codec.from_manifest(codec.to_manifest(record))
        assert again.valid_attributes() == record.valid_attributes()
        assert again.tags == record.tags
        assert (again.name, again.source_ref, again.description) == (
            record.name, record.source_ref, record.description
        )

    def test_minimal_record(self, record_factory):
        """A record with no attributes exports only its identity."""
        record = record_factory("NvimPlugin", "x", source_ref="a/x")
        manifest = codec_for("NvimPlugin").to_manifest(record)
        assert manifest.to_dict() == {
            "apiVersion": "devopsmaestro.io/v1",
            "kind": "NvimPlugin",
            "metadata": {"name": "x"},
            "spec": {"repo": "a/x"},
        }

    def test_disabled_record(self, record_factory):
        """enabled is written only when false."""
        record = record_factory("NvimPlugin", "x", source_ref="a/x")
        record.enabled = False
        assert codec_for("NvimPlugin").to_manifest(record).spec["enabled"] is False

    def test_single_element_list_is_preserved(self, record_factory):
        """A one-element list exports as a list, not a scalar."""
        record = record_factory("NvimPlugin", "x", source_ref="a/x", event=["VeryLazy"])
        assert codec_for("NvimPlugin").to_manifest(record).spec["event"] == ["VeryLazy"]

    def test_malformed_attribute_is_omitted(self, record_factory):
        """Lenient export drops an undecodable attribute and keeps the rest."""
        record = record_factory(
            "NvimPlugin", "x", source_ref="a/x",
            dependencies=Blob.of("[not json"), lazy=True,
        )
        spec = codec_for("NvimPlugin").to_manifest(record).spec
        assert "dependencies" not in spec
        assert spec["lazy"] is True

    def test_malformed_attribute_strict(self, record_factory):
        """Strict export surfaces an undecodable attribute."""
        record = record_factory("NvimPlugin", "x", source_ref="a/x", dependencies=Blob.of("[not json"))
        with pytest.raises(MalformedAttributeError):
            codec_for("NvimPlugin").to_manifest(record, DecodeMode.STRICT)

    def test_theme_nested_paths(self, record_factory):
        """Theme identifier and branch are nested under spec.plugin."""
        record = record_factory("NvimTheme", "t", source_ref="folke/tokyonight.nvim", branch="main", style="night")
        spec = codec_for("NvimTheme").to_manifest(record).spec
        assert spec["plugin"] == {"repo": "folke/tokyonight.nvim", "branch": "main"}
        assert spec["style"] == "night"

    def test_dump_yaml_uses_block_scalars(self, telescope_yaml):
        """Multi-line code is written as a literal block."""
        [record] = parse_records(telescope_yaml)
        text = dump_manifests([codec_for(record.kind).to_manifest(record)])
        assert "config: |" in text
        assert text.startswith("apiVersion: devopsmaestro.io/v1\nkind: NvimPlugin\n")

    def test_dump_yaml_multiple_documents(self, record_factory):
        """Several manifests are separated by document markers."""
        codec = codec_for("NvimPlugin")
        manifests = [codec.to_manifest(record_factory("NvimPlugin", n, source_ref=f"a/{n}")) for n in ("a", "b")]
        text = dump_manifests(manifests)
        assert text.count("---") == 2
        assert [m.name for m in load_manifests(text)] == ["a", "b"]

    def test_dump_json(self, record_factory):
        """JSON output is an object for one manifest and an array for several."""
        codec = codec_for("NvimPlugin")
        one = [codec.to_manifest(record_factory("NvimPlugin", "a", source_ref="x/a"))]
        assert json.loads(dump_manifests(one, "json"))["metadata"]["name"] == "a"
        two = one + [codec.to_manifest(record_factory("NvimPlugin", "b", source_ref="x/b"))]
        assert len(json.loads(dump_manifests(two, "json"))) == 2

    def test_dump_unknown_format(self):
        """Unsupported formats raise ValueError."""
        with pytest.raises(ValueError):
            dump_manifests([], "xml")

    def test_stored_tags_decode(self, telescope_yaml):
        """Tags are stored as a JSON list of strings."""
        [record] = parse_records(telescope_yaml)
        assert decode_blob(record.tags, Shape.STRING_LIST).items
