"""Compilers for terminal resources: zsh fragments and sheldon plugin tables.

TerminalPlugin output depends on the plugin manager. Profiles and packages
source the fragments generated for the resources they reference, looked up
by slug under the configured shell directory. Prompt, shell and theme
fragments are not generated by dvm; they are sourced when readable and never
checked against the store.
"""

import logging
import re
import shlex

import tomli_w

from dvm.compilers.base import BaseCompiler
from dvm.constants import TOML_EXTENSION
from dvm.core.record import ResourceRecord
from dvm.core.resource import ResourceKind
from dvm.core.union import ObjectValue, Scalar, UnionValue, string_items
from dvm.utils import slugify

logger = logging.getLogger(__name__)

PLUGIN_DIR = "${DVM_PLUGIN_DIR:-$HOME/.local/share/dvm/plugins}"
OMZ_CUSTOM_DIR = "${ZSH_CUSTOM:-$HOME/.oh-my-zsh/custom}"

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_ENV_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def double_quote(text: str) -> str:
    """Quote for a double-quoted shell word, keeping ``$VAR`` expansion intact."""
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"').replace("`", "\\`") + '"'


def ice_quote(text: str) -> str:
    """Quote a zinit ice value: a double-quoted word with no expansion."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("`", "\\`").replace("$", "\\$")
    return f'"{escaped}"'


def path_word(prefix: str, tail: str) -> str:
    """Join an expandable directory prefix and a literal relative path.

    ``prefix`` keeps its ``$VAR`` expansion; ``tail`` is never expanded.
    """
    if shlex.quote(tail) == tail:
        return double_quote(f"{prefix}/{tail}")
    return double_quote(f"{prefix}/") + shlex.quote(tail)


def _first(value: UnionValue) -> str:
    items = string_items(value)
    return items[0] if items else ""


def _scalar_text(value: Scalar) -> str:
    if isinstance(value.value, bool):
        return "true" if value.value else "false"
    return str(value.value)


def code_lines(code: str) -> list[str]:
    """Split raw shell code into lines, dropping blank ones."""
    return [line.rstrip() for line in code.splitlines() if line.strip()]


def env_exports(value: UnionValue) -> list[str]:
    """Render ``export KEY=value`` lines in sorted key order.

    Keys that are not valid shell variable names are skipped.
    """
    if not isinstance(value, ObjectValue):
        return []
    lines = []
    for key in sorted(value.fields):
        item = value.fields[key]
        if not _ENV_NAME_RE.fullmatch(key):
            logger.warning("Skipping environment variable with invalid name %r", key)
            continue
        if isinstance(item, Scalar):
            lines.append(f"export {key}={shlex.quote(_scalar_text(item))}")
    return lines


class TerminalPluginCompiler(BaseCompiler):
    """Compiles a TerminalPlugin into a zsh fragment or a sheldon TOML table."""

    kind = ResourceKind.TERMINAL_PLUGIN

    def extension(self, record: ResourceRecord) -> str:
        values = self.decode(record)
        if _first(values["manager"]) == "sheldon":
            return TOML_EXTENSION
        return self.spec.extension

    def generate(self, record: ResourceRecord) -> str:
        self.check_record(record)
        values = self.decode(record)
        manager = _first(values["manager"]) or "manual"

        if manager == "sheldon":
            return self._sheldon(record, values)

        render = {
            "manual": self._manual,
            "zinit": self._zinit,
            "oh-my-zsh": self._oh_my_zsh,
            "antigen": self._antigen,
        }.get(manager)
        if render is None:
            logger.warning("%s '%s': unknown manager '%s', using manual", record.kind, record.name, manager)
            render = self._manual

        lines = [f"# {record.kind}: {record.name}"]
        dependencies = string_items(values["dependencies"])
        if dependencies:
            lines.append(f"# depends on: {', '.join(dependencies)}")
        lines += env_exports(values["env"])
        lines += render(record, values)
        lines += code_lines(_first(values["config"]))
        return "\n".join(lines) + "\n"

    @staticmethod
    def _clone_url(record: ResourceRecord, values: dict[str, UnionValue]) -> str:
        return _first(values["source"]) or f"https://github.com/{record.source_ref}"

    @staticmethod
    def _checkout_name(record: ResourceRecord) -> str:
        name = record.source_ref.rstrip("/").rsplit("/", 1)[-1]
        return name[:-4] if name.endswith(".git") else name

    @staticmethod
    def _deferred(values: dict[str, UnionValue]) -> bool:
        return _first(values["load_mode"]) in ("deferred", "lazy")

    def _clone(self, record: ResourceRecord, values: dict[str, UnionValue], target: str) -> list[str]:
        ref = _first(values["tag"]) or _first(values["branch"])
        branch = f" --branch {shlex.quote(ref)}" if ref else ""
        return [
            f"if [[ ! -d {target} ]]; then",
            f"  git clone --depth 1{branch} {shlex.quote(self._clone_url(record, values))} {target}",
            "fi",
        ]

    def _manual(self, record: ResourceRecord, values: dict[str, UnionValue]) -> list[str]:
        if record.builtin_ref:
            name = record.builtin_ref
            files = [path_word("$ZSH/plugins", f"{name}/{name}.plugin.zsh")]
            lines = []
        else:
            checkout = self._checkout_name(record)
            target = path_word(PLUGIN_DIR, checkout)
            lines = self._clone(record, values, target)
            sources = string_items(values["source_files"]) or [f"{checkout}.plugin.zsh"]
            files = [path_word(PLUGIN_DIR, f"{checkout}/{path}") for path in sources]

        for path in files:
            if self._deferred(values):
                lines.append(f"if (( $+functions[zsh-defer] )); then zsh-defer source {path}; else source {path}; fi")
            else:
                lines.append(f"source {path}")
        return lines

    def _zinit(self, record: ResourceRecord, values: dict[str, UnionValue]) -> list[str]:
        ice = []
        mode = _first(values["load_mode"])
        if mode == "deferred":
            ice.append("wait lucid")
        elif mode == "lazy":
            ice.append('wait"2" lucid')
        ref = _first(values["tag"]) or _first(values["branch"])
        if ref:
            ice.append(f"ver{ice_quote(ref)}")
        sources = string_items(values["source_files"])
        if len(sources) == 1:
            ice.append(f"pick{ice_quote(sources[0])}")
        elif sources:
            ice.append(f"multisrc{ice_quote(' '.join(sources))}")

        lines = [f"zinit ice {' '.join(ice)}"] if ice else []
        if record.builtin_ref:
            lines.append(f"zinit snippet {shlex.quote('OMZP::' + record.builtin_ref)}")
        else:
            lines.append(f"zinit light {shlex.quote(record.source_ref)}")
        return lines

    def _oh_my_zsh(self, record: ResourceRecord, values: dict[str, UnionValue]) -> list[str]:
        if record.builtin_ref:
            return [f"plugins+=({shlex.quote(record.builtin_ref)})"]
        checkout = self._checkout_name(record)
        target = path_word(f"{OMZ_CUSTOM_DIR}/plugins", checkout)
        return self._clone(record, values, target) + [f"plugins+=({shlex.quote(checkout)})"]

    def _antigen(self, record: ResourceRecord, values: dict[str, UnionValue]) -> list[str]:
        if record.builtin_ref:
            return [f"antigen bundle {shlex.quote(record.builtin_ref)}"]
        ref = _first(values["tag"]) or _first(values["branch"])
        suffix = f" --branch={shlex.quote(ref)}" if ref else ""
        return [f"antigen bundle {shlex.quote(record.source_ref)}{suffix}"]

    def _sheldon(self, record: ResourceRecord, values: dict[str, UnionValue]) -> str:
        table: dict[str, object] = {}
        if record.builtin_ref:
            table["github"] = "ohmyzsh/ohmyzsh"
            table["dir"] = f"plugins/{record.builtin_ref}"
        elif _first(values["source"]):
            table["git"] = _first(values["source"])
        else:
            table["github"] = record.source_ref
        if _first(values["tag"]):
            table["tag"] = _first(values["tag"])
        elif _first(values["branch"]):
            table["branch"] = _first(values["branch"])
        sources = string_items(values["source_files"])
        if sources:
            table["use"] = sources
        if self._deferred(values):
            table["apply"] = ["defer"]

        plugins: dict[str, object] = {slugify(record.name): table}
        inline = env_exports(values["env"]) + code_lines(_first(values["config"]))
        if inline:
            plugins[f"{slugify(record.name)}-config"] = {"inline": "\n".join(inline)}
        return tomli_w.dumps({"plugins": plugins})


class _SourcingCompiler(BaseCompiler):
    """Emits guarded ``source`` lines for fragments of referenced resources."""

    def header(self, record: ResourceRecord) -> list[str]:
        return [f"# {record.kind}: {record.name}", f"_dvm_dir={double_quote(self.options.shell_dir)}"]

    def footer(self) -> list[str]:
        return ["unset _dvm_dir"]

    def source(self, subdir: str, name: str) -> str:
        path = path_word(f"$_dvm_dir/{subdir}", f"{slugify(name)}.zsh")
        return f"[[ -r {path} ]] && source {path}"

    def resolved(self, record: ResourceRecord, kind: ResourceKind, names: list[str]) -> list[str]:
        """Filter weak references down to those that exist, warning about the rest."""
        kept = []
        for name in names:
            if self.reference_exists(kind, name):
                kept.append(name)
            else:
                logger.warning("%s '%s' references missing %s '%s'", record.kind, record.name, kind.value, name)
        return kept


class TerminalProfileCompiler(_SourcingCompiler):
    """Compiles a TerminalProfile: shell, prompt, theme, then plugins in order.

    Only plugin references are checked for existence. Shell, prompt and theme
    references name external fragments placed in the shell directory by hand.
    """

    kind = ResourceKind.TERMINAL_PROFILE

    def generate(self, record: ResourceRecord) -> str:
        self.check_record(record)
        values = self.decode(record)
        lines = self.header(record)
        for subdir, attribute in (("shells", "shell_ref"), ("prompts", "prompt_ref"), ("themes", "theme_ref")):
            ref = _first(values[attribute])
            if ref:
                lines.append(self.source(subdir, ref))
        plugins = self.resolved(record, ResourceKind.TERMINAL_PLUGIN, string_items(values["plugin_refs"]))
        lines += [self.source("plugins", name) for name in plugins]
        lines += self.footer()
        return "\n".join(lines) + "\n"


def _env_name(key: str) -> str:
    return "DVM_WEZTERM_" + re.sub(r"[^A-Za-z0-9]", "_", _CAMEL_RE.sub("_", key)).upper()


class TerminalPackageCompiler(_SourcingCompiler):
    """Compiles a TerminalPackage: parent package first, then its own members.

    Prompts are external fragments and are not checked for existence.
    """

    kind = ResourceKind.TERMINAL_PACKAGE

    def generate(self, record: ResourceRecord) -> str:
        self.check_record(record)
        values = self.decode(record)
        lines = self.header(record)

        parents = self.resolved(record, ResourceKind.TERMINAL_PACKAGE, string_items(values["extends"]))
        lines += [self.source("packages", name) for name in parents]
        plugins = self.resolved(record, ResourceKind.TERMINAL_PLUGIN, string_items(values["plugins"]))
        lines += [self.source("plugins", name) for name in plugins]
        lines += [self.source("prompts", name) for name in string_items(values["prompts"])]
        profiles = self.resolved(record, ResourceKind.TERMINAL_PROFILE, string_items(values["profiles"]))
        lines += [self.source("profiles", name) for name in profiles]

        wezterm = values["wezterm"]
        if isinstance(wezterm, ObjectValue):
            for key in sorted(wezterm.fields):
                item = wezterm.fields[key]
                if isinstance(item, Scalar):
                    lines.append(f"export {_env_name(key)}={shlex.quote(_scalar_text(item))}")
        lines += self.footer()
        return "\n".join(lines) + "\n"
