"""Compilers for Neovim resources: lazy.nvim plugin specs, themes and packages."""

import logging
from dataclasses import dataclass

from dvm.compilers.base import BaseCompiler
from dvm.compilers.lua import (
    Emit,
    LuaWriter,
    emit_plan,
    quote,
    render_code,
    render_dependencies,
    render_keys,
    render_value,
)
from dvm.core.record import ResourceRecord
from dvm.core.resource import ResourceKind
from dvm.core.union import (
    Absent,
    ListValue,
    ObjectValue,
    Scalar,
    UnionValue,
    string_items,
)
from dvm.utils import slugify

logger = logging.getLogger(__name__)


PLUGIN_PLAN = (
    Emit("branch", "branch", render_value),
    Emit("version", "version", render_value),
    Emit("priority", "priority", render_value),
    Emit("lazy", "lazy", render_value),
    Emit("event", "event", render_value),
    Emit("ft", "ft", render_value),
    Emit("cmd", "cmd", render_value),
    Emit("dependencies", "dependencies", render_dependencies),
    Emit("keys", "keys", render_keys),
    Emit("build", "build", render_value),
    Emit("init", "init", render_code),
    Emit("config", "config", render_code),
    Emit("opts", "opts", render_value),
)


def keymap_calls(value: UnionValue) -> list[str]:
    """Render ``vim.keymap.set`` calls for a list of key bindings.

    Bindings without an action are skipped. Mode defaults to normal mode.
    """
    if not isinstance(value, ListValue):
        return []
    calls = []
    for entry in value.items:
        if not isinstance(entry, ObjectValue):
            continue
        lhs = string_items(entry.get("key"))
        action = string_items(entry.get("action"))
        if not lhs or not action:
            logger.debug("Skipping keymap without key or action: %r", entry)
            continue
        mode = entry.get("mode")
        if isinstance(mode, ListValue):
            mode_expr = "{ " + ", ".join(quote(m) for m in string_items(mode)) + " }"
        elif isinstance(mode, Scalar) and isinstance(mode.value, str) and mode.value:
            mode_expr = quote(mode.value)
        elif isinstance(mode, (Absent, Scalar, ObjectValue)):
            mode_expr = quote("n")
        else:
            raise TypeError(f"not a union value: {mode!r}")
        args = [mode_expr, quote(lhs[0]), quote(action[0])]
        desc = string_items(entry.get("desc"))
        if desc and desc[0]:
            args.append(f"{{ desc = {quote(desc[0])} }}")
        calls.append(f"vim.keymap.set({', '.join(args)})")
    return calls


class NvimPluginCompiler(BaseCompiler):
    """Compiles an NvimPlugin record into a lazy.nvim plugin spec file."""

    kind = ResourceKind.NVIM_PLUGIN

    def generate(self, record: ResourceRecord) -> str:
        self.check_record(record)
        values = self.decode(record)

        calls = keymap_calls(values["keymaps"])
        if calls:
            config = values["config"]
            code = config.value if isinstance(config, Scalar) and isinstance(config.value, str) else ""
            values["config"] = Scalar("\n".join([code, "-- Keymaps", *calls]))

        writer = LuaWriter(self.options.indent)
        writer.line(0, "return {")
        writer.line(1, f"{quote(record.source_ref)},")
        if not record.enabled:
            writer.line(1, "enabled = false,")
        emit_plan(writer, PLUGIN_PLAN, values)
        writer.line(0, "}")
        return writer.text()


@dataclass(frozen=True)
class ThemeSetup:
    """How a colorscheme plugin is configured."""

    module: str  # Lua module exposing setup()
    style_key: str | None = "style"
    transparent_key: str = "transparent"
    colors_key: str = "colors"
    style_suffix: bool = True  # colorscheme name becomes "<name>-<style>"


# Setup names of well-known colorscheme repositories
THEME_SETUP_NAMES = {
    "folke/tokyonight.nvim": "tokyonight",
    "catppuccin/nvim": "catppuccin",
    "ellisonleao/gruvbox.nvim": "gruvbox",
    "shaunsingh/nord.nvim": "nord",
    "rebelot/kanagawa.nvim": "kanagawa",
    "rose-pine/neovim": "rose-pine",
    "EdenEast/nightfox.nvim": "nightfox",
    "navarasu/onedark.nvim": "onedark",
    "Mofiqul/dracula.nvim": "dracula",
    "sainnhe/everforest": "everforest",
    "sainnhe/sonokai": "sonokai",
    "projekt0n/github-nvim-theme": "github-theme",
}

THEME_SETUPS = {
    "catppuccin": ThemeSetup("catppuccin", style_key="flavour", transparent_key="transparent_background"),
    "gruvbox": ThemeSetup("gruvbox", style_key="contrast", transparent_key="transparent_mode",
                          colors_key="palette_overrides", style_suffix=False),
    "kanagawa": ThemeSetup("kanagawa", style_key="theme"),
    "rose-pine": ThemeSetup("rose-pine", style_key="variant"),
    "onedark": ThemeSetup("onedark", style_suffix=False),
    "nord": ThemeSetup("nord", style_key=None, transparent_key="disable_background"),
}


def theme_setup_name(repo: str) -> str:
    """Derive the colorscheme name for a repository.

    Known repositories use their documented name; anything else uses the
    repository name with a ``.nvim``/``-nvim`` suffix removed.
    """
    if repo in THEME_SETUP_NAMES:
        return THEME_SETUP_NAMES[repo]
    name = repo.rstrip("/").rsplit("/", 1)[-1]
    for suffix in (".nvim", "-nvim"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    return name


def colorscheme_command(repo: str, style: str = "") -> str:
    """Return the name passed to ``:colorscheme`` for a theme."""
    name = theme_setup_name(repo)
    setup = THEME_SETUPS.get(name, ThemeSetup(name))
    if style and setup.style_suffix:
        return f"{name}-{style}"
    return name


class NvimThemeCompiler(BaseCompiler):
    """Compiles an NvimTheme record into an eagerly loaded lazy.nvim spec."""

    kind = ResourceKind.NVIM_THEME

    def generate(self, record: ResourceRecord) -> str:
        self.check_record(record)
        values = self.decode(record)
        name = theme_setup_name(record.source_ref)
        setup = THEME_SETUPS.get(name, ThemeSetup(name))

        writer = LuaWriter(self.options.indent)
        writer.line(0, "return {")
        writer.line(1, f"{quote(record.source_ref)},")
        emit_plan(writer, (Emit("branch", "branch", render_value), Emit("tag", "tag", render_value)), values)
        writer.line(1, "lazy = false,")
        writer.line(1, "priority = 1000,")
        writer.line(1, "config = function()")

        setup_table = self._setup_table(values, setup)
        if setup_table.fields:
            writer.line(2, f"require({quote(setup.module)}).setup({writer.value(setup_table, 2)})")
        style = string_items(values["style"])
        command = colorscheme_command(record.source_ref, style[0] if style else "")
        writer.line(2, f"vim.cmd.colorscheme({quote(command)})")
        writer.line(1, "end,")
        writer.line(0, "}")
        return writer.text()

    @staticmethod
    def _setup_table(values: dict[str, UnionValue], setup: ThemeSetup) -> ObjectValue:
        options = values["options"]
        fields = dict(options.fields) if isinstance(options, ObjectValue) else {}
        if setup.style_key and not isinstance(values["style"], Absent):
            fields[setup.style_key] = values["style"]
        if not isinstance(values["transparent"], Absent):
            fields[setup.transparent_key] = values["transparent"]
        if not isinstance(values["colors"], Absent):
            fields[setup.colors_key] = values["colors"]
        return ObjectValue(fields)


class NvimPackageCompiler(BaseCompiler):
    """Compiles an NvimPackage into a list of lazy.nvim imports.

    The parent package (``extends``) is imported first, then each plugin's
    generated spec module. References to missing resources are skipped.
    """

    kind = ResourceKind.NVIM_PACKAGE

    def generate(self, record: ResourceRecord) -> str:
        self.check_record(record)
        values = self.decode(record)

        writer = LuaWriter(self.options.indent)
        writer.line(0, "return {")
        for parent in string_items(values["extends"]):
            if self._resolves(record, ResourceKind.NVIM_PACKAGE, parent):
                writer.line(1, f"{{ import = {quote('packages.' + slugify(parent))} }},")
        for plugin in string_items(values["plugins"]):
            if self._resolves(record, ResourceKind.NVIM_PLUGIN, plugin):
                writer.line(1, f"{{ import = {quote('plugins.' + slugify(plugin))} }},")
        writer.line(0, "}")
        return writer.text()

    def _resolves(self, record: ResourceRecord, kind: ResourceKind, name: str) -> bool:
        if self.reference_exists(kind, name):
            return True
        logger.warning("%s '%s' references missing %s '%s'", record.kind, record.name, kind.value, name)
        return False
