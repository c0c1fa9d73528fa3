"""Built-in resource kind specifications.

Field order inside each spec is the order fields appear in exported
manifests. The shared kind registry is built from BUILTIN_SPECS on first use.
"""

from dvm.constants import LUA_EXTENSION, ZSH_EXTENSION
from dvm.core.resource import FieldSpec, KindSpec, ResourceKind
from dvm.core.union import Shape

TERMINAL_MANAGERS = ("manual", "zinit", "oh-my-zsh", "antigen", "sheldon")
LOAD_MODES = ("immediate", "deferred", "lazy")
HEX_COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$"
ENV_NAME_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"


def _common_metadata() -> tuple[FieldSpec, ...]:
    return (
        FieldSpec("labels", ("labels",), Shape.STRING_MAP, section="metadata"),
        FieldSpec("annotations", ("annotations",), Shape.STRING_MAP, section="metadata"),
    )


NVIM_PLUGIN_SPEC = KindSpec(
    kind=ResourceKind.NVIM_PLUGIN,
    aliases=("nvimplugin", "plugin", "plugins", "np"),
    source_path=("repo",),
    fields=_common_metadata() + (
        FieldSpec("branch", ("branch",), Shape.TEXT),
        FieldSpec("version", ("version",), Shape.TEXT),
        FieldSpec("priority", ("priority",), Shape.INT),
        FieldSpec("lazy", ("lazy",), Shape.BOOL),
        FieldSpec("event", ("event",), Shape.STRING_OR_LIST),
        FieldSpec("ft", ("ft",), Shape.STRING_OR_LIST),
        FieldSpec("cmd", ("cmd",), Shape.STRING_OR_LIST),
        FieldSpec("keys", ("keys",), Shape.KEYMAPS),
        FieldSpec("dependencies", ("dependencies",), Shape.DEPENDENCIES),
        FieldSpec("build", ("build",), Shape.TEXT),
        FieldSpec("init", ("init",), Shape.CODE),
        FieldSpec("config", ("config",), Shape.CODE),
        FieldSpec("opts", ("opts",), Shape.OBJECT),
        FieldSpec("keymaps", ("keymaps",), Shape.KEYMAPS),
    ),
    output_subdir="lua/plugins",
    extension=LUA_EXTENSION,
    description="lazy.nvim plugin specification",
)


NVIM_THEME_SPEC = KindSpec(
    kind=ResourceKind.NVIM_THEME,
    aliases=("nvimtheme", "theme", "themes", "nt"),
    source_path=("plugin", "repo"),
    fields=_common_metadata() + (
        FieldSpec("author", ("author",), Shape.TEXT, section="metadata"),
        FieldSpec("branch", ("plugin", "branch"), Shape.TEXT),
        FieldSpec("tag", ("plugin", "tag"), Shape.TEXT),
        FieldSpec("style", ("style",), Shape.TEXT),
        FieldSpec("transparent", ("transparent",), Shape.BOOL),
        FieldSpec("colors", ("colors",), Shape.STRING_MAP, value_pattern=HEX_COLOR_PATTERN),
        FieldSpec("options", ("options",), Shape.OBJECT),
    ),
    output_subdir="lua/themes",
    extension=LUA_EXTENSION,
    description="Neovim colorscheme with setup options",
)


NVIM_PACKAGE_SPEC = KindSpec(
    kind=ResourceKind.NVIM_PACKAGE,
    aliases=("nvimpackage", "package", "packages", "npkg"),
    fields=_common_metadata() + (
        FieldSpec("extends", ("extends",), Shape.TEXT),
        FieldSpec("plugins", ("plugins",), Shape.STRING_OR_LIST),
    ),
    output_subdir="lua/packages",
    extension=LUA_EXTENSION,
    description="Named set of Neovim plugins",
)


TERMINAL_PLUGIN_SPEC = KindSpec(
    kind=ResourceKind.TERMINAL_PLUGIN,
    aliases=("terminalplugin", "tplugin", "tp"),
    source_path=("repo",),
    builtin_path=("ohmyzshPlugin",),
    fields=_common_metadata() + (
        FieldSpec("source", ("source",), Shape.TEXT),
        FieldSpec("branch", ("branch",), Shape.TEXT),
        FieldSpec("tag", ("tag",), Shape.TEXT),
        FieldSpec("shell", ("shell",), Shape.TEXT, default="zsh"),
        FieldSpec("manager", ("manager",), Shape.TEXT, default="manual", choices=TERMINAL_MANAGERS),
        FieldSpec("load_mode", ("loadMode",), Shape.TEXT, default="immediate", choices=LOAD_MODES),
        FieldSpec("source_files", ("sourceFiles",), Shape.STRING_LIST),
        FieldSpec("config", ("config",), Shape.CODE),
        FieldSpec("env", ("env",), Shape.STRING_MAP, key_pattern=ENV_NAME_PATTERN),
        FieldSpec("dependencies", ("dependencies",), Shape.STRING_LIST),
        FieldSpec("priority", ("priority",), Shape.INT),
    ),
    output_subdir="zsh/plugins",
    extension=ZSH_EXTENSION,
    description="Shell plugin loaded through a plugin manager",
)


TERMINAL_PROFILE_SPEC = KindSpec(
    kind=ResourceKind.TERMINAL_PROFILE,
    aliases=("terminalprofile", "profile", "profiles", "tprof"),
    fields=_common_metadata() + (
        FieldSpec("prompt_ref", ("promptRef",), Shape.TEXT),
        FieldSpec("plugin_refs", ("pluginRefs",), Shape.STRING_LIST),
        FieldSpec("shell_ref", ("shellRef",), Shape.TEXT),
        FieldSpec("theme_ref", ("themeRef",), Shape.TEXT),
    ),
    output_subdir="zsh/profiles",
    extension=ZSH_EXTENSION,
    description="Shell profile combining prompt, plugins and theme",
)


TERMINAL_PACKAGE_SPEC = KindSpec(
    kind=ResourceKind.TERMINAL_PACKAGE,
    aliases=("terminalpackage", "tpkg"),
    fields=_common_metadata() + (
        FieldSpec("extends", ("extends",), Shape.TEXT),
        FieldSpec("plugins", ("plugins",), Shape.STRING_OR_LIST),
        FieldSpec("prompts", ("prompts",), Shape.STRING_OR_LIST),
        FieldSpec("profiles", ("profiles",), Shape.STRING_OR_LIST),
        FieldSpec("wezterm", ("wezterm",), Shape.OBJECT),
    ),
    output_subdir="zsh/packages",
    extension=ZSH_EXTENSION,
    description="Named set of shell plugins, prompts and profiles",
)


BUILTIN_SPECS = (
    NVIM_PLUGIN_SPEC,
    NVIM_THEME_SPEC,
    NVIM_PACKAGE_SPEC,
    TERMINAL_PLUGIN_SPEC,
    TERMINAL_PROFILE_SPEC,
    TERMINAL_PACKAGE_SPEC,
)
