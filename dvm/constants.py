"""Centralized constants for the dvm package."""

# Every manifest document carries this apiVersion
API_VERSION = "devopsmaestro.io/v1"

CONFIG_FILENAME = "dvm.toml"

DEFAULT_STORE_PATH = "~/.devopsmaestro/dvm.db"
DEFAULT_OUTPUT_DIR = "~/.config/dvm"

# Generated zsh fragments source each other from here at shell startup
DEFAULT_SHELL_DIR = "${DVM_SHELL_DIR:-$HOME/.config/dvm/zsh}"

# Spaces per nesting level in generated Lua
DEFAULT_INDENT = 2

LUA_EXTENSION = ".lua"
ZSH_EXTENSION = ".zsh"
TOML_EXTENSION = ".toml"
