"""Config compilers: records in, generated artifact text out.

Public exports:
- CompileOptions: Settings shared by all compilers
- ConfigCompiler: Protocol every compiler implements
- CompilerRegistry: Kind -> compiler lookup
- Lua compilers: NvimPluginCompiler, NvimThemeCompiler, NvimPackageCompiler
- Shell compilers: TerminalPluginCompiler, TerminalProfileCompiler, TerminalPackageCompiler
"""

from dvm.compilers.base import BaseCompiler, CompileOptions, ConfigCompiler
from dvm.compilers.nvim import NvimPackageCompiler, NvimPluginCompiler, NvimThemeCompiler
from dvm.compilers.registry import CompilerNotFoundError, CompilerRegistry
from dvm.compilers.shell import (
    TerminalPackageCompiler,
    TerminalPluginCompiler,
    TerminalProfileCompiler,
)

BUILTIN_COMPILERS = (
    NvimPluginCompiler,
    NvimThemeCompiler,
    NvimPackageCompiler,
    TerminalPluginCompiler,
    TerminalProfileCompiler,
    TerminalPackageCompiler,
)


def register_builtin_compilers() -> None:
    """Register the built-in compiler for every kind."""
    for compiler_class in BUILTIN_COMPILERS:
        CompilerRegistry.register(compiler_class.kind, compiler_class)


# Register compilers on import
register_builtin_compilers()

__all__ = [
    "BUILTIN_COMPILERS",
    "BaseCompiler",
    "CompileOptions",
    "CompilerNotFoundError",
    "CompilerRegistry",
    "ConfigCompiler",
    "NvimPackageCompiler",
    "NvimPluginCompiler",
    "NvimThemeCompiler",
    "TerminalPackageCompiler",
    "TerminalPluginCompiler",
    "TerminalProfileCompiler",
    "register_builtin_compilers",
]
