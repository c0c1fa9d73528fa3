"""Compiler registry keyed by resource kind.

Usage:
    # Register compilers (done when dvm.compilers is imported)
    CompilerRegistry.register(ResourceKind.NVIM_PLUGIN, NvimPluginCompiler)

    # Shared instance with default options
    compiler = CompilerRegistry.get(ResourceKind.NVIM_PLUGIN)

    # Fresh instance with custom options
    compiler = CompilerRegistry.create(ResourceKind.NVIM_PLUGIN, CompileOptions(indent=4))
"""

from typing import TYPE_CHECKING

from dvm.core.resource import ResourceKind
from dvm.exceptions import DvmError

if TYPE_CHECKING:
    from dvm.compilers.base import CompileOptions, ConfigCompiler


class CompilerNotFoundError(DvmError):
    """Raised when no compiler is registered for a kind."""


class CompilerRegistry:
    """Registry of compiler classes, one per resource kind.

    Default-option instances are created lazily on first access.
    """

    _compilers: dict[ResourceKind, type] = {}
    _instances: dict[ResourceKind, "ConfigCompiler"] = {}

    @classmethod
    def register(cls, kind: ResourceKind, compiler_class: type) -> None:
        """Register a compiler class.

        Args:
            kind: Resource kind the compiler handles
            compiler_class: The compiler class to register
        """
        cls._compilers[kind] = compiler_class
        # Clear cached instance if re-registering
        cls._instances.pop(kind, None)

    @classmethod
    def _lookup(cls, kind: ResourceKind) -> type:
        if kind not in cls._compilers:
            available = ", ".join(k.value for k in cls._compilers) if cls._compilers else "none"
            raise CompilerNotFoundError(
                f"No compiler registered for '{kind.value}'. Available: {available}"
            )
        return cls._compilers[kind]

    @classmethod
    def get(cls, kind: ResourceKind) -> "ConfigCompiler":
        """Get the shared compiler instance for a kind.

        Raises:
            CompilerNotFoundError: If no compiler is registered for the kind
        """
        if kind not in cls._instances:
            cls._instances[kind] = cls._lookup(kind)()
        return cls._instances[kind]

    @classmethod
    def create(cls, kind: ResourceKind, options: "CompileOptions") -> "ConfigCompiler":
        """Create a compiler instance with the given options.

        Raises:
            CompilerNotFoundError: If no compiler is registered for the kind
        """
        return cls._lookup(kind)(options)

    @classmethod
    def all_kinds(cls) -> list[ResourceKind]:
        return list(cls._compilers.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registered compilers and instances.

        Primarily useful for testing.
        """
        cls._compilers.clear()
        cls._instances.clear()
