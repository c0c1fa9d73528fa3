"""Resource kind definitions and schema descriptors.

A :class:`KindSpec` describes one resource kind: where its positional
identifier lives in the manifest, which attributes it carries and with what
shape, and where its generated artifacts go. The manifest codec and the
compilers are driven by these descriptors instead of per-kind code.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from dvm.core.union import Shape


class ResourceKind(Enum):
    """Resource kinds supported by dvm. Values are manifest ``kind`` names."""

    NVIM_PLUGIN = "NvimPlugin"
    NVIM_THEME = "NvimTheme"
    NVIM_PACKAGE = "NvimPackage"
    TERMINAL_PLUGIN = "TerminalPlugin"
    TERMINAL_PROFILE = "TerminalProfile"
    TERMINAL_PACKAGE = "TerminalPackage"


@dataclass(frozen=True)
class FieldSpec:
    """One kind-specific attribute.

    ``path`` locates the field inside the manifest section (``spec`` by
    default, or ``metadata``); nested paths such as ``("plugin", "branch")``
    are allowed.
    """

    name: str  # attribute key in the record
    path: tuple[str, ...]
    shape: Shape
    section: str = "spec"
    default: Any = None  # applied by the codec when the manifest leaves it unset
    choices: tuple[str, ...] = ()
    value_pattern: str | None = None  # regex every string value must match
    key_pattern: str | None = None  # regex every map key must match

    @property
    def dotted(self) -> str:
        return ".".join((self.section,) + self.path)


@dataclass(frozen=True)
class KindSpec:
    """Schema descriptor for a resource kind."""

    kind: ResourceKind
    aliases: tuple[str, ...]
    fields: tuple[FieldSpec, ...]
    output_subdir: str  # e.g., "lua/plugins"
    extension: str  # e.g., ".lua"
    source_path: tuple[str, ...] | None = None  # spec path holding the source_ref
    builtin_path: tuple[str, ...] | None = None  # spec path holding the builtin_ref
    description: str = ""

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def has_identifier(self) -> bool:
        """True if records of this kind need a positional identifier."""
        return self.source_path is not None or self.builtin_path is not None

    def field(self, name: str) -> FieldSpec:
        """Get a field by attribute name.

        Raises:
            KeyError: If the kind has no such field
        """
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.name} has no field '{name}'")
