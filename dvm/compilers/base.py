"""Base classes and protocols for config compilers.

A compiler turns one decoded :class:`ResourceRecord` into the text of a
generated artifact. Compilers are pure: they never touch the store or the
filesystem, so records can be compiled concurrently.
"""

from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from dvm.constants import DEFAULT_INDENT, DEFAULT_SHELL_DIR
from dvm.core.record import ResourceRecord
from dvm.core.registry import get_kind_spec
from dvm.core.resource import KindSpec, ResourceKind
from dvm.core.union import DecodeMode, UnionValue, decode_blob
from dvm.exceptions import PreconditionViolation, UnknownKindError

# (kind, name) -> whether the referenced resource exists
ExistsCheck = Callable[[ResourceKind, str], bool]


@dataclass(frozen=True)
class CompileOptions:
    """Settings shared by all compilers.

    Attributes:
        indent: Spaces per nesting level in generated Lua
        decode_mode: How malformed stored attributes are handled
        shell_dir: Directory generated zsh fragments are sourced from at runtime
        exists: Optional lookup used to drop dangling weak references
    """

    indent: int = DEFAULT_INDENT
    decode_mode: DecodeMode = DecodeMode.LENIENT
    shell_dir: str = DEFAULT_SHELL_DIR
    exists: ExistsCheck | None = None


@runtime_checkable
class ConfigCompiler(Protocol):
    """Protocol for per-kind compilers."""

    kind: ResourceKind

    def generate(self, record: ResourceRecord) -> str:
        """Render the artifact text for a record.

        Raises:
            PreconditionViolation: If the record lacks its positional identifier
        """
        ...

    def extension(self, record: ResourceRecord) -> str:
        """Return the file extension for the record's artifact."""
        ...


class BaseCompiler:
    """Shared plumbing: option handling, attribute decoding and preconditions."""

    kind: ResourceKind

    def __init__(self, options: CompileOptions | None = None):
        self.options = options or CompileOptions()
        spec = get_kind_spec(self.kind)
        if spec is None:
            raise UnknownKindError(f"Resource kind '{self.kind.value}' is not registered")
        self.spec: KindSpec = spec

    def extension(self, record: ResourceRecord) -> str:
        return self.spec.extension

    def decode(self, record: ResourceRecord) -> dict[str, UnionValue]:
        """Decode every attribute the kind declares.

        Raises:
            MalformedAttributeError: In strict mode, for an undecodable attribute
        """
        return {
            field.name: decode_blob(
                record.attribute(field.name),
                field.shape,
                mode=self.options.decode_mode,
                field_name=field.name,
            )
            for field in self.spec.fields
        }

    def check_record(self, record: ResourceRecord) -> None:
        """Verify the record belongs to this compiler and carries its identifier.

        Raises:
            PreconditionViolation: If the kind is wrong or the identifier is missing
        """
        if record.kind != self.spec.name:
            raise PreconditionViolation(
                f"{self.spec.name} compiler cannot compile {record.kind} '{record.name}'"
            )
        if not self.spec.has_identifier:
            return
        if self.spec.builtin_path is not None:
            if bool(record.source_ref) == bool(record.builtin_ref):
                raise PreconditionViolation(
                    f"{record.kind} '{record.name}' must have exactly one of a source or builtin reference"
                )
        elif not record.source_ref:
            raise PreconditionViolation(f"{record.kind} '{record.name}' has no source reference")

    def reference_exists(self, kind: ResourceKind, name: str) -> bool:
        """Check a weak reference. Without an existence check every reference resolves."""
        if self.options.exists is None:
            return True
        return self.options.exists(kind, name)
