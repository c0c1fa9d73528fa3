"""Shared exception classes for dvm."""


class DvmError(Exception):
    """Base exception for dvm errors."""


class ResourceNotFoundError(DvmError):
    """Raised when a (kind, name) lookup against the store fails."""


class UnknownKindError(DvmError):
    """Raised when a kind name or alias is not registered."""


class ManifestParseError(DvmError):
    """Raised when a manifest document is malformed or misses a required field."""


class MalformedAttributeError(DvmError):
    """Raised by strict decoding when a stored blob does not match its shape."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Malformed stored attribute '{field}': {reason}")


class PreconditionViolation(DvmError):
    """Raised when a record cannot be compiled because an invariant is broken."""


class FilesystemError(DvmError):
    """Raised when a generated file or its directory cannot be written."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write {path}: {reason}")


class SlugCollisionError(DvmError):
    """Raised when two resources would be written to the same file."""


class FetchError(DvmError):
    """Raised when a remote manifest cannot be downloaded."""


class ConfigNotFoundError(DvmError):
    """Raised when dvm.toml is not found."""


class ConfigParseError(DvmError):
    """Raised when dvm.toml cannot be parsed."""


class ConfigValidationError(DvmError):
    """Raised when dvm.toml contains invalid configuration."""
