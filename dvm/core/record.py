"""Storage-shaped representation of one configurable resource.

A record keeps its identity and common metadata as plain values. Every
kind-specific field lives in ``attributes`` as an opaque :class:`Blob`
whose ``valid`` flag distinguishes "absent" from "present but empty".
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Blob:
    """An encoded attribute value with a validity flag.

    An invalid blob means the field is unset. Its ``value`` is ignored.
    """

    value: str = ""
    valid: bool = False

    @classmethod
    def of(cls, value: str) -> "Blob":
        """Create a valid blob holding ``value``."""
        return cls(value=value, valid=True)


NULL_BLOB = Blob()


@dataclass
class ResourceRecord:
    """One stored resource, identified by ``(kind, name)``.

    ``source_ref`` and ``builtin_ref`` are the mutually exclusive positional
    identifiers used by kinds that install something (a repository or a
    shell framework builtin).
    """

    kind: str
    name: str
    description: str = ""
    category: str = ""
    source_ref: str = ""
    builtin_ref: str = ""
    tags: Blob = NULL_BLOB
    attributes: dict[str, Blob] = field(default_factory=dict)
    enabled: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind, self.name)

    def attribute(self, name: str) -> Blob:
        """Return the blob stored under ``name``, or an invalid blob."""
        return self.attributes.get(name, NULL_BLOB)

    def valid_attributes(self) -> dict[str, str]:
        """Return the encoded values of all valid attributes, sorted by name."""
        return {
            name: blob.value
            for name, blob in sorted(self.attributes.items())
            if blob.valid
        }
