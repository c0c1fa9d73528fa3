"""The ResourceStore interface.

Stores are keyed by ``(kind, name)``. References between resources are weak:
deleting a record never touches records that mention it by name.
"""

from typing import Protocol, runtime_checkable

from dvm.core.record import ResourceRecord


@runtime_checkable
class ResourceStore(Protocol):
    """Name-keyed persistence for resource records."""

    def get(self, kind: str, name: str) -> ResourceRecord:
        """Fetch one record.

        Raises:
            ResourceNotFoundError: If no record has this kind and name
        """
        ...

    def list(self, kind: str | None = None) -> list[ResourceRecord]:
        """List records of one kind (or all kinds), sorted by kind then name."""
        ...

    def upsert(self, record: ResourceRecord) -> bool:
        """Insert or replace a record. Returns True if it was created."""
        ...

    def exists(self, kind: str, name: str) -> bool:
        ...

    def delete(self, kind: str, name: str) -> None:
        """Remove a record.

        Raises:
            ResourceNotFoundError: If no record has this kind and name
        """
        ...
