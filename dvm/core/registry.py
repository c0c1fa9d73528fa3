"""Registry for resource kind specifications.

A :class:`KindRegistry` indexes specs by kind and by every name a user may
type for it (the kind name and its aliases, case-insensitively). The
module-level helpers work on a shared registry holding the built-in kinds,
created on first use.

Thread-safe: All registry operations are protected by a lock.
"""

import threading

from dvm.core.resource import KindSpec, ResourceKind
from dvm.core.specs import BUILTIN_SPECS
from dvm.exceptions import UnknownKindError


class KindRegistry:
    """Kind specs addressable by kind or by name/alias."""

    def __init__(self, specs: tuple[KindSpec, ...] = ()):
        self._lock = threading.Lock()
        self._specs: dict[ResourceKind, KindSpec] = {}
        self._names: dict[str, KindSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: KindSpec) -> None:
        """Register a kind spec, replacing any earlier spec of the same kind.

        Raises:
            ValueError: If one of its names already belongs to another kind
        """
        names = {spec.name.lower(), *(alias.lower() for alias in spec.aliases)}
        with self._lock:
            for name in names:
                owner = self._names.get(name)
                if owner is not None and owner.kind is not spec.kind:
                    raise ValueError(f"'{name}' is already registered for {owner.name}")
            previous = self._specs.get(spec.kind)
            if previous is not None:
                self._names = {k: v for k, v in self._names.items() if v is not previous}
            self._specs[spec.kind] = spec
            self._names.update((name, spec) for name in names)

    def get(self, kind: ResourceKind) -> KindSpec | None:
        with self._lock:
            return self._specs.get(kind)

    def all(self) -> dict[ResourceKind, KindSpec]:
        """Return a copy of the registered specs, keyed by kind."""
        with self._lock:
            return self._specs.copy()

    def resolve(self, name: str) -> KindSpec:
        """Resolve a kind name or alias to its spec.

        Raises:
            UnknownKindError: If nothing matches
        """
        with self._lock:
            spec = self._names.get(name.strip().lower())
            if spec is not None:
                return spec
            available = ", ".join(s.name for s in self._specs.values()) or "none"
        raise UnknownKindError(f"Unknown resource kind '{name}'. Available: {available}")


_default_lock = threading.Lock()
_default: KindRegistry | None = None


def default_registry() -> KindRegistry:
    """Get the shared registry, registering the built-in kinds on first use."""
    global _default
    with _default_lock:
        if _default is None:
            _default = KindRegistry(BUILTIN_SPECS)
        return _default


def get_kind_spec(kind: ResourceKind) -> KindSpec | None:
    """Get the spec for a kind, or None if it is not registered."""
    return default_registry().get(kind)


def get_all_kind_specs() -> dict[ResourceKind, KindSpec]:
    return default_registry().all()


def resolve_kind(name: str) -> KindSpec:
    """Resolve a kind name or alias to its spec.

    Matching is case-insensitive, so ``NvimPlugin``, ``nvimplugin`` and
    ``plugin`` all resolve to the same spec.

    Args:
        name: Manifest kind name or CLI alias

    Returns:
        The matching KindSpec

    Raises:
        UnknownKindError: If nothing matches
    """
    return default_registry().resolve(name)
