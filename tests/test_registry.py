"""Tests for dvm.core.registry and the built-in kind specs."""

import threading

import pytest

from dvm.core.registry import (
    KindRegistry,
    default_registry,
    get_all_kind_specs,
    get_kind_spec,
    resolve_kind,
)
from dvm.core.resource import FieldSpec, KindSpec, ResourceKind
from dvm.core.specs import BUILTIN_SPECS, NVIM_PLUGIN_SPEC, TERMINAL_PLUGIN_SPEC
from dvm.core.union import Shape
from dvm.exceptions import UnknownKindError


def _spec(kind: ResourceKind = ResourceKind.NVIM_PACKAGE, *aliases: str) -> KindSpec:
    return KindSpec(
        kind=kind,
        aliases=aliases or ("testpkg",),
        fields=(FieldSpec("plugins", ("plugins",), Shape.STRING_LIST),),
        output_subdir="test",
        extension=".lua",
    )


class TestKindRegistry:
    """Tests for KindRegistry."""

    def test_register_and_get(self):
        """Can register and retrieve a kind spec."""
        registry = KindRegistry()
        spec = _spec()
        registry.register(spec)
        assert registry.get(ResourceKind.NVIM_PACKAGE) is spec

    def test_get_not_registered(self):
        """Returns None for an unregistered kind."""
        assert KindRegistry().get(ResourceKind.NVIM_PLUGIN) is None

    def test_all_returns_copy(self):
        """Modifying the returned dict does not touch the registry."""
        registry = KindRegistry((_spec(),))
        registry.all().clear()
        assert registry.get(ResourceKind.NVIM_PACKAGE) is not None

    def test_resolve_by_name_and_alias(self):
        """Names and aliases resolve case-insensitively."""
        spec = _spec()
        registry = KindRegistry((spec,))
        assert registry.resolve("TestPkg") is spec
        assert registry.resolve(" nvimpackage ") is spec

    def test_resolve_unknown_raises(self):
        """Unknown names raise and list what is available."""
        registry = KindRegistry((_spec(),))
        with pytest.raises(UnknownKindError, match="Available: NvimPackage"):
            registry.resolve("Workspace")

    def test_resolve_empty_registry(self):
        """An empty registry reports that nothing is available."""
        with pytest.raises(UnknownKindError, match="Available: none"):
            KindRegistry().resolve("plugin")

    def test_reregister_replaces_aliases(self):
        """Registering a kind again drops the aliases of the old spec."""
        registry = KindRegistry((_spec(ResourceKind.NVIM_PACKAGE, "old"),))
        new = _spec(ResourceKind.NVIM_PACKAGE, "new")
        registry.register(new)
        assert registry.resolve("new") is new
        with pytest.raises(UnknownKindError):
            registry.resolve("old")

    def test_alias_conflict_raises(self):
        """An alias cannot point at two kinds."""
        registry = KindRegistry((_spec(ResourceKind.NVIM_PACKAGE, "shared"),))
        with pytest.raises(ValueError, match="'shared' is already registered for NvimPackage"):
            registry.register(_spec(ResourceKind.TERMINAL_PACKAGE, "shared"))
        assert registry.get(ResourceKind.TERMINAL_PACKAGE) is None

    def test_concurrent_registration(self):
        """Parallel registrations of distinct kinds all land."""
        registry = KindRegistry()
        threads = [
            threading.Thread(target=registry.register, args=(_spec(kind, kind.value.lower() + "-alias"),))
            for kind in ResourceKind
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert set(registry.all()) == set(ResourceKind)


class TestDefaultRegistry:
    """Tests for the shared registry helpers."""

    def test_shared_instance(self):
        """The shared registry is created once."""
        assert default_registry() is default_registry()

    def test_holds_builtins(self):
        """Every built-in kind is available through the helpers."""
        assert get_kind_spec(ResourceKind.NVIM_PLUGIN) is NVIM_PLUGIN_SPEC
        assert set(get_all_kind_specs()) == set(ResourceKind)

    def test_resolve_unknown(self):
        """Unknown names raise UnknownKindError."""
        with pytest.raises(UnknownKindError):
            resolve_kind("workspace")


class TestBuiltinSpecs:
    """Tests for the built-in kind specs."""

    def test_every_kind_has_a_spec(self):
        """Each ResourceKind is covered exactly once."""
        assert {spec.kind for spec in BUILTIN_SPECS} == set(ResourceKind)

    def test_aliases_are_unique(self):
        """No alias maps to two kinds."""
        aliases = [alias for spec in BUILTIN_SPECS for alias in spec.aliases]
        assert len(aliases) == len(set(aliases))

    def test_output_locations_are_distinct(self):
        """Kinds never share an output directory."""
        subdirs = [spec.output_subdir for spec in BUILTIN_SPECS]
        assert len(subdirs) == len(set(subdirs))

    def test_builtin_resolution(self):
        """Common CLI aliases resolve to the expected kinds."""
        assert resolve_kind("plugin") is NVIM_PLUGIN_SPEC
        assert resolve_kind("tp") is TERMINAL_PLUGIN_SPEC

    def test_terminal_plugin_defaults(self):
        """Manager and load mode carry their defaults."""
        assert TERMINAL_PLUGIN_SPEC.field("manager").default == "manual"
        assert TERMINAL_PLUGIN_SPEC.field("load_mode").default == "immediate"

    def test_field_lookup_unknown_raises(self):
        """Unknown field names raise KeyError."""
        with pytest.raises(KeyError):
            NVIM_PLUGIN_SPEC.field("nope")
