"""Utility functions for dvm."""

import re

from dvm.exceptions import PreconditionViolation

_WHITESPACE_RE = re.compile(r"\s+")


def slugify(name: str) -> str:
    """Derive the filename stem for a resource name.

    Lowercases, trims, collapses each whitespace run into one hyphen and
    replaces path separators and dots with hyphens, so the slug is also a
    single Lua module name segment. Two distinct names can map to the
    same slug; callers writing files must check for that.

    Args:
        name: Resource name

    Returns:
        The slug, e.g. "My Plugin" -> "my-plugin"

    Raises:
        PreconditionViolation: If the slug would be empty or hyphens only

    Examples:
        >>> slugify("  Telescope  Fuzzy ")
        'telescope-fuzzy'
        >>> slugify("folke/tokyonight")
        'folke-tokyonight'
        >>> slugify("nvim-tree.lua")
        'nvim-tree-lua'
    """
    slug = _WHITESPACE_RE.sub("-", name.strip().lower())
    slug = slug.replace("/", "-").replace("\\", "-").replace(".", "-")
    if not slug.strip("-"):
        raise PreconditionViolation(f"Resource name {name!r} does not produce a usable filename")
    return slug
