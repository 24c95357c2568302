"""
Pricing version codec.

Dots are not allowed in stored mapping keys, so version strings are stored
with ``.`` replaced by ``_`` and restored on read. A version that already
contains ``_`` cannot be told apart from an escaped one and comes back with
dots; this is a known limitation of the storage format.
"""

from typing import Any, TypeVar

V = TypeVar("V")

ESCAPED_SEPARATOR = "_"


def escape_version(version: str) -> str:
    """Escape a version string for use as a stored key."""
    return version.replace(".", ESCAPED_SEPARATOR)


def unescape_version(version: str) -> str:
    """Restore a stored version key to its display form."""
    return version.replace(ESCAPED_SEPARATOR, ".")


def escape_version_keys(mapping: dict[str, V] | None) -> dict[str, V]:
    """Escape every key of a version-keyed mapping, keeping order."""
    return {escape_version(version): value for version, value in (mapping or {}).items()}


def unescape_version_keys(mapping: dict[str, V] | None) -> dict[str, V]:
    """Unescape every key of a version-keyed mapping, keeping order."""
    return {unescape_version(version): value for version, value in (mapping or {}).items()}


def reset_escape_version_in_service(document: dict[str, Any]) -> dict[str, Any]:
    """Return a service document with readable version keys."""
    restored = dict(document)
    for field in ("activePricings", "archivedPricings"):
        if restored.get(field) is not None:
            restored[field] = unescape_version_keys(restored[field])
    return restored


def reset_escape_version_in_pricing(document: dict[str, Any]) -> dict[str, Any]:
    """Return a pricing document with a readable version."""
    restored = dict(document)
    if isinstance(restored.get("version"), str):
        restored["version"] = unescape_version(restored["version"])
    return restored
