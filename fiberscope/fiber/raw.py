"""
Duck-typed access to raw host runtime nodes.

The host may hand us plain objects, namespaces or mappings. All reads go
through here so the walker and decoder don't care which.
"""

from typing import Any, Mapping

_MISSING = object()


def read_field(raw: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a raw node, as a mapping key or an attribute."""
    if raw is None:
        return default
    if isinstance(raw, Mapping):
        return raw.get(name, default)
    return getattr(raw, name, default)


def has_field(raw: Any, name: str) -> bool:
    """True if the raw node carries ``name`` with a non-None value."""
    return read_field(raw, name, _MISSING) not in (_MISSING, None)


def first_field(raw: Any, *names: str, default: Any = None) -> Any:
    """Return the first non-None field among ``names``."""
    for name in names:
        value = read_field(raw, name)
        if value is not None:
            return value
    return default
