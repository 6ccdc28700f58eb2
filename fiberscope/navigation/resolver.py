"""
Source Resolver

Maps a component to a file location. Authoritative source metadata wins;
otherwise the component's name is used to probe a fixed list of file patterns
in the configured search directories. Nothing is cached: every call probes
the filesystem again.
"""

import logging
import os
import re
from typing import Any, Mapping, Optional, Sequence, Tuple

from fiberscope.fiber.types import ComponentSnapshot, SourceLocation

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_DIRS: Tuple[str, ...] = ("src", "app", "components")

FILE_PATTERNS: Tuple[str, ...] = (
    "{name}.tsx",
    "{name}.jsx",
    "{name}.ts",
    "{name}.js",
    "{name}/index.tsx",
    "{name}/index.jsx",
    "{name}/index.ts",
    "{name}/index.js",
)

_PLACEHOLDER_NAMES = {"Anonymous", "Unknown", "Component"}
_WRAPPED_NAME = re.compile(r"^[\w$.]+\((.+)\)$")
_SAFE_STEM = re.compile(r"^[A-Za-z_$][\w$-]*$")


class SourceResolver:
    """Resolves components to source locations."""

    def __init__(self, search_dirs: Sequence[str] = DEFAULT_SEARCH_DIRS):
        self.search_dirs = tuple(search_dirs)

    def resolve(self,
                component: Any,
                project_root: str,
                search_dirs: Optional[Sequence[str]] = None) -> Optional[SourceLocation]:
        """
        Resolve ``component`` to a location.

        Args:
            component: A ComponentSnapshot or a mapping in its wire form.
            project_root: Directory the search directories are relative to.
            search_dirs: Overrides the resolver's search directories; directory
                order is the search priority.

        Returns:
            The authoritative source verbatim when present, otherwise the first
            existing heuristic match (file only), otherwise None.
        """
        source, name = _identity_of(component)
        if source is not None:
            return source

        stem = component_file_stem(name)
        if stem is None:
            logger.debug(f"No usable file stem for component name {name!r}")
            return None

        for search_dir in (self.search_dirs if search_dirs is None else search_dirs):
            for pattern in FILE_PATTERNS:
                candidate = os.path.join(project_root, search_dir, pattern.format(name=stem))
                if os.path.isfile(candidate):
                    logger.debug(f"Resolved component '{name}' to {candidate}")
                    return SourceLocation(file=candidate)

        logger.debug(f"Could not resolve a source file for component '{name}'")
        return None


def resolve_component_file(component: Any,
                           project_root: str,
                           search_dirs: Sequence[str] = DEFAULT_SEARCH_DIRS) -> Optional[str]:
    """Path of the file ``component`` lives in, or None when navigation is unavailable."""
    location = SourceResolver(search_dirs).resolve(component, project_root)
    return location.file if location is not None else None


def component_file_stem(name: Optional[str]) -> Optional[str]:
    """
    Derive a file-name stem from a component's display name.

    Wrapper names such as ``Memo(UserCard)`` unwrap to ``UserCard``. Returns
    None for placeholder names and anything that is not a plain identifier.
    """
    if not name or not isinstance(name, str):
        return None
    name = name.strip()
    match = _WRAPPED_NAME.match(name)
    while match:
        name = match.group(1).strip()
        match = _WRAPPED_NAME.match(name)

    if name in _PLACEHOLDER_NAMES or not _SAFE_STEM.match(name):
        return None
    return name


def _identity_of(component: Any) -> Tuple[Optional[SourceLocation], Optional[str]]:
    if isinstance(component, ComponentSnapshot):
        return component.source, component.name
    if isinstance(component, Mapping):
        name = component.get("displayName") or component.get("name")
        return SourceLocation.from_mapping(component.get("source")), name
    return None, getattr(component, "name", None)
