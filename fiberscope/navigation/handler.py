"""
Source Navigation Handler

Glue between a selected component and the editor: resolve, then launch.
"""

import logging
from typing import Any, Optional, Sequence

from fiberscope.observability import get_tracer

from .launcher import EditorLauncher, LaunchError, LaunchResult
from .resolver import SourceResolver, DEFAULT_SEARCH_DIRS

tracer = get_tracer(__name__)

logger = logging.getLogger(__name__)


class SourceNavigationHandler:
    """Opens components and explicit file locations in the configured editor."""

    def __init__(self,
                 editor: str,
                 project_root: str,
                 search_dirs: Sequence[str] = DEFAULT_SEARCH_DIRS,
                 launcher: Optional[EditorLauncher] = None,
                 resolver: Optional[SourceResolver] = None):
        self.editor = editor
        self.project_root = project_root
        self.launcher = launcher or EditorLauncher()
        self.resolver = resolver or SourceResolver(search_dirs)

    def open_component(self, component: Any) -> LaunchResult:
        """
        Open the source of ``component``.

        Authoritative locations open at their line and column; heuristic
        matches open the file only.
        """
        with tracer.start_as_current_span("navigation.open_component") as span:
            location = self.resolver.resolve(component, self.project_root)
            if location is None:
                name = _component_name(component)
                logger.warning(f"Could not resolve source location for component: {name}")
                span.set_attribute("navigation.resolved", False)
                return LaunchResult.failure(LaunchError.SOURCE_UNAVAILABLE,
                                            f"Source location unavailable for component: {name}")

            span.set_attribute("navigation.resolved", True)
            span.set_attribute("navigation.file", location.file)
            return self.launcher.launch(self.editor, location.file, location.line, location.column, self.project_root)

    def open_location(self, file: str, line: Optional[int] = None, column: Optional[int] = None) -> LaunchResult:
        """Open an explicit file position."""
        with tracer.start_as_current_span("navigation.open_location"):
            return self.launcher.launch(self.editor, file, line, column, self.project_root)


def _component_name(component: Any) -> str:
    if isinstance(component, dict):
        return str(component.get("displayName") or component.get("name") or "Anonymous")
    return str(getattr(component, "name", "Anonymous"))
