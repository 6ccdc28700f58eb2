"""
Navigation Module

Resolves components to source files and opens them in an external editor.
"""

from .editors import ArgStyle, EditorProfile, EditorRegistry, DEFAULT_EDITOR_REGISTRY, custom_editor_profile
from .resolver import SourceResolver, resolve_component_file, DEFAULT_SEARCH_DIRS
from .launcher import EditorLauncher, LaunchError, LaunchResult
from .handler import SourceNavigationHandler

__all__ = [
    'ArgStyle',
    'EditorProfile',
    'EditorRegistry',
    'DEFAULT_EDITOR_REGISTRY',
    'custom_editor_profile',
    'SourceResolver',
    'resolve_component_file',
    'DEFAULT_SEARCH_DIRS',
    'EditorLauncher',
    'LaunchError',
    'LaunchResult',
    'SourceNavigationHandler',
]
