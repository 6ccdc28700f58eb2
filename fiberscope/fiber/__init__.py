"""
Fiber Module

Read-only extraction of the host runtime's live component graph:
- GraphWalker: raw graph -> ComponentSnapshot forest
- HookDecoder: raw hook chain -> HookRecord list
- DevToolsHook: the registry the host runtime reports commits to
"""

from .types import (
    ComponentKind,
    ComponentSnapshot,
    HookKind,
    HookRecord,
    SourceLocation,
    find_component_by_id,
    walk_snapshots,
)
from .hooks import HookDecoder
from .walker import GraphWalker
from .global_hook import DevToolsHook, HookAlreadyInstalledError, get_installed_hook

__all__ = [
    'ComponentKind',
    'ComponentSnapshot',
    'HookKind',
    'HookRecord',
    'SourceLocation',
    'find_component_by_id',
    'walk_snapshots',
    'HookDecoder',
    'GraphWalker',
    'DevToolsHook',
    'HookAlreadyInstalledError',
    'get_installed_hook',
]
