"""
Snapshot Types

Owned value types produced by the graph walker. Nothing in here holds a
reference back into the host runtime's live graph; everything is copied out.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Mapping, Iterator

from .raw import first_field

logger = logging.getLogger(__name__)

PREVIEW_MAX_STRING = 200
PREVIEW_MAX_KEYS = 8


class ComponentKind(Enum):
    """Closed set of component kinds a snapshot node can have."""
    FUNCTION = "function"
    CLASS = "class"
    MEMO = "memo"
    FORWARD_REF = "forwardRef"
    FRAGMENT = "fragment"
    SUSPENSE = "suspense"
    PROVIDER = "provider"
    CONSUMER = "consumer"
    HOST = "host"


class HookKind(Enum):
    """Structural hook classification (see fiberscope.fiber.hooks)."""
    STATE = "state"
    EFFECT = "effect"
    CUSTOM = "custom"


@dataclass(frozen=True)
class SourceLocation:
    """A file position. ``line`` and ``column`` are 1-based when present."""
    file: str
    line: Optional[int] = None
    column: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Any) -> Optional["SourceLocation"]:
        """
        Build a location from either naming convention.

        Accepts ``{file, line, column}`` as well as the host runtime's
        ``{fileName, lineNumber, columnNumber}`` shape, as mapping keys or as
        attributes. Anything without a file name yields None.
        """
        if isinstance(data, SourceLocation):
            return data

        file = first_field(data, "file", "fileName")
        if not file or not isinstance(file, str):
            return None

        line = first_field(data, "line", "lineNumber")
        column = first_field(data, "column", "columnNumber")
        return cls(
            file=file,
            line=int(line) if isinstance(line, (int, float)) and not isinstance(line, bool) else None,
            column=int(column) if isinstance(column, (int, float)) and not isinstance(column, bool) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"file": self.file}
        if self.line is not None:
            data["line"] = self.line
        if self.column is not None:
            data["column"] = self.column
        return data


@dataclass
class HookRecord:
    """One entry of a component's hook chain. ``index`` is its chain position."""
    index: int
    kind: HookKind
    value: Any = None
    dependencies: Optional[List[Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "index": self.index,
            "kind": self.kind.value,
            "value": preview_value(self.value),
        }
        if self.dependencies is not None:
            data["dependencies"] = [preview_value(dep) for dep in self.dependencies]
        return data


@dataclass
class ComponentSnapshot:
    """A materialized node of one snapshot generation."""
    id: str
    name: str
    kind: ComponentKind
    props: Dict[str, Any] = field(default_factory=dict)
    state: Dict[str, Any] = field(default_factory=dict)
    hooks: List[HookRecord] = field(default_factory=list)
    children: List["ComponentSnapshot"] = field(default_factory=list)
    source: Optional[SourceLocation] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire form. Prop and state values are reduced to shallow previews."""
        data = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "props": {str(k): preview_value(v) for k, v in self.props.items()},
            "state": {str(k): preview_value(v) for k, v in self.state.items()},
            "hooks": [hook.to_dict() for hook in self.hooks],
            "children": [child.to_dict() for child in self.children],
        }
        if self.source is not None:
            data["source"] = self.source.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComponentSnapshot":
        """
        Rebuild a snapshot from its wire form.

        Used for ``OPEN_SOURCE`` payloads sent by an inspector, which may carry
        only a subset of the fields (often just ``name`` and ``source``).
        """
        try:
            kind = ComponentKind(data.get("kind", ComponentKind.FUNCTION.value))
        except ValueError:
            kind = ComponentKind.FUNCTION

        name = data.get("displayName") or data.get("name") or "Anonymous"
        hooks = []
        for position, raw_hook in enumerate(data.get("hooks") or []):
            if not isinstance(raw_hook, Mapping):
                continue
            try:
                hook_kind = HookKind(raw_hook.get("kind", HookKind.CUSTOM.value))
            except ValueError:
                hook_kind = HookKind.CUSTOM
            hooks.append(HookRecord(
                index=raw_hook.get("index", position),
                kind=hook_kind,
                value=raw_hook.get("value"),
                dependencies=raw_hook.get("dependencies"),
            ))

        return cls(
            id=str(data.get("id", "")),
            name=str(name),
            kind=kind,
            props=dict(data.get("props") or {}),
            state=dict(data.get("state") or {}),
            hooks=hooks,
            children=[cls.from_dict(child) for child in data.get("children") or [] if isinstance(child, Mapping)],
            source=SourceLocation.from_mapping(data.get("source")),
        )


def preview_value(value: Any) -> Any:
    """
    Reduce an opaque prop/state value to something JSON can carry.

    Only the top level is inspected: primitives pass through (long strings are
    truncated), containers and objects become short descriptive strings.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        if len(value) > PREVIEW_MAX_STRING:
            return value[:PREVIEW_MAX_STRING - 3] + "..."
        return value
    if isinstance(value, Mapping):
        keys = [str(k) for k in list(value.keys())[:PREVIEW_MAX_KEYS]]
        suffix = ", ..." if len(value) > PREVIEW_MAX_KEYS else ""
        return "{" + ", ".join(keys) + suffix + "}"
    if isinstance(value, (list, tuple)):
        return f"Array({len(value)})"
    if isinstance(value, (set, frozenset)):
        return f"Set({len(value)})"
    if callable(value):
        return f"ƒ {getattr(value, '__name__', 'anonymous')}()"
    return f"<{type(value).__name__}>"


def walk_snapshots(tree: List[ComponentSnapshot]) -> Iterator[ComponentSnapshot]:
    """Yield every node of a forest in pre-order."""
    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_component_by_id(tree: List[ComponentSnapshot], component_id: str) -> Optional[ComponentSnapshot]:
    """Find a component by id anywhere in the forest."""
    for node in walk_snapshots(tree):
        if node.id == component_id:
            return node
    return None
