"""
Graph Walker

Walks the host runtime's live component graph (parent / first-child /
next-sibling links) and copies it out into an acyclic forest of
ComponentSnapshot values.

Raw nodes are read duck-typed through ``fiberscope.fiber.raw``. The fields
used are ``type``, ``element_type``, ``key``, ``index``, ``child``,
``sibling``, ``memoized_props``, ``memoized_state`` and ``debug_source``.
Exotic types (memo, forward ref, context, ...) are recognised by a ``typeof``
marker string on the type object, e.g. ``"react.memo"``.
"""

import inspect
import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .hooks import HookDecoder, DEFAULT_MAX_HOOKS
from .raw import read_field, first_field, has_field
from .types import ComponentKind, ComponentSnapshot, SourceLocation

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 30
# The walk recurses twice per level, so deeper limits would approach the interpreter recursion limit.
MAX_WALK_DEPTH = 200

TYPEOF_MEMO = "react.memo"
TYPEOF_FORWARD_REF = "react.forward_ref"
TYPEOF_PROVIDER = "react.provider"
TYPEOF_CONTEXT = "react.context"
TYPEOF_CONSUMER = "react.consumer"
TYPEOF_SUSPENSE = "react.suspense"
TYPEOF_FRAGMENT = "react.fragment"

# Wrappers that exist only for the runtime's own bookkeeping. Their children
# are kept and reparented to the nearest materialized ancestor.
INTERNAL_MARKERS = (
    "react.strict_mode",
    "react.profiler",
    "react.offscreen",
    "react.legacy_hidden",
    "react.suspense_list",
    "react.tracing_marker",
)

SOURCE_FIELDS = ("debug_source", "_debug_source", "_debugSource")

# Fields that mark an object as a raw node or commit root rather than a collection of roots.
ROOT_FIELDS = ("type", "element_type", "current", "child")


class _SkipNode(Exception):
    """Raised while classifying a node that should not be materialized."""


class GraphWalker:
    """
    Extracts snapshot forests from raw host graphs.

    A walker instance is reusable; every ``extract`` call is one snapshot
    generation with its own id token and visited set.
    """

    def __init__(self,
                 max_depth: int = DEFAULT_MAX_DEPTH,
                 max_hooks: int = DEFAULT_MAX_HOOKS,
                 hide_host_elements: bool = False):
        """
        Args:
            max_depth: Deepest level (counted in raw nodes) that is visited;
                anything below is truncated.
                Must be between 1 and MAX_WALK_DEPTH.
            max_hooks: Upper bound on decoded hooks per component.
            hide_host_elements: Treat host elements (string-typed nodes) as
                internal wrappers instead of materializing them.
        """
        if not 1 <= max_depth <= MAX_WALK_DEPTH:
            raise ValueError(f"max_depth must be between 1 and {MAX_WALK_DEPTH}, got {max_depth}")
        self.max_depth = max_depth
        self.hide_host_elements = hide_host_elements
        self.hook_decoder = HookDecoder(max_hooks=max_hooks)

    def extract(self, roots: Any) -> List[ComponentSnapshot]:
        """
        Walk one or more raw roots into a forest.

        Args:
            roots: A raw node, a commit root exposing ``current``, or an
                iterable of either.

        Returns:
            The materialized top-level components in root order.
        """
        walk = _Walk(self)
        forest: List[ComponentSnapshot] = []
        for root in _as_root_list(roots):
            walk.visit(_unwrap_root(root), 0, forest)
        logger.debug(f"Extracted {walk.materialized} components from {walk.visited} raw nodes")
        return forest


class _Walk:
    """State for a single extraction pass."""

    def __init__(self, walker: GraphWalker):
        self.walker = walker
        self.token = uuid.uuid4().hex[:8]
        self.seen: Set[int] = set()
        self.ids: Set[str] = set()
        self.visited = 0
        self.materialized = 0

    def visit(self, raw: Any, depth: int, siblings_out: List[ComponentSnapshot]) -> None:
        """Visit ``raw`` and its following siblings, appending results to ``siblings_out``."""
        node = raw
        while node is not None:
            if id(node) in self.seen:
                logger.debug("Raw node already visited in this walk; stopping sibling chain")
                break
            self.seen.add(id(node))
            self.visited += 1

            try:
                next_sibling = read_field(node, "sibling")
            except Exception as e:
                logger.debug(f"Failed to read sibling link: {e}")
                next_sibling = None

            self._visit_one(node, depth, siblings_out)
            node = next_sibling

    def _visit_one(self, raw: Any, depth: int, siblings_out: List[ComponentSnapshot]) -> None:
        if depth > self.walker.max_depth:
            logger.debug(f"Depth limit {self.walker.max_depth} reached; truncating subtree")
            return

        try:
            snapshot, first_child = self._materialize(raw)
        except _SkipNode:
            snapshot = None
            first_child = self._read_child(raw)
        except Exception as e:
            # Host is likely mid-commit; drop this node and its subtree.
            logger.debug(f"Skipping unreadable node: {e}")
            return

        if snapshot is None:
            # Skipped wrapper: its children belong to the nearest materialized ancestor.
            self.visit(first_child, depth + 1, siblings_out)
            return

        siblings_out.append(snapshot)
        self.visit(first_child, depth + 1, snapshot.children)

    def _read_child(self, raw: Any) -> Any:
        try:
            return read_field(raw, "child")
        except Exception as e:
            logger.debug(f"Failed to read child link: {e}")
            return None

    def _materialize(self, raw: Any) -> Tuple[ComponentSnapshot, Any]:
        node_type = first_field(raw, "type", "element_type")
        key = read_field(raw, "key")
        kind, name = classify(node_type, key)

        if kind is ComponentKind.HOST and self.walker.hide_host_elements:
            raise _SkipNode()

        props = _as_dict(read_field(raw, "memoized_props"))
        memoized_state = read_field(raw, "memoized_state")

        state: Dict[str, Any] = {}
        hooks = []
        if kind is ComponentKind.CLASS:
            state = _as_dict(memoized_state)
        elif kind in (ComponentKind.FUNCTION, ComponentKind.MEMO, ComponentKind.FORWARD_REF):
            hooks = self.walker.hook_decoder.decode(memoized_state)

        snapshot = ComponentSnapshot(
            id=self._make_id(name, key, read_field(raw, "index", 0)),
            name=name,
            kind=kind,
            props=props,
            state=state,
            hooks=hooks,
            source=_read_source(raw),
        )
        self.materialized += 1
        return snapshot, read_field(raw, "child")

    def _make_id(self, name: str, key: Any, index: Any) -> str:
        base = f"{name}_{'' if key is None else key}_{index or 0}_{self.token}"
        candidate = f"{base}_{self.materialized}"
        # The ordinal already makes ids unique; the loop only guards odd keys.
        suffix = 0
        while candidate in self.ids:
            suffix += 1
            candidate = f"{base}_{self.materialized}.{suffix}"
        self.ids.add(candidate)
        return candidate


def classify(node_type: Any, key: Any = None) -> Tuple[ComponentKind, str]:
    """
    Map a raw node type to a component kind and a display name.

    Raises:
        _SkipNode: for typeless nodes, internal markers and bare fragments.
    """
    if node_type is None:
        raise _SkipNode()

    if isinstance(node_type, str):
        return ComponentKind.HOST, node_type

    marker = _typeof(node_type)
    if marker is not None:
        if marker in INTERNAL_MARKERS:
            raise _SkipNode()
        if marker == TYPEOF_FRAGMENT:
            if key is None:
                raise _SkipNode()
            return ComponentKind.FRAGMENT, "Fragment"
        if marker == TYPEOF_MEMO:
            inner = read_field(node_type, "type")
            return ComponentKind.MEMO, _display_name(node_type) or _callable_name(inner) or "Anonymous"
        if marker == TYPEOF_FORWARD_REF:
            inner = read_field(node_type, "render")
            return ComponentKind.FORWARD_REF, _display_name(node_type) or _callable_name(inner) or "Anonymous"
        if marker == TYPEOF_PROVIDER:
            return ComponentKind.PROVIDER, _context_name(node_type, "Provider")
        if marker in (TYPEOF_CONTEXT, TYPEOF_CONSUMER):
            return ComponentKind.CONSUMER, _context_name(node_type, "Consumer")
        if marker == TYPEOF_SUSPENSE:
            return ComponentKind.SUSPENSE, "Suspense"
        return ComponentKind.FUNCTION, _display_name(node_type) or "Anonymous"

    if inspect.isclass(node_type):
        return ComponentKind.CLASS, _display_name(node_type) or node_type.__name__
    if callable(node_type):
        return ComponentKind.FUNCTION, _display_name(node_type) or _callable_name(node_type) or "Anonymous"
    return ComponentKind.FUNCTION, _display_name(node_type) or "Anonymous"


def _typeof(node_type: Any) -> Optional[str]:
    marker = read_field(node_type, "typeof")
    return str(marker) if marker is not None else None


def _display_name(node_type: Any) -> Optional[str]:
    name = first_field(node_type, "display_name", "displayName")
    return name if isinstance(name, str) and name else None


def _callable_name(fn: Any) -> Optional[str]:
    if fn is None:
        return None
    name = _display_name(fn) or getattr(fn, "__name__", None)
    if not name or name == "<lambda>":
        return None
    return name


def _context_name(node_type: Any, suffix: str) -> str:
    context = read_field(node_type, "context") or node_type
    name = _display_name(context) or _display_name(node_type)
    return f"{name}.{suffix}" if name else f"Context.{suffix}"


def _as_dict(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if hasattr(value, "items"):
        try:
            return dict(value.items())
        except Exception:
            return {}
    return {}


def _read_source(raw: Any) -> Optional[SourceLocation]:
    for field_name in SOURCE_FIELDS:
        location = SourceLocation.from_mapping(read_field(raw, field_name))
        if location is not None:
            return location
    return None


def _unwrap_root(root: Any) -> Any:
    current = read_field(root, "current")
    return current if current is not None else root


def _as_root_list(roots: Any) -> Iterable[Any]:
    if roots is None:
        return []
    if isinstance(roots, (list, tuple)):
        return roots
    if isinstance(roots, (str, bytes, Mapping)) or not isinstance(roots, Iterable):
        return [roots]
    if any(has_field(roots, name) for name in ROOT_FIELDS):
        # A raw node that happens to be iterable.
        return [roots]
    return list(roots)
