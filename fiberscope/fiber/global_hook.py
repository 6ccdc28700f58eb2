"""
DevTools Global Hook

The object a host rendering runtime calls into. Renderers register themselves
with ``inject`` and report every committed tree through
``on_commit_fiber_root``; listeners (the tree publisher) subscribe to those
commits.

Instead of an ambient global, the hook is an explicit object. ``install``
publishes it under ``HOOK_ATTRIBUTE`` on a target the host looks it up on
(a module, a namespace, the renderer itself); ``uninstall`` removes it again.
"""

import itertools
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .raw import read_field

logger = logging.getLogger(__name__)

HOOK_ATTRIBUTE = "devtools_global_hook"

CommitListener = Callable[[int, Any], None]


class HookAlreadyInstalledError(RuntimeError):
    """Raised when a different hook is already installed on the target."""


class DevToolsHook:
    """Registry of renderers and commit listeners for one host process."""

    def __init__(self):
        self.renderers: Dict[int, Any] = {}
        self.supports_fiber = True
        self._roots: Dict[int, Any] = {}
        self._listeners: List[CommitListener] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._target: Optional[Any] = None

    # --- lifecycle ---

    @property
    def installed(self) -> bool:
        return self._target is not None

    def install(self, target: Any) -> "DevToolsHook":
        """
        Publish this hook on ``target`` so the host runtime can find it.

        Raises:
            HookAlreadyInstalledError: if another hook is already present.
        """
        existing = getattr(target, HOOK_ATTRIBUTE, None)
        if existing is not None and existing is not self:
            raise HookAlreadyInstalledError(f"A different DevTools hook is already installed on {target!r}")
        if self._target is not None and self._target is not target:
            raise HookAlreadyInstalledError("Hook is already installed on another target")

        setattr(target, HOOK_ATTRIBUTE, self)
        self._target = target
        logger.info(f"DevTools hook installed on {getattr(target, '__name__', type(target).__name__)}")
        return self

    def uninstall(self) -> None:
        """Remove the hook from its target and drop every listener and root."""
        target = self._target
        if target is not None and getattr(target, HOOK_ATTRIBUTE, None) is self:
            delattr(target, HOOK_ATTRIBUTE)
        self._target = None
        with self._lock:
            self._listeners.clear()
            self._roots.clear()
        logger.info("DevTools hook uninstalled")

    # --- renderer side ---

    def inject(self, renderer: Any) -> int:
        """Register a renderer and return its id."""
        with self._lock:
            renderer_id = next(self._ids)
            self.renderers[renderer_id] = renderer
        logger.debug(f"Renderer {renderer_id} injected")
        return renderer_id

    def on_commit_fiber_root(self, renderer_id: int, root: Any, priority_level: Any = None) -> None:
        """
        Called by the host after every commit.

        Runs synchronously on the host's thread. Listener failures are logged
        and never propagate into the host.
        """
        with self._lock:
            self._roots[renderer_id] = root
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(renderer_id, root)
            except Exception as e:
                logger.error(f"Commit listener failed for renderer {renderer_id}: {e}", exc_info=True)

    def on_commit_fiber_unmount(self, renderer_id: int, fiber: Any) -> None:
        """Unmounts need no bookkeeping; the next commit rebuilds the tree."""
        logger.debug(f"Fiber unmounted in renderer {renderer_id}")

    # --- devtools side ---

    def subscribe(self, listener: CommitListener) -> Callable[[], None]:
        """Register a commit listener; returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def get_roots(self) -> List[Any]:
        """
        Current roots, one per renderer.

        Uses the last committed root when one was reported; otherwise asks the
        renderer for its current fiber (``get_current_fiber``) and climbs the
        ``return`` links to the top.
        """
        with self._lock:
            renderers = dict(self.renderers)
            committed = dict(self._roots)

        roots = []
        for renderer_id, renderer in renderers.items():
            if renderer_id in committed:
                roots.append(committed[renderer_id])
                continue
            root = _climb_to_root(renderer)
            if root is not None:
                roots.append(root)
        return roots


def get_installed_hook(target: Any) -> Optional[DevToolsHook]:
    """Return the hook installed on ``target``, if any."""
    hook = getattr(target, HOOK_ATTRIBUTE, None)
    return hook if isinstance(hook, DevToolsHook) else None


def _climb_to_root(renderer: Any) -> Any:
    get_current = read_field(renderer, "get_current_fiber")
    if not callable(get_current):
        return None
    try:
        node = get_current()
    except Exception as e:
        logger.debug(f"Renderer failed to report its current fiber: {e}")
        return None

    # Guard against parent cycles in a malformed graph.
    seen = set()
    while node is not None and id(node) not in seen:
        seen.add(id(node))
        parent = read_field(node, "return_")
        if parent is None:
            return node
        node = parent
    return node
