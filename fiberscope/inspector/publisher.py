"""
Tree Publisher

Subscribes to host commits on a DevToolsHook, extracts a snapshot with the
GraphWalker and hands it to the DevToolsServer. Runs inside the host's commit
callback, so it never waits on the network.

Commits from several renderer threads are serialized: roots are read, walked
and published under one lock, so generation order matches extraction order.
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from fiberscope.fiber.global_hook import DevToolsHook
from fiberscope.fiber.types import ComponentSnapshot
from fiberscope.fiber.walker import GraphWalker
from fiberscope.observability import get_tracer

from .server import DevToolsServer

tracer = get_tracer(__name__)

logger = logging.getLogger(__name__)


class TreePublisher:
    """Commit listener that keeps the server's tree current."""

    def __init__(self, hook: DevToolsHook, walker: GraphWalker, server: DevToolsServer):
        self.hook = hook
        self.walker = walker
        self.server = server
        self.commits_seen = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    @property
    def is_attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self) -> None:
        """Start listening for commits and publish the current tree right away."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.hook.subscribe(self._on_commit)
        self.refresh()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def refresh(self) -> List[ComponentSnapshot]:
        """Extract from every root the hook knows about and publish the result."""
        return self._publish()

    def _on_commit(self, renderer_id: int, root: Any) -> None:
        self.commits_seen += 1
        logger.debug(f"Commit #{self.commits_seen} from renderer {renderer_id}")
        self._publish()

    def _publish(self) -> List[ComponentSnapshot]:
        with self._lock, tracer.start_as_current_span("devtools.extract_tree") as span:
            try:
                tree = self.walker.extract(self.hook.get_roots())
            except Exception as e:
                # The walker recovers per node; this only guards against bugs in it.
                logger.error(f"Component tree extraction failed: {e}", exc_info=True)
                return []
            span.set_attribute("devtools.root_count", len(tree))
            version = self.server.publish_tree(tree)
            span.set_attribute("devtools.generation", version.generation)
            return tree
