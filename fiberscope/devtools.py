"""
DevTools Facade

Wires the hook, walker, navigation handler, server and publisher together
from a DevToolsSettings instance. A host integration creates one DevTools,
calls ``start()`` once its event loop runs, reports commits through
``devtools.hook``, and calls ``stop()`` on shutdown.
"""

import logging
from typing import Optional

from fiberscope.config import DevToolsSettings
from fiberscope.fiber.global_hook import DevToolsHook
from fiberscope.fiber.walker import GraphWalker
from fiberscope.inspector.publisher import TreePublisher
from fiberscope.inspector.server import DevToolsServer
from fiberscope.navigation.editors import EditorRegistry
from fiberscope.navigation.handler import SourceNavigationHandler
from fiberscope.navigation.launcher import EditorLauncher
from fiberscope.navigation.resolver import SourceResolver

logger = logging.getLogger(__name__)


class DevTools:
    """One DevTools instance per host process."""

    def __init__(self, settings: DevToolsSettings, hook: Optional[DevToolsHook] = None):
        self.settings = settings
        self.hook = hook or DevToolsHook()
        self.walker = GraphWalker(
            max_depth=settings.max_depth,
            max_hooks=settings.max_hooks,
            hide_host_elements=settings.hide_host_elements,
        )
        self.navigation = SourceNavigationHandler(
            editor=settings.launch_editor,
            project_root=settings.project_root,
            launcher=EditorLauncher(EditorRegistry.for_editor(settings.launch_editor),
                                    probe_timeout=settings.editor_probe_timeout),
            resolver=SourceResolver(settings.search_dirs),
        )
        self.server = DevToolsServer(self.navigation, host=settings.host, port=settings.port)
        self.publisher = TreePublisher(self.hook, self.walker, self.server)

    @property
    def is_running(self) -> bool:
        return self.server.is_running

    async def start(self) -> bool:
        """
        Start the channel and begin publishing commits.

        Returns:
            False if the server could not start (e.g. port in use). The host
            keeps running either way.
        """
        try:
            await self.server.start()
        except OSError as e:
            logger.warning(f"Port {self.settings.port} is unavailable, DevTools disabled: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to start DevTools: {e}", exc_info=True)
            return False

        self.publisher.attach()
        return True

    async def stop(self) -> None:
        """Teardown: stop publishing, close all connections and release the port."""
        self.publisher.detach()
        await self.server.stop()
