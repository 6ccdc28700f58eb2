"""
DevTools HTTP Endpoint Handlers

Plain JSON views served next to the Socket.IO channel. Handy for checking a
running host with curl without connecting an inspector.
"""

import logging
import time
from typing import Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .server import DevToolsServer

logger = logging.getLogger(__name__)


class DevToolsEndpointHandlers:
    """Builds the payloads for the HTTP endpoints of a DevToolsServer."""

    def __init__(self, server: "DevToolsServer"):
        self.server = server

    async def handle_root(self) -> Dict[str, Any]:
        return {
            "service": "fiberscope",
            "channel": {"transport": "socket.io", "event": "message", "port": self.server.port},
            "endpoints": {
                "/health": "Server status and connected inspectors",
                "/tree": "Latest published component tree",
            },
        }

    async def handle_health(self) -> Dict[str, Any]:
        """Server status and connection registry summary."""
        server = self.server
        version = server.latest_version
        return {
            "status": "ok" if server.is_running else "stopped",
            "timestamp": time.time(),
            "uptime_seconds": time.time() - server.start_time if server.start_time else 0,
            "connected_clients": len(server.open_clients()),
            "connections_served": server.connections_served,
            "messages_processed": server.messages_processed,
            "generation": version.generation if version else 0,
            "editor": server.navigation.editor,
        }

    async def handle_tree(self) -> Dict[str, Any]:
        """Latest tree in the same shape as a COMPONENT_TREE message payload."""
        return self.server.tree_payload()
