"""
DevTools Channel Server

Host side of the duplex channel. Inspectors connect over Socket.IO (served by
an aiohttp application); the server keeps a registry of connections, answers
requests to the requesting connection and broadcasts tree and selection
events to every open connection.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import socketio
from aiohttp import web
from aiohttp.web import Application, Request, Response

from fiberscope.fiber.types import ComponentSnapshot, find_component_by_id
from fiberscope.navigation.handler import SourceNavigationHandler
from fiberscope.observability import get_tracer

from .endpoint_handlers import DevToolsEndpointHandlers
from .protocol import (
    SOCKET_EVENT,
    DEFAULT_PORT,
    ConnectionState,
    MalformedMessageError,
    MessageType,
    SnapshotVersion,
    make_message,
    parse_message,
)

tracer = get_tracer(__name__)

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, Dict[str, Any], Optional[str]], Awaitable[None]]


@dataclass
class ClientHandle:
    """One inspector connection. Owned by exactly one server."""
    sid: str
    remote_addr: str = "unknown"
    state: ConnectionState = ConnectionState.CONNECTING
    connected_at: float = field(default_factory=time.time)
    messages_received: int = 0


class DevToolsServer:
    """
    Socket.IO server carrying the DevTools protocol.

    Thread model: everything except ``publish_tree`` runs on the server's
    event loop. ``publish_tree`` may be called from the host runtime's thread;
    it stores the tree and schedules the broadcast without waiting for it.
    """

    def __init__(self, navigation: SourceNavigationHandler, host: str = "localhost", port: int = DEFAULT_PORT):
        """
        Args:
            navigation: Handler used for OPEN_SOURCE and editor detection.
            host: Interface to bind.
            port: TCP port to listen on (0 picks a free port).
        """
        self.navigation = navigation
        self.host = host
        self.port = port

        self.sio = socketio.AsyncServer(async_mode="aiohttp", cors_allowed_origins="*",
                                        logger=False, engineio_logger=False)
        self.app: Optional[Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self.endpoints = DevToolsEndpointHandlers(self)

        self.clients: Dict[str, ClientHandle] = {}
        self.is_running = False
        self.start_time: Optional[float] = None
        self.connections_served = 0
        self.messages_processed = 0

        self.epoch = time.time()
        self.selected_id: Optional[str] = None
        self._generation = 0
        self._latest_tree: List[ComponentSnapshot] = []
        self._latest_payload: List[Dict[str, Any]] = []
        self._latest_version: Optional[SnapshotVersion] = None
        self._tree_lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self._handlers: Dict[str, MessageHandler] = {
            MessageType.GET_COMPONENT_TREE.value: self._handle_get_component_tree,
            MessageType.SELECT_COMPONENT.value: self._handle_select_component,
            MessageType.OPEN_SOURCE.value: self._handle_open_source,
            MessageType.GET_AVAILABLE_EDITORS.value: self._handle_get_available_editors,
        }

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on(SOCKET_EVENT, self._on_message)

    # --- lifecycle ---

    def create_app(self) -> Application:
        """Create the aiohttp application with the Socket.IO endpoint and JSON routes."""
        app = web.Application()
        self.sio.attach(app)
        app.router.add_get('/', self.handle_root)
        app.router.add_get('/health', self.handle_health)
        app.router.add_get('/tree', self.handle_tree)
        return app

    async def start(self):
        """Start listening. Raises if the port cannot be bound."""
        if self.is_running:
            logger.warning("DevTools server is already running")
            return

        try:
            self.app = self.create_app()
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            self.site = web.TCPSite(self.runner, self.host, self.port)
            await self.site.start()
            if self.port == 0 and self.runner.addresses:
                self.port = self.runner.addresses[0][1]

            self._loop = asyncio.get_running_loop()
            self.start_time = time.time()
            self.is_running = True
            logger.info(f"DevTools server running on ws://{self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to start DevTools server on port {self.port}: {e}", exc_info=True)
            if self.runner:
                await self.runner.cleanup()
            self.runner = None
            self.site = None
            raise

    async def stop(self):
        """Close every connection and release the port."""
        if not self.is_running and self.runner is None:
            return

        logger.info("Stopping DevTools server...")
        self.is_running = False

        for sid in list(self.clients):
            try:
                await self.sio.disconnect(sid)
            except Exception as e:
                logger.debug(f"Error closing connection {sid}: {e}")
            self._deregister(sid)
        self.clients.clear()

        try:
            if self.runner:
                await self.runner.cleanup()
        except Exception as e:
            logger.error(f"Error stopping DevTools server: {e}", exc_info=True)
        finally:
            self.runner = None
            self.site = None
            self._loop = None
        logger.info("DevTools server stopped")

    # --- connection registry ---

    async def _on_connect(self, sid: str, environ: Dict[str, Any], auth: Any = None):
        handle = ClientHandle(sid=sid, remote_addr=environ.get("REMOTE_ADDR", "unknown") if environ else "unknown")
        self.clients[sid] = handle
        self.connections_served += 1
        handle.state = ConnectionState.OPEN
        logger.info(f"DevTools inspector connected: {sid} ({handle.remote_addr})")

    async def _on_disconnect(self, sid: str, reason: Any = None):
        self._deregister(sid)
        logger.info(f"DevTools inspector disconnected: {sid}")

    def _deregister(self, sid: str) -> None:
        handle = self.clients.pop(sid, None)
        if handle is not None:
            handle.state = ConnectionState.CLOSED

    def open_clients(self) -> List[ClientHandle]:
        return [handle for handle in self.clients.values() if handle.state is ConnectionState.OPEN]

    # --- delivery ---

    async def send(self, sid: str, message: Dict[str, Any]) -> bool:
        """Unicast ``message`` to one connection. A failed send deregisters it."""
        try:
            await self.sio.emit(SOCKET_EVENT, message, to=sid)
            return True
        except Exception as e:
            logger.warning(f"Failed to send {message.get('type')} to {sid}: {e}")
            self._deregister(sid)
            return False

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send ``message`` to every open connection; returns how many got it."""
        targets = self.open_clients()
        if not targets:
            return 0
        results = await asyncio.gather(*(self.send(handle.sid, message) for handle in targets))
        return sum(1 for ok in results if ok)

    # --- tree publication ---

    @property
    def latest_version(self) -> Optional[SnapshotVersion]:
        return self._latest_version

    @property
    def latest_tree(self) -> List[ComponentSnapshot]:
        return self._latest_tree

    def publish_tree(self, tree: List[ComponentSnapshot]) -> SnapshotVersion:
        """
        Store a freshly extracted tree and schedule its broadcast.

        Safe to call from any thread; never blocks on delivery.
        """
        payload = [node.to_dict() for node in tree]
        with self._tree_lock:
            self._generation += 1
            version = SnapshotVersion(epoch=self.epoch, generation=self._generation)
            self._latest_tree = tree
            self._latest_payload = payload
            self._latest_version = version

        loop = self._loop
        if self.is_running and loop is not None and not loop.is_closed():
            asyncio.run_coroutine_threadsafe(self._broadcast_latest_tree(), loop)
        return version

    def tree_payload(self) -> Dict[str, Any]:
        with self._tree_lock:
            version = self._latest_version or SnapshotVersion(epoch=self.epoch, generation=0)
            return {
                "tree": self._latest_payload,
                "selectedId": self.selected_id,
                "version": version.to_dict(),
            }

    async def _broadcast_latest_tree(self):
        try:
            await self.broadcast(make_message(MessageType.COMPONENT_TREE, self.tree_payload()))
        except Exception as e:
            logger.error(f"Failed to broadcast component tree: {e}", exc_info=True)

    # --- inbound messages ---

    async def _on_message(self, sid: str, payload: Any):
        handle = self.clients.get(sid)
        if handle is None or handle.state is not ConnectionState.OPEN:
            logger.debug(f"Ignoring message from unregistered connection {sid}")
            return

        try:
            message_type, data, request_id = parse_message(payload)
        except MalformedMessageError as e:
            logger.warning(f"Dropping malformed DevTools message from {sid}: {e}")
            return

        handle.messages_received += 1
        handler = self._handlers.get(message_type)
        if handler is None:
            logger.warning(f"Unknown DevTools message type: {message_type}")
            await self.send(sid, make_message(MessageType.ERROR, {
                "message": f"Unsupported message type: {message_type}",
                "requestType": message_type,
            }, request_id))
            return

        with tracer.start_as_current_span("devtools.handle_message") as span:
            span.set_attribute("devtools.message_type", message_type)
            try:
                await handler(sid, data, request_id)
                self.messages_processed += 1
            except Exception as e:
                logger.error(f"Error handling {message_type} from {sid}: {e}", exc_info=True)
                await self.send(sid, make_message(MessageType.ERROR, {
                    "message": f"Failed to handle {message_type}: {e}",
                    "requestType": message_type,
                }, request_id))

    async def _handle_get_component_tree(self, sid: str, data: Dict[str, Any], request_id: Optional[str]):
        await self.send(sid, make_message(MessageType.COMPONENT_TREE, self.tree_payload(), request_id))

    async def _handle_select_component(self, sid: str, data: Dict[str, Any], request_id: Optional[str]):
        component_id = data.get("componentId")
        if not isinstance(component_id, str) or not component_id:
            raise ValueError("SELECT_COMPONENT requires a 'componentId'")
        self.selected_id = component_id
        await self.broadcast(make_message(MessageType.COMPONENT_SELECTED, {"componentId": component_id}))

    async def _handle_open_source(self, sid: str, data: Dict[str, Any], request_id: Optional[str]):
        loop = asyncio.get_running_loop()
        component = data.get("component")
        if isinstance(component, dict):
            target = self._lookup_component(component)
            result = await loop.run_in_executor(None, self.navigation.open_component, target)
        elif isinstance(data.get("file"), str) and data["file"]:
            result = await loop.run_in_executor(None, self.navigation.open_location, data["file"],
                                                _optional_int(data.get("line")), _optional_int(data.get("column")))
        else:
            raise ValueError("OPEN_SOURCE requires a 'component' or a 'file'")

        await self.send(sid, make_message(MessageType.OPEN_SOURCE_RESULT, result.to_dict(), request_id))

    async def _handle_get_available_editors(self, sid: str, data: Dict[str, Any], request_id: Optional[str]):
        try:
            editors = await self.navigation.launcher.detect_available()
        except Exception as e:
            logger.error(f"Failed to detect editors: {e}", exc_info=True)
            editors = []
        await self.send(sid, make_message(MessageType.AVAILABLE_EDITORS,
                                          {"editors": editors, "current": self.navigation.editor}, request_id))

    def _lookup_component(self, component: Dict[str, Any]) -> ComponentSnapshot:
        """Prefer the server's own snapshot (it carries authoritative source) over the inspector's copy."""
        component_id = component.get("id")
        if isinstance(component_id, str):
            found = find_component_by_id(self._latest_tree, component_id)
            if found is not None:
                return found
        return ComponentSnapshot.from_dict(component)

    # --- HTTP ---

    def _json_response(self, data: Any, status: int = 200) -> Response:
        return web.json_response(data, status=status, headers={'Access-Control-Allow-Origin': '*'})

    async def handle_root(self, request: Request) -> Response:
        return self._json_response(await self.endpoints.handle_root())

    async def handle_health(self, request: Request) -> Response:
        return self._json_response(await self.endpoints.handle_health())

    async def handle_tree(self, request: Request) -> Response:
        return self._json_response(await self.endpoints.handle_tree())


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
