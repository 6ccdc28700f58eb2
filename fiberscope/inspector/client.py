"""
DevTools Channel Client

Inspector side of the duplex channel. Connects to a DevToolsServer over
Socket.IO, dispatches inbound messages to registered callbacks, and
reconnects with linear backoff (``delay * attempt``) up to a capped number of
attempts. Past the cap the client stays disconnected until ``reconnect()``.

Component trees are applied monotonically: a COMPONENT_TREE whose version is
not newer than the last applied one is ignored, including after reconnects.
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import socketio

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

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY = 1.0
DEFAULT_REQUEST_TIMEOUT = 10.0

MessageCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class InspectorClient:
    """
    Connection to a running DevTools host.

    Usage:
        client = InspectorClient("http://localhost:8097")
        client.on(MessageType.COMPONENT_TREE, render_tree)
        await client.connect()
        await client.request_tree()
    """

    def __init__(self,
                 url: str = f"http://localhost:{DEFAULT_PORT}",
                 max_reconnect_attempts: int = DEFAULT_RECONNECT_ATTEMPTS,
                 reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.url = url
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.request_timeout = request_timeout

        self.sio = socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)
        self.state = ConnectionState.CLOSED
        self.reconnect_attempts = 0
        self.gave_up = False

        self.tree: List[Dict[str, Any]] = []
        self.selected_id: Optional[str] = None
        self.applied_version: Optional[SnapshotVersion] = None
        self.available_editors: List[str] = []
        self.current_editor: Optional[str] = None

        self._callbacks: Dict[str, List[MessageCallback]] = {}
        self._pending: Dict[str, asyncio.Future] = {}
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing = False

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on(SOCKET_EVENT, self._on_message)

    @classmethod
    def from_settings(cls, settings) -> "InspectorClient":
        """Client for the channel described by a DevToolsSettings instance."""
        return cls(url=f"http://{settings.host}:{settings.port}",
                   max_reconnect_attempts=settings.client_reconnect_attempts,
                   reconnect_delay=settings.client_reconnect_delay)

    # --- callbacks ---

    def on(self, message_type: Union[MessageType, str], callback: MessageCallback) -> None:
        """Register ``callback(data)`` for a message type. Callbacks may be coroutines."""
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        self._callbacks.setdefault(key, []).append(callback)

    # --- connection lifecycle ---

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def connect(self) -> bool:
        """
        Connect once.

        Returns:
            True if the connection opened. A failed first attempt starts the
            backoff cycle just like a dropped connection.
        """
        if self.state is not ConnectionState.CLOSED:
            return self.is_connected

        self._closing = False
        self.state = ConnectionState.CONNECTING
        try:
            await self.sio.connect(self.url, transports=["websocket"], wait_timeout=self.request_timeout)
            return True
        except Exception as e:
            logger.warning(f"Failed to connect to DevTools host at {self.url}: {e}")
            self.state = ConnectionState.CLOSED
            self._schedule_reconnect()
            return False

    async def disconnect(self):
        """Close the connection and stop retrying."""
        self._closing = True
        self._cancel_reconnect()
        try:
            if self.sio.connected:
                await self.sio.disconnect()
        except Exception as e:
            logger.debug(f"Error during disconnect: {e}")
        finally:
            self.state = ConnectionState.CLOSED
            self._fail_pending(ConnectionError("Disconnected"))

    async def reconnect(self) -> bool:
        """Manual reconnect trigger; resets the attempt counter."""
        self._cancel_reconnect()
        self.reconnect_attempts = 0
        self.gave_up = False
        if self.is_connected:
            return True
        self.state = ConnectionState.CLOSED
        return await self.connect()

    async def _on_connect(self):
        self.state = ConnectionState.OPEN
        self.reconnect_attempts = 0
        self.gave_up = False
        logger.info(f"Connected to DevTools host at {self.url}")
        try:
            await self.request_tree()
        except Exception as e:
            logger.warning(f"Initial tree request failed: {e}")

    async def _on_disconnect(self, reason: Any = None):
        self.state = ConnectionState.CLOSED
        self._fail_pending(ConnectionError("Connection closed"))
        logger.info(f"Disconnected from DevTools host at {self.url}")
        if not self._closing:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closing or (self._reconnect_task and not self._reconnect_task.done()):
            return
        if self.reconnect_attempts >= self.max_reconnect_attempts:
            self.gave_up = True
            logger.warning(f"Giving up on {self.url} after {self.reconnect_attempts} reconnect attempts")
            return
        self._reconnect_task = asyncio.ensure_future(self._reconnect_later())

    async def _reconnect_later(self):
        self.reconnect_attempts += 1
        delay = self.reconnect_delay * self.reconnect_attempts
        logger.info(f"Reconnecting to {self.url} in {delay:.1f}s "
                    f"(attempt {self.reconnect_attempts}/{self.max_reconnect_attempts})")
        await asyncio.sleep(delay)
        if self._closing or self.state is not ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CONNECTING
        try:
            await self.sio.connect(self.url, transports=["websocket"], wait_timeout=self.request_timeout)
        except Exception as e:
            logger.warning(f"Reconnect attempt {self.reconnect_attempts} failed: {e}")
            self.state = ConnectionState.CLOSED
            self._reconnect_task = None
            self._schedule_reconnect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_task and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None

    # --- outbound ---

    async def send(self, message_type: MessageType, data: Optional[Dict[str, Any]] = None,
                   request_id: Optional[str] = None) -> None:
        if not self.is_connected:
            raise ConnectionError("Not connected to DevTools host")
        await self.sio.emit(SOCKET_EVENT, make_message(message_type, data, request_id))

    async def request(self, message_type: MessageType, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a request and wait for the reply carrying the same id."""
        request_id = str(uuid.uuid4())
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self.send(message_type, data, request_id)
            return await asyncio.wait_for(future, timeout=self.request_timeout)
        finally:
            self._pending.pop(request_id, None)

    async def request_tree(self) -> None:
        await self.send(MessageType.GET_COMPONENT_TREE)

    async def select_component(self, component_id: str) -> None:
        await self.send(MessageType.SELECT_COMPONENT, {"componentId": component_id})

    async def open_source(self,
                          component: Optional[Dict[str, Any]] = None,
                          file: Optional[str] = None,
                          line: Optional[int] = None,
                          column: Optional[int] = None) -> Dict[str, Any]:
        """Ask the host to open a component or file; returns the OPEN_SOURCE_RESULT data."""
        if component is not None:
            data: Dict[str, Any] = {"component": component}
        elif file:
            data = {"file": file}
            if line is not None:
                data["line"] = line
            if column is not None:
                data["column"] = column
        else:
            raise ValueError("open_source needs a component or a file")
        reply = await self.request(MessageType.OPEN_SOURCE, data)
        return reply.get("data") or {}

    async def get_available_editors(self) -> Dict[str, Any]:
        reply = await self.request(MessageType.GET_AVAILABLE_EDITORS)
        return reply.get("data") or {}

    async def fetch_tree(self) -> List[Dict[str, Any]]:
        """Request the tree and wait for the reply; returns the applied tree."""
        await self.request(MessageType.GET_COMPONENT_TREE)
        return self.tree

    # --- inbound ---

    async def _on_message(self, payload: Any):
        try:
            message_type, data, request_id = parse_message(payload)
        except MalformedMessageError as e:
            logger.warning(f"Dropping malformed message from DevTools host: {e}")
            return

        if message_type == MessageType.COMPONENT_TREE.value:
            if not self.apply_tree(data):
                self._resolve_pending(request_id, {"type": message_type, "data": data})
                return
        elif message_type == MessageType.COMPONENT_SELECTED.value:
            self.selected_id = data.get("componentId")
        elif message_type == MessageType.AVAILABLE_EDITORS.value:
            self.available_editors = list(data.get("editors") or [])
            self.current_editor = data.get("current")
        elif message_type == MessageType.ERROR.value:
            logger.warning(f"DevTools host reported an error: {data.get('message')}")

        self._resolve_pending(request_id, {"type": message_type, "data": data})
        await self._dispatch(message_type, data)

    def apply_tree(self, data: Dict[str, Any]) -> bool:
        """
        Apply a COMPONENT_TREE payload if it is newer than the last applied one.

        Returns:
            True if applied, False if it was stale or unversioned and dropped.
        """
        version = SnapshotVersion.from_dict(data.get("version"))
        if version is None:
            logger.warning("Dropping COMPONENT_TREE without a version")
            return False
        if self.applied_version is not None and version <= self.applied_version:
            logger.debug(f"Ignoring stale tree generation {version.generation} "
                         f"(applied {self.applied_version.generation})")
            return False

        tree = data.get("tree")
        self.tree = list(tree) if isinstance(tree, list) else []
        self.selected_id = data.get("selectedId", self.selected_id)
        self.applied_version = version
        return True

    def _resolve_pending(self, request_id: Optional[str], message: Dict[str, Any]) -> None:
        if request_id is None:
            return
        future = self._pending.get(request_id)
        if future is not None and not future.done():
            future.set_result(message)

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def _dispatch(self, message_type: str, data: Dict[str, Any]) -> None:
        for callback in list(self._callbacks.get(message_type, [])):
            try:
                result = callback(data)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Callback for {message_type} failed: {e}", exc_info=True)
