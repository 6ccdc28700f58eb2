"""
Inspector Module

The duplex channel between the in-process extractor and external inspectors:
- DevToolsServer: host side (Socket.IO over aiohttp)
- InspectorClient: inspector side with reconnect and monotonic tree updates
- TreePublisher: commit -> snapshot -> broadcast bridge
"""

from .protocol import MessageType, ConnectionState, SnapshotVersion, make_message, parse_message
from .server import DevToolsServer, ClientHandle
from .client import InspectorClient
from .publisher import TreePublisher

__all__ = [
    'MessageType',
    'ConnectionState',
    'SnapshotVersion',
    'make_message',
    'parse_message',
    'DevToolsServer',
    'ClientHandle',
    'InspectorClient',
    'TreePublisher',
]
