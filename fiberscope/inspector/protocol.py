"""
DevTools Channel Protocol

Message taxonomy shared by the host-side server and the inspector client.
Every message travels on the Socket.IO event ``SOCKET_EVENT`` as
``{"type": ..., "data": ..., "id": ...}``.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional, Tuple

logger = logging.getLogger(__name__)

SOCKET_EVENT = "message"
DEFAULT_PORT = 8097


class MessageType(str, Enum):
    # inspector -> host
    GET_COMPONENT_TREE = "GET_COMPONENT_TREE"
    SELECT_COMPONENT = "SELECT_COMPONENT"
    OPEN_SOURCE = "OPEN_SOURCE"
    GET_AVAILABLE_EDITORS = "GET_AVAILABLE_EDITORS"
    # host -> inspector
    COMPONENT_TREE = "COMPONENT_TREE"
    COMPONENT_SELECTED = "COMPONENT_SELECTED"
    OPEN_SOURCE_RESULT = "OPEN_SOURCE_RESULT"
    AVAILABLE_EDITORS = "AVAILABLE_EDITORS"
    ERROR = "ERROR"


class ConnectionState(Enum):
    """Per-connection lifecycle. CLOSED is terminal for a connection instance."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class MalformedMessageError(ValueError):
    """Inbound payload could not be decoded into a protocol message."""


@dataclass(frozen=True, order=True)
class SnapshotVersion:
    """
    Ordering key for published trees.

    ``epoch`` identifies the server instance (its start time), ``generation``
    counts trees published by that instance. Tuples compare epoch first, so a
    restarted server's trees supersede the old ones.
    """
    epoch: float
    generation: int

    def to_dict(self) -> Dict[str, Any]:
        return {"epoch": self.epoch, "generation": self.generation}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SnapshotVersion"]:
        if not isinstance(data, dict):
            return None
        try:
            return cls(epoch=float(data["epoch"]), generation=int(data["generation"]))
        except (KeyError, TypeError, ValueError):
            return None


def make_message(message_type: MessageType, data: Optional[Dict[str, Any]] = None,
                 request_id: Optional[str] = None) -> Dict[str, Any]:
    """Build a wire message."""
    message: Dict[str, Any] = {"type": message_type.value}
    if data is not None:
        message["data"] = data
    if request_id is not None:
        message["id"] = request_id
    return message


def parse_message(payload: Any) -> Tuple[str, Dict[str, Any], Optional[str]]:
    """
    Decode an inbound payload.

    Accepts an already-decoded dict or a JSON string.

    Returns:
        (type, data, request id)

    Raises:
        MalformedMessageError: if the payload is not a typed message.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMessageError(f"Invalid encoding: {e}")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise MalformedMessageError(f"Invalid JSON: {e}")

    if not isinstance(payload, dict):
        raise MalformedMessageError(f"Expected an object, got {type(payload).__name__}")

    message_type = payload.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MalformedMessageError("Message has no 'type'")

    data = payload.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedMessageError(f"'data' of {message_type} must be an object")

    request_id = payload.get("id")
    return message_type, data, str(request_id) if request_id is not None else None
