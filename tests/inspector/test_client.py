"""
Tests for InspectorClient: monotonic tree application, request correlation
and reconnect backoff.
"""

import asyncio
from unittest.mock import MagicMock, AsyncMock, patch

import pytest

from fiberscope.inspector.client import InspectorClient
from fiberscope.inspector.protocol import ConnectionState, MessageType, SnapshotVersion


def _tree_message(epoch, generation, names=("App",), request_id=None):
    message = {
        "type": "COMPONENT_TREE",
        "data": {
            "tree": [{"id": f"{name}_{generation}", "name": name, "children": []} for name in names],
            "selectedId": None,
            "version": {"epoch": epoch, "generation": generation},
        },
    }
    if request_id is not None:
        message["id"] = request_id
    return message


@pytest.fixture
def client():
    client = InspectorClient("http://localhost:8097", max_reconnect_attempts=3, reconnect_delay=0.5,
                             request_timeout=0.2)
    client.sio.connect = AsyncMock()
    client.sio.emit = AsyncMock()
    return client


class TestTreeApplication:

    @pytest.mark.asyncio
    async def test_newer_trees_replace_older(self, client):
        await client._on_message(_tree_message(1.0, 1, ("App",)))
        await client._on_message(_tree_message(1.0, 2, ("App", "Modal")))

        assert [node["name"] for node in client.tree] == ["App", "Modal"]
        assert client.applied_version == SnapshotVersion(1.0, 2)

    @pytest.mark.asyncio
    async def test_stale_and_duplicate_trees_are_ignored(self, client):
        """A delayed delivery of an older generation never replaces a newer tree."""
        callback = MagicMock()
        client.on(MessageType.COMPONENT_TREE, callback)
        await client._on_message(_tree_message(1.0, 5, ("New",)))

        await client._on_message(_tree_message(1.0, 4, ("Old",)))
        await client._on_message(_tree_message(1.0, 5, ("Dup",)))

        assert [node["name"] for node in client.tree] == ["New"]
        assert callback.call_count == 1

    @pytest.mark.asyncio
    async def test_restarted_host_supersedes(self, client):
        """A restarted host starts a new epoch; its first tree wins over the old generation."""
        await client._on_message(_tree_message(1.0, 40))

        await client._on_message(_tree_message(2.0, 1, ("Fresh",)))

        assert client.tree[0]["name"] == "Fresh"
        assert client.applied_version == SnapshotVersion(2.0, 1)

    def test_unversioned_tree_is_dropped(self, client):
        assert client.apply_tree({"tree": [{"name": "App"}]}) is False
        assert client.tree == []

    @pytest.mark.asyncio
    async def test_monotonic_across_reconnect(self, client):
        """After a reconnect the replayed latest tree is not applied twice."""
        await client._on_message(_tree_message(1.0, 3))
        await client._on_disconnect()
        client._cancel_reconnect()

        await client._on_message(_tree_message(1.0, 3, ("Replay",)))

        assert client.tree[0]["name"] == "App"


class TestDispatch:

    @pytest.mark.asyncio
    async def test_sync_and_async_callbacks(self, client):
        seen = []

        async def async_callback(data):
            seen.append(("async", data["componentId"]))

        client.on(MessageType.COMPONENT_SELECTED, lambda data: seen.append(("sync", data["componentId"])))
        client.on("COMPONENT_SELECTED", async_callback)

        await client._on_message({"type": "COMPONENT_SELECTED", "data": {"componentId": "x"}})

        assert seen == [("sync", "x"), ("async", "x")]
        assert client.selected_id == "x"

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self, client):
        healthy = MagicMock()
        client.on(MessageType.AVAILABLE_EDITORS, MagicMock(side_effect=RuntimeError("bad")))
        client.on(MessageType.AVAILABLE_EDITORS, healthy)

        await client._on_message({"type": "AVAILABLE_EDITORS", "data": {"editors": ["vim"], "current": "vim"}})

        healthy.assert_called_once()
        assert client.available_editors == ["vim"]
        assert client.current_editor == "vim"

    @pytest.mark.asyncio
    async def test_malformed_messages_are_dropped(self, client):
        callback = MagicMock()
        client.on("COMPONENT_TREE", callback)

        await client._on_message("garbage")

        callback.assert_not_called()


class TestRequests:

    @pytest.mark.asyncio
    async def test_send_requires_connection(self, client):
        with pytest.raises(ConnectionError):
            await client.select_component("x")

    @pytest.mark.asyncio
    async def test_request_reply_correlation(self, client):
        client.state = ConnectionState.OPEN

        async def reply(event, message):
            await client._on_message({"type": "OPEN_SOURCE_RESULT", "id": message["id"],
                                      "data": {"success": True, "message": "Opened /p/a.ts"}})

        client.sio.emit.side_effect = reply

        result = await client.open_source(file="a.ts", line=3)

        assert result == {"success": True, "message": "Opened /p/a.ts"}
        sent = client.sio.emit.call_args[0][1]
        assert sent["type"] == "OPEN_SOURCE"
        assert sent["data"] == {"file": "a.ts", "line": 3}
        assert client._pending == {}

    @pytest.mark.asyncio
    async def test_fetch_tree_resolves_on_stale_reply(self, client):
        """A tree reply that is not newer still completes the request."""
        client.state = ConnectionState.OPEN
        client.apply_tree(_tree_message(1.0, 2)["data"])

        async def reply(event, message):
            await client._on_message(_tree_message(1.0, 2, ("Same",), request_id=message["id"]))

        client.sio.emit.side_effect = reply

        tree = await client.fetch_tree()

        assert tree[0]["name"] == "App"

    @pytest.mark.asyncio
    async def test_request_timeout(self, client):
        client.state = ConnectionState.OPEN

        with pytest.raises(asyncio.TimeoutError):
            await client.get_available_editors()
        assert client._pending == {}

    @pytest.mark.asyncio
    async def test_disconnect_fails_pending_requests(self, client):
        client.state = ConnectionState.OPEN
        client.request_timeout = 5.0

        pending = asyncio.ensure_future(client.get_available_editors())
        await asyncio.sleep(0.01)
        await client._on_disconnect()
        client._cancel_reconnect()

        with pytest.raises(ConnectionError):
            await pending

    @pytest.mark.asyncio
    async def test_open_source_needs_target(self, client):
        client.state = ConnectionState.OPEN

        with pytest.raises(ValueError):
            await client.open_source()


class TestReconnect:

    def test_from_settings(self, tmp_path):
        from fiberscope.config import DevToolsSettings

        settings = DevToolsSettings(host="127.0.0.1", port=9100, client_reconnect_attempts=2,
                                    client_reconnect_delay=0.25, project_root=str(tmp_path))
        client = InspectorClient.from_settings(settings)

        assert client.url == "http://127.0.0.1:9100"
        assert client.max_reconnect_attempts == 2
        assert client.reconnect_delay == 0.25

    @pytest.mark.asyncio
    async def test_on_connect_requests_tree(self, client):
        await client._on_connect()

        assert client.is_connected
        assert client.sio.emit.call_args[0][1] == {"type": "GET_COMPONENT_TREE"}

    @pytest.mark.asyncio
    async def test_linear_backoff_then_give_up(self, client):
        """Attempt N waits N * delay; after the cap the client stops retrying."""
        client.sio.connect.side_effect = OSError("connection refused")

        with patch("fiberscope.inspector.client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await client.connect() is False
            for _ in range(10):
                task = client._reconnect_task
                if task is None:
                    break
                await task

        assert [c[0][0] for c in sleep.await_args_list] == [0.5, 1.0, 1.5]
        assert client.sio.connect.await_count == 4
        assert client.gave_up is True
        assert client.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_manual_reconnect_resets_counter(self, client):
        client.reconnect_attempts = 3
        client.gave_up = True

        assert await client.reconnect() is True

        assert client.reconnect_attempts == 0
        assert client.gave_up is False
        client.sio.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dropped_connection_schedules_reconnect(self, client):
        client.state = ConnectionState.OPEN

        with patch("fiberscope.inspector.client.asyncio.sleep", new_callable=AsyncMock):
            await client._on_disconnect("transport close")
            await client._reconnect_task

        assert client.reconnect_attempts == 1
        client.sio.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_explicit_disconnect_does_not_reconnect(self, client):
        client.state = ConnectionState.OPEN

        await client.disconnect()
        await client._on_disconnect()

        assert client._reconnect_task is None
        assert client.state is ConnectionState.CLOSED
