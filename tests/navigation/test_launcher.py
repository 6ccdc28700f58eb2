"""
Tests for EditorLauncher and SourceNavigationHandler.
"""

import asyncio
import os
import subprocess
from unittest.mock import MagicMock, AsyncMock, patch

import pytest

from fiberscope.fiber.types import ComponentKind, ComponentSnapshot, SourceLocation
from fiberscope.navigation.editors import EditorRegistry
from fiberscope.navigation.handler import SourceNavigationHandler
from fiberscope.navigation.launcher import EditorLauncher, LaunchError, LaunchResult, resolve_path


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "src" / "main.ts"
    path.parent.mkdir()
    path.write_text("console.log('hi');\n")
    return path


@pytest.fixture
def mock_popen():
    with patch("fiberscope.navigation.launcher.subprocess.Popen") as popen, \
            patch("fiberscope.navigation.launcher.shutil.which", return_value=None):
        yield popen


class TestEditorLauncher:

    def test_launch_spawns_detached_editor(self, mock_popen, source_file):
        """A successful launch spawns the editor with its argument grammar."""
        result = EditorLauncher().launch("code", str(source_file), 10, 5)

        assert result
        assert result.success is True
        assert result.file == str(source_file)
        mock_popen.assert_called_once()
        argv = mock_popen.call_args[0][0]
        assert argv == ["code", "--goto", f"{source_file}:10:5"]
        kwargs = mock_popen.call_args[1]
        assert kwargs["stdout"] is subprocess.DEVNULL
        assert kwargs.get("start_new_session") or kwargs.get("creationflags")

    def test_executable_found_on_path_is_used(self, mock_popen, source_file):
        """The profile's argument grammar is kept when PATH lookup finds the binary."""
        with patch("fiberscope.navigation.launcher.shutil.which", return_value="/usr/bin/code"):
            EditorLauncher().launch("code", str(source_file), 10)

        assert mock_popen.call_args[0][0] == ["/usr/bin/code", "--goto", f"{source_file}:10"]

    def test_vim_line_argument(self, mock_popen, source_file):
        EditorLauncher().launch("vim", str(source_file), 10)

        assert mock_popen.call_args[0][0] == ["vim", "+10", str(source_file)]

    def test_relative_path_uses_project_root(self, mock_popen, source_file, tmp_path):
        result = EditorLauncher().launch("sublime", os.path.join("src", "main.ts"), project_root=str(tmp_path))

        assert result.success
        assert mock_popen.call_args[0][0] == ["subl", str(source_file)]

    def test_unsupported_editor(self, mock_popen, source_file):
        result = EditorLauncher().launch("notepad", str(source_file))

        assert not result
        assert result.error is LaunchError.UNSUPPORTED_EDITOR
        mock_popen.assert_not_called()

    def test_missing_file(self, mock_popen, tmp_path):
        result = EditorLauncher().launch("code", str(tmp_path / "nope.ts"), 1)

        assert result.error is LaunchError.FILE_NOT_FOUND
        assert "File not found" in result.message
        mock_popen.assert_not_called()

    def test_spawn_failure(self, mock_popen, source_file):
        """An editor binary that cannot start is reported, not raised."""
        mock_popen.side_effect = FileNotFoundError("no such file: code")

        result = EditorLauncher().launch("code", str(source_file))

        assert result.error is LaunchError.SPAWN_FAILED
        assert result.to_dict()["error"] == "spawn_failed"

    def test_custom_editor(self, mock_popen, source_file):
        launcher = EditorLauncher(EditorRegistry.for_editor("nova"))

        launcher.launch("nova", str(source_file), 3, 1)

        assert mock_popen.call_args[0][0] == ["nova", f"{source_file}:3:1"]

    def test_result_to_dict(self):
        assert LaunchResult(success=True, message="ok").to_dict() == {"success": True, "message": "ok"}
        failure = LaunchResult.failure(LaunchError.FILE_NOT_FOUND, "missing", "/a.js")
        assert failure.to_dict() == {"success": False, "message": "missing", "error": "file_not_found", "file": "/a.js"}

    def test_resolve_path(self, tmp_path):
        assert resolve_path("a.js", str(tmp_path)) == os.path.join(str(tmp_path), "a.js")
        assert resolve_path(str(tmp_path / "b.js"), "/ignored") == str(tmp_path / "b.js")


def _process(return_code=0):
    process = MagicMock()
    process.wait = AsyncMock(return_value=return_code)
    return process


class TestDetectAvailable:

    @pytest.mark.asyncio
    async def test_reports_editors_with_successful_probe(self):
        """Only editors whose version probe exits 0 are reported, in registry order."""
        async def fake_exec(command, *args, **kwargs):
            if command == "code":
                return _process(0)
            if command == "vim":
                return _process(0)
            if command == "emacs":
                return _process(1)
            raise FileNotFoundError(command)

        with patch("fiberscope.navigation.launcher.asyncio.create_subprocess_exec", side_effect=fake_exec):
            available = await EditorLauncher().detect_available()

        assert available == ["code", "vim"]

    @pytest.mark.asyncio
    async def test_probe_timeout(self):
        """A probe that hangs is killed and counts as unavailable."""
        hanging = MagicMock()

        async def hang():
            await asyncio.sleep(10)

        hanging.wait = hang

        async def fake_exec(command, *args, **kwargs):
            if command == "code":
                return hanging
            if command == "subl":
                return _process(0)
            raise FileNotFoundError(command)

        with patch("fiberscope.navigation.launcher.asyncio.create_subprocess_exec", side_effect=fake_exec):
            available = await EditorLauncher(probe_timeout=0.05).detect_available()

        assert available == ["sublime"]
        hanging.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_probe_uses_version_flag(self):
        with patch("fiberscope.navigation.launcher.asyncio.create_subprocess_exec",
                   new_callable=AsyncMock, return_value=_process(0)) as fake_exec:
            available = await EditorLauncher(EditorRegistry.for_editor("nova")).detect_available()

        assert "nova" in available
        fake_exec.assert_any_call("nova", "--version", stdin=subprocess.DEVNULL,
                                  stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


class TestSourceNavigationHandler:

    def test_open_component_heuristic(self, mock_popen, tmp_path):
        """A heuristic match opens the file without a position."""
        target = tmp_path / "src" / "UserCard.tsx"
        target.parent.mkdir()
        target.write_text("")
        handler = SourceNavigationHandler("vim", str(tmp_path))

        result = handler.open_component({"name": "UserCard"})

        assert result.success
        assert mock_popen.call_args[0][0] == ["vim", str(target)]

    def test_open_component_authoritative(self, mock_popen, source_file, tmp_path):
        snapshot = ComponentSnapshot(id="a", name="Main", kind=ComponentKind.FUNCTION,
                                     source=SourceLocation(str(source_file), 7, 2))
        handler = SourceNavigationHandler("emacs", str(tmp_path))

        handler.open_component(snapshot)

        assert mock_popen.call_args[0][0] == ["emacs", "+7:2", str(source_file)]

    def test_open_component_unresolved(self, mock_popen, tmp_path):
        handler = SourceNavigationHandler("code", str(tmp_path))

        result = handler.open_component({"name": "Ghost"})

        assert result.error is LaunchError.SOURCE_UNAVAILABLE
        assert "Ghost" in result.message
        mock_popen.assert_not_called()

    def test_open_location_delegates(self, tmp_path):
        launcher = MagicMock()
        launcher.launch.return_value = LaunchResult(success=True, message="ok")
        handler = SourceNavigationHandler("idea", str(tmp_path), launcher=launcher)

        handler.open_location("src/a.ts", 4, 2)

        launcher.launch.assert_called_once_with("idea", "src/a.ts", 4, 2, str(tmp_path))
