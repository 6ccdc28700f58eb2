"""
Editor Launcher

Spawns an external editor at a file position and probes which editors are
installed. Launches are fire-and-forget: the editor runs detached, and
success means the spawn itself worked, not that the editor exited cleanly.
"""

import asyncio
import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .editors import EditorProfile, EditorRegistry, DEFAULT_EDITOR_REGISTRY

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 3.0


class LaunchError(Enum):
    """Distinct failure reasons reported back to the inspector."""
    FILE_NOT_FOUND = "file_not_found"
    UNSUPPORTED_EDITOR = "unsupported_editor"
    SPAWN_FAILED = "spawn_failed"
    SOURCE_UNAVAILABLE = "source_unavailable"


@dataclass
class LaunchResult:
    """Outcome of a launch. Truthy only when the editor was spawned."""
    success: bool
    message: str
    error: Optional[LaunchError] = None
    file: Optional[str] = None
    argv: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failure(cls, error: LaunchError, message: str, file: Optional[str] = None) -> "LaunchResult":
        return cls(success=False, message=message, error=error, file=file)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error is not None:
            data["error"] = self.error.value
        if self.file is not None:
            data["file"] = self.file
        return data


class EditorLauncher:
    """Launches editors described by an EditorRegistry."""

    def __init__(self, registry: EditorRegistry = DEFAULT_EDITOR_REGISTRY, probe_timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.registry = registry
        self.probe_timeout = probe_timeout

    def launch(self,
               editor_key: str,
               file: str,
               line: Optional[int] = None,
               column: Optional[int] = None,
               project_root: Optional[str] = None) -> LaunchResult:
        """
        Open ``file`` in the editor registered under ``editor_key``.

        Args:
            editor_key: Registry key of the editor profile.
            file: Path to open; relative paths are resolved against ``project_root``
                (or the current directory).
            line: Optional 1-based line.
            column: Optional 1-based column; ignored without a line.
            project_root: Base directory for relative paths.

        Returns:
            A LaunchResult. Failures are reported, never raised.
        """
        profile = self.registry.get(editor_key)
        if profile is None:
            logger.error(f"Unsupported editor: {editor_key}")
            return LaunchResult.failure(LaunchError.UNSUPPORTED_EDITOR, f"Unsupported editor: {editor_key}")

        resolved_file = resolve_path(file, project_root)
        if not os.path.exists(resolved_file):
            logger.error(f"File not found: {resolved_file}")
            return LaunchResult.failure(LaunchError.FILE_NOT_FOUND, f"File not found: {resolved_file}", resolved_file)

        argv = profile.build_command(resolved_file, line, column)
        argv[0] = shutil.which(profile.command) or profile.command
        try:
            _spawn_detached(argv)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to launch {profile.display_name}: {e}")
            return LaunchResult.failure(LaunchError.SPAWN_FAILED,
                                        f"Failed to launch {profile.display_name}: {e}", resolved_file)

        logger.info(f"Opened {resolved_file} in {profile.display_name}")
        return LaunchResult(success=True,
                            message=f"Opened {resolved_file} in {profile.display_name}",
                            file=resolved_file,
                            argv=argv)

    async def detect_available(self) -> List[str]:
        """
        Keys of the editors whose version probe exits with status 0 in time.

        All probes run concurrently, so the total wait is bounded by the
        slowest single probe. Failures and timeouts just mean "unavailable".
        """
        profiles = list(self.registry)
        results = await asyncio.gather(*(self._probe(profile) for profile in profiles))
        available = [profile.key for profile, ok in zip(profiles, results) if ok]
        logger.debug(f"Available editors: {available}")
        return available

    async def _probe(self, profile: EditorProfile) -> bool:
        try:
            process = await asyncio.create_subprocess_exec(
                profile.command, *profile.version_probe_args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except (OSError, ValueError) as e:
            logger.debug(f"Editor probe for '{profile.key}' could not start: {e}")
            return False

        try:
            return_code = await asyncio.wait_for(process.wait(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            logger.debug(f"Editor probe for '{profile.key}' timed out after {self.probe_timeout}s")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            return False

        return return_code == 0


def resolve_path(file: str, project_root: Optional[str] = None) -> str:
    """Absolute path of ``file``, relative paths being taken from ``project_root``."""
    path = os.path.expanduser(file)
    if not os.path.isabs(path) and project_root:
        path = os.path.join(project_root, path)
    return os.path.abspath(path)


def _spawn_detached(argv: List[str]) -> None:
    kwargs: Dict[str, Any] = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
    }
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True
    subprocess.Popen(argv, **kwargs)
