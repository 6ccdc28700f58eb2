"""
Tests for the standalone host entry point: logging setup and hook acquisition.
"""

import logging
import types
from logging.handlers import RotatingFileHandler

import pytest

from fiberscope.config import DevToolsSettings
from fiberscope.fiber.global_hook import DevToolsHook, get_installed_hook
from fiberscope.main import acquire_hook, configure_logging


@pytest.fixture
def restore_root_logging():
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield root_logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


class TestConfigureLogging:

    def test_console_only(self, restore_root_logging, tmp_path):
        configure_logging(DevToolsSettings(log_level="debug", project_root=str(tmp_path)))

        assert restore_root_logging.level == logging.DEBUG
        assert [type(h) for h in restore_root_logging.handlers] == [logging.StreamHandler]

    def test_rotating_file(self, restore_root_logging, tmp_path):
        log_path = tmp_path / "logs" / "host.log"
        settings = DevToolsSettings(log_level="WARNING", log_to_file=True, log_file_path=str(log_path),
                                    log_max_lines_per_file=50, log_max_files=3, project_root=str(tmp_path))

        configure_logging(settings)

        file_handler = restore_root_logging.handlers[1]
        assert isinstance(file_handler, RotatingFileHandler)
        assert file_handler.maxBytes == 5000
        assert file_handler.backupCount == 2
        assert log_path.parent.is_dir()
        assert restore_root_logging.level == logging.WARNING


class TestAcquireHook:

    def test_installs_when_absent(self):
        target = types.SimpleNamespace()

        hook, owned = acquire_hook(target)

        assert owned is True
        assert get_installed_hook(target) is hook
        hook.uninstall()

    def test_reuses_hook_installed_by_runtime(self):
        """A hook the renderer installed first keeps its registered renderers."""
        target = types.SimpleNamespace()
        existing = DevToolsHook().install(target)
        renderer_id = existing.inject(object())

        hook, owned = acquire_hook(target)

        assert hook is existing
        assert owned is False
        assert renderer_id in hook.renderers
        existing.uninstall()
