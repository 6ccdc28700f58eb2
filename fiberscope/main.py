"""
Main entry point for a standalone DevTools host.

Starts the DevTools channel around the DevToolsHook published on the
``fiberscope.fiber.global_hook`` module, installing a fresh one when no
in-process renderer has done so, and serves until SIGINT/SIGTERM.
"""

import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Tuple

from fiberscope import observability
from fiberscope.config import DevToolsSettings, load_settings
from fiberscope.devtools import DevTools
from fiberscope.fiber import global_hook
from fiberscope.fiber.global_hook import DevToolsHook, get_installed_hook

# Basic logging until we load configuration
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Rotation is configured in lines; RotatingFileHandler counts bytes.
BYTES_PER_LOG_LINE = 100


def configure_logging(settings: DevToolsSettings) -> None:
    """Replace the bootstrap handlers with the configured console and rotating file handlers."""
    level = getattr(logging, settings.log_level)
    formatter = logging.Formatter(settings.log_format)

    handlers = [logging.StreamHandler()]
    if settings.log_to_file:
        log_dir = os.path.dirname(settings.log_file_path)
        try:
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(RotatingFileHandler(
                filename=settings.log_file_path,
                maxBytes=settings.log_max_lines_per_file * BYTES_PER_LOG_LINE,
                backupCount=max(settings.log_max_files - 1, 0),
                encoding='utf-8'
            ))
        except OSError as e:
            logger.warning(f"File logging disabled, cannot open {settings.log_file_path}: {e}")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
    logger.info(f"Logging configured: level={settings.log_level}, file={'on' if len(handlers) > 1 else 'off'}")


def acquire_hook(target: Any) -> Tuple[DevToolsHook, bool]:
    """
    Return the hook published on ``target`` and whether this call installed it.

    A renderer loaded before the host may already have installed one; its
    registered renderers and roots are kept.
    """
    hook = get_installed_hook(target)
    if hook is not None:
        logger.info("Reusing the DevTools hook already installed by the host runtime")
        return hook, False
    return DevToolsHook().install(target), True


async def amain():
    """Asynchronous main entry point."""
    settings = load_settings()

    configure_logging(settings)
    if settings.tracing_enabled:
        observability.setup_tracing()

    hook, owns_hook = acquire_hook(global_hook)
    devtools = DevTools(settings, hook=hook)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops.
            pass

    try:
        if not await devtools.start():
            logger.error("DevTools could not start; exiting")
            return 1
        logger.info("DevTools host ready. Press Ctrl+C to stop.")
        await stop_event.wait()
        return 0
    finally:
        logger.info("DevTools host shutting down...")
        await devtools.stop()
        if owns_hook:
            hook.uninstall()
        logger.info("Shutdown sequence complete.")


def main():
    """Synchronous entry point."""
    try:
        sys.exit(asyncio.run(amain()))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received.")
    except Exception as e:
        logger.critical(f"Critical error during DevTools host execution: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
