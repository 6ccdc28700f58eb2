import logging
import os
from typing import List
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

from fiberscope.fiber.walker import MAX_WALK_DEPTH

logger = logging.getLogger(__name__)

# Environment variable prefix
ENV_PREFIX = "FIBERSCOPE_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DevToolsSettings(BaseSettings):
    """Configuration settings loaded from environment variables and .env."""

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    log_format: str = Field(default='%(asctime)s - %(name)s - %(levelname)s - %(message)s', description="Logging format string")
    log_to_file: bool = Field(default=False, description="Enable logging to file with rotation")
    log_file_path: str = Field(default="logs/fiberscope.log", description="Path to the log file (directory will be created)")
    log_max_lines_per_file: int = Field(default=5000, description="Maximum lines per log file before rotation")
    log_max_files: int = Field(default=10, description="Maximum number of log files to keep")

    # Channel Settings
    host: str = Field(default="localhost", description="Interface the DevTools channel binds to")
    port: int = Field(default=8097, ge=0, le=65535, description="TCP port of the DevTools channel")
    client_reconnect_attempts: int = Field(default=5, ge=0, description="Reconnect attempts before an inspector client gives up")
    client_reconnect_delay: float = Field(default=1.0, gt=0, description="Base delay in seconds; attempt N waits N times this")

    # Source Navigation Settings
    launch_editor: str = Field(default="code", description="Editor key (code, idea, vim, ...) or a custom editor command")
    project_root: str = Field(default_factory=os.getcwd, description="Absolute path of the inspected project")
    search_dirs: List[str] = Field(default_factory=lambda: ["src", "app", "components"],
                                   description="Directories searched for component files, in priority order (JSON list in env)")
    editor_probe_timeout: float = Field(default=3.0, gt=0, description="Timeout in seconds for each editor version probe")

    # Extraction Settings
    max_depth: int = Field(default=30, ge=1, le=MAX_WALK_DEPTH, description="Maximum depth of the component graph walk")
    max_hooks: int = Field(default=50, ge=0, description="Maximum hooks decoded per component")
    hide_host_elements: bool = Field(default=False, description="Leave host elements (div, span, ...) out of snapshots")

    # Observability
    tracing_enabled: bool = Field(default=False, description="Export OpenTelemetry traces and logs over OTLP")

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_prefix=ENV_PREFIX,
        extra='ignore',
        case_sensitive=False
    )

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value

    @field_validator("project_root")
    @classmethod
    def _absolute_project_root(cls, value: str) -> str:
        return os.path.abspath(os.path.expanduser(value))

    @field_validator("launch_editor")
    @classmethod
    def _non_empty_editor(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("launch_editor must not be empty")
        return value


# Helper function to load settings
def load_settings(**overrides) -> DevToolsSettings:
    logger.info(f"Loading fiberscope configuration from .env file and environment variables (prefix: '{ENV_PREFIX}')...")
    try:
        env_loaded = load_dotenv('.env', override=False)
        logger.debug(f"Manual .env loading result: {env_loaded}")
    except Exception as e:
        logger.warning(f"Failed to manually load .env file: {e}")

    configured = sorted(key for key in os.environ if key.startswith(ENV_PREFIX))
    if configured:
        logger.debug(f"Found {ENV_PREFIX} environment variables: {configured}")

    settings = DevToolsSettings(**overrides)
    logger.info(f"Configuration loaded: port={settings.port}, editor={settings.launch_editor}, "
                f"project_root={settings.project_root}")
    return settings
