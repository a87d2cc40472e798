"""
Keymasterd - Logging Configuration

Centralized logging for the daemon, the inetd handler and the CLI.
Provides rotating file logging with component identification, falling back to
stderr when the log directory cannot be written.
"""

import logging
import logging.handlers
import os
import sys
from collections.abc import MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


@dataclass
class KeymasterLoggerConfig:
  """Logger settings."""

  log_dir: str
  log_level: str
  log_file: str

  def __post_init__(self) -> None:
    """Initialize from environment variables after dataclass creation."""
    self.log_dir = os.getenv("KEYMASTERD_LOG_DIR", self.log_dir)
    self.log_level = os.getenv("KEYMASTERD_LOG_LEVEL", self.log_level)


class ComponentLoggerAdapter(logging.LoggerAdapter):
  """
  Logger adapter that adds component information to log records.

  This allows us to identify which part of the pipeline generated each message.
  """

  def __init__(self, logger: logging.Logger, component: str) -> None:
    """
    Initialize the adapter with a component name.

    Args:
        logger: The underlying logger instance
        component: Component identifier (e.g., 'http', 'auth_gate', 'daemon')
    """
    super().__init__(logger, {"component": component})
    self.component = component

  def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
    """Process the log record to include component information."""
    if "extra" not in kwargs:
      kwargs["extra"] = {}
    kwargs["extra"]["component"] = self.component
    return msg, kwargs


class KeymasterLogger:
  """
  Centralized logging manager for Keymasterd.

  Handles setup, configuration, and creation of component-aware loggers.
  """

  DEFAULT_LOG_DIR = str(Path.home() / "Library" / "Logs" / "keymasterd")
  DEFAULT_LOG_FILE = "keymasterd.log"
  DEFAULT_LOG_LEVEL = "INFO"
  DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
  DEFAULT_BACKUP_COUNT = 5

  LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(component)s] - %(message)s"
  DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

  def __init__(
    self,
    log_file: Optional[str] = None,
    console_output: bool = False,
  ):
    """
    Initialize the logging manager.

    Args:
        log_file: File name inside the log directory (default: keymasterd.log)
        console_output: Whether to also write to stderr
    """
    config = KeymasterLoggerConfig(
      log_dir=self.DEFAULT_LOG_DIR,
      log_level=self.DEFAULT_LOG_LEVEL,
      log_file=log_file or self.DEFAULT_LOG_FILE,
    )
    self.log_level = config.log_level
    self.log_dir = config.log_dir
    self.log_file = config.log_file
    self.console_output = console_output
    self._base_logger: Optional[logging.Logger] = None
    self._logger_cache: dict[str, ComponentLoggerAdapter] = {}

    self._setup_logging()

  def _setup_logging(self) -> None:
    """Set up the base logging configuration."""
    level = getattr(logging, self.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(self.LOG_FORMAT, self.DATE_FORMAT)

    self._base_logger = logging.getLogger("keymasterd")
    self._base_logger.setLevel(level)

    # Clear existing handlers to avoid duplicates
    self._base_logger.handlers.clear()

    try:
      Path(self.log_dir).mkdir(parents=True, exist_ok=True, mode=0o755)

      file_handler = logging.handlers.RotatingFileHandler(
        self.log_file_path,
        maxBytes=self.DEFAULT_MAX_BYTES,
        backupCount=self.DEFAULT_BACKUP_COUNT,
        mode="a",
      )
      file_handler.setLevel(level)
      file_handler.setFormatter(formatter)
      self._base_logger.addHandler(file_handler)
    except (PermissionError, OSError) as e:
      print(f"Error setting up file logging: {e}", file=sys.stderr)
      self.console_output = True

    # stderr only: the inetd handler owns stdout
    if self.console_output:
      console_handler = logging.StreamHandler(sys.stderr)
      console_handler.setLevel(level)
      console_handler.setFormatter(formatter)
      self._base_logger.addHandler(console_handler)

    self._base_logger.propagate = False

  def get_logger(self, name: Optional[str], component: Optional[str]) -> ComponentLoggerAdapter:
    """
    Get a logger instance with the specified name and component.

    Args:
        name: Logger name (prefixed with keymasterd if not already)
        component: Component identifier (default: 'system')

    Returns:
        ComponentLoggerAdapter instance
    """
    if not name:
      name = "keymasterd"
    if not component:
      component = "system"

    cache_key = f"{name}:{component}"
    if cache_key in self._logger_cache:
      return self._logger_cache[cache_key]

    logger_name = name if name == "keymasterd" or name.startswith("keymasterd.") else f"keymasterd.{name}"
    component_logger = ComponentLoggerAdapter(logging.getLogger(logger_name), component)

    self._logger_cache[cache_key] = component_logger
    return component_logger

  def set_log_level(self, log_level: str) -> None:
    """
    Change the log level for all handlers.

    Args:
        log_level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    if self._base_logger:
      self._base_logger.setLevel(level)
      for handler in self._base_logger.handlers:
        handler.setLevel(level)

    self.log_level = log_level.upper()

  @property
  def log_file_path(self) -> Path:
    """Get the current log file path."""
    return Path(self.log_dir) / self.log_file
