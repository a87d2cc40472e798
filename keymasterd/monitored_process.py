"""
Keymasterd - Monitored Process Base Class

Common lifecycle for long-running processes: signal-driven shutdown and a
start / run-loop / cleanup skeleton.
"""

import signal
import time
from abc import ABC, abstractmethod
from types import FrameType
from typing import Optional

from .managers.app_manager import AppManager


class MonitoredProcess(ABC):
  """Base class for processes that run a loop until told to stop."""

  def __init__(self, process_name: str):
    """
    Initialize monitored process.

    Args:
        process_name: Name of the process (used for the log file and logger)
    """
    self.process_name = process_name.lower()
    self.running = False

    self.app = AppManager(log_file=f"{self.process_name}.log")
    self.logger = self.app.get_logger(self.process_name, self.process_name)

    self._setup_signal_handlers()

  def _setup_signal_handlers(self) -> None:
    """Set up signal handlers for graceful shutdown."""

    def signal_handler(signum: int, frame: Optional[FrameType]) -> None:
      self.logger.info(f"Received signal {signum}, shutting down gracefully...")
      self.running = False

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

  def start(
    self,
    sleep: float = 0.0,
  ) -> None:
    """Start the monitored process - calls _run() in a loop with setup/cleanup around it."""
    try:
      self.running = True
      self.logger.info(f"{self.process_name} starting...")

      self._initialize()
      self._run_loop(sleep)

    except Exception as e:
      self.logger.error(f"Fatal error in {self.process_name}: {e}", exc_info=True)
      raise
    finally:
      self._cleanup()

  def stop(self) -> None:
    """Stop the process gracefully."""
    self.logger.info(f"Stopping {self.process_name}...")
    self.running = False

  def _cleanup(self) -> None:
    """Base cleanup - subclasses should override and call super()._cleanup()."""
    self.logger.info(f"{self.process_name} cleanup completed")

  @abstractmethod
  def _initialize(self) -> None:
    """Process-specific initialization - called before the main loop."""
    raise NotImplementedError("This method should be implemented in subclasses to run code outside the main loop.")

  @abstractmethod
  def _run(self) -> None:
    """Main process loop inner code - must be implemented by subclasses."""
    raise NotImplementedError("This method should be implemented in subclasses to run code inside the main loop.")

  def _run_loop(self, sleep: float) -> None:
    while self.running:
      self._run()
      if sleep:
        time.sleep(sleep)
