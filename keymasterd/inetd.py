"""
Keymasterd - inetd Handler

One request per process, for launchd socket activation (inetdCompatibility)
or any inetd-style supervisor: the connection is already attached to stdin
and stdout. Configuration comes from the environment only.
"""

import os
import sys
import time
from typing import BinaryIO, Optional

from .core.http import HEADER_TERMINATOR, encode_response, render_outcome
from .core.outcomes import BadRequest, InternalError
from .core.pipeline import KeymasterPipeline
from .managers.app_manager import AppManager
from .managers.config import KeymasterConfig

READ_CHUNK = 4096
POLL_INTERVAL = 0.1  # 100ms between empty reads
READ_CEILING = 5.0  # total seconds allowed to assemble the request head
MAX_HEAD_BYTES = 16 * 1024


def read_request(
  fd: int,
  ceiling: float = READ_CEILING,
  poll_interval: float = POLL_INTERVAL,
) -> Optional[bytes]:
  """
  Assemble a request head from a non-blocking descriptor.

  Args:
      fd: Input file descriptor (stdin under inetd)
      ceiling: Overall wait limit in seconds, however slowly data arrives
      poll_interval: Sleep between reads that found no data

  Returns:
      The bytes read, ending with the header terminator, or None on
      end-of-stream, oversized input or when the ceiling is exceeded.
  """
  os.set_blocking(fd, False)
  deadline = time.monotonic() + ceiling
  data = bytearray()

  try:
    while time.monotonic() < deadline:
      try:
        chunk = os.read(fd, READ_CHUNK)
      except BlockingIOError:
        time.sleep(poll_interval)
        continue

      if not chunk:
        return None
      data.extend(chunk)
      if HEADER_TERMINATOR in data:
        return bytes(data)
      if len(data) > MAX_HEAD_BYTES:
        return None

    return None
  finally:
    # The descriptor is shared with the parent supervisor.
    os.set_blocking(fd, True)


class OneShotHandler:
  """Reads one request, answers it, and returns. No loop."""

  def __init__(self, app: AppManager, stdin_fd: int, stdout: BinaryIO) -> None:
    self.app = app
    self.stdin_fd = stdin_fd
    self.stdout = stdout
    self.logger = app.get_logger("inetd", "inetd")

  def _build_pipeline(self) -> KeymasterPipeline:
    # Single-threaded: the challenge runs inline on this thread. The authenticator
    # is resolved on the first key request, so /health never depends on it.
    return KeymasterPipeline(
      self.app.config,
      self.app.authenticate,
      self.app.secret_store,
      self.app.log_manager,
    )

  def _respond(self) -> bytes:
    raw = read_request(self.stdin_fd)
    if raw is None:
      self.logger.warning("No complete request received before end-of-stream or timeout")
      return encode_response(render_outcome(BadRequest("No request received"), self.app.config.realm))

    try:
      pipeline = self._build_pipeline()
    except Exception as e:
      self.logger.error(f"Failed to initialize request pipeline: {e}", exc_info=True)
      return encode_response(render_outcome(InternalError(), self.app.config.realm))

    return pipeline.process(raw)

  def run(self) -> None:
    response = self._respond()
    self.stdout.write(response)
    self.stdout.flush()


def main() -> None:
  """Main entry point for the inetd handler."""
  # Never listens, so the bind address and port are not read.
  app = AppManager(config=KeymasterConfig.from_environment(listener=False), log_file="keymasterd-inetd.log")

  OneShotHandler(app, sys.stdin.fileno(), sys.stdout.buffer).run()


if __name__ == "__main__":
  main()
