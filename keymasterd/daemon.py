"""
Keymasterd - HTTP Daemon

Long-running server that owns the listening socket.
- Accepts connections indefinitely and serves each one on its own thread.
- Every connection carries exactly one request and is closed afterwards.
- User-presence challenges run on a dedicated prompt thread; only the
  connection waiting for a challenge blocks on it.
"""

import argparse
import enum
import socket
import sys
import threading
from typing import Any, Optional

from . import __version__
from .authenticators.base import PromptDispatcher
from .core.http import HEADER_TERMINATOR
from .core.outcomes import BadRequest
from .core.pipeline import KeymasterPipeline
from .managers.app_manager import AppManager
from .managers.config import ConfigError, KeymasterConfig
from .monitored_process import MonitoredProcess

ACCEPT_TIMEOUT = 1.0
READ_TIMEOUT = 10.0
MAX_HEAD_BYTES = 16 * 1024
LISTEN_BACKLOG = 10
SHUTDOWN_GRACE = 5.0


class TransportError(Exception):
  """Bind/listen failures. Fatal: the daemon never starts accepting."""

  pass


class DaemonState(enum.Enum):
  IDLE = "idle"
  LISTENING = "listening"
  STOPPED = "stopped"


def read_request_head(conn: socket.socket) -> bytes:
  """
  Read from conn until the blank line ending the headers.

  Stops early on end-of-stream, on the socket timeout or once MAX_HEAD_BYTES
  have arrived, returning whatever was read; the caller decides what to make
  of an incomplete head.
  """
  data = bytearray()
  while HEADER_TERMINATOR not in data and len(data) < MAX_HEAD_BYTES:
    try:
      chunk = conn.recv(4096)
    except socket.timeout:
      break
    if not chunk:
      break
    data.extend(chunk)
  return bytes(data)


class KeymasterDaemon(MonitoredProcess):
  """Concurrent HTTP front end for the keychain."""

  def __init__(self) -> None:
    super().__init__(process_name="keymasterd")
    self.config = self.app.config
    self.state = DaemonState.IDLE
    self.socket: Optional[socket.socket] = None
    self.dispatcher: Optional[PromptDispatcher] = None
    self.pipeline: Optional[KeymasterPipeline] = None
    self._handlers: list[threading.Thread] = []
    self._connection_count = 0

  def _build_pipeline(self) -> KeymasterPipeline:
    # The authenticator is resolved on the first challenge, not at startup.
    self.dispatcher = PromptDispatcher(self.app.authenticate)
    return KeymasterPipeline(
      self.config,
      self.dispatcher.authenticate,
      self.app.secret_store,
      self.app.log_manager,
    )

  def _setup_socket(self) -> None:
    """Create, bind and listen. Raises TransportError on failure."""
    host, port = self.config.host, self.config.port
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
      sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
      sock.bind((host, port))
      sock.listen(LISTEN_BACKLOG)
    except OSError as e:
      sock.close()
      raise TransportError(f"Failed to bind to {host}:{port}: {e}") from None

    # Periodic accept timeouts let the loop notice self.running going False.
    sock.settimeout(ACCEPT_TIMEOUT)
    self.socket = sock
    self.state = DaemonState.LISTENING

    self.logger.info(f"Keymasterd listening on http://{host}:{port}")
    if self.config.require_auth:
      self.logger.info("HTTP Basic Authentication: enabled")
    else:
      self.logger.info("HTTP Basic Authentication: disabled (no credentials configured)")

  def _initialize(self) -> None:
    """Build the pipeline, then bind. Nothing is accepted before both succeed."""
    if self.config.partial_credentials:
      self.logger.warning("Both username and KEYMASTERD_PASSWORD must be set for HTTP Basic Auth")
    self.pipeline = self._build_pipeline()
    self._setup_socket()

  def _handle_client(self, conn: socket.socket, addr: Any) -> None:
    """Serve exactly one request on conn, then close it."""
    try:
      if self.pipeline is None:
        self.logger.error("Pipeline is not initialized; dropping connection")
        return

      conn.settimeout(READ_TIMEOUT)
      raw = read_request_head(conn)

      if not raw:
        return
      if HEADER_TERMINATOR in raw:
        response = self.pipeline.process(raw)
      else:
        self.logger.warning(f"Incomplete request head from {addr}")
        response = self.pipeline.render(BadRequest("Incomplete request"))

      conn.sendall(response)
    except OSError as e:
      self.logger.warning(f"Connection error with {addr}: {e}")
    except Exception as e:
      self.logger.error(f"Error handling client connection: {e}", exc_info=True)
    finally:
      conn.close()

  def _dispatch(self, conn: socket.socket, addr: Any) -> None:
    self._connection_count += 1
    handler = threading.Thread(
      target=self._handle_client,
      args=(conn, addr),
      name=f"keymasterd-conn-{self._connection_count}",
      daemon=True,
    )
    handler.start()
    self._handlers = [t for t in self._handlers if t.is_alive()]
    self._handlers.append(handler)

  def _run(self) -> None:
    """Accept one connection (or time out) and hand it to a handler thread."""
    if not self.socket:
      self.logger.critical("Socket is not initialized. Cannot run.")
      raise TransportError("Socket is not initialized. Cannot run.")
    try:
      conn, addr = self.socket.accept()
    except socket.timeout:
      return
    except OSError as e:
      if self.running:
        self.logger.warning(f"Error in accept loop: {e}")
      return

    self.logger.debug(f"Accepted connection from {addr}")
    self._dispatch(conn, addr)

  def _cleanup(self) -> None:
    """Stop accepting; in-flight handlers finish on their own threads."""
    self.logger.info("Keymasterd cleaning up...")
    if self.socket:
      self.socket.close()
      self.socket = None

    pending = [t for t in self._handlers if t.is_alive()]
    if pending:
      self.logger.info(f"Waiting for {len(pending)} in-flight request(s)")
      for handler in pending:
        handler.join(SHUTDOWN_GRACE / len(pending))

    self.state = DaemonState.STOPPED
    super()._cleanup()


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="keymasterd",
    description="Keymasterd - HTTP daemon for Keychain access guarded by a user-presence challenge",
    formatter_class=argparse.RawDescriptionHelpFormatter,
    epilog=(
      "environment variables:\n"
      "  KEYMASTERD_PASSWORD    HTTP Basic Auth password (required with -u)\n"
      "  KEYMASTERD_USERNAME    HTTP Basic Auth username (alternative to -u)\n"
      "  KEYMASTERD_PORT        Port to listen on (alternative to -p)\n"
      "  KEYMASTERD_BIND        Host/IP to bind to (alternative to -b)\n"
      "  KEYMASTERD_DESCRIPTION Prompt description (alternative to -d)\n"
      "\n"
      "endpoints:\n"
      "  GET /key/<keyname>     Retrieve a secret from the Keychain\n"
      "  GET /health            Health check endpoint\n"
    ),
  )
  parser.add_argument("-p", "--port", type=int, help="Port to listen on (default: 8787)")
  parser.add_argument("-b", "--bind", help="Host/IP to bind to (default: 127.0.0.1)")
  parser.add_argument("-u", "--username", help="HTTP Basic Auth username")
  parser.add_argument("-d", "--description", help="Custom description for the user-presence prompt")
  parser.add_argument(
    "--log-level",
    choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    help="Set log level",
  )
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
  return parser


def main(argv: Optional[list[str]] = None) -> None:
  """Main entry point for the daemon."""
  args = build_parser().parse_args(argv)

  try:
    config = KeymasterConfig.from_environment(
      host=args.bind,
      port=args.port,
      username=args.username,
      description=args.description,
    )
  except ConfigError as e:
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)

  app = AppManager(config=config, log_file="keymasterd.log", console_output=True)
  if args.log_level:
    app.log_manager.set_log_level(args.log_level)

  try:
    daemon = KeymasterDaemon()
    daemon.start()
  except KeyboardInterrupt:
    print("\nKeymasterd interrupted.")
  except TransportError as e:
    print(f"Error starting server: {e}", file=sys.stderr)
    sys.exit(1)
  except Exception as e:
    print(f"FATAL: Keymasterd error: {e}", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
  main()
