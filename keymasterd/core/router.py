from urllib.parse import unquote

from .auth_gate import AuthGate
from .http import Request
from .outcomes import BadRequest, Healthy, MethodNotAllowed, NotFound, Outcome

HEALTH_PATH = "/health"
KEY_PREFIX = "/key/"


class Router:
  """Maps a parsed request to its outcome."""

  def __init__(self, gate: AuthGate) -> None:
    self._gate = gate

  def route(self, request: Request) -> Outcome:
    if request.method != "GET":
      return MethodNotAllowed()

    if request.path == HEALTH_PATH:
      return Healthy()

    if request.path.startswith(KEY_PREFIX):
      key_name = request.path[len(KEY_PREFIX) :]
      if not key_name:
        return BadRequest("Key name required")
      return self._gate.fetch(unquote(key_name))

    # Unknown routes look like missing resources.
    return NotFound()
