"""
Keymasterd - Request Pipeline

raw bytes -> parse -> Basic-Auth -> route -> (auth gate -> store) -> bytes

The pipeline has no I/O of its own: both drivers feed it the bytes they
collected and write back whatever it returns.
"""

from typing import Callable

from ..authenticators.base import AuthResult
from ..managers.config import KeymasterConfig
from ..managers.log_manager import KeymasterLogger
from ..secret_stores.base import SecretStoreBase
from .auth_gate import AuthGate
from .basic_auth import BasicAuthValidator
from .http import Request, encode_response, parse_request, render_outcome
from .outcomes import BadRequest, InternalError, Outcome
from .router import HEALTH_PATH, Router


class KeymasterPipeline:
  """One parse/route/respond cycle per call. Holds no per-request state."""

  def __init__(
    self,
    config: KeymasterConfig,
    authenticate: Callable[[str], AuthResult],
    secret_store: SecretStoreBase,
    log_manager: KeymasterLogger,
  ) -> None:
    self.config = config
    self.logger = log_manager.get_logger(name="core", component="pipeline")
    self.validator = BasicAuthValidator(config.username, config.password)
    self.router = Router(AuthGate(authenticate, secret_store, log_manager, config.description))

  def handle(self, raw: bytes) -> Outcome:
    """Run the pipeline and return the outcome. Never raises."""
    try:
      request = parse_request(raw)
      if isinstance(request, BadRequest):
        self.logger.warning("Rejected malformed request line")
        return request

      self.logger.debug(f"{request.method} {request.path}")
      return self._dispatch(request)
    except Exception as e:
      self.logger.error(f"Unhandled error while processing request: {e}", exc_info=True)
      return InternalError()

  def _dispatch(self, request: Request) -> Outcome:
    # Liveness probes must not need the network credential.
    if request.path != HEALTH_PATH:
      denied = self.validator.check(request.headers)
      if denied is not None:
        self.logger.warning(f"Basic-Auth rejected for {request.method} {request.path}")
        return denied
    return self.router.route(request)

  def render(self, outcome: Outcome) -> bytes:
    return encode_response(render_outcome(outcome, self.config.realm))

  def process(self, raw: bytes) -> bytes:
    """Turn one raw request head into the complete response bytes."""
    return self.render(self.handle(raw))
