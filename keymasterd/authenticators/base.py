"""
Keymasterd - Step-up Authenticator Base Class

Interface for the user-presence challenge that guards every secret release,
plus the dispatcher that runs each challenge on its own prompt thread.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional

from ..managers.log_manager import KeymasterLogger


class AuthenticatorError(Exception):
  """Base exception for authenticator operations."""

  pass


class AuthenticatorConfigError(AuthenticatorError):
  """Configuration-related errors."""

  pass


@dataclass(frozen=True)
class AuthResult:
  """Result of one user-presence challenge."""

  ok: bool
  error: Optional[str] = None

  @property
  def description(self) -> str:
    return self.error or "Authentication failed"


class AuthenticatorBase(ABC):
  """
  Abstract base class for step-up authenticators.

  Implementations must present a fresh challenge on every call. A previous
  success is never reused.
  """

  def __init__(self, log_manager: KeymasterLogger) -> None:
    self.logger = log_manager.get_logger(name="authenticators", component="base")

  @abstractmethod
  def _challenge(self, reason: str) -> AuthResult:
    """Run one challenge. May raise; authenticate() converts errors to a failed result."""
    raise NotImplementedError

  def authenticate(self, reason: str) -> AuthResult:
    """
    Ask the user to confirm their presence.

    Args:
        reason: Text describing why access is requested

    Returns:
        AuthResult: ok=True only if the user completed the challenge
    """
    try:
      result = self._challenge(reason)
    except AuthenticatorError as e:
      result = AuthResult(ok=False, error=str(e))
    except Exception as e:
      self.logger.error(f"Unexpected error during user-presence challenge: {e}", exc_info=True)
      result = AuthResult(ok=False, error=f"Authentication unavailable: {e}")
    return result

  def __repr__(self) -> str:
    return f"{self.__class__.__name__}"


class PromptDispatcher:
  """
  Runs every challenge on a prompt thread of its own.

  The connection handler blocks on the per-request future until its challenge
  resolves. Challenges never queue behind each other, so a stalled prompt only
  holds up the connection that asked for it.
  """

  def __init__(self, authenticate: Callable[[str], AuthResult]) -> None:
    self._authenticate = authenticate
    self._counter = itertools.count(1)

  def _run(self, future: "Future[AuthResult]", reason: str) -> None:
    if not future.set_running_or_notify_cancel():
      return
    try:
      future.set_result(self._authenticate(reason))
    except Exception as e:
      future.set_exception(e)

  def submit(self, reason: str) -> "Future[AuthResult]":
    future: "Future[AuthResult]" = Future()
    prompt = threading.Thread(
      target=self._run,
      args=(future, reason),
      name=f"keymasterd-prompt-{next(self._counter)}",
      daemon=True,
    )
    prompt.start()
    return future

  def authenticate(self, reason: str) -> AuthResult:
    return self.submit(reason).result()
