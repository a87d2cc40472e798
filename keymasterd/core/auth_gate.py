"""
Keymasterd - Auth Gate

Binds a key request to one user-presence challenge before the secret store is
consulted.
"""

from typing import Callable, Optional

from ..authenticators.base import AuthResult
from ..managers.log_manager import KeymasterLogger
from ..secret_stores.base import SecretStoreBase, SecretStoreError
from .outcomes import Forbidden, Outcome, SecretFound, SecretMissing


class AuthGate:
  """Runs the step-up challenge for a key, then reads it from the store."""

  def __init__(
    self,
    authenticate: Callable[[str], AuthResult],
    secret_store: SecretStoreBase,
    log_manager: KeymasterLogger,
    description: str,
  ) -> None:
    """
    Args:
        authenticate: Blocking challenge call, one invocation per request
        secret_store: Where released secrets are read from
        log_manager: The logger manager instance
        description: Prompt text; the key name is appended to it
    """
    self._authenticate = authenticate
    self._secret_store = secret_store
    self._description = description
    self.logger = log_manager.get_logger(name="core", component="auth_gate")

  def reason_for(self, key_name: str) -> str:
    return f'{self._description}: "{key_name}"'

  def fetch(self, key_name: str) -> Outcome:
    """
    Challenge the user for key_name and release the secret on success.

    Args:
        key_name: Percent-decoded key name

    Returns:
        SecretFound, SecretMissing or Forbidden
    """
    self.logger.info(f"Request for key: {key_name}")

    result = self._authenticate(self.reason_for(key_name))
    if not result.ok:
      self.logger.warning(f"Authentication failed for key {key_name}: {result.description}")
      return Forbidden(f"Authentication failed: {result.description}")

    value: Optional[str]
    try:
      value = self._secret_store.get_secret(key_name)
    except SecretStoreError as e:
      self.logger.error(f"Secret store lookup failed for key {key_name}: {e}")
      value = None

    if value is None:
      self.logger.info(f"Key not found: {key_name}")
      return SecretMissing()

    self.logger.info(f"Successfully retrieved key: {key_name}")
    return SecretFound(value)
