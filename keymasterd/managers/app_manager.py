import threading
from typing import Optional

from ..authenticators.base import AuthenticatorBase, AuthenticatorError, AuthResult
from ..authenticators.factory import AuthenticatorFactory
from ..core.singleton import SingletonMeta
from ..secret_stores.base import SecretStoreBase
from ..secret_stores.factory import SecretStoreFactory
from .config import KeymasterConfig
from .log_manager import ComponentLoggerAdapter, KeymasterLogger


class AppManager(metaclass=SingletonMeta):
  def __init__(
    self,
    config: Optional[KeymasterConfig] = None,
    log_file: Optional[str] = None,
    console_output: bool = False,
  ) -> None:
    """
    A singleton service locator for the process-wide components.

    The configuration is fixed when the first instance is created; the
    secret store and authenticator are built from it on first use.

    Args:
      config: Configuration to use; read from the environment when omitted.
      log_file: Optional log file name for this process.
      console_output: Also log to stderr.
    """
    self._config = config or KeymasterConfig.from_environment()
    self._log_manager = KeymasterLogger(log_file=log_file, console_output=console_output)

    # Lazy Load
    self._secret_store: Optional[SecretStoreBase] = None
    self._authenticator: Optional[AuthenticatorBase] = None
    self._build_lock = threading.Lock()

  @property
  def config(self) -> KeymasterConfig:
    return self._config

  @property
  def log_manager(self) -> KeymasterLogger:
    return self._log_manager

  @property
  def secret_store(self) -> SecretStoreBase:
    """Get fully configured secret store instance."""
    if self._secret_store is None:
      self._secret_store = SecretStoreFactory.create(self._config, self._log_manager)
    return self._secret_store

  @property
  def authenticator(self) -> AuthenticatorBase:
    """Get fully configured step-up authenticator instance."""
    with self._build_lock:
      if self._authenticator is None:
        self._authenticator = AuthenticatorFactory.create(self._config, self._log_manager)
    return self._authenticator

  def authenticate(self, reason: str) -> AuthResult:
    """
    Run one user-presence challenge with the configured authenticator.

    The authenticator is resolved on first use; one that cannot be built
    counts as a failed challenge rather than an error.

    Args:
        reason: Text describing why access is requested

    Returns:
        AuthResult: ok=True only if the user completed the challenge
    """
    try:
      authenticator = self.authenticator
    except AuthenticatorError as e:
      self.get_logger("managers", "app_manager").error(f"Step-up authenticator unavailable: {e}")
      return AuthResult(ok=False, error=str(e))
    return authenticator.authenticate(reason)

  def get_logger(
    self,
    name: Optional[str] = None,
    component: Optional[str] = None,
  ) -> ComponentLoggerAdapter:
    """
    Get fully configured logger instance.
    Args:
        name: Optional logger name
        component: Optional component name for logging
    Returns:
        ComponentLoggerAdapter: Configured logger instance
    """
    return self._log_manager.get_logger(
      name=name,
      component=component,
    )
