"""
Keymasterd - Secret Store Base Class

Abstract base class for the platform-protected stores secrets are released from.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..managers.log_manager import KeymasterLogger


class SecretStoreError(Exception):
  """Base exception for secret store operations."""

  pass


class SecretStoreConfigError(SecretStoreError):
  """Configuration-related errors."""

  pass


class SecretStoreBase(ABC):
  """
  Abstract base class for secret stores.

  Secrets are small UTF-8 strings addressed by key name. The server only ever
  reads; writing and deleting exist for the keymaster CLI.
  """

  def __init__(self, log_manager: KeymasterLogger) -> None:
    self.logger = log_manager.get_logger(name="secret_stores", component="base")

  @abstractmethod
  def get_secret(self, name: str) -> Optional[str]:
    """
    Look up a secret.

    Args:
        name: Key name

    Returns:
        The secret value, or None if no entry exists

    Raises:
        SecretStoreError: If the store could not be queried
    """
    raise NotImplementedError

  @abstractmethod
  def set_secret(self, name: str, value: str) -> None:
    """Store or replace a secret. Raises SecretStoreError on failure."""
    raise NotImplementedError

  @abstractmethod
  def delete_secret(self, name: str) -> bool:
    """Remove a secret. Returns False if nothing was stored under name."""
    raise NotImplementedError

  def __repr__(self) -> str:
    return f"{self.__class__.__name__}"
