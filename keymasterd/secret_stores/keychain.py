"""
Keymasterd - Keychain Secret Store

Reads and writes generic passwords through the `keyring` package, which maps to
the macOS Keychain (and to the platform credential store elsewhere). The key
name is used as the keyring service.
"""

from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..managers.log_manager import KeymasterLogger
from .base import SecretStoreBase, SecretStoreConfigError, SecretStoreError


class KeyringSecretStore(SecretStoreBase):
  """Secret store backed by the system keyring."""

  def __init__(self, log_manager: KeymasterLogger, account: str = "keymaster") -> None:
    super().__init__(log_manager)
    self.logger = log_manager.get_logger(name="secret_stores", component="keyring")
    if not account:
      raise SecretStoreConfigError("keyring account cannot be empty")
    self.account = account

  def get_secret(self, name: str) -> Optional[str]:
    try:
      # Entries created by other tools may use any account name.
      credential = keyring.get_credential(name, None) or keyring.get_credential(name, self.account)
    except KeyringError as e:
      raise SecretStoreError(f"Failed to read keyring entry '{name}': {e}") from None

    if credential is None or credential.password is None:
      return None
    return credential.password

  def set_secret(self, name: str, value: str) -> None:
    try:
      keyring.set_password(name, self.account, value)
    except KeyringError as e:
      raise SecretStoreError(f"Failed to write keyring entry '{name}': {e}") from None
    self.logger.info(f"Stored keyring entry '{name}'")

  def delete_secret(self, name: str) -> bool:
    try:
      keyring.delete_password(name, self.account)
    except PasswordDeleteError:
      self.logger.info(f"No keyring entry '{name}' to delete")
      return False
    except KeyringError as e:
      raise SecretStoreError(f"Failed to delete keyring entry '{name}': {e}") from None
    self.logger.info(f"Deleted keyring entry '{name}'")
    return True
