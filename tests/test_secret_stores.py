"""
Unit tests for the keyring-backed secret store and its factory.
"""

from unittest.mock import call, patch

import pytest
from keyring.credentials import SimpleCredential
from keyring.errors import KeyringError, PasswordDeleteError

from keymasterd.managers.config import KeymasterConfig
from keymasterd.managers.log_manager import KeymasterLogger
from keymasterd.secret_stores import SecretStoreConfigError, SecretStoreError, SecretStoreFactory
from keymasterd.secret_stores.keychain import KeyringSecretStore

KEYRING = "keymasterd.secret_stores.keychain.keyring"


class TestKeyringSecretStore:
  """Test suite for KeyringSecretStore."""

  @pytest.fixture
  def keyring_store(self, log_manager: KeymasterLogger) -> KeyringSecretStore:
    return KeyringSecretStore(log_manager, account="keymaster")

  def test_get_any_account(self, keyring_store: KeyringSecretStore) -> None:
    with patch(KEYRING) as mock_keyring:
      mock_keyring.get_credential.return_value = SimpleCredential("someone", "ghp_abc")

      assert keyring_store.get_secret("github_token") == "ghp_abc"

    mock_keyring.get_credential.assert_called_once_with("github_token", None)

  def test_get_falls_back_to_account(self, keyring_store: KeyringSecretStore) -> None:
    with patch(KEYRING) as mock_keyring:
      mock_keyring.get_credential.side_effect = [None, SimpleCredential("keymaster", "v")]

      assert keyring_store.get_secret("k") == "v"

    assert mock_keyring.get_credential.call_args_list == [call("k", None), call("k", "keymaster")]

  def test_get_missing(self, keyring_store: KeyringSecretStore) -> None:
    with patch(KEYRING) as mock_keyring:
      mock_keyring.get_credential.return_value = None

      assert keyring_store.get_secret("absent") is None

  def test_get_error(self, keyring_store: KeyringSecretStore) -> None:
    with patch(f"{KEYRING}.get_credential", side_effect=KeyringError("locked")):
      with pytest.raises(SecretStoreError, match="locked"):
        keyring_store.get_secret("k")

  def test_set(self, keyring_store: KeyringSecretStore) -> None:
    with patch(f"{KEYRING}.set_password") as mock_set:
      keyring_store.set_secret("k", "v")

    mock_set.assert_called_once_with("k", "keymaster", "v")

  def test_set_error(self, keyring_store: KeyringSecretStore) -> None:
    with patch(f"{KEYRING}.set_password", side_effect=KeyringError("denied")):
      with pytest.raises(SecretStoreError, match="Failed to write"):
        keyring_store.set_secret("k", "v")

  def test_delete(self, keyring_store: KeyringSecretStore) -> None:
    with patch(f"{KEYRING}.delete_password") as mock_delete:
      assert keyring_store.delete_secret("k") is True

    mock_delete.assert_called_once_with("k", "keymaster")

  def test_delete_missing(self, keyring_store: KeyringSecretStore) -> None:
    with patch(f"{KEYRING}.delete_password", side_effect=PasswordDeleteError("not found")):
      assert keyring_store.delete_secret("k") is False

  def test_delete_error(self, keyring_store: KeyringSecretStore) -> None:
    with patch(f"{KEYRING}.delete_password", side_effect=KeyringError("denied")):
      with pytest.raises(SecretStoreError):
        keyring_store.delete_secret("k")

  def test_empty_account(self, log_manager: KeymasterLogger) -> None:
    with pytest.raises(SecretStoreConfigError):
      KeyringSecretStore(log_manager, account="")


class TestSecretStoreFactory:
  """Test suite for SecretStoreFactory."""

  def test_keyring(self, log_manager: KeymasterLogger) -> None:
    store = SecretStoreFactory.create(KeymasterConfig(keyring_account="ops"), log_manager)

    assert isinstance(store, KeyringSecretStore)
    assert store.account == "ops"

  def test_unknown(self, log_manager: KeymasterLogger) -> None:
    with pytest.raises(SecretStoreConfigError, match="must be one of"):
      SecretStoreFactory.create(KeymasterConfig(secret_store="vault"), log_manager)
