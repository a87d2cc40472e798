# factory.py
from ..managers.config import KeymasterConfig
from ..managers.log_manager import KeymasterLogger
from .base import SecretStoreBase, SecretStoreConfigError
from .keychain import KeyringSecretStore

SECRET_STORES = {
  "keyring": KeyringSecretStore,
}


class SecretStoreFactory:
  @classmethod
  def create(cls, config: KeymasterConfig, log_manager: KeymasterLogger) -> SecretStoreBase:
    """Factory method to create the configured secret store."""
    if config.secret_store not in SECRET_STORES:
      raise SecretStoreConfigError(
        f"secret_store {config.secret_store} must be one of: {', '.join(SECRET_STORES.keys())}"
      )
    store_class = SECRET_STORES[config.secret_store]
    return store_class(log_manager, account=config.keyring_account)
