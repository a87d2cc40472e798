from .base import SecretStoreBase, SecretStoreConfigError, SecretStoreError
from .factory import SECRET_STORES, SecretStoreFactory

__all__ = [
  "SECRET_STORES",
  "SecretStoreBase",
  "SecretStoreConfigError",
  "SecretStoreError",
  "SecretStoreFactory",
]
