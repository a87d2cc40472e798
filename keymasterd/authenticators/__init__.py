from .base import (
  AuthenticatorBase,
  AuthenticatorConfigError,
  AuthenticatorError,
  AuthResult,
  PromptDispatcher,
)
from .factory import AUTHENTICATORS, AuthenticatorFactory

__all__ = [
  "AUTHENTICATORS",
  "AuthResult",
  "AuthenticatorBase",
  "AuthenticatorConfigError",
  "AuthenticatorError",
  "AuthenticatorFactory",
  "PromptDispatcher",
]
