# factory.py
from ..managers.config import KeymasterConfig
from ..managers.log_manager import KeymasterLogger
from .base import AuthenticatorBase, AuthenticatorConfigError
from .pinentry import PinentryAuthenticator
from .ssh_agent import SshAgentAuthenticator

AUTHENTICATORS = {
  "ssh-agent": SshAgentAuthenticator,
  "pinentry": PinentryAuthenticator,
}


class AuthenticatorFactory:
  @classmethod
  def create(cls, config: KeymasterConfig, log_manager: KeymasterLogger) -> AuthenticatorBase:
    """Factory method to create the configured step-up authenticator."""
    name = config.authenticator
    if name not in AUTHENTICATORS:
      raise AuthenticatorConfigError(f"authenticator {name} must be one of: {', '.join(AUTHENTICATORS.keys())}")
    if name == "ssh-agent":
      return SshAgentAuthenticator(log_manager, key_comment=config.ssh_agent_key_comment)
    return PinentryAuthenticator(log_manager, program=config.pinentry_program)
