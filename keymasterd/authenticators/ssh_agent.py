"""
Keymasterd - SSH Agent Authenticator

Uses an SSH agent key whose signing operations are gated by the platform
(Touch ID or the account password, e.g. Secretive or 1Password agents) as the
user-presence challenge. Each call signs a fresh random nonce and the signature
is verified against the key's public half, so nothing from a previous
challenge can be replayed.
"""

import secrets
from typing import Optional

import paramiko
from paramiko.agent import AgentKey

from ..managers.log_manager import KeymasterLogger
from .base import AuthenticatorBase, AuthenticatorConfigError, AuthenticatorError, AuthResult

CHALLENGE_DOMAIN = b"keymasterd-user-presence-v1"


class SshAgentAuthenticator(AuthenticatorBase):
  """Step-up challenge backed by an SSH agent signature."""

  def __init__(self, log_manager: KeymasterLogger, key_comment: str) -> None:
    super().__init__(log_manager)
    self.logger = log_manager.get_logger(name="authenticators", component="ssh_agent")
    if not key_comment:
      raise AuthenticatorConfigError("KEYMASTERD_SSH_AGENT_KEY_COMMENT must name the agent key used for challenges")
    self.key_comment = key_comment

  @staticmethod
  def build_challenge(reason: str) -> bytes:
    """Challenge data: domain tag, the prompt reason and a fresh 32-byte nonce."""
    return b"\0".join([CHALLENGE_DOMAIN, reason.encode("utf-8"), secrets.token_bytes(32)])

  def _find_key(self, agent: paramiko.Agent) -> AgentKey:
    keys = agent.get_keys()
    if not keys:
      raise AuthenticatorError("No keys found in the SSH agent")

    target_key: Optional[AgentKey] = next((key for key in keys if key.comment == self.key_comment), None)
    if target_key is None:
      raise AuthenticatorError(f"Could not find key with comment '{self.key_comment}' in SSH agent")
    return target_key

  def _challenge(self, reason: str) -> AuthResult:
    self.logger.info(f"Requesting user-presence signature: {reason}")
    agent = paramiko.Agent()
    try:
      target_key = self._find_key(agent)
      challenge = self.build_challenge(reason)

      # Plain ssh-rsa (SHA-1) signatures are rejected by current verifiers.
      algorithm = "rsa-sha2-256" if target_key.get_name() == "ssh-rsa" else None
      try:
        signature = target_key.sign_ssh_data(challenge, algorithm)
      except paramiko.SSHException as e:
        self.logger.warning(f"Agent refused to sign for key '{self.key_comment}': {e}")
        raise AuthenticatorError("Agent signing operation failed or was canceled") from None

      public_key = paramiko.PKey.from_type_string(target_key.get_name(), target_key.asbytes())
      if not public_key.verify_ssh_sig(challenge, paramiko.Message(bytes(signature))):
        raise AuthenticatorError("Agent returned an invalid signature")
    finally:
      agent.close()

    self.logger.info("User-presence signature verified")
    return AuthResult(ok=True)
