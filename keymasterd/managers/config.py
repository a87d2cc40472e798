"""
Keymasterd - Configuration

Process-wide settings, read once from the environment (and, for the daemon,
command line overrides) before any request is served. The resulting object is
frozen and shared by every connection handler.
"""

import os
from dataclasses import dataclass, fields
from typing import Any

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787
DEFAULT_DESCRIPTION = "Keymasterd wants to access the Keychain"
DEFAULT_REALM = "Keymasterd"


class ConfigError(Exception):
  """Configuration-related errors."""

  pass


def _parse_port(value: Any) -> int:
  try:
    port = int(value)
  except (TypeError, ValueError):
    raise ConfigError(f"Invalid port number: {value!r}") from None
  if not 0 < port < 65536:
    raise ConfigError(f"Port out of range: {port}")
  return port


@dataclass(frozen=True)
class KeymasterConfig:
  """Keymasterd runtime settings."""

  host: str = DEFAULT_HOST
  port: int = DEFAULT_PORT
  username: str = ""
  password: str = ""
  description: str = DEFAULT_DESCRIPTION
  realm: str = DEFAULT_REALM
  secret_store: str = "keyring"
  keyring_account: str = "keymaster"
  authenticator: str = "ssh-agent"
  ssh_agent_key_comment: str = ""
  pinentry_program: str = ""

  @property
  def require_auth(self) -> bool:
    """Basic-Auth is enforced only when both halves of the credential are set."""
    return bool(self.username) and bool(self.password)

  @property
  def partial_credentials(self) -> bool:
    return bool(self.username) != bool(self.password)

  @classmethod
  def from_environment(cls, listener: bool = True, **overrides: Any) -> "KeymasterConfig":
    """
    Build the configuration from KEYMASTERD_* environment variables.

    Args:
        listener: Read and validate the bind address and port. The inetd handler never
                  listens; it passes False and keeps the defaults, so a bad
                  KEYMASTERD_PORT cannot break it.
        **overrides: Values that take precedence over the environment
                     (typically parsed command line flags). None values are ignored.

    Returns:
        KeymasterConfig: Immutable configuration

    Raises:
        ConfigError: If a value cannot be parsed
    """
    values: dict[str, Any] = {
      "host": DEFAULT_HOST,
      "port": DEFAULT_PORT,
      "username": os.getenv("KEYMASTERD_USERNAME", ""),
      "password": os.getenv("KEYMASTERD_PASSWORD", ""),
      "description": os.getenv("KEYMASTERD_DESCRIPTION", DEFAULT_DESCRIPTION),
      "secret_store": os.getenv("KEYMASTERD_SECRET_STORE", "keyring"),
      "keyring_account": os.getenv("KEYMASTERD_KEYRING_ACCOUNT", "keymaster"),
      "authenticator": os.getenv("KEYMASTERD_AUTHENTICATOR", "ssh-agent"),
      "ssh_agent_key_comment": os.getenv("KEYMASTERD_SSH_AGENT_KEY_COMMENT", ""),
      "pinentry_program": os.getenv("KEYMASTERD_PINENTRY", ""),
    }
    if listener:
      values["host"] = os.getenv("KEYMASTERD_BIND", DEFAULT_HOST)
      values["port"] = os.getenv("KEYMASTERD_PORT", str(DEFAULT_PORT))

    known = {f.name for f in fields(cls)}
    for key, value in overrides.items():
      if key not in known:
        raise ConfigError(f"Unknown configuration option: {key}")
      if value is not None:
        values[key] = value

    values["port"] = _parse_port(values["port"])
    if not values["description"]:
      values["description"] = DEFAULT_DESCRIPTION

    return cls(**values)

