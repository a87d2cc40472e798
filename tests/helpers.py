"""
Test doubles and request/response helpers shared by the test modules.
"""

import base64
from typing import Optional

from keymasterd.authenticators.base import AuthResult
from keymasterd.managers.log_manager import KeymasterLogger
from keymasterd.secret_stores.base import SecretStoreBase

ENV_VARS = [
  "KEYMASTERD_BIND",
  "KEYMASTERD_PORT",
  "KEYMASTERD_USERNAME",
  "KEYMASTERD_PASSWORD",
  "KEYMASTERD_DESCRIPTION",
  "KEYMASTERD_SECRET_STORE",
  "KEYMASTERD_KEYRING_ACCOUNT",
  "KEYMASTERD_AUTHENTICATOR",
  "KEYMASTERD_SSH_AGENT_KEY_COMMENT",
  "KEYMASTERD_PINENTRY",
  "KEYMASTERD_LOG_LEVEL",
]


class FakeSecretStore(SecretStoreBase):
  """Dict-backed store that records lookups."""

  def __init__(self, log_manager: KeymasterLogger, secrets: Optional[dict[str, str]] = None) -> None:
    super().__init__(log_manager)
    self.secrets = dict(secrets or {})
    self.lookups: list[str] = []

  def get_secret(self, name: str) -> Optional[str]:
    self.lookups.append(name)
    return self.secrets.get(name)

  def set_secret(self, name: str, value: str) -> None:
    self.secrets[name] = value

  def delete_secret(self, name: str) -> bool:
    return self.secrets.pop(name, None) is not None


class StubAuthenticator:
  """Callable standing in for the step-up challenge."""

  def __init__(self, ok: bool = True, error: Optional[str] = None) -> None:
    self.ok = ok
    self.error = error
    self.reasons: list[str] = []

  @property
  def calls(self) -> int:
    return len(self.reasons)

  def __call__(self, reason: str) -> AuthResult:
    self.reasons.append(reason)
    return AuthResult(ok=self.ok, error=self.error)


def basic_auth(username: str, password: str) -> str:
  token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
  return f"Basic {token}"


def make_request(path: str, method: str = "GET", headers: Optional[dict[str, str]] = None) -> bytes:
  lines = [f"{method} {path} HTTP/1.1", "Host: localhost:8787"]
  lines.extend(f"{name}: {value}" for name, value in (headers or {}).items())
  return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def split_response(raw: bytes) -> tuple[str, dict[str, str], bytes]:
  """Return (status line, headers, body) of an encoded response."""
  head, _, body = raw.partition(b"\r\n\r\n")
  lines = head.decode("utf-8").split("\r\n")
  headers = {}
  for line in lines[1:]:
    name, _, value = line.partition(": ")
    headers[name] = value
  return lines[0], headers, body
