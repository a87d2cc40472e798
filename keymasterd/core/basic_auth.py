"""
HTTP Basic-Auth validation for the network credential.
"""

import base64
import binascii
from collections.abc import Mapping
from typing import Optional

from cryptography.hazmat.primitives import constant_time

from .outcomes import Unauthorized

SCHEME_PREFIX = "basic "


class BasicAuthValidator:
  """
  Checks the Authorization header against the configured credential.

  The validator is inactive unless both username and password are non-empty.
  Missing, malformed and wrong credentials are indistinguishable to the caller.
  """

  def __init__(self, username: str, password: str) -> None:
    self.active = bool(username) and bool(password)
    self._expected = f"{username}:{password}".encode("utf-8")

  def check(self, headers: Mapping[str, str]) -> Optional[Unauthorized]:
    """Return None when the request may proceed, Unauthorized otherwise."""
    if not self.active:
      return None

    supplied = self._decode(headers.get("authorization", ""))
    if supplied is None or not constant_time.bytes_eq(supplied, self._expected):
      return Unauthorized()
    return None

  @staticmethod
  def _decode(value: str) -> Optional[bytes]:
    if not value.lower().startswith(SCHEME_PREFIX):
      return None
    token = value[len(SCHEME_PREFIX) :].strip()
    try:
      decoded = base64.b64decode(token, validate=True)
      decoded.decode("utf-8")
    except (binascii.Error, ValueError):
      return None
    return decoded
