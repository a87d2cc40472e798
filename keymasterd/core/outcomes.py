"""
Request outcomes.

Every pipeline stage either hands the request on or settles it with one of
these values. Only the response encoder turns them into bytes.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Healthy:
  pass


@dataclass(frozen=True)
class SecretFound:
  value: str

  def __repr__(self) -> str:
    # Keep the value out of logs and tracebacks.
    return "SecretFound(value=<redacted>)"


@dataclass(frozen=True)
class SecretMissing:
  pass


@dataclass(frozen=True)
class NotFound:
  pass


@dataclass(frozen=True)
class Unauthorized:
  pass


@dataclass(frozen=True)
class Forbidden:
  reason: str


@dataclass(frozen=True)
class BadRequest:
  reason: str = "Bad Request"


@dataclass(frozen=True)
class MethodNotAllowed:
  pass


@dataclass(frozen=True)
class InternalError:
  pass


Outcome = Union[
  Healthy,
  SecretFound,
  SecretMissing,
  NotFound,
  Unauthorized,
  Forbidden,
  BadRequest,
  MethodNotAllowed,
  InternalError,
]
