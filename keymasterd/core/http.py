"""
Keymasterd - HTTP wire handling

The small HTTP/1.1 subset Keymasterd speaks: bodiless GET requests in, one
response per connection out.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Union

from .outcomes import (
  BadRequest,
  Forbidden,
  Healthy,
  InternalError,
  MethodNotAllowed,
  NotFound,
  Outcome,
  SecretFound,
  SecretMissing,
  Unauthorized,
)

CRLF = "\r\n"
HEADER_TERMINATOR = b"\r\n\r\n"

STATUS_REASONS = {
  200: "OK",
  400: "Bad Request",
  401: "Unauthorized",
  403: "Forbidden",
  404: "Not Found",
  405: "Method Not Allowed",
  500: "Internal Server Error",
}


@dataclass(frozen=True)
class Request:
  """A parsed request head. Header names are lowercase."""

  method: str
  path: str
  protocol: str
  headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class Response:
  status: int
  body: bytes = b""
  content_type: str = "text/plain"
  headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


def parse_request(raw: bytes) -> Union[Request, BadRequest]:
  """
  Parse a raw request head.

  Only a malformed request line is fatal; header lines that do not look like
  `name: value` are skipped.

  Args:
      raw: Bytes read from the client, expected to hold the request line,
           headers and the terminating blank line.

  Returns:
      Request, or BadRequest when the request line is unusable
  """
  text = raw.decode("utf-8", errors="replace")
  lines = text.split(CRLF)

  parts = lines[0].split()
  if len(parts) != 3:
    return BadRequest()
  method, path, protocol = parts

  headers: dict[str, str] = {}
  for line in lines[1:]:
    if line == "":
      break
    name, sep, value = line.partition(":")
    name = name.strip().lower()
    if not sep or not name:
      continue
    headers[name] = value.strip()

  return Request(method=method, path=path, protocol=protocol, headers=MappingProxyType(headers))


def _text(status: int, body: str, **kwargs: object) -> Response:
  return Response(status=status, body=body.encode("utf-8"), **kwargs)  # type: ignore[arg-type]


def render_outcome(outcome: Outcome, realm: str) -> Response:
  """Map an outcome to its response. Total over every outcome type."""
  if isinstance(outcome, Healthy):
    return _text(200, "OK")
  if isinstance(outcome, SecretFound):
    return _text(200, outcome.value)
  if isinstance(outcome, SecretMissing):
    return _text(404, "Key not found")
  if isinstance(outcome, NotFound):
    return _text(404, "Not Found")
  if isinstance(outcome, Unauthorized):
    return _text(
      401,
      "Unauthorized",
      headers=MappingProxyType({"WWW-Authenticate": f'Basic realm="{realm}"'}),
    )
  if isinstance(outcome, Forbidden):
    return _text(403, outcome.reason)
  if isinstance(outcome, BadRequest):
    return _text(400, outcome.reason)
  if isinstance(outcome, MethodNotAllowed):
    return _text(405, "Method Not Allowed")
  if isinstance(outcome, InternalError):
    return _text(500, "Internal Server Error")
  raise TypeError(f"Unknown outcome: {type(outcome).__name__}")


def encode_response(response: Response) -> bytes:
  """Serialize a response. Content-Length always matches the body exactly."""
  reason = STATUS_REASONS.get(response.status, "Unknown")
  head = [
    f"HTTP/1.1 {response.status} {reason}",
    f"Content-Type: {response.content_type}",
    f"Content-Length: {len(response.body)}",
    "Connection: close",
  ]
  head.extend(f"{name}: {value}" for name, value in response.headers.items())
  return (CRLF.join(head) + CRLF + CRLF).encode("utf-8") + response.body
