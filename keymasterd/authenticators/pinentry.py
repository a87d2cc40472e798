"""
Keymasterd - Pinentry Authenticator

Presents a confirmation dialog through a pinentry program (pinentry-mac,
pinentry-touchid, pinentry-gnome3, ...) using the Assuan protocol. The reason
text is shown as the dialog description; the request is approved only if the
user confirms.
"""

import os
import shutil
import subprocess
from typing import Optional

from ..managers.log_manager import KeymasterLogger
from .base import AuthenticatorBase, AuthenticatorConfigError, AuthenticatorError, AuthResult

PINENTRY_CANDIDATES = [
  "pinentry-touchid",
  "pinentry-mac",
  "pinentry-gnome3",
  "pinentry-qt",
  "pinentry",
]
PROMPT_TIMEOUT = 300.0


def detect_pinentry() -> Optional[str]:
  """Return the first pinentry program found on PATH."""
  for candidate in PINENTRY_CANDIDATES:
    path = shutil.which(candidate)
    if path:
      return path
  return None


def assuan_escape(text: str) -> str:
  """Percent-escape the characters Assuan reserves in command arguments."""
  return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class PinentryAuthenticator(AuthenticatorBase):
  """Step-up challenge shown as a pinentry CONFIRM dialog."""

  def __init__(self, log_manager: KeymasterLogger, program: str = "", title: str = "Keymasterd") -> None:
    super().__init__(log_manager)
    self.logger = log_manager.get_logger(name="authenticators", component="pinentry")
    resolved = program or detect_pinentry()
    if not resolved:
      raise AuthenticatorConfigError("No pinentry program found; set KEYMASTERD_PINENTRY")
    if not (os.path.isfile(resolved) and os.access(resolved, os.X_OK)):
      raise AuthenticatorConfigError(f"pinentry program is not executable: {resolved}")
    self.program = resolved
    self.title = title

  def _script(self, reason: str) -> list[str]:
    return [
      f"SETTITLE {assuan_escape(self.title)}",
      f"SETDESC {assuan_escape(reason)}",
      "SETOK Allow",
      "SETCANCEL Deny",
      "CONFIRM",
      "BYE",
    ]

  def _challenge(self, reason: str) -> AuthResult:
    commands = self._script(reason)
    try:
      completed = subprocess.run(
        [self.program],
        input="\n".join(commands) + "\n",
        capture_output=True,
        text=True,
        timeout=PROMPT_TIMEOUT,
        check=False,
      )
    except subprocess.TimeoutExpired:
      raise AuthenticatorError("Confirmation prompt timed out") from None
    except OSError as e:
      raise AuthenticatorError(f"Could not start pinentry: {e}") from None

    # One status line for the greeting, then one per command.
    statuses = [line for line in completed.stdout.splitlines() if line.startswith(("OK", "ERR"))]
    confirm_index = commands.index("CONFIRM") + 1
    if len(statuses) <= confirm_index:
      raise AuthenticatorError("pinentry exited before answering")

    answer = statuses[confirm_index]
    if answer.startswith("OK"):
      return AuthResult(ok=True)

    detail = answer.split(" ", 2)[2] if answer.count(" ") >= 2 else "Operation cancelled"
    return AuthResult(ok=False, error=detail)
