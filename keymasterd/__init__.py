"""
Keymasterd - Python Package

Serves Keychain secrets over a local HTTP endpoint, releasing each one only
after a fresh user-presence challenge.
"""

__version__ = "1.0.0"
__author__ = "Keymasterd Team"
__description__ = "HTTP access to Keychain secrets guarded by a user-presence challenge"

from .cli import main as cli_main  # noqa: E402

__all__ = [
  "cli_main",
  "__version__",
]
