"""
Keymasterd - keymaster CLI

Store, print and delete Keychain secrets from a terminal. Every action passes
the same user-presence challenge the daemon uses.
"""

import argparse
import sys
from typing import Optional

from .managers.app_manager import AppManager
from .managers.config import ConfigError
from .secret_stores.base import SecretStoreError


class KeymasterCliError(Exception):
  pass


def _require_presence(app: AppManager, reason: str) -> None:
  """Run one challenge; raise KeymasterCliError unless the user confirmed."""
  result = app.authenticator.authenticate(reason)
  if not result.ok:
    raise KeymasterCliError(f"Authentication failed: {result.description}")


def _reason(action: str, key: str, description: Optional[str] = None) -> str:
  return description or f'{action} the secret for "{key}"'


def handle_set(app: AppManager, args: argparse.Namespace) -> None:
  """Store or update a secret."""
  logger = app.get_logger("cli", "cli.set")

  if not args.secret:
    raise KeymasterCliError("<secret> missing for set action")

  _require_presence(app, _reason("set", args.key))
  app.secret_store.set_secret(args.key, args.secret)
  logger.info(f"Stored key {args.key}")
  print(f'✅ Key "{args.key}" stored successfully')


def handle_get(app: AppManager, args: argparse.Namespace) -> None:
  """Print a secret to stdout."""
  logger = app.get_logger("cli", "cli.get")

  print(f'Reading key "{args.key}" from Keychain...', file=sys.stderr)
  _require_presence(app, _reason("get", args.key, args.description))

  value = app.secret_store.get_secret(args.key)
  if value is None:
    raise KeymasterCliError(f'No item found for "{args.key}"')

  logger.info(f"Read key {args.key}")
  print(value)


def handle_delete(app: AppManager, args: argparse.Namespace) -> None:
  """Remove a secret."""
  logger = app.get_logger("cli", "cli.delete")

  _require_presence(app, _reason("delete", args.key))
  if not app.secret_store.delete_secret(args.key):
    raise KeymasterCliError(f'Error deleting item for "{args.key}"')

  logger.info(f"Deleted key {args.key}")
  print(f'✅ Key "{args.key}" deleted successfully')


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="keymaster",
    description="Keymaster - store & retrieve small secrets in your Keychain, protected by a user-presence check",
  )
  parser.add_argument(
    "--log-level",
    choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    help="Set log level",
  )

  subparsers = parser.add_subparsers(dest="command", help="Available commands")

  set_parser = subparsers.add_parser("set", help="Store or update <secret> for <key>")
  set_parser.add_argument("key", help="Key name")
  set_parser.add_argument("secret", nargs="?", default="", help="Secret value")
  set_parser.set_defaults(func=handle_set)

  get_parser = subparsers.add_parser("get", help="Print secret to stdout")
  get_parser.add_argument("key", help="Key name")
  get_parser.add_argument("-d", "--description", help="Custom description for the user-presence prompt")
  get_parser.set_defaults(func=handle_get)

  delete_parser = subparsers.add_parser("delete", help="Remove secret from Keychain")
  delete_parser.add_argument("key", help="Key name")
  delete_parser.set_defaults(func=handle_delete)

  return parser


def main(argv: Optional[list[str]] = None) -> None:
  """Main CLI entry point."""
  parser = build_parser()
  args = parser.parse_args(argv)

  if not hasattr(args, "func"):
    parser.print_help()
    sys.exit(1)

  try:
    app = AppManager(log_file="keymaster.log")
    if args.log_level:
      app.log_manager.set_log_level(args.log_level)
    args.func(app, args)
  except (KeymasterCliError, SecretStoreError, ConfigError) as e:
    print(f"❌ {e}", file=sys.stderr)
    sys.exit(1)
  except Exception as e:
    print(f"❌ {args.command} failed: {e}", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
  main()
