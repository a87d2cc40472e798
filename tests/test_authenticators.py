"""
Unit tests for the step-up authenticators and the prompt dispatcher.
"""

import os
import stat
import subprocess
import threading
from pathlib import Path
from typing import Any
from unittest.mock import Mock, patch

import paramiko
import pytest

from keymasterd.authenticators.base import (
  AuthenticatorBase,
  AuthenticatorConfigError,
  AuthenticatorError,
  AuthResult,
  PromptDispatcher,
)
from keymasterd.authenticators.factory import AuthenticatorFactory
from keymasterd.authenticators.pinentry import PinentryAuthenticator, assuan_escape, detect_pinentry
from keymasterd.authenticators.ssh_agent import CHALLENGE_DOMAIN, SshAgentAuthenticator
from keymasterd.managers.config import KeymasterConfig
from keymasterd.managers.log_manager import KeymasterLogger


class ScriptedAuthenticator(AuthenticatorBase):
  """Authenticator whose challenge behaviour is supplied by the test."""

  def __init__(self, log_manager: KeymasterLogger, behaviour: Any) -> None:
    super().__init__(log_manager)
    self.behaviour = behaviour

  def _challenge(self, reason: str) -> AuthResult:
    return self.behaviour(reason)


@pytest.fixture
def pinentry_program(tmp_path: Path) -> str:
  program = tmp_path / "pinentry-test"
  program.write_text("#!/bin/sh\nexit 0\n")
  program.chmod(program.stat().st_mode | stat.S_IEXEC)
  return str(program)


class TestAuthenticatorBase:
  """Error conversion in authenticate()."""

  def test_success_passes_through(self, log_manager: KeymasterLogger) -> None:
    auth = ScriptedAuthenticator(log_manager, lambda reason: AuthResult(ok=True))

    assert auth.authenticate("why") == AuthResult(ok=True)

  def test_authenticator_error_becomes_failure(self, log_manager: KeymasterLogger) -> None:
    def deny(reason: str) -> AuthResult:
      raise AuthenticatorError("User canceled")

    result = ScriptedAuthenticator(log_manager, deny).authenticate("why")

    assert result == AuthResult(ok=False, error="User canceled")

  def test_unexpected_error_becomes_failure(self, log_manager: KeymasterLogger) -> None:
    def broken(reason: str) -> AuthResult:
      raise RuntimeError("socket gone")

    result = ScriptedAuthenticator(log_manager, broken).authenticate("why")

    assert result.ok is False
    assert result.description == "Authentication unavailable: socket gone"

  def test_description_fallback(self) -> None:
    assert AuthResult(ok=False).description == "Authentication failed"


class TestPromptDispatcher:
  """Each challenge runs on a prompt thread of its own."""

  def test_runs_on_prompt_thread(self, log_manager: KeymasterLogger) -> None:
    seen: list[str] = []

    def record(reason: str) -> AuthResult:
      seen.append(threading.current_thread().name)
      return AuthResult(ok=True)

    dispatcher = PromptDispatcher(ScriptedAuthenticator(log_manager, record).authenticate)

    assert dispatcher.authenticate("why").ok is True
    assert seen[0].startswith("keymasterd-prompt")
    assert seen[0] != threading.current_thread().name

  def test_pending_challenge_does_not_block_the_next(self, log_manager: KeymasterLogger) -> None:
    first_started = threading.Event()
    release_first = threading.Event()

    def held(reason: str) -> AuthResult:
      if reason == "first":
        first_started.set()
        release_first.wait(timeout=10)
      return AuthResult(ok=True)

    dispatcher = PromptDispatcher(ScriptedAuthenticator(log_manager, held).authenticate)
    first = dispatcher.submit("first")
    try:
      assert first_started.wait(timeout=5)

      second = dispatcher.submit("second")

      assert second.result(timeout=5).ok is True
      assert not first.done()
    finally:
      release_first.set()

    assert first.result(timeout=5).ok is True

  def test_each_caller_gets_its_own_result(self, log_manager: KeymasterLogger) -> None:
    auth = ScriptedAuthenticator(log_manager, lambda reason: AuthResult(ok=reason == "yes"))
    dispatcher = PromptDispatcher(auth.authenticate)

    assert dispatcher.authenticate("yes").ok is True
    assert dispatcher.authenticate("no").ok is False

  def test_exception_reaches_caller(self) -> None:
    def broken(reason: str) -> AuthResult:
      raise RuntimeError("prompt crashed")

    with pytest.raises(RuntimeError, match="prompt crashed"):
      PromptDispatcher(broken).authenticate("why")


class TestSshAgentAuthenticator:
  """Signature based user-presence check."""

  @pytest.fixture(scope="class")
  def rsa_key(self) -> paramiko.RSAKey:
    return paramiko.RSAKey.generate(2048)

  def _agent_key(self, public: paramiko.PKey, signer: paramiko.PKey, comment: str = "touchid") -> Mock:
    key = Mock()
    key.comment = comment
    key.get_name.return_value = public.get_name()
    key.asbytes.return_value = public.asbytes()
    key.sign_ssh_data.side_effect = lambda data, algorithm=None: bytes(signer.sign_ssh_data(data, algorithm))
    return key

  def _run(self, log_manager: KeymasterLogger, keys: list[Mock]) -> tuple[AuthResult, Mock]:
    agent = Mock()
    agent.get_keys.return_value = keys
    with patch("keymasterd.authenticators.ssh_agent.paramiko.Agent", return_value=agent):
      result = SshAgentAuthenticator(log_manager, key_comment="touchid").authenticate("Keymasterd: \"k\"")
    return result, agent

  def test_requires_key_comment(self, log_manager: KeymasterLogger) -> None:
    with pytest.raises(AuthenticatorConfigError):
      SshAgentAuthenticator(log_manager, key_comment="")

  def test_valid_signature(self, log_manager: KeymasterLogger, rsa_key: paramiko.RSAKey) -> None:
    key = self._agent_key(rsa_key, rsa_key)

    result, agent = self._run(log_manager, [key])

    assert result == AuthResult(ok=True)
    agent.close.assert_called_once()

  def test_fresh_challenge_each_time(self, log_manager: KeymasterLogger, rsa_key: paramiko.RSAKey) -> None:
    key = self._agent_key(rsa_key, rsa_key)

    self._run(log_manager, [key])
    self._run(log_manager, [key])

    first, second = (c.args[0] for c in key.sign_ssh_data.call_args_list)
    assert first != second
    assert first.startswith(CHALLENGE_DOMAIN)

  def test_rsa_key_signs_with_sha256(self, log_manager: KeymasterLogger, rsa_key: paramiko.RSAKey) -> None:
    key = self._agent_key(rsa_key, rsa_key)

    result, _ = self._run(log_manager, [key])

    assert result == AuthResult(ok=True)
    assert key.sign_ssh_data.call_args.args[1] == "rsa-sha2-256"

  def test_challenge_binds_reason(self) -> None:
    challenge = SshAgentAuthenticator.build_challenge('desc: "github_token"')

    domain, reason, nonce = challenge.split(b"\0", 2)
    assert domain == CHALLENGE_DOMAIN
    assert reason == b'desc: "github_token"'
    assert len(nonce) == 32

  def test_signature_from_other_key_fails(self, log_manager: KeymasterLogger, rsa_key: paramiko.RSAKey) -> None:
    impostor = paramiko.RSAKey.generate(2048)
    key = self._agent_key(rsa_key, impostor)

    result, agent = self._run(log_manager, [key])

    assert result == AuthResult(ok=False, error="Agent returned an invalid signature")
    agent.close.assert_called_once()

  def test_canceled_signing(self, log_manager: KeymasterLogger, rsa_key: paramiko.RSAKey) -> None:
    key = self._agent_key(rsa_key, rsa_key)
    key.sign_ssh_data.side_effect = paramiko.SSHException("agent refused")

    result, _ = self._run(log_manager, [key])

    assert result == AuthResult(ok=False, error="Agent signing operation failed or was canceled")

  def test_empty_agent(self, log_manager: KeymasterLogger) -> None:
    result, agent = self._run(log_manager, [])

    assert result == AuthResult(ok=False, error="No keys found in the SSH agent")
    agent.close.assert_called_once()

  def test_missing_key(self, log_manager: KeymasterLogger, rsa_key: paramiko.RSAKey) -> None:
    result, _ = self._run(log_manager, [self._agent_key(rsa_key, rsa_key, comment="other")])

    assert result.ok is False
    assert "touchid" in result.description


class TestPinentryAuthenticator:
  """Assuan CONFIRM dialog."""

  GREETING = "OK Pleased to meet you"

  def _completed(self, confirm_line: str) -> subprocess.CompletedProcess:
    stdout = "\n".join([self.GREETING, "OK", "OK", "OK", "OK", confirm_line, "OK closing connection"]) + "\n"
    return subprocess.CompletedProcess(args=["pinentry"], returncode=0, stdout=stdout, stderr="")

  def test_confirmed(self, log_manager: KeymasterLogger, pinentry_program: str) -> None:
    auth = PinentryAuthenticator(log_manager, program=pinentry_program)

    with patch("keymasterd.authenticators.pinentry.subprocess.run", return_value=self._completed("OK")) as mock_run:
      result = auth.authenticate('Keymasterd wants to access the Keychain: "github_token"')

    assert result == AuthResult(ok=True)
    script = mock_run.call_args.kwargs["input"]
    assert 'SETDESC Keymasterd wants to access the Keychain: "github_token"\n' in script
    assert "CONFIRM\n" in script
    assert mock_run.call_args.args[0] == [pinentry_program]

  def test_cancelled(self, log_manager: KeymasterLogger, pinentry_program: str) -> None:
    auth = PinentryAuthenticator(log_manager, program=pinentry_program)
    completed = self._completed("ERR 83886179 Operation cancelled <Pinentry>")

    with patch("keymasterd.authenticators.pinentry.subprocess.run", return_value=completed):
      result = auth.authenticate("why")

    assert result == AuthResult(ok=False, error="Operation cancelled <Pinentry>")

  def test_truncated_conversation(self, log_manager: KeymasterLogger, pinentry_program: str) -> None:
    auth = PinentryAuthenticator(log_manager, program=pinentry_program)
    completed = subprocess.CompletedProcess(args=[], returncode=1, stdout=self.GREETING + "\n", stderr="")

    with patch("keymasterd.authenticators.pinentry.subprocess.run", return_value=completed):
      result = auth.authenticate("why")

    assert result == AuthResult(ok=False, error="pinentry exited before answering")

  def test_timeout(self, log_manager: KeymasterLogger, pinentry_program: str) -> None:
    auth = PinentryAuthenticator(log_manager, program=pinentry_program)

    with patch(
      "keymasterd.authenticators.pinentry.subprocess.run",
      side_effect=subprocess.TimeoutExpired(cmd="pinentry", timeout=1),
    ):
      result = auth.authenticate("why")

    assert result == AuthResult(ok=False, error="Confirmation prompt timed out")

  def test_multiline_reason_is_escaped(self, log_manager: KeymasterLogger, pinentry_program: str) -> None:
    auth = PinentryAuthenticator(log_manager, program=pinentry_program)

    with patch("keymasterd.authenticators.pinentry.subprocess.run", return_value=self._completed("OK")) as mock_run:
      auth.authenticate("line one\nline two 100%")

    assert "SETDESC line one%0Aline two 100%25\n" in mock_run.call_args.kwargs["input"]

  def test_assuan_escape(self) -> None:
    assert assuan_escape("a%b\r\nc") == "a%25b%0D%0Ac"

  def test_rejects_non_executable(self, log_manager: KeymasterLogger, tmp_path: Path) -> None:
    plain = tmp_path / "pinentry"
    plain.write_text("")
    os.chmod(plain, 0o644)

    with pytest.raises(AuthenticatorConfigError, match="not executable"):
      PinentryAuthenticator(log_manager, program=str(plain))

  def test_no_program_found(self, log_manager: KeymasterLogger) -> None:
    with patch("keymasterd.authenticators.pinentry.shutil.which", return_value=None):
      with pytest.raises(AuthenticatorConfigError, match="No pinentry program found"):
        PinentryAuthenticator(log_manager)

  def test_detect_prefers_first_candidate(self) -> None:
    found = {"pinentry-mac": "/opt/homebrew/bin/pinentry-mac", "pinentry": "/usr/bin/pinentry"}

    with patch("keymasterd.authenticators.pinentry.shutil.which", side_effect=found.get):
      assert detect_pinentry() == "/opt/homebrew/bin/pinentry-mac"


class TestAuthenticatorFactory:
  """Test suite for AuthenticatorFactory."""

  def test_ssh_agent(self, log_manager: KeymasterLogger) -> None:
    config = KeymasterConfig(authenticator="ssh-agent", ssh_agent_key_comment="touchid")

    auth = AuthenticatorFactory.create(config, log_manager)

    assert isinstance(auth, SshAgentAuthenticator)
    assert auth.key_comment == "touchid"

  def test_pinentry(self, log_manager: KeymasterLogger, pinentry_program: str) -> None:
    config = KeymasterConfig(authenticator="pinentry", pinentry_program=pinentry_program)

    auth = AuthenticatorFactory.create(config, log_manager)

    assert isinstance(auth, PinentryAuthenticator)
    assert auth.program == pinentry_program

  def test_unknown(self, log_manager: KeymasterLogger) -> None:
    with pytest.raises(AuthenticatorConfigError, match="must be one of"):
      AuthenticatorFactory.create(KeymasterConfig(authenticator="yubikey"), log_manager)
