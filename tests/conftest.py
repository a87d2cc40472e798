from collections.abc import Generator
from pathlib import Path

import pytest
from pytest import MonkeyPatch

from keymasterd.core.singleton import SingletonMeta
from keymasterd.managers.app_manager import AppManager
from keymasterd.managers.log_manager import KeymasterLogger
from tests.helpers import ENV_VARS, FakeSecretStore, StubAuthenticator


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: MonkeyPatch, tmp_path: Path) -> None:
  """Keep tests independent of the caller's KEYMASTERD_* settings."""
  for var in ENV_VARS:
    monkeypatch.delenv(var, raising=False)
  monkeypatch.setenv("KEYMASTERD_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture(autouse=True)
def reset_app_manager() -> Generator[None, None, None]:
  SingletonMeta.reset(AppManager)
  yield
  SingletonMeta.reset(AppManager)


@pytest.fixture
def log_manager() -> KeymasterLogger:
  return KeymasterLogger(log_file="test.log")


@pytest.fixture
def store(log_manager: KeymasterLogger) -> FakeSecretStore:
  return FakeSecretStore(log_manager, {"github_token": "ghp_abc", "my key": "spaced"})


@pytest.fixture
def authenticator() -> StubAuthenticator:
  return StubAuthenticator()
