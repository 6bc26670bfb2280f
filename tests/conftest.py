"""
Pytest configuration for Keepli tests

Points the SQLite store at a throwaway file before any keepli module is
imported, and provides fixtures shared across unit, infra and integration
tests.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

os.environ.setdefault("KEEPLI_DB_PATH", str(Path(tempfile.mkdtemp(prefix="keepli-tests-")) / "keepli.db"))
os.environ.setdefault("KEEPLI_ENV", "development")

import pytest  # noqa: E402

from keepli.infrastructure.database import reset_pool  # noqa: E402
from keepli.infrastructure.errors import CredentialError  # noqa: E402
from keepli.infrastructure.kv_store import MemoryKeyValueStore  # noqa: E402
from keepli.observability.telemetry import reset_telemetry  # noqa: E402


class FakeTokenProvider:
    """
    Hands out token-1 until asked for an interactive refresh, then token-2, ...

    Records invalidations and interactive calls so tests can assert the
    one-refresh-one-retry discipline.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.issued = 1
        self.current = "token-1"
        self.invalidated: list[str] = []
        self.interactive_calls = 0

    async def get_token(self, interactive: bool = False) -> str:
        if self.fail:
            raise CredentialError("no credentials")
        if interactive:
            self.interactive_calls += 1
            self.issued += 1
            self.current = f"token-{self.issued}"
        return self.current

    def invalidate(self, token: str) -> None:
        self.invalidated.append(token)


@pytest.fixture(autouse=True)
def _reset_telemetry():
    """Ensure each test starts with fresh counters and latencies"""
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def tokens():
    return FakeTokenProvider()


@pytest.fixture
def failing_tokens():
    return FakeTokenProvider(fail=True)


@pytest.fixture
def sqlite_db(tmp_path, monkeypatch):
    """Fresh SQLite file per test; the pool is rebuilt against it"""
    db_path = tmp_path / "keepli.db"
    monkeypatch.setenv("KEEPLI_DB_PATH", str(db_path))
    reset_pool()
    yield db_path
    reset_pool()
