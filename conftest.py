"""Pytest configuration.

Makes the `flightpay` package importable from a plain checkout.
"""

import sys
from pathlib import Path

import pytest


def _prepend_sys_path(path: Path) -> None:
    resolved = str(path.resolve())
    if resolved not in sys.path:
        sys.path.insert(0, resolved)


REPO_ROOT = Path(__file__).resolve().parent

_prepend_sys_path(REPO_ROOT)


@pytest.fixture
def store(tmp_path):
    from flightpay.store import FamilyStore

    return FamilyStore(tmp_path / "families.db").init()


@pytest.fixture
def square_env(monkeypatch):
    """Sandbox credentials for SquareClient.from_env."""
    monkeypatch.setenv("SQUARE_ENVIRONMENT", "sandbox")
    monkeypatch.setenv("SQUARE_SANDBOX_ACCESS_TOKEN", "sandbox-token")
    monkeypatch.delenv("SQUARE_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("SQUARE_HTTP_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("SQUARE_CURRENCY", raising=False)
