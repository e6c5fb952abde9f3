"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors).
"""
import importlib
import sys
from pathlib import Path
import pytest

# Ensure modules in backend/ and the test helpers are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_casework_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from the default (dev, in-memory) configuration.

    Why:
        Developers often export CASEWORK_* variables in their shell. Letting
        them leak into unit tests would make config and wiring tests depend
        on the machine they run on.
    """
    for var in (
        "CASEWORK_ENV",
        "GUSTAV_ENV",
        "CASEWORK_STORE",
        "CASEWORK_API_BASE_URL",
        "CASEWORK_API_TOKEN",
        "CASEWORK_HTTP_TIMEOUT",
        "CASEWORK_POLL_SECONDS",
        "CASEWORK_DATABASE_URL",
        "DATABASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_casework_store_between_tests():
    """Give the casework routes a fresh in-memory store per test.

    Behavior:
        - Tests that need data call `casework.set_store(...)` themselves.
        - Silently skipped when FastAPI is not installed (pure unit runs).
    """
    try:
        from backend.casework.store_memory import InMemoryStore
        routes = importlib.import_module("backend.web.routes.casework")
    except Exception:
        yield
        return
    routes.set_store(InMemoryStore())
    yield
    routes.set_store(InMemoryStore())
