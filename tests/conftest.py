"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports ``governor.core.config``
so settings never pick up a developer's local .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_AUTH_REQUIRED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from governor.adapters.store.in_memory import InMemoryDocumentStore
from governor.api.dependencies import reset_dependencies
from governor.services.game_service import GameService
from governor.services.governor import RequestGovernor
from governor.services.profile_service import ProfileService


class FakeClock:
    """Deterministic clock (UNIX seconds) used to test windows and expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    def advance_ms(self, milliseconds: float) -> None:
        self.current += milliseconds / 1000.0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def governor(clock: FakeClock) -> RequestGovernor:
    return RequestGovernor(clock=clock)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def game_service(store: InMemoryDocumentStore, governor: RequestGovernor) -> GameService:
    return GameService(store=store, governor=governor)


@pytest.fixture
def profile_service(store: InMemoryDocumentStore, governor: RequestGovernor) -> ProfileService:
    return ProfileService(store=store, governor=governor)


@pytest.fixture(autouse=True)
def _fresh_process_state():
    """Every test starts with a new process-wide store and governor."""
    reset_dependencies()
    yield
    reset_dependencies()
