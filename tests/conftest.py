# tests/conftest.py
import pytest

from callpilot.main import app
from callpilot.services.call_history_service import CallHistoryManager, get_call_history
from callpilot.services.storage import InMemoryKeyValueStore


@pytest.fixture
def history():
    """Fresh in-memory call history wired into the app for one test."""
    manager = CallHistoryManager(InMemoryKeyValueStore())
    app.dependency_overrides[get_call_history] = lambda: manager
    yield manager
    app.dependency_overrides.clear()
