import os
import sys
from unittest.mock import MagicMock

# MOCK ANKI DEPENDENCY GLOBALLY
# This prevents ImportErrors during test collection if 'anki' package
# is missing or fails to initialize in the test environment.
mock_anki = MagicMock()
mock_anki.__path__ = []
mock_anki.__spec__ = None  # Required for importlib


# Helper to create submodule mocks
def create_mock_module():
    m = MagicMock()
    m.__spec__ = None
    m.__path__ = []
    return m


mock_collection = create_mock_module()
mock_collection.Collection = MagicMock()

mock_errors = create_mock_module()
mock_errors.SearchError = type("SearchError", (Exception,), {})

sys.modules["anki"] = mock_anki
sys.modules["anki.collection"] = mock_collection
sys.modules["anki.errors"] = mock_errors

import pytest  # noqa: E402

from retune.domain.stats.models import ReviewEvent, ReviewKind  # noqa: E402


def _ev(card_id, event_id, kind, rating, duration_ms=1000):
    return ReviewEvent(
        card_id=card_id, event_id=event_id, kind=kind, rating=rating, duration_ms=duration_ms
    )


@pytest.fixture
def history():
    """A small but complete review history for two cards."""
    return [
        _ev(1, 100, ReviewKind.LEARNING, 3, 4000),
        _ev(1, 200, ReviewKind.REVIEW, 1, 10000),
        _ev(1, 300, ReviewKind.RELEARNING, 3, 2500),
        _ev(1, 400, ReviewKind.RELEARNING, 3, 3500),
        _ev(1, 500, ReviewKind.REVIEW, 3, 5000),
        _ev(2, 110, ReviewKind.LEARNING, 2, 6000),
        _ev(2, 210, ReviewKind.REVIEW, 4, 3000),
    ]


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config
    monkeypatch.setenv("HOME", str(home))
    for var in list(os.environ):
        if var.startswith("RETUNE_") or var == "ANKI_CONNECT_HOST":
            monkeypatch.delenv(var)
    return home
