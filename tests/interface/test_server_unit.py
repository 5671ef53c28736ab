import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

import retune.server as server
from retune.application.stats.progress import ProgressHandler
from retune.consts import VERSION
from retune.domain.errors import (
    BackendUnavailableError,
    EngineFailureError,
    InsufficientDataError,
    InvalidInputError,
    SimulationAbortedError,
)
from retune.domain.stats.models import ParameterBundle
from retune.server import app

client = TestClient(app)

BUNDLE = ParameterBundle(
    first_rating_probability=(0.1, 0.2, 0.6, 0.1),
    review_rating_probability=(0.1, 0.8, 0.1),
    recall_cost=(20.0, 14.0, 8.0, 5.0),
    learn_cost=30.0,
    forget_cost=45.0,
)


@pytest.fixture
def mock_service(mock_home):
    service = MagicMock()
    service.estimate_parameters = AsyncMock(return_value=BUNDLE)
    service.compute_optimal_retention = AsyncMock(return_value=0.9)
    with patch(
        "retune.application.factory.get_retention_service",
        new=AsyncMock(return_value=service),
    ):
        yield service


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_parameters_endpoint(mock_service):
    response = client.post("/fsrs/parameters", json={"search": "deck:Test"})

    assert response.status_code == 200
    data = response.json()
    assert data["first_rating_probability"] == [0.1, 0.2, 0.6, 0.1]
    assert data["learn_cost"] == 30.0
    mock_service.estimate_parameters.assert_awaited_once_with("deck:Test")


def test_parameters_insufficient_data(mock_service):
    mock_service.estimate_parameters.side_effect = InsufficientDataError("recall_cost")

    response = client.post("/fsrs/parameters", json={})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == "insufficient_data"
    assert detail["statistic"] == "recall_cost"


def test_parameters_invalid_search(mock_service):
    mock_service.estimate_parameters.side_effect = InvalidInputError("bad search")

    response = client.post("/fsrs/parameters", json={"search": "deck:("})

    assert response.status_code == 400



def test_parameters_missing_collection(mock_home, tmp_path):
    response = client.post(
        "/fsrs/parameters",
        json={"backend": "direct", "anki_base": str(tmp_path / "nope")},
    )

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "backend_unavailable"

def test_optimal_retention_endpoint(mock_service):
    response = client.post(
        "/fsrs/optimal-retention",
        json={"search": "deck:Test", "days_to_simulate": 30, "weights": [0.5] * 17},
    )

    assert response.status_code == 200
    assert response.json() == {"optimal_retention": 0.9}
    request, progress = mock_service.compute_optimal_retention.call_args.args
    assert request.days_to_simulate == 30
    assert request.weights == (0.5,) * 17
    assert isinstance(progress, ProgressHandler)
    assert server._current_progress is None


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (InvalidInputError("no days to simulate"), 400),
        (InsufficientDataError("first_rating_probability"), 422),
        (SimulationAbortedError("stopped"), 409),
        (EngineFailureError("diverged"), 500),
        (BackendUnavailableError("AnkiConnect unavailable"), 503),
    ],
)
def test_optimal_retention_errors(mock_service, error, status):
    mock_service.compute_optimal_retention.side_effect = error

    response = client.post("/fsrs/optimal-retention", json={})

    assert response.status_code == status
    assert server._current_progress is None


def test_optimal_retention_invalid_config(mock_service):
    response = client.post("/fsrs/optimal-retention", json={"deck_size": 0})

    assert response.status_code == 400
    mock_service.compute_optimal_retention.assert_not_called()


def test_progress_and_cancel_when_idle():
    assert client.get("/fsrs/progress").json() == {"running": False, "current": 0, "total": 0}
    assert client.post("/fsrs/cancel").json() == {"cancelled": False}


def test_progress_and_cancel_while_running(monkeypatch):
    progress = ProgressHandler()
    progress.report_progress(4, 30)
    monkeypatch.setattr(server, "_current_progress", progress)

    assert client.get("/fsrs/progress").json() == {"running": True, "current": 4, "total": 30}
    assert client.post("/fsrs/cancel").json() == {"cancelled": True}
    assert progress.cancelled


def test_optimal_retention_busy(mock_service, monkeypatch):
    monkeypatch.setattr(server, "_current_progress", ProgressHandler())

    response = client.post("/fsrs/optimal-retention", json={})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_disconnect_cancels_running_optimization(mock_service):
    seen = []

    async def interrupted(request, progress):
        seen.append(progress)
        raise asyncio.CancelledError

    mock_service.compute_optimal_retention.side_effect = interrupted

    with pytest.raises(asyncio.CancelledError):
        await server.compute_optimal_retention(server.RetentionRequest())

    assert seen[0].cancelled
    assert server._current_progress is None
