"""Tests for CLI commands: help, params, optimize, config, serve, and humanize_error."""

import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from retune.domain.errors import (
    BackendUnavailableError,
    EngineFailureError,
    InsufficientDataError,
    InvalidInputError,
    SimulationAbortedError,
)
from retune.domain.stats.models import ParameterBundle
from retune.interface.cli import app, humanize_error

runner = CliRunner()

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
    service.compute_optimal_retention = AsyncMock(return_value=0.87)
    with patch(
        "retune.application.factory.get_retention_service",
        new=AsyncMock(return_value=service),
    ):
        yield service


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "retune" in result.stdout
    assert "params" in result.stdout
    assert "optimize" in result.stdout


# --- Params ---


def test_params_json(mock_service):
    result = runner.invoke(app, ["params", "deck:Test", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["recall_cost"] == [20.0, 14.0, 8.0, 5.0]
    assert data["forget_cost"] == 45.0
    mock_service.estimate_parameters.assert_awaited_once_with("deck:Test")


def test_params_text(mock_service):
    result = runner.invoke(app, ["params"])

    assert result.exit_code == 0
    assert "Learn cost:     30.0s" in result.stdout
    assert "good=60.0%" in result.stdout
    mock_service.estimate_parameters.assert_awaited_once_with("")


def test_params_insufficient_data(mock_service):
    mock_service.estimate_parameters.side_effect = InsufficientDataError("recall_cost")

    result = runner.invoke(app, ["params", "deck:New"])

    assert result.exit_code == 2
    assert "Not enough review history" in result.output


def test_params_missing_collection(mock_home, tmp_path):
    result = runner.invoke(
        app, ["params", "--backend", "direct", "--anki-base", str(tmp_path / "nope")]
    )

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Cannot read review history" in result.output


# --- Optimize ---


def test_optimize_json(mock_service):
    result = runner.invoke(
        app, ["optimize", "deck:Test", "--days", "100", "--minutes", "10", "--json"]
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"optimal_retention": 0.87}

    request, progress = mock_service.compute_optimal_retention.call_args.args
    assert request.search == "deck:Test"
    assert request.days_to_simulate == 100
    assert request.max_minutes_of_study_per_day == 10
    assert len(request.weights) == 17


def test_optimize_text(mock_service):
    result = runner.invoke(app, ["optimize", "--weights", "1,2,3"])

    assert result.exit_code == 0
    assert "Optimal retention: 0.87" in result.stdout
    request, _ = mock_service.compute_optimal_retention.call_args.args
    assert request.weights == (1.0, 2.0, 3.0)


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (InvalidInputError("no days to simulate"), 2),
        (InsufficientDataError("first_rating_probability"), 2),
        (SimulationAbortedError("stopped"), 130),
        (EngineFailureError("diverged"), 1),
        (BackendUnavailableError("AnkiConnect unavailable"), 1),
    ],
)
def test_optimize_errors(mock_service, error, code):
    mock_service.compute_optimal_retention.side_effect = error

    result = runner.invoke(app, ["optimize", "--days", "0"])

    assert result.exit_code == code


def test_optimize_invalid_option(mock_service):
    result = runner.invoke(app, ["optimize", "--deck-size", "0"])

    assert result.exit_code == 2
    mock_service.compute_optimal_retention.assert_not_called()


# --- Config ---


def test_config_show_command(mock_home):
    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["backend"] == "auto"
    assert data["days_to_simulate"] == 365
    assert "log_dir" not in data


def test_verbose_flag_sets_log_level(mock_home):
    root = logging.getLogger()
    previous = root.level
    try:
        result = runner.invoke(app, ["-vv", "config", "show"])
        assert result.exit_code == 0
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous)


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_with("retune.server:app", host="127.0.0.1", port=9000, reload=False)


# --- humanize_error ---


def test_humanize_error_names_statistic():
    message, code = humanize_error(InsufficientDataError("learn_cost"))
    assert "learn_cost" in message
    assert code == 2


def test_humanize_error_distinguishes_abort_from_failure():
    assert humanize_error(SimulationAbortedError("x"))[1] == 130
    assert humanize_error(EngineFailureError("x"))[1] == 1


def test_humanize_error_backend_unavailable():
    message, code = humanize_error(BackendUnavailableError("no collection"))
    assert "no collection" in message
    assert code == 1
