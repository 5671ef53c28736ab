"""
Retention Service — Application layer orchestrator.

Coordinates fetching review history from the repository, estimating the
parameter bundle, and driving the simulation engine.
"""

import asyncio
import logging
import math

from retune.domain.constants import MAX_RETENTION, MIN_RETENTION
from retune.domain.errors import InvalidInputError
from retune.domain.stats.models import ParameterBundle, SimulationRequest, SimulatorConfig
from retune.domain.stats.ports import ReviewLogRepository, SimulationEngine

from .parameter_estimator import ParameterEstimator
from .progress import ProgressHandler

logger = logging.getLogger(__name__)


class RetentionService:
    """
    Application service for computing optimal retention.

    Follows Dependency Inversion: depends on the ReviewLogRepository and
    SimulationEngine abstractions, not concrete adapter implementations.
    No state is kept between calls.
    """

    def __init__(
        self,
        review_log: ReviewLogRepository,
        engine: SimulationEngine,
        estimator: ParameterEstimator | None = None,
    ):
        """
        Args:
            review_log: The repository (port) for fetching review history.
            engine: The simulation engine (port) that searches for retention.
            estimator: Optional custom estimator; uses default if not provided.
        """
        self._log = review_log
        self._engine = engine
        self._estimator = estimator or ParameterEstimator()

    async def estimate_parameters(self, search: str) -> ParameterBundle:
        """
        Estimate the parameter bundle from the history of cards matching `search`.

        Raises:
            InvalidInputError: The search is malformed.
            InsufficientDataError: The history is missing a required statistic.
        """
        events = await self._log.search(search)
        logger.info(f"Estimating parameters from {len(events)} review events")

        params = self._estimator.estimate(events)
        logger.debug(f"Estimated parameters: {params}")
        return params

    async def compute_optimal_retention(
        self,
        request: SimulationRequest,
        progress: ProgressHandler | None = None,
    ) -> float:
        """
        Compute the retention minimising study time, clamped to [0.75, 0.95].

        The engine runs on a worker thread; `progress` receives its updates
        and may be used to cancel it.

        Raises:
            InvalidInputError: No days to simulate, or a malformed search.
            InsufficientDataError: The history is missing a required statistic.
            EngineFailureError: The engine failed or was aborted.
        """
        if request.days_to_simulate == 0:
            raise InvalidInputError("no days to simulate")

        params = await self.estimate_parameters(request.search)
        config = build_simulator_config(request, params)
        progress = progress or ProgressHandler()

        raw = await asyncio.to_thread(
            self._engine.optimize,
            config,
            list(request.weights),
            progress.report_progress,
        )
        retention = clamp_retention(raw)
        logger.info(f"Optimal retention: raw={raw:.4f} clamped={retention:.4f}")
        return retention


def build_simulator_config(
    request: SimulationRequest, params: ParameterBundle
) -> SimulatorConfig:
    """
    Map a request and parameter bundle onto the engine configuration.

    The Again recall cost is already part of `forget_cost`, so only the
    Hard/Good/Easy recall costs are passed on.
    """
    return SimulatorConfig(
        deck_size=request.deck_size,
        learn_span=request.days_to_simulate,
        max_cost_perday=request.max_minutes_of_study_per_day * 60.0,
        max_ivl=float(request.max_interval),
        recall_costs=params.recall_cost[1:],
        forget_cost=params.forget_cost,
        learn_cost=params.learn_cost,
        first_rating_prob=params.first_rating_probability,
        review_rating_prob=params.review_rating_probability,
        loss_aversion=request.loss_aversion,
    )


def clamp_retention(value: float) -> float:
    if math.isnan(value):
        return MIN_RETENTION
    return min(max(value, MIN_RETENTION), MAX_RETENTION)
