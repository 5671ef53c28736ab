"""
FSRS Simulation Engine — default SimulationEngine implementation.

Simulates a deck being learned and reviewed under the FSRS-4.5 memory model
for each candidate retention, and picks the one with the lowest study time
per memorized card. The simulation is vectorised over cards with numpy; days
are stepped sequentially.
"""

import logging
import math
from collections.abc import Sequence

import numpy as np

from retune.domain.constants import (
    FSRS_DECAY,
    FSRS_FACTOR,
    FSRS_MAX_DIFFICULTY,
    FSRS_MIN_DIFFICULTY,
    FSRS_MIN_STABILITY,
    FSRS_WEIGHT_COUNT,
    SEARCH_RETENTION_HIGH,
    SEARCH_RETENTION_LOW,
    SEARCH_RETENTION_STEP,
)
from retune.domain.errors import EngineFailureError, SimulationAbortedError
from retune.domain.stats.models import SimulatorConfig
from retune.domain.stats.ports import ProgressCallback, SimulationEngine

logger = logging.getLogger(__name__)


def _forgetting_curve(elapsed: np.ndarray, stability: np.ndarray) -> np.ndarray:
    s = np.maximum(stability, FSRS_MIN_STABILITY)
    return np.power(1.0 + FSRS_FACTOR * elapsed / s, FSRS_DECAY)


def _next_interval(stability: np.ndarray, retention: float, max_ivl: float) -> np.ndarray:
    ivl = stability / FSRS_FACTOR * (math.pow(retention, 1.0 / FSRS_DECAY) - 1.0)
    return np.clip(np.round(ivl), 1.0, max_ivl)


def _init_difficulty(w: np.ndarray, rating: np.ndarray | float) -> np.ndarray:
    return np.clip(w[4] - w[5] * (rating - 3.0), FSRS_MIN_DIFFICULTY, FSRS_MAX_DIFFICULTY)


def _next_difficulty(w: np.ndarray, d: np.ndarray, rating: np.ndarray) -> np.ndarray:
    new_d = d - w[6] * (rating - 3.0)
    new_d = w[7] * _init_difficulty(w, 3.0) + (1.0 - w[7]) * new_d
    return np.clip(new_d, FSRS_MIN_DIFFICULTY, FSRS_MAX_DIFFICULTY)


def _stability_after_success(
    w: np.ndarray, s: np.ndarray, r: np.ndarray, d: np.ndarray, rating: np.ndarray
) -> np.ndarray:
    hard_penalty = np.where(rating == 2, w[15], 1.0)
    easy_bonus = np.where(rating == 4, w[16], 1.0)
    inc = (
        math.exp(w[8])
        * (11.0 - d)
        * np.power(s, -w[9])
        * (np.exp((1.0 - r) * w[10]) - 1.0)
    )
    return s * (1.0 + inc * hard_penalty * easy_bonus)


def _stability_after_failure(
    w: np.ndarray, s: np.ndarray, r: np.ndarray, d: np.ndarray
) -> np.ndarray:
    new_s = (
        w[11]
        * np.power(d, -w[12])
        * (np.power(s + 1.0, w[13]) - 1.0)
        * np.exp((1.0 - r) * w[14])
    )
    return np.maximum(np.minimum(new_s, s), FSRS_MIN_STABILITY)


def _prefix_count(costs: np.ndarray, limit: float) -> int:
    """Number of leading items whose cumulative cost fits in `limit`."""
    if costs.size == 0 or limit <= 0:
        return 0
    return int(np.searchsorted(np.cumsum(costs), limit, side="right"))


class FsrsSimulationEngine(SimulationEngine):
    """
    Grid search over retention using a Monte-Carlo review simulation.

    Args:
        samples: Seeded simulation runs per candidate retention.
        seed: Base seed; run `k` of every candidate uses `seed + k`, so
            candidates are compared on the same random draws.
    """

    def __init__(self, samples: int = 1, seed: int = 42):
        self.samples = samples
        self.seed = seed

    def candidates(self) -> np.ndarray:
        span = SEARCH_RETENTION_HIGH - SEARCH_RETENTION_LOW
        count = int(round(span / SEARCH_RETENTION_STEP)) + 1
        return np.round(np.linspace(SEARCH_RETENTION_LOW, SEARCH_RETENTION_HIGH, count), 2)

    def optimize(
        self,
        config: SimulatorConfig,
        weights: Sequence[float],
        on_progress: ProgressCallback,
    ) -> float:
        w = self._validate(config, weights)
        candidates = self.candidates()
        total = len(candidates) * self.samples
        current = 0

        best_retention: float | None = None
        best_cost = math.inf

        for retention in candidates:
            runs = []
            for k in range(self.samples):
                rng = np.random.default_rng(self.seed + k)
                cost, memorized = self.simulate(config, w, float(retention), rng)
                runs.append(cost / memorized if memorized > 0 else math.inf)

                current += 1
                if not on_progress(current, total):
                    raise SimulationAbortedError(
                        f"Simulation aborted after {current}/{total} runs"
                    )

            cost_per_memorized = float(np.mean(runs))
            logger.debug(f"retention={retention:.2f} cost/memorized={cost_per_memorized:.3f}")
            if cost_per_memorized < best_cost:
                best_cost = cost_per_memorized
                best_retention = float(retention)

        if best_retention is None:
            raise EngineFailureError("No candidate retention memorized any card")
        return best_retention

    def simulate(
        self,
        config: SimulatorConfig,
        w: np.ndarray,
        retention: float,
        rng: np.random.Generator,
    ) -> tuple[float, float]:
        """
        Simulate `config.learn_span` days at a fixed desired retention.

        Returns:
            (total cost in seconds, expected number of cards remembered on
            the day after the last simulated day)
        """
        n = config.deck_size
        stability = np.zeros(n)
        difficulty = np.zeros(n)
        last_review = np.zeros(n)
        due = np.full(n, np.inf)
        learned = np.zeros(n, dtype=bool)

        recall_costs = np.asarray(config.recall_costs, dtype=float)
        first_p = np.asarray(config.first_rating_prob, dtype=float)
        review_p = np.asarray(config.review_rating_prob, dtype=float)
        first_p = first_p / first_p.sum()
        review_p = review_p / review_p.sum()
        forget_cost = config.forget_cost * config.loss_aversion
        learn_per_day = max(1, math.ceil(n / config.learn_span))

        total_cost = 0.0
        next_new = 0

        for day in range(config.learn_span):
            budget = config.max_cost_perday

            # Reviews first, in card order, until the daily budget runs out
            idx = np.flatnonzero(learned & (due <= day))
            if idx.size:
                r = _forgetting_curve(day - last_review[idx], stability[idx])
                forgot = rng.random(idx.size) > r
                passed = rng.choice(np.array([2, 3, 4]), size=idx.size, p=review_p)
                rating = np.where(forgot, 1, passed)
                costs = np.where(forgot, forget_cost, recall_costs[passed - 2])

                done = _prefix_count(costs, budget)
                idx, r, rating, forgot = idx[:done], r[:done], rating[:done], forgot[:done]
                spent = float(costs[:done].sum())
                budget -= spent
                total_cost += spent

                s, d = stability[idx], difficulty[idx]
                stability[idx] = np.where(
                    forgot,
                    _stability_after_failure(w, s, r, d),
                    _stability_after_success(w, s, r, d, rating),
                )
                difficulty[idx] = _next_difficulty(w, d, rating)
                last_review[idx] = day
                due[idx] = day + _next_interval(stability[idx], retention, config.max_ivl)

            # Then new cards with whatever budget is left
            if next_new < n:
                new_idx = np.arange(next_new, min(n, next_new + learn_per_day))
                done = _prefix_count(np.full(new_idx.size, config.learn_cost), budget)
                new_idx = new_idx[:done]
                if new_idx.size:
                    rating = rng.choice(np.array([1, 2, 3, 4]), size=new_idx.size, p=first_p)
                    stability[new_idx] = w[rating - 1]
                    difficulty[new_idx] = _init_difficulty(w, rating)
                    learned[new_idx] = True
                    last_review[new_idx] = day
                    due[new_idx] = day + _next_interval(
                        stability[new_idx], retention, config.max_ivl
                    )
                    total_cost += config.learn_cost * new_idx.size
                    next_new += new_idx.size

        if not learned.any():
            return total_cost, 0.0
        r_end = _forgetting_curve(
            config.learn_span - last_review[learned], stability[learned]
        )
        return total_cost, float(r_end.sum())

    def _validate(self, config: SimulatorConfig, weights: Sequence[float]) -> np.ndarray:
        if len(weights) < FSRS_WEIGHT_COUNT:
            raise EngineFailureError(
                f"Expected at least {FSRS_WEIGHT_COUNT} FSRS weights, got {len(weights)}"
            )
        if config.deck_size <= 0 or config.learn_span <= 0:
            raise EngineFailureError("Deck size and days to simulate must be positive")
        if config.max_cost_perday <= 0:
            raise EngineFailureError("No study time available per day")
        if sum(config.first_rating_prob) <= 0 or sum(config.review_rating_prob) <= 0:
            raise EngineFailureError("Rating probabilities are all zero")
        return np.asarray(weights[:FSRS_WEIGHT_COUNT], dtype=float)
