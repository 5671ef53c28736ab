"""
Domain models for review-log statistics and retention optimization.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from enum import IntEnum


class ReviewKind(IntEnum):
    """
    Phase of a card at the time of a review.

    Values match the `type` column of Anki's revlog table.
    """

    LEARNING = 0
    REVIEW = 1
    RELEARNING = 2
    FILTERED = 3
    MANUAL = 4


@dataclass(frozen=True)
class ReviewEvent:
    """
    A single review log entry.

    Attributes:
        card_id: The card that was reviewed.
        event_id: Revlog id (epoch ms), unique within a card and increasing.
        kind: Phase of the card when the review happened.
        rating: Button pressed (0=none, 1=Again, 2=Hard, 3=Good, 4=Easy).
        duration_ms: Time spent answering, in milliseconds.
    """

    card_id: int
    event_id: int
    kind: ReviewKind
    rating: int
    duration_ms: int

    def __post_init__(self):
        if not 0 <= self.rating <= 4:
            raise ValueError(f"rating must be in 0..4, got {self.rating}")
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {self.duration_ms}")


@dataclass(frozen=True)
class ParameterBundle:
    """
    Behavioural parameters learned from a review log.

    Costs are in seconds. `recall_cost` is indexed by rating - 1,
    `first_rating_probability` by rating - 1 and
    `review_rating_probability` by rating - 2 (Hard, Good, Easy).
    """

    first_rating_probability: tuple[float, float, float, float]
    review_rating_probability: tuple[float, float, float]
    recall_cost: tuple[float, float, float, float]
    learn_cost: float
    forget_cost: float

    def to_dict(self) -> dict:
        return {
            "first_rating_probability": list(self.first_rating_probability),
            "review_rating_probability": list(self.review_rating_probability),
            "recall_cost": list(self.recall_cost),
            "learn_cost": self.learn_cost,
            "forget_cost": self.forget_cost,
        }


@dataclass(frozen=True)
class SimulationRequest:
    """
    Caller-supplied request for an optimal retention computation.

    Attributes:
        deck_size: Number of cards in the simulated deck.
        days_to_simulate: Simulated horizon in days.
        max_minutes_of_study_per_day: Daily study budget in minutes.
        max_interval: Longest interval the scheduler may assign (days).
        loss_aversion: Weight applied to the cost of forgetting.
        weights: FSRS model parameters.
        search: Anki search selecting the cards whose history is used.
    """

    deck_size: int
    days_to_simulate: int
    max_minutes_of_study_per_day: int
    max_interval: int
    loss_aversion: float
    weights: tuple[float, ...]
    search: str = ""


@dataclass(frozen=True)
class SimulatorConfig:
    """Configuration handed to the simulation engine."""

    deck_size: int
    learn_span: int
    max_cost_perday: float  # seconds
    max_ivl: float
    recall_costs: tuple[float, float, float]  # Hard, Good, Easy
    forget_cost: float
    learn_cost: float
    first_rating_prob: tuple[float, float, float, float]
    review_rating_prob: tuple[float, float, float]
    loss_aversion: float


@dataclass
class ComputeRetentionProgress:
    """Snapshot of an in-flight optimization."""

    current: int = 0
    total: int = 0
