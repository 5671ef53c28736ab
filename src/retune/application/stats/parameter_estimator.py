"""
Parameter estimator for deriving simulation inputs from a review log.

This is a pure computation module with no I/O.
"""

from collections import Counter
from collections.abc import Iterable

from retune.domain.constants import DEFAULT_RECALL_COSTS, MS_PER_SECOND
from retune.domain.errors import InsufficientDataError
from retune.domain.stats.models import ParameterBundle, ReviewEvent, ReviewKind


class ParameterEstimator:
    """
    Computes a ParameterBundle from review events.

    Stateless and side-effect free; safe to share between threads.
    """

    def estimate(self, events: Iterable[ReviewEvent]) -> ParameterBundle:
        """
        Estimate rating probabilities and time costs from review events.

        Events are processed in card_id, then event_id order.

        Raises:
            InsufficientDataError: A statistic has no events to be computed from.
        """
        ordered = sorted(events, key=lambda e: (e.card_id, e.event_id))

        first_events = self._first_graduation_events(ordered)
        first_rating_probability = self._compute_first_rating_probability(first_events)
        review_rating_probability = self._compute_review_rating_probability(ordered)
        recall_cost = self._compute_recall_cost(ordered)
        learn_cost = self._compute_learn_cost(first_events)

        run_seconds = self._average_run_seconds_by_kind(ordered)
        # Time to relearn a lapse plus the time spent failing the review itself.
        forget_cost = run_seconds[ReviewKind.RELEARNING] + recall_cost[0]

        return ParameterBundle(
            first_rating_probability=first_rating_probability,
            review_rating_probability=review_rating_probability,
            recall_cost=recall_cost,
            learn_cost=learn_cost,
            forget_cost=forget_cost,
        )

    def _first_graduation_events(self, events: list[ReviewEvent]) -> list[ReviewEvent]:
        """
        Return each card's first rated Learning event.

        Cards without one contribute nothing.
        """
        found: list[ReviewEvent] = []
        current_card = None
        seen_first = False

        for event in events:
            if event.card_id != current_card:
                current_card = event.card_id
                seen_first = False
            if seen_first:
                continue
            if event.kind == ReviewKind.LEARNING and event.rating >= 1:
                found.append(event)
                seen_first = True

        return found

    def _compute_first_rating_probability(
        self, first_events: list[ReviewEvent]
    ) -> tuple[float, float, float, float]:
        if not first_events:
            raise InsufficientDataError(
                "first_rating_probability", "no rated learning steps in the review history"
            )

        counts = Counter(e.rating for e in first_events)
        total = len(first_events)
        return tuple(counts[rating] / total for rating in (1, 2, 3, 4))

    def _compute_review_rating_probability(
        self, events: list[ReviewEvent]
    ) -> tuple[float, float, float]:
        """
        Probability of Hard/Good/Easy given the review was not failed.

        Unrated (0) and Again (1) reviews are left out of the denominator.
        """
        counts = Counter(
            e.rating for e in events if e.kind == ReviewKind.REVIEW and e.rating >= 2
        )
        total = sum(counts.values())
        if total == 0:
            raise InsufficientDataError(
                "review_rating_probability", "no passed reviews in the review history"
            )

        return tuple(counts[rating] / total for rating in (2, 3, 4))

    def _compute_recall_cost(
        self, events: list[ReviewEvent]
    ) -> tuple[float, float, float, float]:
        """
        Average answer time of Review-phase events, per rating.

        Ratings never seen keep their default cost; at least one must be seen.
        """
        totals_ms = [0, 0, 0, 0]
        counts = [0, 0, 0, 0]

        for event in events:
            if event.kind != ReviewKind.REVIEW or event.rating < 1:
                continue
            slot = event.rating - 1
            totals_ms[slot] += event.duration_ms
            counts[slot] += 1

        if not any(counts):
            raise InsufficientDataError(
                "recall_cost", "no rated reviews in the review history"
            )

        return tuple(
            totals_ms[slot] / counts[slot] / MS_PER_SECOND if counts[slot] else default
            for slot, default in enumerate(DEFAULT_RECALL_COSTS)
        )

    def _compute_learn_cost(self, first_events: list[ReviewEvent]) -> float:
        if not first_events:
            raise InsufficientDataError("learn_cost")

        total_ms = sum(e.duration_ms for e in first_events)
        return total_ms / len(first_events) / MS_PER_SECOND

    def _average_run_seconds_by_kind(
        self, events: list[ReviewEvent]
    ) -> dict[ReviewKind, float]:
        """
        Average duration of consecutive same-kind runs, bucketed by kind.

        For example, a card reviewed as (x = relearning step, o = review)

            o x x o o x x x o

        contributes two Relearning runs (of two and three events). A run only
        ends when the kind changes, so it can span a card boundary. Kinds with
        no runs average to 0.0.
        """
        runs_ms: dict[ReviewKind, list[int]] = {kind: [] for kind in ReviewKind}
        current_kind = None
        run_ms = 0

        for event in events:
            if event.kind != current_kind:
                if current_kind is not None:
                    runs_ms[current_kind].append(run_ms)
                current_kind = event.kind
                run_ms = 0
            run_ms += event.duration_ms

        if current_kind is not None:
            runs_ms[current_kind].append(run_ms)

        return {
            kind: sum(runs) / len(runs) / MS_PER_SECOND if runs else 0.0
            for kind, runs in runs_ms.items()
        }
