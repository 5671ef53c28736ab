"""
Ports (interfaces) for review-log retrieval and retention simulation.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from .models import ReviewEvent, SimulatorConfig

ProgressCallback = Callable[[int, int], bool]


class ReviewLogRepository(ABC):
    """
    Port for reading review history from Anki.

    Implementations:
        - DirectReviewLogRepository: Queries Anki's SQLite database directly.
        - ConnectReviewLogRepository: Uses AnkiConnect HTTP API.
    """

    @abstractmethod
    async def search(self, query: str) -> list[ReviewEvent]:
        """
        Fetch review events for the cards matching an Anki search.

        Args:
            query: Anki search string. Empty selects the whole collection.

        Returns:
            ReviewEvent objects ordered by card_id, then event_id ascending.

        Raises:
            InvalidInputError: If the search string is malformed.
        """
        pass


class SimulationEngine(ABC):
    """
    Port for the cost-simulation optimizer.

    The engine is treated as opaque: given a cost/probability model and FSRS
    weights it searches for the retention minimising expected study time.
    """

    @abstractmethod
    def optimize(
        self,
        config: SimulatorConfig,
        weights: Sequence[float],
        on_progress: ProgressCallback,
    ) -> float:
        """
        Run the search and return the raw retention estimate.

        `on_progress(current, total)` is called synchronously during the
        search, possibly from a worker thread. Returning False asks the
        engine to stop.

        Raises:
            EngineFailureError: The engine could not produce a result.
            SimulationAbortedError: The search was cancelled.
        """
        pass
