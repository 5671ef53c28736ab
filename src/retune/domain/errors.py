"""
Error taxonomy for parameter estimation and retention optimization.

Every failure is surfaced to the caller unchanged; nothing is defaulted
to hide missing data.
"""


class RetuneError(Exception):
    """Base class for all errors raised by retune."""


class InvalidInputError(RetuneError):
    """The request is structurally invalid (zero days, malformed search)."""


class InsufficientDataError(RetuneError):
    """
    The filtered review log lacks the shape needed for a statistic.

    Attributes:
        statistic: Name of the statistic that could not be computed.
    """

    def __init__(self, statistic: str, message: str | None = None):
        self.statistic = statistic
        super().__init__(message or f"not enough review history to compute {statistic}")


class EngineFailureError(RetuneError):
    """The simulation engine could not produce a result."""


class SimulationAbortedError(EngineFailureError):
    """The simulation was cancelled through the progress callback."""


class BackendUnavailableError(RetuneError):
    """The review log could not be read (no collection, AnkiConnect unreachable)."""
