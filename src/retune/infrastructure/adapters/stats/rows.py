"""Conversion of raw revlog rows into ReviewEvent objects."""

import logging

from retune.domain.stats.models import ReviewEvent, ReviewKind

logger = logging.getLogger(__name__)


def event_from_revlog(
    event_id: int, card_id: int, review_type: int, ease: int, taken_millis: int
) -> ReviewEvent | None:
    """
    Build a ReviewEvent from revlog columns.

    Returns None for entries outside the five known review kinds
    (e.g. rescheduling entries written by newer Anki versions).
    """
    try:
        kind = ReviewKind(review_type)
    except ValueError:
        logger.debug(f"Skipping revlog {event_id}: unknown review type {review_type}")
        return None

    return ReviewEvent(
        card_id=card_id,
        event_id=event_id,
        kind=kind,
        rating=ease,
        duration_ms=max(taken_millis, 0),
    )
