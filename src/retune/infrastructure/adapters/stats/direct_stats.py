"""
Direct Review Log Repository — Infrastructure adapter for Anki's SQLite database.

Implements ReviewLogRepository by querying the Anki collection directly.
"""

import logging
from pathlib import Path

from anki.errors import SearchError

from retune.domain.constants import CHUNK_SIZE
from retune.domain.errors import BackendUnavailableError, InvalidInputError
from retune.domain.stats.models import ReviewEvent
from retune.domain.stats.ports import ReviewLogRepository
from retune.infrastructure.anki.repository import DEFAULT_PROFILE, AnkiRepository

from .rows import event_from_revlog

logger = logging.getLogger(__name__)


class DirectReviewLogRepository(ReviewLogRepository):
    """
    Reads review history straight from the revlog table of a local collection.

    Anki must not have the collection open at the same time.
    """

    def __init__(self, anki_base: Path | None = None, profile: str = DEFAULT_PROFILE):
        self.anki_base = anki_base
        self.profile = profile

    async def search(self, query: str) -> list[ReviewEvent]:
        """
        Fetch the review history of the cards matching `query`.

        Raises:
            InvalidInputError: The search is malformed.
            BackendUnavailableError: The collection could not be opened.
        """
        try:
            with AnkiRepository(self.anki_base, self.profile) as repo:
                events = self._read_revlog(repo, query)
        except FileNotFoundError as e:
            logger.error(f"Cannot open Anki collection: {e}")
            raise BackendUnavailableError(str(e)) from e

        events.sort(key=lambda e: (e.card_id, e.event_id))
        return events

    def _read_revlog(self, repo: AnkiRepository, query: str) -> list[ReviewEvent]:
        try:
            cids = sorted(repo.find_cards(query))
        except SearchError as e:
            raise InvalidInputError(f"Invalid search '{query}': {e}") from e

        if not cids or repo.col is None or repo.col.db is None:
            return []

        events: list[ReviewEvent] = []
        # revlog columns used: id, cid, type, ease, time
        for start in range(0, len(cids), CHUNK_SIZE):
            chunk = cids[start : start + CHUNK_SIZE]
            cid_str = ",".join(str(c) for c in chunk)
            rows = repo.col.db.all(
                f"SELECT id, cid, type, ease, time FROM revlog "
                f"WHERE cid IN ({cid_str}) ORDER BY cid ASC, id ASC"
            )
            for row in rows:
                event = event_from_revlog(
                    event_id=row[0],
                    card_id=row[1],
                    review_type=row[2],
                    ease=row[3],
                    taken_millis=row[4],
                )
                if event is not None:
                    events.append(event)

        logger.debug(f"Loaded {len(events)} revlog entries for {len(cids)} cards")
        return events
