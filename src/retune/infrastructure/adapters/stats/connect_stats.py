"""
Connect Review Log Repository — Infrastructure adapter for AnkiConnect.

Implements ReviewLogRepository over the AnkiConnect HTTP API, so it works
while Anki is running.
"""

import logging

import httpx

from retune.domain.constants import CHUNK_SIZE
from retune.domain.errors import BackendUnavailableError, InvalidInputError
from retune.domain.stats.models import ReviewEvent
from retune.domain.stats.ports import ReviewLogRepository
from retune.infrastructure.adapters.anki_connect import AnkiConnectClient, AnkiConnectError

from .rows import event_from_revlog

logger = logging.getLogger(__name__)


class ConnectReviewLogRepository(ReviewLogRepository):
    """
    Fetches review history via `findCards` and `getReviewsOfCards`.
    """

    def __init__(
        self,
        url: str = "http://127.0.0.1:8765",
        client: AnkiConnectClient | None = None,
    ):
        self._client = client or AnkiConnectClient(url)

    async def search(self, query: str) -> list[ReviewEvent]:
        """
        Fetch the review history of the cards matching `query`.

        Raises:
            InvalidInputError: AnkiConnect rejected the search.
            BackendUnavailableError: AnkiConnect could not be reached or
                answered with something unusable.
        """
        try:
            return await self._search(query)
        except (httpx.HTTPError, ValueError) as e:
            raise BackendUnavailableError(f"AnkiConnect unavailable: {e}") from e
        finally:
            await self._client.close()

    async def _search(self, query: str) -> list[ReviewEvent]:
        try:
            cids = await self._client.invoke("findCards", query=query)
        except AnkiConnectError as e:
            raise InvalidInputError(f"Invalid search '{query}': {e}") from e

        events: list[ReviewEvent] = []
        for start in range(0, len(cids), CHUNK_SIZE):
            chunk = cids[start : start + CHUNK_SIZE]
            try:
                reviews_by_card = await self._client.invoke("getReviewsOfCards", cards=chunk)
            except AnkiConnectError as e:
                raise BackendUnavailableError(f"getReviewsOfCards failed: {e}") from e

            for cid, reviews in reviews_by_card.items():
                for r in reviews:
                    event = event_from_revlog(
                        event_id=r["id"],
                        card_id=int(cid),
                        review_type=r["type"],
                        ease=r["ease"],
                        taken_millis=r["time"],
                    )
                    if event is not None:
                        events.append(event)

        logger.debug(f"Loaded {len(events)} revlog entries for {len(cids)} cards")
        events.sort(key=lambda e: (e.card_id, e.event_id))
        return events
