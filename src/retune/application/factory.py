"""
Adapter Factory
Centralizes the logic for selecting the review-log backend and simulation engine.
"""

import logging

from retune.application.config import AppConfig
from retune.application.stats.service import RetentionService
from retune.domain.stats.ports import ReviewLogRepository, SimulationEngine
from retune.infrastructure.adapters.anki_connect import AnkiConnectClient
from retune.infrastructure.adapters.simulation.fsrs_simulator import FsrsSimulationEngine
from retune.infrastructure.adapters.stats.connect_stats import ConnectReviewLogRepository
from retune.infrastructure.adapters.stats.direct_stats import DirectReviewLogRepository

logger = logging.getLogger(__name__)


async def get_review_log(config: AppConfig) -> ReviewLogRepository:
    """
    Returns the appropriate ReviewLogRepository implementation based on config.
    """
    # 1. Manual selection
    if config.backend == "ankiconnect":
        return ConnectReviewLogRepository(url=config.anki_connect_url)

    if config.backend == "direct":
        return DirectReviewLogRepository(anki_base=config.anki_base)

    # 2. Auto selection: prefer Connect if responsive, since Anki locks its DB
    client = AnkiConnectClient(url=config.anki_connect_url)
    if await client.is_responsive():
        logger.info("Backend: AnkiConnect")
        return ConnectReviewLogRepository(client=client)

    await client.close()
    logger.info("Backend: AnkiDirect")
    return DirectReviewLogRepository(anki_base=config.anki_base)


def get_simulation_engine(config: AppConfig) -> SimulationEngine:
    return FsrsSimulationEngine(
        samples=config.simulation_samples, seed=config.simulation_seed
    )


async def get_retention_service(config: AppConfig) -> RetentionService:
    review_log = await get_review_log(config)
    return RetentionService(review_log=review_log, engine=get_simulation_engine(config))
