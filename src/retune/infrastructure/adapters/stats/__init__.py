# Infrastructure Stats Adapters Package
from .connect_stats import ConnectReviewLogRepository
from .direct_stats import DirectReviewLogRepository

__all__ = ["DirectReviewLogRepository", "ConnectReviewLogRepository"]
