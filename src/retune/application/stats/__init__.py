# Application Stats Package
from .parameter_estimator import ParameterEstimator
from .progress import ProgressHandler
from .service import RetentionService

__all__ = ["ParameterEstimator", "ProgressHandler", "RetentionService"]
