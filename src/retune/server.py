import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ValidationError

from retune.application.config import resolve_config
from retune.application.stats.progress import ProgressHandler
from retune.consts import VERSION
from retune.domain.errors import (
    BackendUnavailableError,
    EngineFailureError,
    InsufficientDataError,
    InvalidInputError,
    RetuneError,
    SimulationAbortedError,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("retune.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Retune Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Retune Server shutting down...")


app = FastAPI(
    title="Retune Server",
    description="Optimal retention computation for Anki review histories.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()

# Progress of the optimization currently in flight, if any
_current_progress: ProgressHandler | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class BackendOverrides(BaseModel):
    backend: str | None = None
    anki_connect_url: str | None = None
    anki_base: str | None = None


class ParametersRequest(BackendOverrides):
    search: str | None = None


class ParametersResponse(BaseModel):
    first_rating_probability: list[float]
    review_rating_probability: list[float]
    recall_cost: list[float]
    learn_cost: float
    forget_cost: float


class RetentionRequest(BackendOverrides):
    search: str | None = None
    deck_size: int | None = None
    days_to_simulate: int | None = None
    max_minutes_of_study_per_day: int | None = None
    max_interval: int | None = None
    loss_aversion: float | None = None
    weights: list[float] | None = None


class RetentionResponse(BaseModel):
    optimal_retention: float


class ProgressResponse(BaseModel):
    running: bool
    current: int
    total: int


def _http_error(e: RetuneError) -> HTTPException:
    if isinstance(e, InsufficientDataError):
        return HTTPException(
            status_code=422,
            detail={"error": "insufficient_data", "statistic": e.statistic, "message": str(e)},
        )
    if isinstance(e, InvalidInputError):
        return HTTPException(status_code=400, detail={"error": "invalid_input", "message": str(e)})
    if isinstance(e, BackendUnavailableError):
        return HTTPException(
            status_code=503, detail={"error": "backend_unavailable", "message": str(e)}
        )
    if isinstance(e, SimulationAbortedError):
        return HTTPException(status_code=409, detail={"error": "aborted", "message": str(e)})
    if isinstance(e, EngineFailureError):
        return HTTPException(
            status_code=500, detail={"error": "engine_failure", "message": str(e)}
        )
    return HTTPException(status_code=500, detail={"error": "internal", "message": str(e)})


def _resolve(req: BaseModel):
    try:
        return resolve_config(req.model_dump())
    except ValidationError as e:
        raise HTTPException(
            status_code=400, detail={"error": "invalid_input", "message": str(e)}
        ) from e


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/fsrs/parameters", response_model=ParametersResponse)
async def estimate_parameters(req: ParametersRequest):
    """
    Estimate rating probabilities and time costs for the cards matching a search.
    """
    from retune.application.factory import get_retention_service

    config = _resolve(req)
    try:
        service = await get_retention_service(config)
        bundle = await service.estimate_parameters(config.search)
    except RetuneError as e:
        logger.warning(f"Parameter estimation failed: {e}")
        raise _http_error(e) from e

    return ParametersResponse(**bundle.to_dict())


@app.post("/fsrs/optimal-retention", response_model=RetentionResponse)
async def compute_optimal_retention(req: RetentionRequest):
    """
    Compute the optimal desired retention. Poll /fsrs/progress meanwhile.
    """
    global _current_progress
    from retune.application.factory import get_retention_service

    if _current_progress is not None:
        raise HTTPException(
            status_code=409,
            detail={"error": "busy", "message": "An optimization is already running"},
        )

    config = _resolve(req)
    progress = ProgressHandler()
    _current_progress = progress
    try:
        service = await get_retention_service(config)
        retention = await service.compute_optimal_retention(config.to_request(), progress)
    except RetuneError as e:
        logger.warning(f"Optimal retention failed: {e}")
        raise _http_error(e) from e
    except asyncio.CancelledError:
        # Client went away; stop the worker thread before freeing the slot
        progress.cancel()
        raise
    finally:
        _current_progress = None

    return RetentionResponse(optimal_retention=retention)


@app.get("/fsrs/progress", response_model=ProgressResponse)
async def get_progress():
    progress = _current_progress
    if progress is None:
        return ProgressResponse(running=False, current=0, total=0)
    snap = progress.snapshot()
    return ProgressResponse(running=True, current=snap.current, total=snap.total)


@app.post("/fsrs/cancel")
async def cancel_optimization():
    """Ask the running optimization to stop at its next progress report."""
    progress = _current_progress
    if progress is None:
        return {"cancelled": False}
    progress.cancel()
    return {"cancelled": True}
