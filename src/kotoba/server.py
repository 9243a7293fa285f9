import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from kotoba.application.history_service import LearningHistory
from kotoba.application.sync_service import SyncEngine
from kotoba.consts import VERSION
from kotoba.domain.errors import KotobaError
from kotoba.domain.models import SourceItem

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("kotoba.server")

_history: LearningHistory | None = None
_engine: SyncEngine | None = None


def get_history() -> LearningHistory:
    """Process-wide LearningHistory, loaded from the configured store on first use."""
    global _history
    if _history is None:
        from kotoba.application.config import resolve_config
        from kotoba.application.factory import open_history

        _history = open_history(resolve_config())
    return _history


def get_sync_engine(history: LearningHistory = Depends(get_history)) -> SyncEngine:
    """Process-wide SyncEngine so overlapping requests share one in-flight guard."""
    global _engine
    if _engine is None:
        from kotoba.application.config import resolve_config
        from kotoba.application.factory import get_remote_store

        config = resolve_config()
        try:
            remote = get_remote_store(config)
        except KotobaError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        _engine = SyncEngine(history, remote, chunk_size=config.push_chunk_size)
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Kotoba Server v{VERSION} starting up...")
    yield
    # Shutdown
    if _engine is not None:
        await _engine.aclose()
    logger.info("Kotoba Server shutting down...")


app = FastAPI(
    title="Kotoba Server",
    description="Learning history, SM-2 reviews and sync.",
    version=VERSION,
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


class ExposureRequest(BaseModel):
    # Loosely-typed items from content producers; entries without an id are dropped
    items: list[dict]


class ReviewRequest(BaseModel):
    item_id: str
    quality: int = Field(ge=0, le=5)


class SyncRequest(BaseModel):
    user_id: str


class SyncResponse(BaseModel):
    status: str
    pulled: int
    adopted: int
    pushed: int
    error: str | None = None


@app.post("/exposures")
async def record_exposures(
    req: ExposureRequest, history: LearningHistory = Depends(get_history)
):
    items = [SourceItem.from_mapping(raw) for raw in req.items]
    accepted = [i for i in items if i is not None]
    history.record_exposures(accepted)
    return {"accepted": len(accepted), "ignored": len(items) - len(accepted)}


@app.post("/reviews")
async def review_item(req: ReviewRequest, history: LearningHistory = Depends(get_history)):
    history.review_item(req.item_id, req.quality)
    record = history.get(req.item_id)
    return {"found": record is not None, "record": record.to_payload() if record else None}


@app.post("/items/{item_id}/mastery")
async def toggle_mastery(item_id: str, history: LearningHistory = Depends(get_history)):
    history.toggle_mastery(item_id)
    return {"item_id": item_id, "is_mastered": history.is_mastered(item_id)}


@app.get("/items/{item_id}")
async def get_item(item_id: str, history: LearningHistory = Depends(get_history)):
    record = history.get(item_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown item '{item_id}'")
    return {
        "record": record.to_payload(),
        "should_hide": history.should_hide(item_id),
    }


@app.get("/due")
async def get_due(
    limit: int | None = Query(None, ge=0),
    history: LearningHistory = Depends(get_history),
):
    items = history.get_due_items()
    if limit is not None:
        items = items[:limit]
    return [r.to_payload() for r in items]


@app.post("/sync", response_model=SyncResponse)
async def trigger_sync(req: SyncRequest, engine: SyncEngine = Depends(get_sync_engine)):
    """
    Trigger a sync for the given user. Overlapping requests report "skipped".
    """
    logger.info(f"Sync requested via API for user={req.user_id}")
    result = await engine.sync(req.user_id)
    return SyncResponse(
        status=result.status,
        pulled=result.pulled,
        adopted=result.adopted,
        pushed=result.pushed,
        error=result.error,
    )
