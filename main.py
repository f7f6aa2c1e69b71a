"""FastAPI entry point for the HamForge study engine."""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from errors import HamForgeError
from models.errors import ErrorCode, classify_error, format_error
from services.exam_storage import RedisExamAttemptStore, get_exam_attempt_store
from services.middleware import RequestIdMiddleware
from services.progress_repository import RedisProgressRepository, get_progress_repository
from services.progress_store import RedisProgressStateBackend, get_progress_store
from services.session_registry import periodic_prune
from services.session_store import RedisSessionStore, get_session_store, periodic_cleanup

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop shared resources."""
    store = get_session_store()
    cleanup_task = asyncio.create_task(periodic_cleanup(interval_seconds=300))
    prune_task = asyncio.create_task(
        periodic_prune(
            prune_exam_sessions,
            prune_practice_sessions,
            interval_seconds=settings.session_sweep_interval,
        )
    )

    # Verify Redis connectivity if using Redis store
    if isinstance(store, RedisSessionStore):
        if await store.ping():
            logger.info("Redis connection verified")
        else:
            logger.warning("Redis connection failed — exam sessions may not persist")

    await get_progress_store().ensure_loaded()

    yield

    for task in (cleanup_task, prune_task):
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    shutdown_exam_sessions()

    if isinstance(store, RedisSessionStore):
        await store.close()
    attempt_store = get_exam_attempt_store()
    if isinstance(attempt_store, RedisExamAttemptStore):
        await attempt_store.close()
    repository = get_progress_repository()
    if isinstance(repository, RedisProgressRepository):
        await repository.close()
    progress_backend = get_progress_store().backend
    if isinstance(progress_backend, RedisProgressStateBackend):
        await progress_backend.close()


app = FastAPI(
    title="HamForge Study Engine",
    description="Amateur radio license exam practice with spaced repetition",
    version="1.0.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# ── Error handling ──────────────────────────────────────────
_ERROR_STATUS = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.POOL_UNAVAILABLE: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


@app.exception_handler(HamForgeError)
async def hamforge_error_handler(request: Request, exc: HamForgeError):
    """Domain errors that escape a route become ``{CODE}: detail`` bodies."""
    code = classify_error(exc)
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=_ERROR_STATUS[code],
        content={"detail": format_error(code, str(exc))},
    )


# ── Register routers ────────────────────────────────────────
from api.health import router as health_router  # noqa: E402
from api.exam import prune_sessions as prune_exam_sessions  # noqa: E402
from api.exam import router as exam_router  # noqa: E402
from api.exam import shutdown_sessions as shutdown_exam_sessions  # noqa: E402
from api.flashcards import router as flashcards_router  # noqa: E402
from api.practice import prune_sessions as prune_practice_sessions  # noqa: E402
from api.practice import router as practice_router  # noqa: E402
from api.progress import router as progress_router  # noqa: E402

app.include_router(health_router)
app.include_router(exam_router)
app.include_router(practice_router)
app.include_router(flashcards_router)
app.include_router(progress_router)


if __name__ == "__main__":
    # Live exam controllers are held per process, so run a single worker.
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
    )
