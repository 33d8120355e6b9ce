"""
Event server: receives chainhook payloads and applies them to the ledger.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
import structlog
import time

from ordinals.api.routers.chainhook import router as chainhook_router
from ordinals.config import settings
from ordinals.database.connection import SessionLocal
from ordinals.services.chainhook_client import ChainhookClient
from ordinals.services.reorg_coordinator import ReorgCoordinator
from ordinals.utils.exceptions import RegistrationError
from ordinals.utils.logging import setup_logging

setup_logging()
logger = structlog.get_logger()


def register_predicate():
    """Register the inscription feed starting after the last committed block"""
    db = SessionLocal()
    try:
        tip_height = ReorgCoordinator(db).get_last_processed_height()
    finally:
        db.close()

    start_block = tip_height + 1 if tip_height is not None else settings.START_BLOCK_HEIGHT
    client = ChainhookClient()
    try:
        return client.register_predicate(start_block)
    finally:
        client.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.CHAINHOOK_AUTO_PREDICATE_REGISTRATION:
        try:
            await run_in_threadpool(register_predicate)
        except RegistrationError as e:
            logger.error("Predicate registration failed, serving without it", error=str(e))
    else:
        logger.info("Automatic predicate registration disabled")
    yield


app = FastAPI(
    title="Ordinals Event Server",
    description="Chainhook inscription feed receiver",
    version=settings.INDEXER_VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

app.include_router(chainhook_router, tags=["Chainhook"])


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.middleware("http")
async def log_requests(request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    logger.info(
        "Payload request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        process_time=round(process_time, 3),
    )
    return response


@app.get("/ping")
async def ping():
    return {"status": "ok"}
