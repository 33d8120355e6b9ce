from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog
import time

from ordinals.api.routers.inscriptions import router as inscriptions_router
from ordinals.api.routers.sats import router as sats_router
from ordinals.api.routers.stats import router as stats_router
from ordinals.api.routers.status import router as status_router
from ordinals.config import settings
from ordinals.utils.logging import setup_logging

setup_logging()
logger = structlog.get_logger()

API_PREFIXES = ("/ordinals/v1", "/ordinals")

app = FastAPI(
    title="Ordinals",
    description="Ordinals Inscription Indexer API",
    version=settings.INDEXER_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag"],
)

for prefix in API_PREFIXES:
    app.include_router(status_router, prefix=prefix, tags=["Status"])
    app.include_router(inscriptions_router, prefix=prefix, tags=["Inscriptions"])
    app.include_router(sats_router, prefix=prefix, tags=["Satoshis"])
    app.include_router(stats_router, prefix=prefix, tags=["Statistics"])


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
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        process_time=round(process_time, 3),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
