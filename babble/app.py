"""
Babble Service
Main application entry point

Serves Markov-chain text generation over HTTP. Models live in memory
only and are dropped on shutdown.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from babble.config import settings
from babble.services.errors import MarkovError, NotTrained
from babble.utils.logger import PACKAGE_LOGGER, log_error, setup_logger

# Setup logging
logger = setup_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for service initialization"""
    from babble.api.routers.markov_router import MODEL_CACHE

    # Engine modules log through the package logger
    setup_logger(PACKAGE_LOGGER)

    logger.info("[BOOT] Starting Babble Service...")
    logger.info(
        f"[BOOT] Defaults: order={settings.DEFAULT_ORDER} mode={settings.DEFAULT_MODE} "
        f"length={settings.DEFAULT_LENGTH} temperature={settings.DEFAULT_TEMPERATURE}"
    )
    logger.info("[BOOT] Babble Service ready!")
    try:
        yield
    finally:
        logger.info(f"[SHUTDOWN] Dropping {len(MODEL_CACHE)} in-memory model(s)")
        MODEL_CACHE.clear()
        logger.info("[SHUTDOWN] Babble Service stopped")


# Create FastAPI app
app = FastAPI(
    title="Babble Service",
    description="Markov chain text generator: train on sample text, generate look-alike babble",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarkovError)
async def markov_exception_handler(request: Request, exc: MarkovError):
    status_code = 409 if isinstance(exc, NotTrained) else 400
    logger.warning(f"[MARKOV] {request.url.path} rejected: {exc.code}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error": {"code": exc.code, "message": str(exc)},
        },
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log_error(f"[ERR] Unhandled exception: {exc}", exc_info=True, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": {
                "code": "AI_SERVICE_ERROR",
                "message": "Internal server error occurred",
                "details": {"type": type(exc).__name__},
            },
        },
    )


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    from babble.api.routers.markov_router import MODEL_CACHE

    return {
        "ok": True,
        "data": {
            "status": "healthy",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "models_loaded": len(MODEL_CACHE),
        },
    }


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "endpoints": {
            "health": "/health",
            "docs": "/docs",
            "train": "/markov/train",
            "train_upload": "/markov/train/upload",
            "generate": "/markov/generate",
            "models": "/markov/models",
        },
    }


from babble.api.routers import markov_router

app.include_router(markov_router.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "babble.app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
