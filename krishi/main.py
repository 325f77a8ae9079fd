"""
FastAPI Application Entry Point
===============================
Main application with lifecycle management, middleware, and route mounting.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from krishi.config import get_settings, LANGUAGES
from krishi.core.exceptions import AssistantException
from krishi.api.routes import voice, assistant, health
from krishi.logging.agent_logger import AgentLogger

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info("Starting Krishi Assistant")
    logger.info("=" * 60)

    Path(settings.AGENT_LOG_PATH).parent.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing agent logger...")
    app.state.agent_logger = AgentLogger(str(settings.AGENT_LOG_PATH))
    await app.state.agent_logger.initialize_log()
    await app.state.agent_logger.log_system_event("Application starting", {
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "recognition": f"{settings.PRIMARY_RECOGNITION_LANGUAGE} → {settings.SECONDARY_RECOGNITION_LANGUAGE}",
        "geocoding": "enabled" if settings.GEOCODING_ENABLED else "disabled"
    })

    app.state.session_manager = voice.session_manager

    logger.info("=" * 60)
    logger.info("Krishi Assistant Ready!")
    logger.info(f"Server: http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Docs: http://{settings.HOST}:{settings.PORT}/docs")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down Krishi Assistant...")

    await app.state.session_manager.close_all()
    await app.state.agent_logger.log_system_event("Application shutting down", {})
    await app.state.agent_logger.close()

    logger.info("Shutdown complete.")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Krishi Voice Assistant

    Bilingual (Marathi / English) query understanding for farmers.

    ### Features:
    - 🎤 Voice queries through the browser's speech recognizer (WebSocket relay)
    - 🗣️ Hands-free wake word: "कृषी" / "Krishi"
    - 🧭 Language detection, intent classification, crop and disease entities
    - 📍 Location attached automatically to weather and market questions
    - 🔊 Spoken replies

    ### Pipeline:
    ```
    Speech → Transcript → Language → Intent + Entities → Location → Message
    ```
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# ==================
# MIDDLEWARE
# ==================

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_timing_header(request: Request, call_next):
    """Add request timing information to response headers."""
    start_time = datetime.now()
    response = await call_next(request)
    process_time = (datetime.now() - start_time).total_seconds() * 1000
    response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
    return response


# ==================
# EXCEPTION HANDLERS
# ==================

@app.exception_handler(AssistantException)
async def assistant_exception_handler(request: Request, exc: AssistantException):
    """Handle assistant exceptions."""
    logger.error(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": str(exc) if settings.DEBUG else None
        }
    )


# ==================
# ROUTES
# ==================

app.include_router(health.router, tags=["Health"])
app.include_router(voice.router, prefix="/api/v1/voice", tags=["Voice"])
app.include_router(assistant.router, prefix="/api/v1/assistant", tags=["Assistant"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "languages": LANGUAGES,
        "docs": "/docs",
        "health": "/health"
    }


if settings.DEBUG:
    @app.get("/debug/config")
    async def debug_config():
        """Debug endpoint to view configuration (DEBUG mode only)."""
        return {
            "environment": settings.ENVIRONMENT,
            "recognition_languages": [
                settings.PRIMARY_RECOGNITION_LANGUAGE,
                settings.SECONDARY_RECOGNITION_LANGUAGE
            ],
            "wake_words": settings.WAKE_WORDS,
            "geocoding_url": settings.GEOCODING_URL if settings.GEOCODING_ENABLED else None
        }
