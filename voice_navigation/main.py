"""
FastAPI Application Entry Point
===============================
Main application with lifecycle management, middleware, and route mounting.
"""

from contextlib import asynccontextmanager
from datetime import datetime
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voice_navigation.config import get_settings
from voice_navigation.core.exceptions import VoiceNavigationException
from voice_navigation.core.pipeline import VoiceNavigationPipeline
from voice_navigation.core.session import RetryTracker
from voice_navigation.api.routes import navigation, guidance, health
from voice_navigation.logging.navigation_logger import NavigationLogger
from voice_navigation.navigation.detector import PatternIntentDetector
from voice_navigation.navigation.executor import NavigationExecutor, InMemoryRouter
from voice_navigation.navigation.intents import IntentMappingTable
from voice_navigation.navigation.patterns import PatternMatcher
from voice_navigation.navigation.security import RouteSecurityValidator
from voice_navigation.services.feedback import FeedbackGenerator
from voice_navigation.services.guidance import GuidanceService
from voice_navigation.services.llm import LLMIntentService
from voice_navigation.services.tts import TTSService

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the navigation services and tears them down on shutdown.
    """
    logger.info("=" * 60)
    logger.info("Starting Voice Navigation Backend")
    logger.info("=" * 60)

    # ==================
    # STARTUP
    # ==================

    logger.info("Initializing navigation logger...")
    app.state.navigation_logger = NavigationLogger(str(settings.NAVIGATION_LOG_PATH))
    await app.state.navigation_logger.initialize_log(settings.SUPPORTED_LANGUAGES)
    await app.state.navigation_logger.log_system_event("Application starting", {
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    })

    logger.info("Initializing TTS service...")
    app.state.tts_service = TTSService()
    await app.state.tts_service.initialize()

    logger.info("Initializing LLM intent service...")
    app.state.llm_service = LLMIntentService()
    await app.state.llm_service.initialize()

    logger.info("Building intent table and pattern matcher...")
    intent_table = IntentMappingTable()
    matcher = PatternMatcher(intent_table)
    app.state.security_validator = RouteSecurityValidator()

    app.state.router = InMemoryRouter()
    executor = NavigationExecutor(intent_table, app.state.security_validator, app.state.router)

    app.state.feedback_generator = FeedbackGenerator(app.state.tts_service)
    app.state.guidance_service = GuidanceService()

    app.state.pipeline = VoiceNavigationPipeline(
        detector=PatternIntentDetector(matcher, app.state.llm_service),
        intent_table=intent_table,
        executor=executor,
        feedback=app.state.feedback_generator,
        retry_tracker=RetryTracker(),
        navigation_logger=app.state.navigation_logger
    )
    await app.state.pipeline.initialize()

    logger.info("=" * 60)
    logger.info("Voice Navigation Backend Ready!")
    logger.info(f"Server: http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Docs: http://{settings.HOST}:{settings.PORT}/docs")
    logger.info("=" * 60)

    await app.state.navigation_logger.log_system_event("Application started successfully", {
        "host": settings.HOST,
        "port": settings.PORT,
        "tts_mode": app.state.tts_service.mode,
        "llm_fallback": app.state.llm_service.is_initialized
    })

    yield  # Application runs here

    # ==================
    # SHUTDOWN
    # ==================

    logger.info("Shutting down Voice Navigation Backend...")

    await app.state.navigation_logger.log_system_event("Application shutting down", {})

    await app.state.pipeline.cleanup()
    await app.state.tts_service.cleanup()
    await app.state.llm_service.cleanup()
    await app.state.navigation_logger.close()

    logger.info("Shutdown complete.")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Multilingual Voice Navigation Backend

    Turns transcribed voice commands into safe, confirmed app navigation.

    ### Features:
    - 🌐 English and Hindi commands, formal and informal phrasing
    - 🔒 Role and permission checks before every navigation
    - ✅ Confirmation for sensitive actions, history and "go back"
    - 🔊 Spoken feedback, retry prompts, tutorials and hints

    ### Pipeline:
    ```
    Utterance → Pattern Match (LLM fallback) → Security → Navigate → Feedback (edge-tts)
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

@app.exception_handler(VoiceNavigationException)
async def voice_navigation_exception_handler(request: Request, exc: VoiceNavigationException):
    """Handle custom Voice Navigation exceptions."""
    logger.error(f"VoiceNavigationException: {exc.message}")
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
app.include_router(navigation.router, prefix="/api/v1/navigation", tags=["Navigation"])
app.include_router(guidance.router, prefix="/api/v1/guidance", tags=["Guidance"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


# ==================
# DEBUG ENDPOINTS
# ==================

if settings.DEBUG:
    @app.get("/debug/config")
    async def debug_config():
        """Debug endpoint to view configuration (DEBUG mode only)."""
        return {
            "environment": settings.ENVIRONMENT,
            "supported_languages": settings.SUPPORTED_LANGUAGES,
            "llm_model": settings.LLM_MODEL_ID,
            "tts_enabled": settings.TTS_ENABLED,
            "confidence_threshold": settings.CONFIDENCE_THRESHOLD,
            "max_retry_attempts": settings.MAX_RETRY_ATTEMPTS
        }
