"""
Health Check Endpoints.
System health and readiness checks.
"""

import base64
import time
from datetime import datetime

from fastapi import APIRouter, Request

from voice_navigation.config import get_settings
from voice_navigation.core.exceptions import VoiceNavigationException

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_VERSION
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies the navigation pipeline and its services are up.
    TTS and LLM count as ready in mock/disabled mode.
    """
    state = request.app.state
    checks = {
        "navigation_pipeline": hasattr(state, "pipeline") and state.pipeline.is_initialized,
        "tts_service": hasattr(state, "tts_service"),
        "llm_service": hasattr(state, "llm_service"),
        "guidance_service": hasattr(state, "guidance_service")
    }

    all_ready = all(checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness check - just verifies the server is responding.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/metrics")
async def metrics(request: Request):
    """
    Get basic system metrics.
    """
    metrics_data = {
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }

    if hasattr(request.app.state, "pipeline"):
        status = request.app.state.pipeline.get_service_status()
        metrics_data["requests"] = status["stats"]
        metrics_data["active_retry_sessions"] = status["active_retry_sessions"]
        metrics_data["pending_confirmations"] = status["pending_confirmations"]
        metrics_data["feedback_cache"] = status["feedback_cache"]

    return metrics_data


# ===========================================
# Service Test Endpoints
# ===========================================

@router.get("/tts-test")
async def tts_test(request: Request):
    """
    Test TTS service availability.
    Returns service status and available voices.
    """
    tts_info = {
        "service": "tts",
        "status": "unavailable",
        "mode": None,
        "voices": {},
        "timestamp": datetime.utcnow().isoformat()
    }

    if hasattr(request.app.state, "tts_service"):
        tts = request.app.state.tts_service
        tts_info["status"] = "ready"
        tts_info["mode"] = tts.mode
        tts_info["voices"] = {lang: tts.get_voice(lang) for lang in tts.supported_languages}

    return tts_info


@router.post("/tts-test")
async def tts_synthesize_test(request: Request):
    """
    Test TTS synthesis with sample text.
    """
    data = await request.json()
    text = data.get("text", "Hello, this is a test.")
    language = data.get("language", "en-US")

    if not hasattr(request.app.state, "tts_service"):
        return {"error": "TTS service not available"}

    tts = request.app.state.tts_service

    try:
        audio_bytes = await tts.synthesize(text, language)

        return {
            "status": "success",
            "text": text,
            "language": language,
            "mode": tts.mode,
            "audio_size_bytes": len(audio_bytes),
            "audio_base64": base64.b64encode(audio_bytes).decode()[:100] + "..."
        }
    except VoiceNavigationException as e:
        return {
            "status": "error",
            "error": e.message
        }


@router.get("/llm-test")
async def llm_test(request: Request):
    """
    Test LLM intent classifier availability.
    """
    llm_info = {
        "service": "llm",
        "status": "unavailable",
        "provider": "groq",
        "model": None,
        "api_key_set": False,
        "timestamp": datetime.utcnow().isoformat()
    }

    if hasattr(request.app.state, "llm_service"):
        llm = request.app.state.llm_service
        llm_info["status"] = "ready" if llm.is_initialized else "disabled"
        llm_info["model"] = llm.model
        llm_info["api_key_set"] = bool(settings.GROQ_API_KEY)

    return llm_info


@router.post("/llm-test")
async def llm_classification_test(request: Request):
    """
    Classify an utterance with the LLM fallback only.
    """
    data = await request.json()
    utterance = data.get("text", "take me to my dashboard")
    language = data.get("language", "en-US")

    if not hasattr(request.app.state, "llm_service"):
        return {"error": "LLM service not available"}

    llm = request.app.state.llm_service
    if not llm.is_initialized:
        return {"status": "disabled", "error": "GROQ_API_KEY is not configured"}

    try:
        start_time = time.time()
        intents = request.app.state.pipeline.detector.matcher.get_intents()
        result = await llm.classify(utterance, language, intents)
        latency_ms = (time.time() - start_time) * 1000

        return {
            "status": "success",
            "text": utterance,
            "result": result.to_dict() if result else None,
            "latency_ms": round(latency_ms, 2),
            "model": llm.model
        }
    except VoiceNavigationException as e:
        return {
            "status": "error",
            "error": e.message
        }
