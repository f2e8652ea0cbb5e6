"""
Core exceptions for the Voice Navigation service.
Custom exception classes for structured error handling.
"""

from typing import Optional, Dict, Any, List


class VoiceNavigationException(Exception):
    """Base exception for Voice Navigation errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "VOICE_NAVIGATION_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# =========================
# Pattern Exceptions
# =========================

class PatternException(VoiceNavigationException):
    """Raised when a phrase pattern cannot be registered."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="PATTERN_ERROR",
            status_code=400,
            details=details
        )


# =========================
# Intent Exceptions
# =========================

class IntentException(VoiceNavigationException):
    """Base exception for intent mapping errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="INTENT_ERROR",
            status_code=400,
            details=details
        )


class IntentNotFoundException(IntentException):
    """Raised when an intent is not registered."""

    def __init__(self, intent: str):
        super().__init__(
            message=f"Intent '{intent}' not found",
            details={"intent": intent}
        )
        self.status_code = 404


# =========================
# Route Security Exceptions
# =========================

class RouteSecurityException(VoiceNavigationException):
    """Base exception for route security errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="ROUTE_SECURITY_ERROR",
            status_code=403,
            details=details
        )


class AccessDeniedException(RouteSecurityException):
    """Raised when the user may not open a route."""

    def __init__(self, route: str, reason: str, fallback_route: Optional[str] = None):
        super().__init__(
            message=f"Access denied to '{route}': {reason}",
            details={"route": route, "reason": reason, "fallback_route": fallback_route}
        )


class InvalidRouteParametersException(RouteSecurityException):
    """Raised when route parameters fail validation."""

    def __init__(self, route: str, errors: List[str]):
        super().__init__(
            message=f"Invalid parameters for '{route}'",
            details={"route": route, "errors": errors}
        )
        self.status_code = 422


# =========================
# Navigation Exceptions
# =========================

class NavigationException(VoiceNavigationException):
    """Base exception for navigation execution errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="NAVIGATION_ERROR",
            status_code=500,
            details=details
        )


class NavigationExecutionException(NavigationException):
    """Raised when the router fails to apply a navigation."""

    def __init__(self, route: str, error: str):
        super().__init__(
            message=f"Navigation to '{route}' failed: {error}",
            details={"route": route, "error": error}
        )


class ConfirmationNotFoundException(NavigationException):
    """Raised when a confirmation id is unknown or expired."""

    def __init__(self, confirmation_id: str):
        super().__init__(
            message=f"Confirmation '{confirmation_id}' not found or expired",
            details={"confirmation_id": confirmation_id}
        )
        self.status_code = 404


# =========================
# TTS Exceptions
# =========================

class TTSException(VoiceNavigationException):
    """Base exception for TTS errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="TTS_ERROR",
            status_code=500,
            details=details
        )


class TTSUnsupportedLanguageException(TTSException):
    """Raised when TTS language is not supported."""

    def __init__(self, language: str, supported: list):
        super().__init__(
            message=f"Language '{language}' is not supported for TTS",
            details={"language": language, "supported_languages": supported}
        )


class TTSTimeoutException(TTSException):
    """Raised when TTS synthesis times out."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"TTS synthesis timed out after {timeout_seconds} seconds",
            details={"timeout_seconds": timeout_seconds}
        )


# =========================
# LLM Exceptions
# =========================

class LLMException(VoiceNavigationException):
    """Base exception for LLM errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="LLM_ERROR",
            status_code=500,
            details=details
        )


class LLMAPIException(LLMException):
    """Raised when Groq API returns an error."""

    def __init__(self, api_error: str, status_code: int = 500):
        super().__init__(
            message=f"LLM API error: {api_error}",
            details={"api_error": api_error, "api_status_code": status_code}
        )


class LLMTimeoutException(LLMException):
    """Raised when LLM processing times out."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"LLM processing timed out after {timeout_seconds} seconds",
            details={"timeout_seconds": timeout_seconds}
        )


# =========================
# Pipeline Exceptions
# =========================

class PipelineException(VoiceNavigationException):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="PIPELINE_ERROR",
            status_code=500,
            details=details
        )


class NavigationNotInitializedException(PipelineException):
    """Raised when voice navigation is used before initialize()."""

    def __init__(self):
        super().__init__(
            message="Voice navigation service is not initialized",
            details={"error_type": "not_initialized"}
        )
        self.status_code = 503
