"""
Configuration management for the Voice Navigation service.
Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "Voice Navigation"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment name")

    # =========================
    # API Keys
    # =========================
    GROQ_API_KEY: Optional[str] = Field(
        default=None,
        description="Groq API key for the LLM intent classifier (pattern matching only when unset)"
    )

    # =========================
    # Server Settings
    # =========================
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")
    WORKERS: int = Field(default=1, description="Number of workers")

    # =========================
    # Model Settings
    # =========================
    LLM_MODEL_ID: str = Field(
        default="llama-3.1-8b-instant",
        description="Groq LLM model used for intent classification"
    )
    LLM_TIMEOUT_SECONDS: float = Field(default=5.0, description="LLM API timeout")

    # =========================
    # TTS Settings
    # =========================
    TTS_ENABLED: bool = Field(
        default=False,
        description="Synthesize speech with edge-tts (silent audio when disabled)"
    )
    TTS_TIMEOUT_SECONDS: float = Field(default=10.0, description="TTS processing timeout")
    TTS_MAX_RETRIES: int = Field(default=2, description="TTS retries after the first attempt")
    TTS_RETRY_BASE_DELAY_SECONDS: float = Field(
        default=1.0,
        description="Base delay for exponential TTS retry backoff"
    )
    TTS_RETRY_MAX_DELAY_SECONDS: float = Field(default=5.0, description="Backoff ceiling")
    AUDIO_SAMPLE_RATE: int = Field(default=16000, description="Sample rate of mock audio in Hz")

    # =========================
    # Intent Matching Settings
    # =========================
    CONFIDENCE_THRESHOLD: float = Field(
        default=0.5,
        description="Minimum intent confidence to attempt navigation"
    )
    MARGINAL_CONFIDENCE: float = Field(
        default=0.6,
        description="Matches below this confidence also surface 'did you mean' suggestions"
    )
    FUZZY_MATCH_THRESHOLD: float = Field(
        default=80.0,
        description="Minimum rapidfuzz ratio (0-100) for a fuzzy phrase match"
    )
    ALTERNATIVE_MATCH_TOLERANCE: float = Field(
        default=0.15,
        description="Runner-up intents within this distance of the top score become alternatives"
    )
    MAX_ALTERNATIVES: int = Field(default=3, description="Maximum alternatives per match")
    PATTERN_CACHE_SIZE: int = Field(default=500, description="Maximum cached match results")
    INTENT_TIMEOUT_SECONDS: float = Field(default=8.0, description="Intent detection timeout")

    # =========================
    # Navigation Settings
    # =========================
    MAX_RETRY_ATTEMPTS: int = Field(default=3, description="Retry attempts per session and message")
    MAX_HISTORY_ENTRIES: int = Field(default=50, description="Navigation history kept per session")
    CONFIRMATION_TIMEOUT_SECONDS: int = Field(
        default=10,
        description="Pending confirmations expire after this many seconds"
    )
    AUTO_REDIRECT_ON_DENIAL: bool = Field(
        default=False,
        description="Navigate to the fallback route when access is denied"
    )
    FALLBACK_ROUTE: str = Field(default="/", description="Route used when nothing better exists")
    AUTH_ROUTE: str = Field(default="/auth", description="Route for unauthenticated users")
    MAX_AUDIT_LOGS: int = Field(default=1000, description="Security audit entries kept in memory")
    SUGGESTION_LIMIT: int = Field(default=5, description="Default number of command suggestions")

    # =========================
    # Session Settings
    # =========================
    SESSION_TIMEOUT_MINUTES: int = Field(default=30, description="Inactive session state is dropped after this")
    MAX_SESSIONS: int = Field(default=1000, description="Sessions tracked per in-memory map")
    SESSION_CLEANUP_INTERVAL_SECONDS: int = Field(default=60, description="Expired session sweep interval")
    ROUTER_LOG_SIZE: int = Field(default=100, description="Recent navigations kept by the in-memory router")

    # =========================
    # Guidance Settings
    # =========================
    HINT_FREQUENCY: str = Field(
        default="normal",
        description="Contextual hint verbosity: minimal, normal or verbose"
    )

    # =========================
    # Logging Settings
    # =========================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    NAVIGATION_LOG_PATH: Path = Field(
        default=Path("./logs/navigation_log.md"),
        description="Path to navigation markdown log"
    )

    # =========================
    # Supported Languages
    # =========================
    SUPPORTED_LANGUAGES: List[str] = Field(
        default=["en-US", "hi-IN"],
        description="Supported language codes"
    )
    DEFAULT_LANGUAGE: str = Field(default="en-US", description="Default language")

    # =========================
    # Caching Settings
    # =========================
    ENABLE_CACHE: bool = Field(default=True, description="Enable feedback audio caching")
    CACHE_TTL_SECONDS: int = Field(default=86400, description="Cache TTL in seconds")
    CACHE_MAX_SIZE: int = Field(default=100, description="Maximum cache entries")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def normalize_language(language: Optional[str]) -> str:
    """
    Map short or mixed-case language codes onto a supported code.

    Empty input gives DEFAULT_LANGUAGE. Unrecognized codes are returned
    as given so callers can report them as unsupported.
    """
    if not language:
        return get_settings().DEFAULT_LANGUAGE
    code = language.strip()
    if code in LANGUAGE_NAMES:
        return code
    return LANGUAGE_ALIASES.get(code.lower(), code)


# Language mapping for display names
LANGUAGE_NAMES = {
    "en-US": "English",
    "hi-IN": "Hindi (हिन्दी)"
}

# Short and lowercase codes accepted from clients
LANGUAGE_ALIASES = {
    "en": "en-US",
    "en-us": "en-US",
    "en-in": "en-US",
    "hi": "hi-IN",
    "hi-in": "hi-IN"
}

# Language to voice mapping for TTS (edge-tts voice names)
LANGUAGE_VOICES = {
    "en-US": "en-IN-NeerjaNeural",
    "hi-IN": "hi-IN-SwaraNeural"
}

# Roles known to the marketplace
USER_ROLES = ["artisan", "buyer", "admin"]

# Marketplace categories accepted as a navigation parameter
PRODUCT_CATEGORIES = [
    "pottery",
    "textiles",
    "jewelry",
    "woodwork",
    "metalwork",
    "paintings",
    "handicrafts",
    "home_decor"
]

# Allowed values for the profile section parameter
PROFILE_SECTIONS = ["overview", "settings", "security"]
