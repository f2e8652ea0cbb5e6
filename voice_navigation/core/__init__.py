"""Core module initialization."""

from voice_navigation.core.exceptions import (
    VoiceNavigationException,
    PatternException,
    IntentException,
    RouteSecurityException,
    NavigationException,
    TTSException,
    LLMException,
    PipelineException,
    NavigationNotInitializedException
)
from voice_navigation.core.context import NavigationContext, UserProfile

__all__ = [
    "VoiceNavigationException",
    "PatternException",
    "IntentException",
    "RouteSecurityException",
    "NavigationException",
    "TTSException",
    "LLMException",
    "PipelineException",
    "NavigationNotInitializedException",
    "NavigationContext",
    "UserProfile"
]
