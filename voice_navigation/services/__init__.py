"""Services module initialization."""

from voice_navigation.services.tts import TTSService
from voice_navigation.services.llm import LLMIntentService
from voice_navigation.services.feedback import FeedbackGenerator
from voice_navigation.services.guidance import GuidanceService

__all__ = [
    "TTSService",
    "LLMIntentService",
    "FeedbackGenerator",
    "GuidanceService"
]
