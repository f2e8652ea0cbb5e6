"""
Text-to-Speech Service using edge-tts.
Falls back to silent audio when synthesis is disabled or unavailable.
"""

import asyncio
import logging
from typing import Optional, List

import edge_tts
import numpy as np

from voice_navigation.config import get_settings, LANGUAGE_VOICES, normalize_language
from voice_navigation.core.exceptions import TTSException, TTSUnsupportedLanguageException

logger = logging.getLogger(__name__)
settings = get_settings()


class TTSService:
    """
    Text-to-Speech service for spoken navigation feedback.

    Supports:
    - English and Hindi neural voices via edge-tts
    - Per-request speaking rate and pitch
    - Silent mock audio for development and tests
    """

    def __init__(self, enabled: Optional[bool] = None):
        self._enabled = settings.TTS_ENABLED if enabled is None else enabled
        self._is_initialized = False
        self._voices = dict(LANGUAGE_VOICES)
        self._supported_languages = list(self._voices.keys())

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def mode(self) -> str:
        return "edge-tts" if self._is_initialized else "mock"

    @property
    def supported_languages(self) -> List[str]:
        return list(self._supported_languages)

    def get_voice(self, language: str) -> str:
        return self._voices.get(normalize_language(language), self._voices[settings.DEFAULT_LANGUAGE])

    async def initialize(self):
        """Enable live synthesis when configured."""
        if not self._enabled:
            logger.info("TTS disabled, using mock audio")
            self._is_initialized = False
            return

        self._is_initialized = True
        logger.info(f"TTS service initialized with voices: {self._voices}")

    async def synthesize(
        self,
        text: str,
        language: str = "en-US",
        voice: Optional[str] = None,
        rate: str = "+0%",
        pitch: str = "+0Hz"
    ) -> bytes:
        """
        Synthesize speech from text.

        Args:
            text: Text to synthesize
            language: Language code (en-US, hi-IN)
            voice: Optional edge-tts voice name
            rate: Speaking rate adjustment, e.g. "-10%"
            pitch: Pitch adjustment, e.g. "+2Hz"

        Returns:
            Audio bytes (MP3 from edge-tts, 16-bit PCM silence in mock mode)
        """
        language = normalize_language(language)
        if language not in self._supported_languages:
            raise TTSUnsupportedLanguageException(language, self._supported_languages)

        if not text.strip():
            return b''

        if not self._is_initialized:
            return await self._mock_synthesize(text, language)

        try:
            communicate = edge_tts.Communicate(
                text,
                voice or self.get_voice(language),
                rate=rate,
                pitch=pitch
            )
            audio_data = b''
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    audio_data += chunk["data"]
            return audio_data

        except Exception as e:
            logger.error(f"edge-tts error: {e}")
            raise TTSException(f"TTS synthesis failed: {e}", details={"language": language})

    async def _mock_synthesize(
        self,
        text: str,
        language: str
    ) -> bytes:
        """Mock synthesis for development/testing."""
        await asyncio.sleep(0)

        # Rough estimate: 100ms per word
        words = len(text.split())
        duration_ms = words * 100
        samples = int(settings.AUDIO_SAMPLE_RATE * duration_ms / 1000)

        audio = np.zeros(samples, dtype=np.int16)
        return audio.tobytes()

    async def cleanup(self):
        """Cleanup resources."""
        self._is_initialized = False
        logger.info("TTS service cleaned up")
