"""
Intent detection seam used by the voice navigation pipeline.
"""

import logging
from typing import Optional, Protocol

from voice_navigation.config import get_settings
from voice_navigation.core.context import NavigationContext
from voice_navigation.core.exceptions import LLMException
from voice_navigation.navigation.catalog import CulturalRegister
from voice_navigation.navigation.patterns import PatternMatcher, MatchResult
from voice_navigation.services.llm import LLMIntentService

logger = logging.getLogger(__name__)
settings = get_settings()


class IntentDetector(Protocol):
    """Anything that turns an utterance into a MatchResult."""

    async def detect(
        self,
        utterance: str,
        language: str,
        context: Optional[NavigationContext] = None
    ) -> MatchResult:
        ...


class PatternIntentDetector:
    """
    Phrase matching first; the LLM classifier is consulted only when the
    match is below the confidence threshold and a classifier is available.
    """

    def __init__(
        self,
        matcher: PatternMatcher,
        classifier: Optional[LLMIntentService] = None,
        confidence_threshold: Optional[float] = None
    ):
        self._matcher = matcher
        self._classifier = classifier
        self.confidence_threshold = (
            settings.CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
        )

    @property
    def matcher(self) -> PatternMatcher:
        return self._matcher

    async def detect(
        self,
        utterance: str,
        language: str,
        context: Optional[NavigationContext] = None,
        cultural_register: Optional[CulturalRegister] = None
    ) -> MatchResult:
        result = self._matcher.match_pattern(utterance, language, cultural_register)

        if result.confidence >= self.confidence_threshold:
            return result
        if self._classifier is None or not self._classifier.is_initialized:
            return result

        try:
            llm_result = await self._classifier.classify(utterance, result.language, self._matcher.get_intents())
        except LLMException as e:
            logger.warning(f"LLM fallback unavailable, keeping pattern result: {e.message}")
            return result

        if llm_result is not None and llm_result.confidence > result.confidence:
            return llm_result
        return result
