"""
LLM intent classification using Groq API.
Used as a fallback when phrase matching is not confident enough.
"""

import asyncio
import json
import logging
import time
from typing import Optional, List, Dict, Any

from groq import AsyncGroq

from voice_navigation.config import get_settings, LANGUAGE_NAMES
from voice_navigation.core.exceptions import LLMAPIException, LLMTimeoutException
from voice_navigation.navigation.patterns import MatchResult

logger = logging.getLogger(__name__)
settings = get_settings()


CLASSIFIER_PROMPT = """You route voice commands for an artisan marketplace app.
Pick the single best intent for the user's command from this list:
{intents}

Reply with JSON only: {{"intent": "<name or none>", "confidence": <0.0-1.0>, "parameters": {{}}}}
Use "none" with confidence 0 when no intent fits. The command is in {language}."""


class LLMIntentService:
    """
    Intent classifier backed by Groq chat completions.

    Stays uninitialized when no API key is configured; callers then
    rely on pattern matching alone.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        self._client: Optional[AsyncGroq] = None
        self._is_initialized = False
        self._api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self._model = model or settings.LLM_MODEL_ID
        self._timeout = settings.LLM_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def model(self) -> str:
        return self._model

    async def initialize(self):
        """Initialize Groq client."""
        if not self._api_key:
            logger.info("GROQ_API_KEY not set, LLM intent fallback disabled")
            self._is_initialized = False
            return

        try:
            logger.info("Initializing LLM intent service...")
            self._client = AsyncGroq(api_key=self._api_key)
            self._is_initialized = True
            logger.info(f"LLM intent service initialized with model: {self._model}")
        except Exception as e:
            logger.error(f"Failed to initialize LLM intent service: {e}")
            self._is_initialized = False

    async def classify(
        self,
        utterance: str,
        language: str,
        intents: List[str]
    ) -> Optional[MatchResult]:
        """
        Ask the model which intent an utterance expresses.

        Returns None when the service is not initialized, the reply is not
        usable JSON, or the model picked no known intent.
        """
        if not self._is_initialized or not intents:
            return None

        messages = [
            {
                "role": "system",
                "content": CLASSIFIER_PROMPT.format(
                    intents="\n".join(f"- {name}" for name in intents),
                    language=LANGUAGE_NAMES.get(language, language)
                )
            },
            {"role": "user", "content": utterance}
        ]

        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=0.0,
                    max_tokens=128,
                    response_format={"type": "json_object"}
                ),
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"LLM classification timed out after {self._timeout}s")
            raise LLMTimeoutException(self._timeout)
        except Exception as e:
            logger.error(f"LLM classification error: {e}")
            raise LLMAPIException(str(e))

        latency_ms = (time.time() - start_time) * 1000
        content = response.choices[0].message.content or "{}"

        try:
            data: Dict[str, Any] = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"LLM returned non-JSON classification: {content[:100]}")
            return None

        intent = data.get("intent")
        if intent not in intents:
            logger.debug(f"LLM found no intent for '{utterance}' ({latency_ms:.0f}ms)")
            return None

        try:
            confidence = float(data.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        parameters = data.get("parameters") if isinstance(data.get("parameters"), dict) else {}

        logger.info(f"LLM classified '{utterance}' as {intent} ({confidence:.2f}, {latency_ms:.0f}ms)")
        return MatchResult(
            matched=confidence > 0,
            intent=intent,
            confidence=max(0.0, min(confidence, 1.0)),
            language=language,
            parameters=parameters,
            matched_pattern=None,
            match_type="llm"
        )

    async def cleanup(self):
        """Cleanup resources."""
        if self._client is not None:
            await self._client.close()
            self._client = None
        self._is_initialized = False
        logger.info("LLM intent service cleaned up")
