"""
Navigation feedback generation.
Renders localized feedback text and synthesizes it to speech with
retry, timeout and caching around the TTS service.
"""

import asyncio
import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple

from voice_navigation.config import get_settings, normalize_language
from voice_navigation.core.exceptions import TTSException, TTSUnsupportedLanguageException
from voice_navigation.services.tts import TTSService
from voice_navigation.services.feedback.templates import (
    FeedbackTemplate,
    TemplateRegistry,
    FALLBACK_TEXTS,
    RETRY_CONTEXT_MESSAGES,
    RETRY_MESSAGES,
    SUGGESTION_INTROS,
    SUGGESTION_CONNECTORS,
    COMMANDS_INTROS,
    MORE_TEXTS,
    PROSODY_ADJUSTMENTS
)

logger = logging.getLogger(__name__)
settings = get_settings()

_VARIABLE = re.compile(r"\{(\w+)\}")
_SPACES = re.compile(r"[ \t]{2,}")

ERROR_TEMPLATE_IDS = {
    "not_found": "nav_error_not_found",
    "access_denied": "nav_error_access_denied",
    "network_error": "nav_error_network",
    "service_unavailable": "nav_error_service_unavailable",
    "general": "nav_error_general"
}

DEFAULT_TEMPLATE_IDS = {
    "confirmation": "nav_success",
    "error": "nav_error_general",
    "navigation": "nav_navigating",
    "help": "nav_help_commands",
    "retry": "nav_retry_prompt"
}


@dataclass
class FeedbackRequest:
    """What to say and in which language."""
    type: str
    language: str = "en-US"
    template_id: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    append_text: Optional[str] = None


@dataclass
class FeedbackResponse:
    """Rendered text plus synthesized audio, when available."""
    success: bool
    text_content: str
    language: str
    audio_content: Optional[bytes] = None
    voice_name: Optional[str] = None
    template_id: Optional[str] = None
    cached: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "text_content": self.text_content,
            "language": self.language,
            "audio_size_bytes": len(self.audio_content) if self.audio_content else 0,
            "voice_name": self.voice_name,
            "template_id": self.template_id,
            "cached": self.cached,
            "error": self.error
        }


@dataclass
class _CachedAudio:
    audio: bytes
    voice: str
    expires_at: float


class FeedbackGenerator:
    """
    Localized voice feedback for navigation outcomes.

    Text always renders; audio is best effort. A TTS failure leaves
    `audio_content` empty and sets `error` instead of raising.
    """

    def __init__(
        self,
        tts_service: TTSService,
        templates: Optional[TemplateRegistry] = None,
        enable_cache: Optional[bool] = None,
        cache_ttl_seconds: Optional[float] = None,
        cache_max_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        retry_max_delay: Optional[float] = None,
        timeout_seconds: Optional[float] = None
    ):
        self._tts = tts_service
        self._templates = templates or TemplateRegistry(settings.DEFAULT_LANGUAGE)
        self.enable_cache = settings.ENABLE_CACHE if enable_cache is None else enable_cache
        self.cache_ttl = settings.CACHE_TTL_SECONDS if cache_ttl_seconds is None else cache_ttl_seconds
        self.cache_max_size = settings.CACHE_MAX_SIZE if cache_max_size is None else cache_max_size
        self.max_retries = settings.TTS_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.TTS_RETRY_BASE_DELAY_SECONDS if retry_base_delay is None else retry_base_delay
        )
        self.retry_max_delay = (
            settings.TTS_RETRY_MAX_DELAY_SECONDS if retry_max_delay is None else retry_max_delay
        )
        self.timeout = settings.TTS_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

        self._cache: "OrderedDict[str, _CachedAudio]" = OrderedDict()
        self._cache_hits = 0
        self._cache_misses = 0

    @property
    def templates(self) -> TemplateRegistry:
        return self._templates

    # =========================
    # Core generation
    # =========================

    async def generate_feedback(self, request: FeedbackRequest) -> FeedbackResponse:
        """Render a template and synthesize it."""
        language = normalize_language(request.language)
        template_id = request.template_id or DEFAULT_TEMPLATE_IDS.get(request.type, "nav_error_general")
        template = self._templates.get_template(template_id, language)

        if template is None:
            logger.warning(f"Feedback template not found: {template_id} ({language})")
            text = self.get_fallback_text(request.type, language)
            error = f"Template not found: {template_id}"
        else:
            text = self.render_template(template, request.variables)
            error = None

        if request.append_text:
            text = f"{text} {request.append_text}".strip()

        audio, voice, cached, tts_error = await self._synthesize(text, language, request.type)

        return FeedbackResponse(
            success=template is not None,
            text_content=text,
            language=language,
            audio_content=audio,
            voice_name=voice,
            template_id=template.id if template else None,
            cached=cached,
            error=error or tts_error
        )

    @staticmethod
    def render_template(template: FeedbackTemplate, variables: Dict[str, Any]) -> str:
        """Fill {variable} slots; missing variables render empty."""
        def replace(match):
            value = variables.get(match.group(1))
            return "" if value is None else str(value)

        rendered = _VARIABLE.sub(replace, template.template)
        return _SPACES.sub(" ", rendered).strip()

    async def _synthesize(
        self,
        text: str,
        language: str,
        feedback_type: str
    ) -> Tuple[Optional[bytes], Optional[str], bool, Optional[str]]:
        """Returns (audio, voice, cached, error)."""
        cache_key = f"{language}|{feedback_type}|{text}"
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached.audio, cached.voice, True, None

        voice = self._tts.get_voice(language)
        prosody = PROSODY_ADJUSTMENTS.get(feedback_type, PROSODY_ADJUSTMENTS["navigation"])
        last_error: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            try:
                audio = await asyncio.wait_for(
                    self._tts.synthesize(text, language, voice, rate=prosody["rate"], pitch=prosody["pitch"]),
                    timeout=self.timeout
                )
                self._store_cached(cache_key, audio, voice)
                return audio, voice, False, None

            except TTSUnsupportedLanguageException as e:
                logger.warning(f"TTS does not support {language}: {e.message}")
                return None, None, False, e.message
            except TTSException as e:
                last_error = e.message
            except asyncio.TimeoutError:
                last_error = f"TTS synthesis timed out after {self.timeout} seconds"

            if attempt < self.max_retries:
                delay = min(self.retry_base_delay * (2 ** attempt), self.retry_max_delay)
                logger.warning(f"TTS attempt {attempt + 1} failed ({last_error}), retrying in {delay:.2f}s")
                await asyncio.sleep(delay)

        logger.error(f"TTS failed after {self.max_retries + 1} attempts: {last_error}")
        return None, voice, False, last_error

    # =========================
    # Cache
    # =========================

    def _get_cached(self, key: str) -> Optional[_CachedAudio]:
        if not self.enable_cache:
            return None
        entry = self._cache.get(key)
        if entry is None:
            self._cache_misses += 1
            return None
        if entry.expires_at <= time.monotonic():
            del self._cache[key]
            self._cache_misses += 1
            return None
        self._cache.move_to_end(key)
        self._cache_hits += 1
        return entry

    def _store_cached(self, key: str, audio: bytes, voice: str):
        if not self.enable_cache or not audio:
            return
        self._cache[key] = _CachedAudio(audio=audio, voice=voice, expires_at=time.monotonic() + self.cache_ttl)
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_max_size:
            self._cache.popitem(last=False)

    def get_cache_stats(self) -> Dict[str, Any]:
        total = self._cache_hits + self._cache_misses
        return {
            "enabled": self.enable_cache,
            "size": len(self._cache),
            "max_size": self.cache_max_size,
            "hits": self._cache_hits,
            "misses": self._cache_misses,
            "hit_rate": round(self._cache_hits / total, 4) if total else 0.0
        }

    def clear_cache(self):
        self._cache.clear()
        self._cache_hits = 0
        self._cache_misses = 0

    # =========================
    # Navigation helpers
    # =========================

    async def generate_navigation_confirmation(
        self,
        destination: str,
        language: str,
        execution_time_ms: Optional[float] = None
    ) -> FeedbackResponse:
        """Spoken confirmation after a completed navigation."""
        if execution_time_ms is not None:
            logger.debug(f"Navigation to {destination} took {execution_time_ms:.0f}ms")
        return await self.generate_feedback(FeedbackRequest(
            type="confirmation",
            language=language,
            template_id="nav_success",
            variables={"destination": destination}
        ))

    async def generate_confirmation_prompt(self, destination: str, language: str) -> FeedbackResponse:
        """Ask the user to confirm a sensitive navigation."""
        return await self.generate_feedback(FeedbackRequest(
            type="confirmation",
            language=language,
            template_id="nav_confirmation_prompt",
            variables={"destination": destination}
        ))

    async def generate_error_with_guidance(
        self,
        error_type: str,
        language: str,
        command: Optional[str] = None,
        destination: Optional[str] = None,
        error: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        retry_count: int = 0
    ) -> FeedbackResponse:
        """Error feedback with optional suggestions and attempt context."""
        language = normalize_language(language)
        suggestions = suggestions or []
        variables = {
            "command": command or "",
            "destination": destination or "",
            "error": error or ""
        }

        if error_type == "general" and suggestions:
            template_id = "nav_error_with_suggestions"
            variables["suggestions"] = self.format_suggestions(suggestions, language)
            extra = []
        else:
            template_id = ERROR_TEMPLATE_IDS.get(error_type, "nav_error_general")
            extra = [self.format_suggestions(suggestions, language)] if suggestions else []

        context_message = self.get_retry_context_message(retry_count, language)
        if context_message:
            extra.append(context_message)

        return await self.generate_feedback(FeedbackRequest(
            type="error",
            language=language,
            template_id=template_id,
            variables=variables,
            append_text=" ".join(extra) or None
        ))

    async def generate_retry_prompt(
        self,
        language: str,
        failed_command: str,
        retry_count: int,
        suggestions: Optional[List[str]] = None,
        max_retries: Optional[int] = None
    ) -> FeedbackResponse:
        """
        Prompt after a low-confidence attempt.
        The last allowed attempt lists commands; once retries are
        exhausted the user is pointed to manual navigation instead.
        """
        language = normalize_language(language)
        max_retries = settings.MAX_RETRY_ATTEMPTS if max_retries is None else max_retries
        suggestions = suggestions or []

        if retry_count >= max_retries:
            return await self.generate_feedback(FeedbackRequest(
                type="retry",
                language=language,
                template_id="nav_retry_exhausted",
                variables={"failedCommand": failed_command}
            ))

        if retry_count == max_retries - 1 and suggestions:
            return await self.generate_feedback(FeedbackRequest(
                type="retry",
                language=language,
                template_id="nav_retry_final_attempt",
                variables={
                    "failedCommand": failed_command,
                    "suggestions": self._join_quoted(suggestions, language)
                }
            ))

        return await self.generate_feedback(FeedbackRequest(
            type="retry",
            language=language,
            template_id="nav_retry_prompt",
            variables={
                "failedCommand": failed_command,
                "retryMessage": self.get_retry_message(retry_count, language)
            },
            append_text=self.format_suggestions(suggestions, language) or None
        ))

    async def generate_help(
        self,
        language: str,
        available_commands: Optional[List[str]] = None,
        user_role: Optional[str] = None
    ) -> FeedbackResponse:
        """Help listing the commands the user can say."""
        language = normalize_language(language)
        commands = available_commands or []
        if user_role == "admin":
            return await self.generate_feedback(FeedbackRequest(
                type="help",
                language=language,
                template_id="nav_help_admin_commands",
                variables={"availableCommands": self._join_quoted(commands[:5], language)}
            ))
        return await self.generate_feedback(FeedbackRequest(
            type="help",
            language=language,
            template_id="nav_help_commands",
            variables={"availableCommands": self.format_available_commands(commands, language)}
        ))

    async def generate_simple(self, template_id: str, feedback_type: str, language: str, **variables) -> FeedbackResponse:
        return await self.generate_feedback(FeedbackRequest(
            type=feedback_type,
            language=language,
            template_id=template_id,
            variables=variables
        ))

    # =========================
    # Text helpers
    # =========================

    def format_suggestions(self, suggestions: List[str], language: str) -> str:
        """'You can try saying: "a", "b" or "c"'."""
        if not suggestions:
            return ""
        language = normalize_language(language)
        intro = SUGGESTION_INTROS.get(language, SUGGESTION_INTROS["en-US"])
        return f"{intro} {self._join_quoted(suggestions, language)}"

    def format_available_commands(self, commands: List[str], language: str) -> str:
        if not commands:
            return ""
        language = normalize_language(language)
        intro = COMMANDS_INTROS.get(language, COMMANDS_INTROS["en-US"])
        listed = ", ".join(f'"{c}"' for c in commands[:5])
        if len(commands) > 5:
            return f"{intro} {listed}, {MORE_TEXTS.get(language, MORE_TEXTS['en-US'])}"
        return f"{intro} {listed}"

    @staticmethod
    def _join_quoted(items: List[str], language: str) -> str:
        if not items:
            return ""
        if len(items) == 1:
            return f'"{items[0]}"'
        connector = SUGGESTION_CONNECTORS.get(language, SUGGESTION_CONNECTORS["en-US"])
        head = ", ".join(f'"{s}"' for s in items[:-1])
        return f'{head} {connector} "{items[-1]}"'

    @staticmethod
    def get_retry_message(retry_count: int, language: str) -> str:
        if retry_count <= 1:
            return ""
        messages = RETRY_MESSAGES.get(language, RETRY_MESSAGES["en-US"])
        return messages[min(retry_count - 1, len(messages) - 1)]

    @staticmethod
    def get_retry_context_message(retry_count: int, language: str) -> str:
        messages = RETRY_CONTEXT_MESSAGES.get(language, RETRY_CONTEXT_MESSAGES["en-US"])
        return messages.get(retry_count, "")

    @staticmethod
    def get_fallback_text(feedback_type: str, language: str) -> str:
        texts = FALLBACK_TEXTS.get(language, FALLBACK_TEXTS["en-US"])
        return texts.get(feedback_type, "Navigation feedback")

    @staticmethod
    def format_destination_name(path: str) -> str:
        """Readable name for a bare route path."""
        name = path.strip("/").replace("-", " ")
        return name or "home"
