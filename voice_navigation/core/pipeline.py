"""
Voice Navigation Pipeline.
Coordinates intent detection → security → navigation → spoken feedback
for every request, with per-session retry tracking.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, List

from voice_navigation.config import get_settings, normalize_language
from voice_navigation.core.context import NavigationContext, UserProfile
from voice_navigation.core.exceptions import NavigationNotInitializedException
from voice_navigation.core.session import RetryTracker
from voice_navigation.logging.navigation_logger import NavigationLogger
from voice_navigation.navigation.catalog import (
    BACK_INTENT,
    HELP_INTENT,
    CulturalRegister,
    IntentMapping,
    Route
)
from voice_navigation.navigation.detector import PatternIntentDetector
from voice_navigation.navigation.executor import (
    ExecutionResult,
    NavigationExecutor,
    NavigationHistoryEntry
)
from voice_navigation.navigation.intents import IntentMappingTable
from voice_navigation.navigation.patterns import MatchResult
from voice_navigation.services.feedback import FeedbackGenerator, FeedbackRequest

logger = logging.getLogger(__name__)
settings = get_settings()

ERROR_TYPES = ["not_found", "access_denied", "network_error", "service_unavailable", "general"]
MAX_RESPONSE_SUGGESTIONS = 3

_NETWORK_MARKERS = ("network", "connection", "timeout", "fetch")


@dataclass
class VoiceNavigationRequest:
    """One utterance from the host application."""
    message: str
    session_id: str = "default"
    language: Optional[str] = None
    user_profile: Optional[UserProfile] = None
    current_route: Optional[str] = None
    session_data: Dict[str, Any] = field(default_factory=dict)
    cultural_register: Optional[CulturalRegister] = None


@dataclass
class VoiceNavigationResponse:
    """Outcome of one voice navigation request."""
    success: bool
    executed: bool = False
    message: str = ""
    language: str = "en-US"
    intent: Optional[str] = None
    confidence: Optional[float] = None
    target_route: Optional[str] = None
    audio_feedback: Optional[str] = None
    audio_content: Optional[bytes] = None
    requires_confirmation: bool = False
    confirmation_id: Optional[str] = None
    confirmation_message: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    retry_count: int = 0
    can_retry: bool = False
    redirected: bool = False
    execution_time_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """camelCase view for the host application; audio stays as bytes."""
        return {
            "success": self.success,
            "executed": self.executed,
            "message": self.message,
            "language": self.language,
            "intent": self.intent,
            "confidence": round(self.confidence, 4) if self.confidence is not None else None,
            "targetRoute": self.target_route,
            "audioFeedback": self.audio_feedback,
            "audioContent": self.audio_content,
            "requiresConfirmation": self.requires_confirmation,
            "confirmationId": self.confirmation_id,
            "confirmationMessage": self.confirmation_message,
            "error": self.error,
            "errorType": self.error_type,
            "suggestions": self.suggestions,
            "retryCount": self.retry_count,
            "canRetry": self.can_retry,
            "redirected": self.redirected,
            "executionTimeMs": self.execution_time_ms
        }


class VoiceNavigationPipeline:
    """
    Single entry point for voice navigation.

    Every collaborator is injected. Failures are turned into structured
    responses; only calling an uninitialized pipeline raises.
    """

    def __init__(
        self,
        detector: PatternIntentDetector,
        intent_table: IntentMappingTable,
        executor: NavigationExecutor,
        feedback: FeedbackGenerator,
        retry_tracker: Optional[RetryTracker] = None,
        navigation_logger: Optional[NavigationLogger] = None,
        confidence_threshold: Optional[float] = None,
        marginal_confidence: Optional[float] = None,
        intent_timeout: Optional[float] = None
    ):
        self.detector = detector
        self.table = intent_table
        self.executor = executor
        self.feedback = feedback
        self.retries = retry_tracker or RetryTracker()
        self.nav_logger = navigation_logger

        self.confidence_threshold = (
            settings.CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
        )
        self.marginal_confidence = (
            settings.MARGINAL_CONFIDENCE if marginal_confidence is None else marginal_confidence
        )
        self.intent_timeout = settings.INTENT_TIMEOUT_SECONDS if intent_timeout is None else intent_timeout

        self._is_initialized = False
        self._seen_sessions: Dict[str, datetime] = {}
        self._cleanup_task: Optional[asyncio.Task] = None
        self._stats = {
            "requests": 0,
            "executed": 0,
            "confirmations": 0,
            "retry_prompts": 0,
            "errors": 0
        }

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def max_retry_attempts(self) -> int:
        return self.retries.max_attempts

    async def initialize(self):
        """Mark the pipeline ready to serve requests."""
        if self._is_initialized:
            return
        self._is_initialized = True
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            f"Voice navigation pipeline initialized "
            f"({len(self.table.get_all_intents())} intents, {len(self.table.get_all_routes())} routes)"
        )
        if self.nav_logger:
            await self.nav_logger.log_system_event("Navigation pipeline initialized", {
                "intents": len(self.table.get_all_intents()),
                "routes": len(self.table.get_all_routes()),
                "max_retry_attempts": self.max_retry_attempts
            })

    async def cleanup(self):
        self._is_initialized = False
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        logger.info("Voice navigation pipeline cleaned up")

    # =========================
    # Main flow
    # =========================

    async def process_voice_navigation(self, request: VoiceNavigationRequest) -> VoiceNavigationResponse:
        """
        Process one utterance.

        Flow:
        1. Count the attempt for session + message
        2. Build the navigation context
        3. Detect the intent (low confidence → retry prompt)
        4. Answer help, or execute the navigation
        5. Turn the outcome into localized feedback
        """
        if not self._is_initialized:
            raise NavigationNotInitializedException()

        session_id = request.session_id or "default"
        message = request.message
        language = normalize_language(request.language)
        self._stats["requests"] += 1

        retry_count = self.retries.increment(session_id, message)
        context = self.build_context(request, language)

        is_new_session = session_id not in self._seen_sessions
        self._seen_sessions[session_id] = datetime.now()
        if is_new_session:
            if len(self._seen_sessions) > self.retries.max_sessions:
                self.cleanup_expired()
            if self.nav_logger:
                await self.nav_logger.log_session_start(session_id, language, context.role)

        try:
            match = await asyncio.wait_for(
                self.detector.detect(message, language, context, request.cultural_register),
                timeout=self.intent_timeout
            )
        except asyncio.TimeoutError:
            return await self._handle_system_error(
                session_id, message, language, retry_count,
                f"Intent detection timeout after {self.intent_timeout}s"
            )
        except asyncio.CancelledError:
            if self._is_cancelling():
                self.retries.clear(session_id, message)
                raise
            return await self._handle_system_error(
                session_id, message, language, retry_count, "Service unavailable: operation cancelled"
            )
        except Exception as e:
            return await self._handle_system_error(session_id, message, language, retry_count, str(e) or type(e).__name__)

        if self.nav_logger:
            await self.nav_logger.log_match(
                session_id, message, match.intent, match.confidence, match.match_type, language, retry_count
            )

        if not match.matched or match.confidence < self.confidence_threshold:
            return await self._handle_low_confidence(session_id, message, language, retry_count, match, context)

        if match.intent == HELP_INTENT:
            self.retries.clear(session_id, message)
            return await self._handle_help(language, context, match)

        try:
            start = time.perf_counter()
            result = await self.executor.execute_navigation(match.intent, match.parameters, context)
            execution_time_ms = (time.perf_counter() - start) * 1000
        except asyncio.CancelledError:
            if self._is_cancelling():
                self.retries.clear(session_id, message)
                raise
            return await self._handle_system_error(
                session_id, message, language, retry_count, "Service unavailable: operation cancelled"
            )
        except Exception as e:
            return await self._handle_system_error(session_id, message, language, retry_count, str(e) or type(e).__name__)

        if self.nav_logger:
            await self.nav_logger.log_execution(session_id, match.intent, result.to_dict(), execution_time_ms)

        if result.requires_confirmation:
            self.retries.clear(session_id, message)
            return await self._handle_confirmation_required(result, language, match)

        if result.success:
            self.retries.clear(session_id, message)
            return await self._handle_success(result, language, match, execution_time_ms)

        return await self._handle_failure(session_id, message, language, retry_count, result, match, context)

    def build_context(self, request: VoiceNavigationRequest, language: Optional[str] = None) -> NavigationContext:
        return NavigationContext(
            user_profile=request.user_profile,
            current_route=request.current_route,
            session_data=dict(request.session_data or {}),
            language=language or normalize_language(request.language),
            session_id=request.session_id or "default"
        )

    # =========================
    # Outcome handlers
    # =========================

    async def _handle_low_confidence(
        self,
        session_id: str,
        message: str,
        language: str,
        retry_count: int,
        match: MatchResult,
        context: NavigationContext
    ) -> VoiceNavigationResponse:
        self._stats["retry_prompts"] += 1
        can_retry = retry_count < self.max_retry_attempts

        suggestions: List[str] = []
        if can_retry:
            suggestions = self._build_suggestions(context, language, match)
        else:
            self.retries.clear(session_id, message)
            logger.info(f"[{session_id}] Retries exhausted for '{message}'")

        feedback = await self.feedback.generate_retry_prompt(
            language, message, retry_count, suggestions, self.max_retry_attempts
        )
        return VoiceNavigationResponse(
            success=False,
            executed=False,
            message=feedback.text_content,
            language=language,
            intent=match.intent or None,
            confidence=match.confidence,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            suggestions=suggestions,
            retry_count=retry_count,
            can_retry=can_retry
        )

    async def _handle_help(
        self,
        language: str,
        context: NavigationContext,
        match: MatchResult
    ) -> VoiceNavigationResponse:
        commands = self.table.get_help_commands(language, context)
        feedback = await self.feedback.generate_help(language, commands, context.role)
        return VoiceNavigationResponse(
            success=True,
            executed=False,
            message=feedback.text_content,
            language=language,
            intent=match.intent,
            confidence=match.confidence,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            suggestions=commands[:MAX_RESPONSE_SUGGESTIONS]
        )

    async def _handle_confirmation_required(
        self,
        result: ExecutionResult,
        language: str,
        match: MatchResult
    ) -> VoiceNavigationResponse:
        self._stats["confirmations"] += 1
        destination = self.get_destination_name(result.route, language)
        feedback = await self.feedback.generate_confirmation_prompt(destination, language)
        prompt = result.confirmation_message or feedback.text_content
        return VoiceNavigationResponse(
            success=True,
            executed=False,
            message=prompt,
            language=language,
            intent=match.intent,
            confidence=match.confidence,
            target_route=result.route,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            requires_confirmation=True,
            confirmation_id=result.confirmation_id,
            confirmation_message=prompt
        )

    async def _handle_success(
        self,
        result: ExecutionResult,
        language: str,
        match: Optional[MatchResult] = None,
        execution_time_ms: Optional[float] = None
    ) -> VoiceNavigationResponse:
        self._stats["executed"] += 1
        destination = self.get_destination_name(result.route, language)

        suggestions: List[str] = []
        if match is not None and match.confidence < self.marginal_confidence and match.alternatives:
            suggestions = self._alternative_phrases(match, language)

        if suggestions:
            did_you_mean = self.feedback.templates.get_template("nav_did_you_mean", language)
            extra = self.feedback.render_template(did_you_mean, {
                "suggestions": self.feedback.format_suggestions(suggestions, language)
            }) if did_you_mean else None
            feedback = await self.feedback.generate_feedback(FeedbackRequest(
                type="confirmation",
                language=language,
                template_id="nav_success",
                variables={"destination": destination},
                append_text=extra
            ))
        else:
            feedback = await self.feedback.generate_navigation_confirmation(destination, language, execution_time_ms)

        return VoiceNavigationResponse(
            success=True,
            executed=result.executed,
            message=feedback.text_content,
            language=language,
            intent=result.intent or (match.intent if match else None),
            confidence=match.confidence if match else None,
            target_route=result.route,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            suggestions=suggestions,
            retry_count=0,
            can_retry=False,
            redirected=result.redirected,
            execution_time_ms=round(execution_time_ms, 2) if execution_time_ms is not None else None
        )

    async def _handle_failure(
        self,
        session_id: str,
        message: str,
        language: str,
        retry_count: int,
        result: ExecutionResult,
        match: Optional[MatchResult],
        context: NavigationContext
    ) -> VoiceNavigationResponse:
        self._stats["errors"] += 1
        error = result.error or result.message or "Navigation failed"
        error_type = self.classify_error(error)
        can_retry = error_type != "access_denied" and retry_count < self.max_retry_attempts
        if not can_retry:
            self.retries.clear(session_id, message)

        suggestions = self._build_suggestions(context, language, match)

        if result.intent == BACK_INTENT:
            feedback = await self.feedback.generate_feedback(FeedbackRequest(
                type="error",
                language=language,
                template_id="nav_back_failed",
                append_text=self.feedback.format_suggestions(suggestions, language) or None
            ))
        else:
            feedback = await self.feedback.generate_error_with_guidance(
                error_type,
                language,
                command=message,
                destination=self.get_destination_name(result.route, language) if result.route else None,
                error=error,
                suggestions=suggestions,
                retry_count=retry_count
            )

        if self.nav_logger:
            await self.nav_logger.log_error(session_id, error_type, error, suggestions)

        return VoiceNavigationResponse(
            success=False,
            executed=False,
            message=feedback.text_content,
            language=language,
            intent=result.intent or (match.intent if match else None),
            confidence=match.confidence if match else None,
            target_route=result.route,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            error=error,
            error_type=error_type,
            suggestions=suggestions,
            retry_count=retry_count,
            can_retry=can_retry
        )

    async def _handle_system_error(
        self,
        session_id: str,
        message: str,
        language: str,
        retry_count: int,
        error: str
    ) -> VoiceNavigationResponse:
        self._stats["errors"] += 1
        text = error.lower()
        error_type = "network_error" if any(m in text for m in _NETWORK_MARKERS) else "service_unavailable"
        can_retry = retry_count < self.max_retry_attempts
        if not can_retry:
            self.retries.clear(session_id, message)

        logger.error(f"[{session_id}] Voice navigation failed ({error_type}): {error}")
        if self.nav_logger:
            await self.nav_logger.log_error(session_id, error_type, error)

        feedback = await self.feedback.generate_error_with_guidance(
            error_type,
            language,
            command=message,
            error=error,
            retry_count=retry_count
        )
        return VoiceNavigationResponse(
            success=False,
            executed=False,
            message=feedback.text_content,
            language=language,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            error=error,
            error_type=error_type,
            retry_count=retry_count,
            can_retry=can_retry
        )

    @staticmethod
    def _is_cancelling() -> bool:
        """True when this request's own task was cancelled, not a collaborator's call."""
        task = asyncio.current_task()
        return task is not None and task.cancelling() > 0

    @staticmethod
    def classify_error(error: Optional[str]) -> str:
        """Map an error string onto the navigation error taxonomy."""
        text = (error or "").lower()
        if "not found" in text or "404" in text:
            return "not_found"
        if "access denied" in text or "permission" in text or "403" in text:
            return "access_denied"
        if any(m in text for m in _NETWORK_MARKERS):
            return "network_error"
        if "service unavailable" in text or "503" in text:
            return "service_unavailable"
        return "general"

    # =========================
    # Suggestions
    # =========================

    def _alternative_phrases(self, match: MatchResult, language: str) -> List[str]:
        phrases = []
        for alternative in match.alternatives:
            mapping = self.table.get_intent(alternative.intent)
            localized = mapping.phrases.get(language) if mapping else None
            if localized and localized.patterns:
                phrase = localized.patterns[0][0]
                if phrase not in phrases:
                    phrases.append(phrase)
        return phrases[:MAX_RESPONSE_SUGGESTIONS]

    def _build_suggestions(
        self,
        context: NavigationContext,
        language: str,
        match: Optional[MatchResult] = None
    ) -> List[str]:
        suggestions = self._alternative_phrases(match, language) if match else []
        for phrase in self.table.get_navigation_suggestions(context, settings.SUGGESTION_LIMIT, language):
            if phrase not in suggestions:
                suggestions.append(phrase)
        return suggestions[:MAX_RESPONSE_SUGGESTIONS]

    def get_destination_name(self, path: Optional[str], language: str) -> str:
        if not path:
            return ""
        route = self.table.get_route(path.split("?", 1)[0])
        if route is not None:
            return route.display_name(language)
        return self.feedback.format_destination_name(path)

    # =========================
    # Confirmation and history
    # =========================

    async def confirm_navigation(
        self,
        confirmation_id: str,
        confirmed: bool,
        language: Optional[str] = None
    ) -> VoiceNavigationResponse:
        """Answer a pending confirmation prompt."""
        if not self._is_initialized:
            raise NavigationNotInitializedException()

        language = normalize_language(language)
        try:
            result = await self.executor.confirm_navigation(confirmation_id, confirmed)
        except Exception as e:
            return await self._handle_system_error(
                "confirmation", confirmation_id, language, self.max_retry_attempts, str(e) or type(e).__name__
            )

        if self.nav_logger:
            await self.nav_logger.log_confirmation(confirmation_id, confirmed, result.route)

        if result.success and result.executed:
            return await self._handle_success(result, language)

        if result.success:
            feedback = await self.feedback.generate_simple("nav_cancelled", "navigation", language)
            return VoiceNavigationResponse(
                success=True,
                executed=False,
                message=feedback.text_content,
                language=language,
                intent=result.intent,
                target_route=result.route,
                audio_feedback=feedback.text_content,
                audio_content=feedback.audio_content
            )

        error = result.error or "Navigation failed"
        error_type = self.classify_error(error)
        feedback = await self.feedback.generate_error_with_guidance(
            error_type,
            language,
            command=confirmation_id,
            destination=self.get_destination_name(result.route, language) if result.route else None,
            error=error
        )
        return VoiceNavigationResponse(
            success=False,
            executed=False,
            message=feedback.text_content,
            language=language,
            intent=result.intent,
            target_route=result.route,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            error=error,
            error_type=error_type
        )

    async def execute_back_navigation(
        self,
        session_id: str = "default",
        language: Optional[str] = None
    ) -> VoiceNavigationResponse:
        if not self._is_initialized:
            raise NavigationNotInitializedException()

        language = normalize_language(language)
        try:
            result = await self.executor.execute_back_navigation(session_id)
        except Exception as e:
            return await self._handle_system_error(
                session_id, "back", language, self.max_retry_attempts, str(e) or type(e).__name__
            )

        if result.success:
            return await self._handle_success(result, language)

        feedback = await self.feedback.generate_simple("nav_back_failed", "error", language)
        return VoiceNavigationResponse(
            success=False,
            executed=False,
            message=result.message or feedback.text_content,
            language=language,
            intent=BACK_INTENT,
            audio_feedback=feedback.text_content,
            audio_content=feedback.audio_content,
            error=result.error,
            error_type="general"
        )

    def get_navigation_history(self, session_id: str = "default") -> List[NavigationHistoryEntry]:
        return self.executor.get_navigation_history(session_id)

    def clear_navigation_history(self, session_id: str = "default"):
        self.executor.clear_navigation_history(session_id)

    def clear_retry_attempts(self, session_id: str) -> int:
        return self.retries.clear_session(session_id)

    def cleanup_expired(self) -> Dict[str, int]:
        """Drop per-session state that has been idle longer than the session timeout."""
        cutoff = datetime.now() - self.retries.timeout
        stale = [sid for sid, seen in self._seen_sessions.items() if seen < cutoff]
        for sid in stale:
            del self._seen_sessions[sid]
        # Still over the cap: forget the least recently seen sessions
        overflow = len(self._seen_sessions) - self.retries.max_sessions
        if overflow > 0:
            for sid in sorted(self._seen_sessions, key=self._seen_sessions.get)[:overflow]:
                del self._seen_sessions[sid]
        return {
            "sessions": len(stale) + max(overflow, 0),
            "retry_counters": self.retries.cleanup_expired(),
            "navigation_sessions": self.executor.cleanup_expired()
        }

    async def _cleanup_loop(self):
        """Periodically clean up expired session state."""
        while True:
            try:
                await asyncio.sleep(settings.SESSION_CLEANUP_INTERVAL_SECONDS)
                removed = self.cleanup_expired()
                if any(removed.values()):
                    logger.info(f"Session cleanup: {removed}")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session cleanup: {e}")

    # =========================
    # Queries
    # =========================

    def get_navigation_suggestions(
        self,
        context: Optional[NavigationContext] = None,
        limit: Optional[int] = None,
        language: Optional[str] = None
    ) -> List[str]:
        return self.table.get_navigation_suggestions(context, limit, language)

    def get_available_routes(self, context: Optional[NavigationContext] = None) -> List[Route]:
        return self.table.get_available_routes(context)

    async def can_access_route(self, path: str, context: NavigationContext) -> bool:
        return await self.executor.can_access_route(path, context)

    async def get_help_information(
        self,
        language: Optional[str] = None,
        context: Optional[NavigationContext] = None
    ) -> Dict[str, Any]:
        """Spoken help plus the commands and destinations open to the caller."""
        language = normalize_language(language or (context.language if context else None))
        commands = self.table.get_help_commands(language, context)
        help_feedback = await self.feedback.generate_help(language, commands, context.role if context else None)
        examples = await self.feedback.generate_simple("nav_help_examples", "help", language)
        return {
            "language": language,
            "help_text": help_feedback.text_content,
            "examples": examples.text_content,
            "commands": commands,
            "suggestions": self.get_navigation_suggestions(context, None, language),
            "routes": [r.to_dict(language) for r in self.get_available_routes(context)]
        }

    def add_custom_intent_mapping(self, mapping: IntentMapping, routes: Optional[List[Route]] = None):
        """Register a new intent (and its routes) with the table and the matcher."""
        for route in routes or []:
            self.table.add_route(route)
        self.table.add_intent_mapping(mapping)
        self.detector.matcher.register_intent(mapping)
        logger.info(f"Custom intent registered: {mapping.name} -> {mapping.routes}")

    def get_service_status(self) -> Dict[str, Any]:
        return {
            "initialized": self._is_initialized,
            "intents": len(self.table.get_all_intents()),
            "routes": len(self.table.get_all_routes()),
            "languages": self.table.get_supported_languages(),
            "active_sessions": len(self._seen_sessions),
            "active_retry_sessions": len(self.retries),
            "max_retry_attempts": self.max_retry_attempts,
            "confidence_threshold": self.confidence_threshold,
            "pending_confirmations": len(self.executor.get_pending_confirmations()),
            "pattern_stats": self.detector.matcher.get_pattern_stats(),
            "feedback_cache": self.feedback.get_cache_stats(),
            "stats": dict(self._stats)
        }
