"""Tests for the voice navigation pipeline."""

import asyncio
from datetime import timedelta

import pytest

from voice_navigation.core.exceptions import NavigationNotInitializedException
from voice_navigation.core.pipeline import VoiceNavigationPipeline, VoiceNavigationRequest
from voice_navigation.core.session import RetryTracker
from voice_navigation.logging.navigation_logger import NavigationLogger
from voice_navigation.navigation.detector import PatternIntentDetector
from voice_navigation.navigation.patterns import AlternativeMatch, MatchResult


class RaisingDetector:
    def __init__(self, error: BaseException):
        self.error = error

    async def detect(self, utterance, language, context=None, cultural_register=None):
        raise self.error


class SlowDetector:
    async def detect(self, utterance, language, context=None, cultural_register=None):
        await asyncio.sleep(1)


class FixedDetector:
    def __init__(self, result: MatchResult):
        self.result = result

    async def detect(self, utterance, language, context=None, cultural_register=None):
        return self.result


@pytest.fixture
async def build_pipeline(table, executor, feedback):
    """Factory for initialized pipelines around a given detector."""
    built = []

    async def build(detector, **kwargs) -> VoiceNavigationPipeline:
        pipeline = VoiceNavigationPipeline(
            detector=detector,
            intent_table=table,
            executor=executor,
            feedback=feedback,
            retry_tracker=RetryTracker(max_attempts=3),
            **kwargs
        )
        await pipeline.initialize()
        built.append(pipeline)
        return pipeline

    yield build
    for pipeline in built:
        await pipeline.cleanup()


# ──────────────────────────────────────────
# Navigation outcomes
# ──────────────────────────────────────────

class TestNavigation:
    @pytest.mark.anyio
    async def test_english_dashboard(self, pipeline, artisan):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="go to dashboard", session_id="s1", language="en-US", user_profile=artisan
        ))
        assert response.success
        assert response.executed
        assert response.intent == "navigate_dashboard"
        assert response.target_route == "/dashboard"
        assert response.message == "Successfully navigated to Dashboard"
        assert response.audio_content
        assert response.retry_count == 0
        assert not response.can_retry
        assert len(pipeline.retries) == 0

    @pytest.mark.anyio
    async def test_hindi_dashboard_has_same_outcome(self, pipeline, artisan):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="डैशबोर्ड पर जाएं", session_id="s1", language="hi-IN", user_profile=artisan
        ))
        assert response.success
        assert response.intent == "navigate_dashboard"
        assert response.target_route == "/dashboard"
        assert response.language == "hi-IN"
        assert response.message == "डैशबोर्ड पर सफलतापूर्वक पहुंच गए"

    @pytest.mark.anyio
    async def test_help(self, pipeline, artisan):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="help", session_id="s1", user_profile=artisan
        ))
        assert response.success
        assert not response.executed
        assert response.intent == "help"
        assert 0 < len(response.suggestions) <= 3

    @pytest.mark.anyio
    async def test_access_denied_is_not_retried(self, pipeline, buyer):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="open finance", session_id="s1", user_profile=buyer
        ))
        assert not response.success
        assert response.error_type == "access_denied"
        assert response.error.startswith("Access denied:")
        assert not response.can_retry
        assert response.message.startswith("Access denied to Finance")
        assert len(pipeline.retries) == 0

    @pytest.mark.anyio
    async def test_back_navigation(self, pipeline, artisan):
        for message in ["go to dashboard", "open marketplace"]:
            await pipeline.process_voice_navigation(VoiceNavigationRequest(
                message=message, session_id="s1", user_profile=artisan
            ))
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="go back", session_id="s1", user_profile=artisan
        ))
        assert response.success
        assert response.target_route == "/dashboard"

    @pytest.mark.anyio
    async def test_back_without_history(self, pipeline, artisan):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="go back", session_id="fresh", user_profile=artisan
        ))
        assert not response.success
        assert response.error == "Cannot go back"
        assert response.message.startswith("There is no previous page")

    @pytest.mark.anyio
    async def test_marginal_match_offers_alternatives(self, build_pipeline, artisan):
        detector = FixedDetector(MatchResult(
            matched=True,
            intent="navigate_dashboard",
            confidence=0.55,
            match_type="fuzzy",
            alternatives=[AlternativeMatch(intent="navigate_marketplace", confidence=0.5, pattern="marketplace")]
        ))
        pipeline = await build_pipeline(detector)

        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="dashbrd", session_id="s1", user_profile=artisan
        ))
        assert response.success
        assert response.suggestions == ["go to marketplace"]
        assert "Did you mean" in response.message


# ──────────────────────────────────────────
# Retries
# ──────────────────────────────────────────

class TestRetries:
    @pytest.mark.anyio
    async def test_unrecognized_command(self, pipeline):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="blah blah nonsense", session_id="s1"
        ))
        assert not response.success
        assert response.intent is None
        assert response.retry_count == 1
        assert response.can_retry
        assert response.suggestions

    @pytest.mark.anyio
    async def test_retries_are_capped(self, pipeline):
        request = VoiceNavigationRequest(message="blah blah nonsense", session_id="s1")

        first = await pipeline.process_voice_navigation(request)
        second = await pipeline.process_voice_navigation(request)
        third = await pipeline.process_voice_navigation(request)

        assert [r.retry_count for r in (first, second, third)] == [1, 2, 3]
        assert [r.can_retry for r in (first, second, third)] == [True, True, False]
        assert "final attempt" in second.message
        assert '"blah blah nonsense"' in third.message
        assert third.suggestions == []
        assert pipeline.retries.get_count("s1", "blah blah nonsense") == 0

        fourth = await pipeline.process_voice_navigation(request)
        assert fourth.retry_count == 1
        assert fourth.can_retry

    @pytest.mark.anyio
    async def test_sessions_are_independent(self, pipeline):
        await pipeline.process_voice_navigation(VoiceNavigationRequest(message="blah", session_id="s1"))
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(message="blah", session_id="s2"))
        assert response.retry_count == 1
        assert pipeline.clear_retry_attempts("s1") == 1

    @pytest.mark.anyio
    async def test_abandoned_sessions_are_bounded(self, matcher, table, executor, feedback):
        pipeline = VoiceNavigationPipeline(
            detector=PatternIntentDetector(matcher),
            intent_table=table,
            executor=executor,
            feedback=feedback,
            retry_tracker=RetryTracker(max_attempts=3, max_sessions=5)
        )
        await pipeline.initialize()
        try:
            for i in range(20):
                await pipeline.process_voice_navigation(VoiceNavigationRequest(
                    message="blah blah nonsense", session_id=f"abandoned-{i}"
                ))
            assert len(pipeline.retries) == 5
            assert pipeline.get_service_status()["active_sessions"] == 5
        finally:
            await pipeline.cleanup()

    @pytest.mark.anyio
    async def test_idle_state_is_swept(self, pipeline):
        await pipeline.process_voice_navigation(VoiceNavigationRequest(message="blah", session_id="idle"))
        pipeline.retries.get_session("idle", "blah").last_attempt -= timedelta(hours=1)
        pipeline._seen_sessions["idle"] -= timedelta(hours=1)

        removed = pipeline.cleanup_expired()
        assert removed["sessions"] == 1
        assert removed["retry_counters"] == 1
        assert len(pipeline.retries) == 0


# ──────────────────────────────────────────
# System errors
# ──────────────────────────────────────────

class TestSystemErrors:
    @pytest.mark.anyio
    async def test_not_initialized(self, table, executor, feedback, matcher):
        pipeline = VoiceNavigationPipeline(PatternIntentDetector(matcher), table, executor, feedback)
        with pytest.raises(NavigationNotInitializedException):
            await pipeline.process_voice_navigation(VoiceNavigationRequest(message="help"))

    @pytest.mark.anyio
    async def test_network_failure(self, build_pipeline):
        pipeline = await build_pipeline(RaisingDetector(ConnectionError("network unreachable")))

        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(message="go to dashboard"))
        assert not response.success
        assert response.error_type == "network_error"
        assert response.can_retry
        assert response.retry_count == 1
        assert response.message.startswith("Network connection issue")

    @pytest.mark.anyio
    async def test_unexpected_failure(self, build_pipeline):
        pipeline = await build_pipeline(RaisingDetector(RuntimeError("boom")))

        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(message="go to dashboard"))
        assert response.error_type == "service_unavailable"
        assert response.error == "boom"

    @pytest.mark.anyio
    async def test_system_errors_consume_retries(self, build_pipeline):
        pipeline = await build_pipeline(RaisingDetector(RuntimeError("boom")))
        request = VoiceNavigationRequest(message="go to dashboard", session_id="s1")

        responses = [await pipeline.process_voice_navigation(request) for _ in range(3)]
        assert [r.can_retry for r in responses] == [True, True, False]
        assert len(pipeline.retries) == 0

    @pytest.mark.anyio
    async def test_detection_timeout(self, build_pipeline):
        pipeline = await build_pipeline(SlowDetector(), intent_timeout=0.01)

        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(message="go to dashboard"))
        assert response.error == "Intent detection timeout after 0.01s"
        assert response.error_type == "network_error"

    @pytest.mark.anyio
    async def test_cancelled_collaborator(self, build_pipeline):
        pipeline = await build_pipeline(RaisingDetector(asyncio.CancelledError()))

        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(message="go to dashboard"))
        assert response.error_type == "service_unavailable"

    @pytest.mark.anyio
    async def test_cancelling_the_request_propagates(self, build_pipeline):
        pipeline = await build_pipeline(SlowDetector(), intent_timeout=5)
        task = asyncio.create_task(pipeline.process_voice_navigation(
            VoiceNavigationRequest(message="go to dashboard", session_id="s1")
        ))
        await asyncio.sleep(0.05)
        assert pipeline.retries.get_count("s1", "go to dashboard") == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(pipeline.retries) == 0

    def test_error_classification(self):
        classify = VoiceNavigationPipeline.classify_error
        assert classify("Route not found") == "not_found"
        assert classify("Access denied: Role 'buyer' is not allowed") == "access_denied"
        assert classify("Connection reset") == "network_error"
        assert classify("Service unavailable") == "service_unavailable"
        assert classify("Something odd") == "general"
        assert classify(None) == "general"


# ──────────────────────────────────────────
# Confirmation
# ──────────────────────────────────────────

class TestConfirmation:
    @pytest.mark.anyio
    async def test_confirm_flow(self, pipeline, artisan):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="create product", session_id="s1", user_profile=artisan
        ))
        assert response.success
        assert response.requires_confirmation
        assert not response.executed
        assert response.confirmation_message == "Do you want to create a new product?"

        confirmed = await pipeline.confirm_navigation(response.confirmation_id, True)
        assert confirmed.executed
        assert confirmed.target_route == "/smart-product-creator"

    @pytest.mark.anyio
    async def test_cancel_flow(self, pipeline, artisan):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="create product", session_id="s1", user_profile=artisan
        ))
        cancelled = await pipeline.confirm_navigation(response.confirmation_id, False)
        assert cancelled.success
        assert not cancelled.executed
        assert cancelled.message == "Okay, navigation cancelled."

    @pytest.mark.anyio
    async def test_unknown_confirmation(self, pipeline):
        response = await pipeline.confirm_navigation("nav_confirm_missing", True)
        assert not response.success
        assert response.error_type == "not_found"


# ──────────────────────────────────────────
# Queries and logging
# ──────────────────────────────────────────

class TestQueries:
    @pytest.mark.anyio
    async def test_help_information(self, pipeline, buyer_context):
        info = await pipeline.get_help_information("en-US", buyer_context)
        assert info["language"] == "en-US"
        assert info["help_text"]
        assert "/finance" not in [r["path"] for r in info["routes"]]

    @pytest.mark.anyio
    async def test_service_status(self, pipeline):
        status = pipeline.get_service_status()
        assert status["initialized"]
        assert status["max_retry_attempts"] == 3
        assert status["languages"] == ["en-US", "hi-IN"]

    @pytest.mark.anyio
    async def test_response_dict_is_camel_case(self, pipeline, artisan):
        response = await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="go to dashboard", user_profile=artisan
        ))
        data = response.to_dict()
        assert data["targetRoute"] == "/dashboard"
        assert data["canRetry"] is False
        assert "retryCount" in data

    @pytest.mark.anyio
    async def test_markdown_log(self, build_pipeline, matcher, artisan, tmp_path):
        nav_logger = NavigationLogger(str(tmp_path / "navigation_log.md"))
        await nav_logger.initialize_log()
        pipeline = await build_pipeline(PatternIntentDetector(matcher), navigation_logger=nav_logger)

        await pipeline.process_voice_navigation(VoiceNavigationRequest(
            message="go to dashboard", session_id="logged-session", user_profile=artisan
        ))
        await nav_logger.close()

        text = (tmp_path / "navigation_log.md").read_text(encoding="utf-8")
        assert "Voice Navigation Execution Log" in text
        assert "logged-session" in text
        assert "navigate_dashboard" in text
