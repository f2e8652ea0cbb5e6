"""Voice Navigation – Pytest Configuration.

Shared fixtures for all tests.
"""

import os
import random
import tempfile
from pathlib import Path

# Settings are read at import time; keep tests offline and out of ./logs
os.environ["TTS_ENABLED"] = "false"
os.environ["GROQ_API_KEY"] = ""
os.environ["DEBUG"] = "false"
os.environ["NAVIGATION_LOG_PATH"] = str(Path(tempfile.gettempdir()) / "voice_navigation_test_log.md")

import pytest
from httpx import ASGITransport, AsyncClient

from voice_navigation.core.context import NavigationContext, UserProfile
from voice_navigation.core.pipeline import VoiceNavigationPipeline
from voice_navigation.core.session import RetryTracker
from voice_navigation.navigation.detector import PatternIntentDetector
from voice_navigation.navigation.executor import NavigationExecutor, InMemoryRouter
from voice_navigation.navigation.intents import IntentMappingTable
from voice_navigation.navigation.patterns import PatternMatcher
from voice_navigation.navigation.security import RouteSecurityValidator
from voice_navigation.services.feedback import FeedbackGenerator
from voice_navigation.services.guidance import GuidanceService
from voice_navigation.services.tts import TTSService


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ──────────────────────────────────────────
# Profiles
# ──────────────────────────────────────────

@pytest.fixture
def artisan():
    return UserProfile(
        uid="artisan-001",
        role="artisan",
        name="Meera",
        profession="Potter",
        description="Hand-thrown terracotta from Khurja"
    )


@pytest.fixture
def buyer():
    return UserProfile(uid="buyer-001", role="buyer", name="Arjun")


@pytest.fixture
def artisan_context(artisan):
    return NavigationContext(user_profile=artisan, current_route="/", session_id="artisan-session")


@pytest.fixture
def buyer_context(buyer):
    return NavigationContext(user_profile=buyer, current_route="/marketplace", session_id="buyer-session")


@pytest.fixture
def anonymous_context():
    return NavigationContext(current_route="/", session_id="anon-session")


# ──────────────────────────────────────────
# Navigation components
# ──────────────────────────────────────────

@pytest.fixture
def table():
    return IntentMappingTable()


@pytest.fixture
def matcher(table):
    return PatternMatcher(table)


@pytest.fixture
def validator():
    return RouteSecurityValidator()


@pytest.fixture
def router():
    return InMemoryRouter()


@pytest.fixture
def executor(table, validator, router):
    return NavigationExecutor(table, validator, router, auto_redirect_on_denial=False)


@pytest.fixture
def feedback():
    return FeedbackGenerator(TTSService(enabled=False), max_retries=0, retry_base_delay=0)


@pytest.fixture
def guidance():
    return GuidanceService(rng=random.Random(42))


@pytest.fixture
async def pipeline(matcher, table, executor, feedback):
    pipeline = VoiceNavigationPipeline(
        detector=PatternIntentDetector(matcher),
        intent_table=table,
        executor=executor,
        feedback=feedback,
        retry_tracker=RetryTracker(max_attempts=3),
        confidence_threshold=0.5,
        marginal_confidence=0.6
    )
    await pipeline.initialize()
    yield pipeline
    await pipeline.cleanup()


# ──────────────────────────────────────────
# API
# ──────────────────────────────────────────

@pytest.fixture
async def client():
    """Async test client with the application lifespan running."""
    from voice_navigation.main import app, lifespan

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
