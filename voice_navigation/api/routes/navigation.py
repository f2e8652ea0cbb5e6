"""
Voice Navigation REST Endpoints.
Process utterances, answer confirmations and inspect navigation state.
"""

import base64
import logging
from typing import Optional, Dict, Any, List

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from voice_navigation.config import get_settings, normalize_language
from voice_navigation.core.context import NavigationContext, UserProfile
from voice_navigation.core.pipeline import VoiceNavigationRequest, VoiceNavigationResponse
from voice_navigation.navigation.catalog import CulturalRegister

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case input also works."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserProfileModel(CamelModel):
    uid: str
    role: str = Field(..., pattern="^(artisan|buyer|admin)$")
    name: Optional[str] = None
    profession: Optional[str] = None
    description: Optional[str] = None

    def to_profile(self) -> UserProfile:
        return UserProfile(
            uid=self.uid,
            role=self.role,
            name=self.name,
            profession=self.profession,
            description=self.description
        )


class ProcessNavigationRequest(CamelModel):
    """Request model for a voice navigation utterance."""
    message: str = Field(..., min_length=1, max_length=500)
    session_id: str = "default"
    language: Optional[str] = None
    user_profile: Optional[UserProfileModel] = None
    current_route: Optional[str] = None
    session_data: Dict[str, Any] = Field(default_factory=dict)
    cultural_register: Optional[CulturalRegister] = None


class NavigationResponseModel(CamelModel):
    """Response model for navigation outcomes. Audio is base64 encoded."""
    success: bool
    executed: bool = False
    message: str = ""
    language: str = "en-US"
    intent: Optional[str] = None
    confidence: Optional[float] = None
    target_route: Optional[str] = None
    audio_feedback: Optional[str] = None
    audio_content: Optional[str] = None
    requires_confirmation: bool = False
    confirmation_id: Optional[str] = None
    confirmation_message: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)
    retry_count: int = 0
    can_retry: bool = False
    redirected: bool = False
    execution_time_ms: Optional[float] = None


class ConfirmNavigationRequest(CamelModel):
    confirmation_id: str
    confirmed: bool
    language: Optional[str] = None


class BackNavigationRequest(CamelModel):
    session_id: str = "default"
    language: Optional[str] = None


class ValidateParametersRequest(CamelModel):
    path: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


def to_payload(response: VoiceNavigationResponse) -> Dict[str, Any]:
    """camelCase dict with the audio base64 encoded for JSON."""
    payload = response.to_dict()
    audio = payload.get("audioContent")
    payload["audioContent"] = base64.b64encode(audio).decode() if audio else None
    return payload


def build_context(
    role: Optional[str] = None,
    user_id: Optional[str] = None,
    language: Optional[str] = None,
    current_route: Optional[str] = None,
    session_id: str = "default"
) -> NavigationContext:
    """Context for query endpoints, which only know the caller's role."""
    profile = UserProfile(uid=user_id or "anonymous", role=role) if role else None
    return NavigationContext(
        user_profile=profile,
        current_route=current_route,
        language=normalize_language(language),
        session_id=session_id
    )


# =========================
# Navigation
# =========================

@router.post("/process", response_model=NavigationResponseModel)
async def process_navigation(request: Request, body: ProcessNavigationRequest):
    """
    Process a transcribed voice command.

    Matches the intent, checks access, navigates (or asks for
    confirmation) and returns localized feedback with audio.
    """
    pipeline = request.app.state.pipeline

    nav_request = VoiceNavigationRequest(
        message=body.message,
        session_id=body.session_id,
        language=body.language,
        user_profile=body.user_profile.to_profile() if body.user_profile else None,
        current_route=body.current_route,
        session_data=body.session_data,
        cultural_register=body.cultural_register
    )
    response = await pipeline.process_voice_navigation(nav_request)
    return to_payload(response)


@router.post("/confirm", response_model=NavigationResponseModel)
async def confirm_navigation(request: Request, body: ConfirmNavigationRequest):
    """Confirm or cancel a navigation that asked for confirmation."""
    pipeline = request.app.state.pipeline
    response = await pipeline.confirm_navigation(body.confirmation_id, body.confirmed, body.language)
    return to_payload(response)


@router.post("/back", response_model=NavigationResponseModel)
async def back_navigation(request: Request, body: BackNavigationRequest):
    """Return to the previous route of a session."""
    pipeline = request.app.state.pipeline
    response = await pipeline.execute_back_navigation(body.session_id, body.language)
    return to_payload(response)


# =========================
# History
# =========================

@router.get("/history/{session_id}")
async def get_history(request: Request, session_id: str):
    """Navigation history of a session, oldest first."""
    pipeline = request.app.state.pipeline
    history = pipeline.get_navigation_history(session_id)
    return {
        "session_id": session_id,
        "current_route": pipeline.executor.get_current_route(session_id),
        "history": [entry.to_dict() for entry in history],
        "count": len(history)
    }


@router.delete("/history/{session_id}")
async def clear_history(request: Request, session_id: str):
    """Clear a session's history and retry counters."""
    pipeline = request.app.state.pipeline
    pipeline.clear_navigation_history(session_id)
    cleared_retries = pipeline.clear_retry_attempts(session_id)
    return {
        "status": "cleared",
        "session_id": session_id,
        "cleared_retry_counters": cleared_retries
    }


# =========================
# Discovery
# =========================

@router.get("/routes")
async def get_routes(
    request: Request,
    role: Optional[str] = None,
    user_id: Optional[str] = None,
    language: Optional[str] = None
):
    """Routes the caller's role may open."""
    pipeline = request.app.state.pipeline
    context = build_context(role, user_id, language)
    routes = pipeline.get_available_routes(context)
    return {
        "language": context.language,
        "role": role,
        "routes": [r.to_dict(context.language) for r in routes],
        "count": len(routes)
    }


@router.get("/suggestions")
async def get_suggestions(
    request: Request,
    role: Optional[str] = None,
    language: Optional[str] = None,
    current_route: Optional[str] = None,
    limit: int = settings.SUGGESTION_LIMIT
):
    """Example commands for reachable destinations."""
    pipeline = request.app.state.pipeline
    context = build_context(role, None, language, current_route)
    return {
        "language": context.language,
        "suggestions": pipeline.get_navigation_suggestions(context, limit, context.language)
    }


@router.get("/help")
async def get_help(request: Request, role: Optional[str] = None, language: Optional[str] = None):
    """Spoken-command help for the caller."""
    pipeline = request.app.state.pipeline
    context = build_context(role, None, language)
    return await pipeline.get_help_information(context.language, context)


# =========================
# Security
# =========================

@router.post("/validate-parameters")
async def validate_parameters(request: Request, body: ValidateParametersRequest):
    """Check route parameters against the allow-lists without navigating."""
    validator = request.app.state.security_validator
    result = validator.validate_route_parameters(body.path, body.parameters)
    return {
        "path": body.path,
        "isValid": result.is_valid,
        "sanitizedParams": result.sanitized_params,
        "errors": result.errors
    }


@router.get("/audit-logs")
async def get_audit_logs(
    request: Request,
    user_id: Optional[str] = None,
    route: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
):
    """Recent access decisions, oldest first."""
    validator = request.app.state.security_validator
    entries = validator.get_audit_logs(user_id=user_id, route=route, action=action, limit=limit)
    return {
        "entries": [e.to_dict() for e in entries],
        "count": len(entries)
    }


@router.get("/status")
async def get_status(request: Request):
    """Pipeline configuration and counters."""
    return request.app.state.pipeline.get_service_status()
