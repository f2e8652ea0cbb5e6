"""
Voice Guidance REST Endpoints.
Tutorials, progress, contextual hints and command help.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request, HTTPException

from voice_navigation.api.routes.navigation import CamelModel
from voice_navigation.config import normalize_language
from voice_navigation.services.guidance import SkillLevel

logger = logging.getLogger(__name__)

router = APIRouter()


class StartTutorialRequest(CamelModel):
    user_id: str
    language: Optional[str] = None


class TutorialStepRequest(CamelModel):
    user_id: str
    command: str
    language: Optional[str] = None


@router.get("/tutorials")
async def list_tutorials(
    request: Request,
    user_id: str,
    skill_level: Optional[SkillLevel] = None,
    language: Optional[str] = None
):
    """Tutorials the user can start now."""
    guidance = request.app.state.guidance_service
    language = normalize_language(language)
    tutorials = guidance.get_available_tutorials(user_id, skill_level)
    return {
        "user_id": user_id,
        "skill_level": (skill_level or guidance.get_progress(user_id).skill_level).value,
        "tutorials": [t.to_dict(language) for t in tutorials]
    }


@router.post("/tutorials/{tutorial_id}/start")
async def start_tutorial(request: Request, tutorial_id: str, body: StartTutorialRequest):
    """Start a tutorial after checking its prerequisites."""
    guidance = request.app.state.guidance_service
    if guidance.get_tutorial(tutorial_id) is None:
        raise HTTPException(status_code=404, detail=f"Tutorial not found: {tutorial_id}")

    result = guidance.start_tutorial(body.user_id, tutorial_id, body.language or "en-US")
    return result.to_dict()


@router.post("/tutorials/step")
async def tutorial_step(request: Request, body: TutorialStepRequest):
    """Check a spoken command against the current tutorial step."""
    guidance = request.app.state.guidance_service
    result = guidance.process_tutorial_step(body.user_id, body.command, body.language or "en-US")
    return result.to_dict()


@router.get("/progress/{user_id}")
async def get_progress(request: Request, user_id: str):
    guidance = request.app.state.guidance_service
    return guidance.get_progress(user_id).to_dict()


@router.get("/hints")
async def get_hints(
    request: Request,
    user_id: str,
    trigger: Optional[str] = None,
    session_id: Optional[str] = None,
    language: Optional[str] = None
):
    """Contextual hints for a trigger such as page_load or low_confidence."""
    guidance = request.app.state.guidance_service
    hints = guidance.get_contextual_hints(user_id, trigger, session_id, language or "en-US")
    return {"user_id": user_id, "hints": hints}


@router.get("/help")
async def get_help(request: Request, query: Optional[str] = None, language: Optional[str] = None):
    guidance = request.app.state.guidance_service
    return guidance.get_help(query, language or "en-US")


@router.get("/suggestions")
async def get_command_suggestions(
    request: Request,
    current_page: Optional[str] = None,
    user_input: Optional[str] = None,
    error_type: Optional[str] = None,
    language: Optional[str] = None
):
    """Up to five commands suited to the page, the last input or an error."""
    guidance = request.app.state.guidance_service
    return {
        "suggestions": guidance.get_command_suggestions(current_page, user_input, error_type, language or "en-US")
    }
