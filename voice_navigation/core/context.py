"""
Navigation context passed through a single voice navigation request.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from voice_navigation.config import get_settings

settings = get_settings()


@dataclass
class UserProfile:
    """Authenticated user as seen by the navigation layer."""
    uid: str
    role: str  # "artisan", "buyer" or "admin"
    name: Optional[str] = None
    profession: Optional[str] = None
    description: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_profile_complete(self) -> bool:
        return bool(self.profession) and bool(self.description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "role": self.role,
            "name": self.name,
            "profession": self.profession,
            "description": self.description,
            "extra": self.extra
        }


@dataclass
class NavigationContext:
    """
    Request-scoped context for intent resolution and access checks.
    Rebuilt on every request and never persisted.
    """
    user_profile: Optional[UserProfile] = None
    current_route: Optional[str] = None
    session_data: Dict[str, Any] = field(default_factory=dict)
    language: str = field(default_factory=lambda: settings.DEFAULT_LANGUAGE)
    session_id: str = "default"

    @property
    def is_authenticated(self) -> bool:
        return self.user_profile is not None

    @property
    def role(self) -> Optional[str]:
        return self.user_profile.role if self.user_profile else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_profile": self.user_profile.to_dict() if self.user_profile else None,
            "current_route": self.current_route,
            "session_data": self.session_data,
            "language": self.language,
            "session_id": self.session_id
        }
