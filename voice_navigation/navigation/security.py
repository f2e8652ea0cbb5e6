"""
Route Security Validator.
The single trust boundary for voice navigation: authentication, role,
permission and business-rule checks, plus parameter sanitization.
"""

import logging
import math
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable, Deque

from voice_navigation.config import get_settings, PRODUCT_CATEGORIES, PROFILE_SECTIONS
from voice_navigation.core.context import NavigationContext
from voice_navigation.navigation.catalog import Route, ROLE_PERMISSIONS, ROLE_DEFAULT_ROUTES

logger = logging.getLogger(__name__)
settings = get_settings()

_PARAM_KEY = re.compile(r"^[A-Za-z0-9_-]{1,50}$")
_MARKUP = re.compile(r"[<>]|javascript\s*:|\bon\w+\s*=|data\s*:\s*text/html", re.IGNORECASE)
MAX_PARAM_VALUE_LENGTH = 1000

# Allow-listed parameter values per route
ROUTE_PARAMETER_VALUES: Dict[str, Dict[str, List[str]]] = {
    "/profile": {"section": PROFILE_SECTIONS},
    "/marketplace": {"category": PRODUCT_CATEGORIES}
}


@dataclass
class SecurityValidationResult:
    """Outcome of an access check."""
    is_valid: bool
    has_access: bool
    requires_auth: bool = False
    security_level: str = "public"
    required_roles: List[str] = field(default_factory=list)
    fallback_route: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "has_access": self.has_access,
            "requires_auth": self.requires_auth,
            "security_level": self.security_level,
            "required_roles": self.required_roles,
            "fallback_route": self.fallback_route,
            "reason": self.reason,
            "error": self.error
        }


@dataclass
class ParameterValidationResult:
    """Outcome of route parameter validation."""
    is_valid: bool
    sanitized_params: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "sanitized_params": self.sanitized_params,
            "errors": self.errors
        }


@dataclass
class SecurityAuditEntry:
    """One recorded access decision."""
    route: str
    action: str  # "access_granted", "access_denied" or "validation_failed"
    user_id: Optional[str] = None
    role: Optional[str] = None
    reason: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route,
            "action": self.action,
            "user_id": self.user_id,
            "role": self.role,
            "reason": self.reason,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class BusinessRule:
    """
    Extra access rule evaluated after role and permission checks.
    `check` returns a denial reason, or None when the rule passes.
    """
    name: str
    priority: int
    check: Callable[[Route, NavigationContext], Optional[str]]
    fallback_route: Optional[str] = None
    description: str = ""


def _profile_completion_rule(route: Route, context: NavigationContext) -> Optional[str]:
    user = context.user_profile
    if route.category != "tools" or user is None or user.role != "artisan":
        return None
    if not user.is_profile_complete:
        return "Complete your profile (profession and description) to use artisan tools"
    return None


class RouteSecurityValidator:
    """
    Validates route access and parameters.

    Checks run in order: basic, authentication, role, permissions,
    business rules. Every decision is written to a bounded audit log.
    """

    def __init__(
        self,
        role_permissions: Optional[Dict[str, List[str]]] = None,
        max_audit_logs: Optional[int] = None
    ):
        self._role_permissions = role_permissions or ROLE_PERMISSIONS
        self._rules: List[BusinessRule] = []
        self._audit_logs: Deque[SecurityAuditEntry] = deque(
            maxlen=settings.MAX_AUDIT_LOGS if max_audit_logs is None else max_audit_logs
        )

        self.add_business_rule(BusinessRule(
            name="profile_completion",
            priority=10,
            check=_profile_completion_rule,
            fallback_route="/profile",
            description="Artisans need a complete profile before using tools"
        ))

    # =========================
    # Access validation
    # =========================

    async def validate_route_access(
        self,
        route: Route,
        context: NavigationContext
    ) -> SecurityValidationResult:
        """Decide whether the context may open the route."""
        user = context.user_profile

        result = self._check_basic(route)
        if result is None:
            result = self._check_authentication(route, context)
        if result is None and user is not None:
            result = self._check_role(route, context)
        if result is None and user is not None:
            result = self._check_permissions(route, context)
        if result is None and user is not None:
            result = self._check_business_rules(route, context)

        if result is None:
            result = SecurityValidationResult(
                is_valid=True,
                has_access=True,
                requires_auth=route.requires_auth,
                security_level=route.security_level,
                required_roles=list(route.allowed_roles),
                reason="public" if not route.requires_auth else None
            )

        if result.has_access:
            action = "access_granted"
        elif result.is_valid:
            action = "access_denied"
        else:
            action = "validation_failed"
        self._audit(route.path, action, context, result.reason or result.error)

        return result

    def _check_basic(self, route: Route) -> Optional[SecurityValidationResult]:
        if not route.path or not route.path.startswith("/"):
            return SecurityValidationResult(
                is_valid=False,
                has_access=False,
                security_level=route.security_level,
                fallback_route=settings.FALLBACK_ROUTE,
                error="Invalid route path",
                reason="Invalid route path"
            )
        return None

    def _check_authentication(self, route: Route, context: NavigationContext) -> Optional[SecurityValidationResult]:
        if route.requires_auth and context.user_profile is None:
            return SecurityValidationResult(
                is_valid=False,
                has_access=False,
                requires_auth=True,
                security_level=route.security_level,
                required_roles=list(route.allowed_roles),
                fallback_route=settings.AUTH_ROUTE,
                reason="Authentication required",
                error="Authentication required"
            )
        return None

    def _check_role(self, route: Route, context: NavigationContext) -> Optional[SecurityValidationResult]:
        role = context.user_profile.role
        restricted = route.allowed_roles or (("admin",) if route.category == "admin" else ())
        if restricted and role not in restricted and role != "admin":
            return SecurityValidationResult(
                is_valid=True,
                has_access=False,
                requires_auth=route.requires_auth,
                security_level=route.security_level,
                required_roles=list(restricted),
                fallback_route=self.get_fallback_route(route, context),
                reason=f"Role '{role}' is not allowed on {route.path}"
            )
        return None

    def _check_permissions(self, route: Route, context: NavigationContext) -> Optional[SecurityValidationResult]:
        if not route.required_permissions:
            return None
        role = context.user_profile.role
        if not self.has_required_permissions(role, list(route.required_permissions)):
            missing = [p for p in route.required_permissions if not self.has_required_permissions(role, [p])]
            return SecurityValidationResult(
                is_valid=True,
                has_access=False,
                requires_auth=route.requires_auth,
                security_level=route.security_level,
                required_roles=list(route.allowed_roles),
                fallback_route=self.get_fallback_route(route, context),
                reason=f"Missing permissions: {', '.join(missing)}"
            )
        return None

    def _check_business_rules(self, route: Route, context: NavigationContext) -> Optional[SecurityValidationResult]:
        for rule in self._rules:
            try:
                reason = rule.check(route, context)
            except Exception as e:
                logger.error(f"Business rule '{rule.name}' failed on {route.path}: {e}")
                continue
            if reason:
                return SecurityValidationResult(
                    is_valid=True,
                    has_access=False,
                    requires_auth=route.requires_auth,
                    security_level=route.security_level,
                    required_roles=list(route.allowed_roles),
                    fallback_route=rule.fallback_route or self.get_fallback_route(route, context),
                    reason=reason
                )
        return None

    def has_required_permissions(self, role: Optional[str], permissions: List[str]) -> bool:
        granted = self._role_permissions.get(role or "", [])
        if "*" in granted:
            return True
        return all(p in granted for p in permissions)

    def get_fallback_route(self, route: Route, context: Optional[NavigationContext] = None) -> str:
        """Where to send a user who may not open the route."""
        user = context.user_profile if context else None
        if user is None:
            return settings.AUTH_ROUTE
        if route.fallback_route and route.fallback_route != route.path:
            return route.fallback_route
        return ROLE_DEFAULT_ROUTES.get(user.role, settings.FALLBACK_ROUTE)

    # =========================
    # Business rules
    # =========================

    def add_business_rule(self, rule: BusinessRule):
        self._rules = [r for r in self._rules if r.name != rule.name]
        self._rules.append(rule)
        self._rules.sort(key=lambda r: -r.priority)

    def remove_business_rule(self, name: str) -> bool:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.name != name]
        return len(self._rules) < before

    def get_business_rules(self) -> List[str]:
        return [r.name for r in self._rules]

    # =========================
    # Parameter validation
    # =========================

    def validate_route_parameters(self, path: str, params: Optional[Dict[str, Any]]) -> ParameterValidationResult:
        """
        Sanitize keys, reject markup in values and enforce per-route
        allow-lists. All problems are reported, not just the first.
        """
        sanitized: Dict[str, Any] = {}
        errors: List[str] = []

        for key, value in (params or {}).items():
            key_str = str(key)
            if not _PARAM_KEY.match(key_str):
                errors.append(f"Invalid parameter name: {key_str[:50]!r}")
                continue

            if value is None:
                continue
            if isinstance(value, bool):
                sanitized[key_str] = value
            elif isinstance(value, (int, float)):
                if isinstance(value, float) and not math.isfinite(value):
                    errors.append(f"Parameter '{key_str}' must be a finite number")
                    continue
                sanitized[key_str] = value
            elif isinstance(value, str):
                text = value.strip()
                if len(text) > MAX_PARAM_VALUE_LENGTH:
                    errors.append(f"Parameter '{key_str}' exceeds {MAX_PARAM_VALUE_LENGTH} characters")
                    continue
                if _MARKUP.search(text):
                    errors.append(f"Parameter '{key_str}' contains disallowed markup")
                    continue
                sanitized[key_str] = text
            else:
                errors.append(f"Parameter '{key_str}' has unsupported type {type(value).__name__}")

        for key, allowed in ROUTE_PARAMETER_VALUES.get(path, {}).items():
            if key in sanitized and sanitized[key] not in allowed:
                errors.append(f"Invalid {path.strip('/')} {key}: {sanitized[key]!r}")
                del sanitized[key]

        if errors:
            logger.warning(f"Parameter validation failed for {path}: {errors}")
            self._audit(path, "validation_failed", None, "; ".join(errors))

        return ParameterValidationResult(is_valid=not errors, sanitized_params=sanitized, errors=errors)

    # =========================
    # Audit log
    # =========================

    def _audit(self, route: str, action: str, context: Optional[NavigationContext], reason: Optional[str]):
        user = context.user_profile if context else None
        entry = SecurityAuditEntry(
            route=route,
            action=action,
            user_id=user.uid if user else None,
            role=user.role if user else None,
            reason=reason,
            session_id=context.session_id if context else None
        )
        self._audit_logs.append(entry)
        if action == "access_granted":
            logger.debug(f"Access granted: {route} (user={entry.user_id})")
        else:
            logger.info(f"{action}: {route} (user={entry.user_id}) - {reason}")

    def get_audit_logs(
        self,
        user_id: Optional[str] = None,
        route: Optional[str] = None,
        action: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[SecurityAuditEntry]:
        """Audit entries matching every given filter, oldest first."""
        entries = [
            e for e in self._audit_logs
            if (user_id is None or e.user_id == user_id)
            and (route is None or e.route == route)
            and (action is None or e.action == action)
            and (since is None or e.timestamp >= since)
            and (until is None or e.timestamp <= until)
        ]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    def clear_audit_logs(self):
        self._audit_logs.clear()
