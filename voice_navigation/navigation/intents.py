"""
Intent Mapping Table.
Resolves recognized intents to routes and answers which routes a user may reach.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from voice_navigation.config import get_settings, normalize_language
from voice_navigation.core.context import NavigationContext
from voice_navigation.navigation.catalog import (
    Route,
    IntentMapping,
    IntentPhrases,
    ROLE_DEFAULT_ROUTES,
    default_routes,
    default_intents
)

logger = logging.getLogger(__name__)
settings = get_settings()

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass
class RouteResolution:
    """Outcome of resolving an intent to a route."""
    is_valid: bool
    has_access: bool = False
    route: Optional[Route] = None
    path: Optional[str] = None
    candidates: List[Route] = field(default_factory=list)
    redirect_route: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "has_access": self.has_access,
            "route": self.route.path if self.route else None,
            "path": self.path,
            "candidates": [c.path for c in self.candidates],
            "redirect_route": self.redirect_route,
            "error": self.error,
            "reason": self.reason
        }


class IntentMappingTable:
    """
    Registry of routes and intents.

    Lookups are deterministic: the same context always yields the same
    routes in the same order.
    """

    def __init__(
        self,
        routes: Optional[List[Route]] = None,
        intents: Optional[List[IntentMapping]] = None
    ):
        self._routes: Dict[str, Route] = {}
        self._intents: Dict[str, IntentMapping] = {}

        for route in routes if routes is not None else default_routes():
            self.add_route(route)
        for mapping in intents if intents is not None else default_intents():
            self.add_intent_mapping(mapping)

    # =========================
    # Registration
    # =========================

    def add_route(self, route: Route):
        """Register or replace a route."""
        self._routes[route.path] = route
        logger.debug(f"Registered route {route.path}")

    def add_intent_mapping(self, mapping: IntentMapping):
        """Register or replace an intent mapping."""
        self._intents[mapping.name] = mapping
        logger.debug(f"Registered intent {mapping.name} -> {mapping.routes}")

    # =========================
    # Lookups
    # =========================

    def get_route(self, path: str) -> Optional[Route]:
        return self._routes.get(path)

    def get_intent(self, name: str) -> Optional[IntentMapping]:
        return self._intents.get(name)

    def get_all_routes(self) -> List[Route]:
        return list(self._routes.values())

    def get_all_intents(self) -> List[IntentMapping]:
        return list(self._intents.values())

    def get_supported_languages(self) -> List[str]:
        languages = set()
        for mapping in self._intents.values():
            languages.update(mapping.phrases.keys())
        return sorted(languages)

    def get_intent_mappings_for_language(self, language: str) -> Dict[str, IntentPhrases]:
        """Phrases of every intent that speaks the given language."""
        language = normalize_language(language)
        return {
            name: mapping.phrases[language]
            for name, mapping in self._intents.items()
            if language in mapping.phrases
        }

    def get_destination_aliases(self, language: str) -> Dict[str, str]:
        """
        Spoken destination names mapped to the intent that opens them.
        Intents whose target depends on the role are left out.
        """
        language = normalize_language(language)
        aliases: Dict[str, str] = {}
        for mapping in self._intents.values():
            if not mapping.routes or mapping.role_routes:
                continue
            route = self._routes.get(mapping.routes[0])
            if route is None or language not in route.localized:
                continue
            info = route.localized[language]
            for alias in (info.name,) + info.aliases:
                aliases.setdefault(alias.lower(), mapping.name)
        return aliases

    def get_default_route_for_role(self, role: Optional[str]) -> str:
        if role is None:
            return settings.FALLBACK_ROUTE
        return ROLE_DEFAULT_ROUTES.get(role, settings.FALLBACK_ROUTE)

    def requires_confirmation(self, intent: str) -> bool:
        mapping = self._intents.get(intent)
        return bool(mapping and mapping.confirmation_required)

    def get_confirmation_message(self, intent: str, language: str) -> Optional[str]:
        mapping = self._intents.get(intent)
        if not mapping:
            return None
        phrases = mapping.phrases.get(normalize_language(language))
        if phrases and phrases.confirmation_messages:
            return phrases.confirmation_messages[0]
        return None

    # =========================
    # Resolution
    # =========================

    def get_route_from_intent(
        self,
        intent: str,
        parameters: Optional[Dict[str, Any]] = None,
        context: Optional[NavigationContext] = None
    ) -> RouteResolution:
        """
        Resolve an intent to a route for the given context.

        Unknown intents and missing routes are invalid. A known route the
        user may not open is valid but inaccessible, with a redirect.
        """
        mapping = self._intents.get(intent)
        if mapping is None:
            return RouteResolution(is_valid=False, error="Intent not found", reason=f"Unknown intent '{intent}'")

        paths = self._candidate_paths(mapping, context)
        candidates = [self._routes[p] for p in paths if p in self._routes]
        if not candidates:
            return RouteResolution(is_valid=False, error="Route not found", reason=f"No route registered for '{intent}'")

        # First candidate the context can open, else the primary one
        route = next((c for c in candidates if self._check_access(c, context) is None), candidates[0])
        path = self.apply_parameters(route.path, parameters or {})

        denial = self._check_access(route, context)
        if denial is not None:
            reason, redirect = denial
            return RouteResolution(
                is_valid=True,
                has_access=False,
                route=route,
                path=path,
                candidates=candidates,
                redirect_route=redirect,
                reason=reason
            )

        return RouteResolution(
            is_valid=True,
            has_access=True,
            route=route,
            path=path,
            candidates=candidates
        )

    def get_available_routes(self, context: Optional[NavigationContext] = None) -> List[Route]:
        """Routes the context may open, sorted by name."""
        routes = [r for r in self._routes.values() if self._check_access(r, context) is None]
        return sorted(routes, key=lambda r: (r.name, r.path))

    def get_navigation_suggestions(
        self,
        context: Optional[NavigationContext] = None,
        limit: Optional[int] = None,
        language: Optional[str] = None
    ) -> List[str]:
        """
        Example commands for reachable destinations.
        Main routes come first and the current route is skipped.
        """
        limit = settings.SUGGESTION_LIMIT if limit is None else limit
        language = normalize_language(language or (context.language if context else None))
        current = context.current_route if context else None

        ranked = []
        for order, mapping in enumerate(self._intents.values()):
            if mapping.category != "action" and mapping.category != "navigation":
                continue
            phrases = mapping.phrases.get(language)
            if not phrases or not phrases.patterns:
                continue
            resolution = self.get_route_from_intent(mapping.name, None, context)
            if not resolution.is_valid or not resolution.has_access:
                continue
            if resolution.route.path == current:
                continue
            is_main = resolution.route.category == "main"
            ranked.append(((0 if is_main else 1, -mapping.priority, order), phrases.patterns[0][0]))

        ranked.sort(key=lambda item: item[0])
        suggestions: List[str] = []
        for _, phrase in ranked:
            if phrase not in suggestions:
                suggestions.append(phrase)
        return suggestions[:max(limit, 0)]

    def get_help_commands(self, language: str, context: Optional[NavigationContext] = None) -> List[str]:
        """One spoken command per intent, for help output."""
        language = normalize_language(language)
        commands = []
        for mapping in sorted(self._intents.values(), key=lambda m: -m.priority):
            phrases = mapping.phrases.get(language)
            if not phrases or not phrases.patterns:
                continue
            if mapping.routes or mapping.role_routes:
                resolution = self.get_route_from_intent(mapping.name, None, context)
                if resolution.is_valid and not resolution.has_access:
                    continue
            commands.append(phrases.patterns[0][0])
        return commands

    # =========================
    # Helpers
    # =========================

    def _candidate_paths(self, mapping: IntentMapping, context: Optional[NavigationContext]) -> List[str]:
        role = context.role if context else None
        if role and role in mapping.role_routes:
            return [mapping.role_routes[role]] + [p for p in mapping.routes if p != mapping.role_routes[role]]
        return list(mapping.routes)

    def _check_access(self, route: Route, context: Optional[NavigationContext]):
        """
        Lightweight access check used for lookups.
        Returns None when allowed, else (reason, redirect_route).
        """
        user = context.user_profile if context else None
        if route.requires_auth and user is None:
            return "Authentication required", settings.AUTH_ROUTE
        if route.allowed_roles and (user is None or user.role not in route.allowed_roles + ("admin",)):
            role = user.role if user else None
            return (
                f"Role '{role}' cannot access {route.path}",
                self.get_default_route_for_role(role)
            )
        if route.category == "admin" and (user is None or user.role != "admin"):
            return "Admin access required", self.get_default_route_for_role(user.role if user else None)
        return None

    @staticmethod
    def placeholder_keys(path: str) -> List[str]:
        return _PLACEHOLDER.findall(path)

    @staticmethod
    def apply_parameters(path: str, parameters: Dict[str, Any]) -> str:
        """Fill `{key}` placeholders; unknown keys stay as they are."""
        def replace(match):
            key = match.group(1)
            return str(parameters[key]) if key in parameters else match.group(0)
        return _PLACEHOLDER.sub(replace, path)
