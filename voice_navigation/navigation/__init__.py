"""Navigation module initialization."""

from voice_navigation.navigation.catalog import (
    CulturalRegister,
    Route,
    IntentMapping,
    IntentPhrases,
    LocalizedRouteInfo
)
from voice_navigation.navigation.intents import IntentMappingTable
from voice_navigation.navigation.patterns import PatternMatcher, MatchResult
from voice_navigation.navigation.security import RouteSecurityValidator
from voice_navigation.navigation.executor import NavigationExecutor, ExecutionResult, InMemoryRouter

__all__ = [
    "CulturalRegister",
    "Route",
    "IntentMapping",
    "IntentPhrases",
    "LocalizedRouteInfo",
    "IntentMappingTable",
    "PatternMatcher",
    "MatchResult",
    "RouteSecurityValidator",
    "NavigationExecutor",
    "ExecutionResult",
    "InMemoryRouter"
]
