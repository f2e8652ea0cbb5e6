"""
Navigation Executor.
Carries a resolved intent through validation, optional confirmation and
the router, and keeps per-session navigation history.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Deque, List, Protocol, Tuple
from urllib.parse import quote, urlencode
from uuid import uuid4

from voice_navigation.config import get_settings
from voice_navigation.core.context import NavigationContext
from voice_navigation.core.exceptions import NavigationExecutionException
from voice_navigation.navigation.catalog import Route, BACK_INTENT
from voice_navigation.navigation.intents import IntentMappingTable
from voice_navigation.navigation.security import RouteSecurityValidator, SecurityValidationResult

logger = logging.getLogger(__name__)
settings = get_settings()


class NavigationRouter(Protocol):
    """Applies a route change in the host application."""

    async def push(self, path: str) -> None:
        ...


class InMemoryRouter:
    """Records recent navigations so the host application can apply them."""

    def __init__(self, max_entries: Optional[int] = None):
        self.current_path: Optional[str] = None
        self.pushed: Deque[str] = deque(maxlen=settings.ROUTER_LOG_SIZE if max_entries is None else max_entries)

    async def push(self, path: str) -> None:
        self.pushed.append(path)
        self.current_path = path


@dataclass
class ExecutionResult:
    """Outcome of a navigation attempt."""
    success: bool
    executed: bool = False
    route: Optional[str] = None
    intent: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    redirected: bool = False
    redirect_route: Optional[str] = None
    requires_confirmation: bool = False
    confirmation_id: Optional[str] = None
    confirmation_message: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "executed": self.executed,
            "route": self.route,
            "intent": self.intent,
            "message": self.message,
            "error": self.error,
            "redirected": self.redirected,
            "redirect_route": self.redirect_route,
            "requires_confirmation": self.requires_confirmation,
            "confirmation_id": self.confirmation_id,
            "confirmation_message": self.confirmation_message,
            "parameters": self.parameters
        }


@dataclass
class NavigationHistoryEntry:
    """A completed navigation."""
    route: str
    previous_route: Optional[str]
    intent: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    language: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route,
            "previous_route": self.previous_route,
            "intent": self.intent,
            "parameters": self.parameters,
            "language": self.language,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class PendingConfirmation:
    """A sensitive navigation waiting for the user's yes or no."""
    confirmation_id: str
    intent: str
    route: Route
    path: str
    target: str
    parameters: Dict[str, Any]
    context: NavigationContext
    expires_at: float
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class _PreparedNavigation:
    route: Route
    path: str
    target: str
    parameters: Dict[str, Any]


class NavigationExecutor:
    """
    Executes navigation intents.

    Flow: resolve -> validate parameters -> validate access ->
    (confirm) -> router push -> history. Failures are returned as
    ExecutionResult values; only router faults raise.
    """

    def __init__(
        self,
        intent_table: IntentMappingTable,
        validator: RouteSecurityValidator,
        router: Optional[NavigationRouter] = None,
        max_history_entries: Optional[int] = None,
        confirmation_timeout: Optional[float] = None,
        auto_redirect_on_denial: Optional[bool] = None,
        session_timeout_minutes: Optional[float] = None,
        max_sessions: Optional[int] = None
    ):
        self._table = intent_table
        self._validator = validator
        self._router = router or InMemoryRouter()
        self.max_history_entries = (
            settings.MAX_HISTORY_ENTRIES if max_history_entries is None else max_history_entries
        )
        self.confirmation_timeout = (
            settings.CONFIRMATION_TIMEOUT_SECONDS if confirmation_timeout is None else confirmation_timeout
        )
        self.auto_redirect_on_denial = (
            settings.AUTO_REDIRECT_ON_DENIAL if auto_redirect_on_denial is None else auto_redirect_on_denial
        )
        self.session_timeout = timedelta(minutes=(
            settings.SESSION_TIMEOUT_MINUTES if session_timeout_minutes is None else session_timeout_minutes
        ))
        self.max_sessions = settings.MAX_SESSIONS if max_sessions is None else max_sessions

        self._history: Dict[str, List[NavigationHistoryEntry]] = {}
        self._current_routes: Dict[str, Optional[str]] = {}
        self._pending: Dict[str, PendingConfirmation] = {}
        self._last_activity: Dict[str, datetime] = {}

    @property
    def router(self) -> NavigationRouter:
        return self._router

    def update_context(self, context: NavigationContext):
        """Adopt the caller's current route for a session we have not seen move yet."""
        self._touch(context.session_id)
        if context.current_route and self._current_routes.get(context.session_id) is None:
            self._current_routes[context.session_id] = context.current_route

    # =========================
    # Execution
    # =========================

    async def execute_navigation(
        self,
        intent: str,
        parameters: Optional[Dict[str, Any]],
        context: NavigationContext
    ) -> ExecutionResult:
        """Execute an intent, or hand back a confirmation request for sensitive ones."""
        parameters = parameters or {}
        self.update_context(context)

        if intent == BACK_INTENT:
            return await self.execute_back_navigation(context.session_id)

        prepared, failure = await self._prepare(intent, parameters, context)
        if failure is not None:
            return failure

        if self._table.requires_confirmation(intent):
            return self._create_pending(intent, prepared, context)

        return await self._perform(intent, prepared, context)

    async def execute_with_confirmation(
        self,
        intent: str,
        parameters: Optional[Dict[str, Any]],
        context: NavigationContext
    ) -> ExecutionResult:
        """Validate an intent and park it until confirm_navigation() is called."""
        prepared, failure = await self._prepare(intent, parameters or {}, context)
        if failure is not None:
            return failure
        return self._create_pending(intent, prepared, context)

    async def confirm_navigation(self, confirmation_id: str, confirmed: bool) -> ExecutionResult:
        """Carry out or discard a pending navigation."""
        self._purge_expired()
        pending = self._pending.pop(confirmation_id, None)

        if pending is None:
            logger.info(f"Confirmation {confirmation_id} not found or expired")
            return ExecutionResult(
                success=False,
                error="Confirmation not found or expired",
                message="Confirmation not found or expired"
            )

        if not confirmed:
            logger.info(f"Navigation to {pending.target} cancelled by user")
            return ExecutionResult(
                success=True,
                executed=False,
                intent=pending.intent,
                route=pending.path,
                message="Navigation cancelled"
            )

        security = await self._validator.validate_route_access(pending.route, pending.context)
        if not security.has_access:
            return await self._handle_denied(pending.intent, pending.route, security, pending.context)

        prepared = _PreparedNavigation(
            route=pending.route, path=pending.path, target=pending.target, parameters=pending.parameters
        )
        return await self._perform(pending.intent, prepared, pending.context)

    async def execute_back_navigation(self, session_id: str = "default") -> ExecutionResult:
        """Return to the route visited before the latest navigation."""
        history = self._history.get(session_id)
        if not history:
            return ExecutionResult(
                success=False,
                intent=BACK_INTENT,
                error="Cannot go back",
                message="Cannot go back"
            )

        self._touch(session_id)
        entry = history.pop()
        target = entry.previous_route or settings.FALLBACK_ROUTE
        await self._push(target)
        self._current_routes[session_id] = target

        logger.info(f"[{session_id}] Back navigation {entry.route} -> {target}")
        return ExecutionResult(
            success=True,
            executed=True,
            intent=BACK_INTENT,
            route=target,
            message=f"Navigated back to {target}"
        )

    # =========================
    # Internals
    # =========================

    async def _prepare(
        self,
        intent: str,
        parameters: Dict[str, Any],
        context: NavigationContext
    ) -> Tuple[Optional[_PreparedNavigation], Optional[ExecutionResult]]:
        resolution = self._table.get_route_from_intent(intent, parameters, context)
        if not resolution.is_valid:
            return None, ExecutionResult(
                success=False,
                intent=intent,
                error=resolution.error,
                message=resolution.reason
            )

        route = resolution.route
        allowed = set(route.parameters) | set(self._table.placeholder_keys(route.path))
        route_params = {k: v for k, v in parameters.items() if k in allowed}
        checked = self._validator.validate_route_parameters(route.path, route_params)
        if not checked.is_valid:
            return None, ExecutionResult(
                success=False,
                intent=intent,
                route=route.path,
                error=f"Invalid parameters: {'; '.join(checked.errors)}",
                message="Invalid parameters"
            )

        route, security = await self._select_route(resolution.route, resolution.candidates, context)
        if not security.has_access:
            return None, await self._handle_denied(intent, route, security, context)

        params = checked.sanitized_params
        placeholders = self._table.placeholder_keys(route.path)
        missing = [key for key in placeholders if key not in params]
        if missing:
            return None, ExecutionResult(
                success=False,
                intent=intent,
                route=route.path,
                error=f"Invalid parameters: missing {', '.join(missing)}",
                message="Invalid parameters"
            )

        # Placeholder values go into the path, the rest into the query string
        path = self._table.apply_parameters(route.path, {k: quote(str(params[k]), safe="") for k in placeholders})
        query = {k: v for k, v in params.items() if k not in placeholders}
        target = f"{path}?{urlencode(sorted(query.items()))}" if query else path

        return _PreparedNavigation(route=route, path=path, target=target, parameters=params), None

    async def _select_route(
        self,
        primary: Route,
        candidates: List[Route],
        context: NavigationContext
    ) -> Tuple[Route, SecurityValidationResult]:
        """First candidate the validator accepts, else the primary route with its denial."""
        first = await self._validator.validate_route_access(primary, context)
        if first.has_access:
            return primary, first
        for candidate in candidates:
            if candidate.path == primary.path:
                continue
            security = await self._validator.validate_route_access(candidate, context)
            if security.has_access:
                return candidate, security
        return primary, first

    async def _handle_denied(
        self,
        intent: str,
        route: Route,
        security: SecurityValidationResult,
        context: NavigationContext
    ) -> ExecutionResult:
        reason = security.reason or security.error or "Access denied"
        fallback = security.fallback_route

        if self.auto_redirect_on_denial and fallback and fallback != route.path:
            previous = self._current_routes.get(context.session_id, context.current_route)
            await self._push(fallback)
            self._record(context, fallback, previous, intent, {})
            logger.info(f"[{context.session_id}] Redirected {route.path} -> {fallback}: {reason}")
            return ExecutionResult(
                success=True,
                executed=True,
                intent=intent,
                route=fallback,
                redirected=True,
                redirect_route=fallback,
                message=f"Redirected to {fallback}: {reason}"
            )

        return ExecutionResult(
            success=False,
            intent=intent,
            route=route.path,
            redirect_route=fallback,
            error=f"Access denied: {reason}",
            message=reason
        )

    def _create_pending(
        self,
        intent: str,
        prepared: _PreparedNavigation,
        context: NavigationContext
    ) -> ExecutionResult:
        self._purge_expired()
        confirmation_id = f"nav_confirm_{uuid4().hex[:12]}"
        self._pending[confirmation_id] = PendingConfirmation(
            confirmation_id=confirmation_id,
            intent=intent,
            route=prepared.route,
            path=prepared.path,
            target=prepared.target,
            parameters=prepared.parameters,
            context=context,
            expires_at=time.monotonic() + self.confirmation_timeout
        )
        logger.info(f"[{context.session_id}] Awaiting confirmation {confirmation_id} for {prepared.target}")
        return ExecutionResult(
            success=True,
            executed=False,
            intent=intent,
            route=prepared.path,
            requires_confirmation=True,
            confirmation_id=confirmation_id,
            confirmation_message=self._table.get_confirmation_message(intent, context.language),
            parameters=prepared.parameters
        )

    async def _perform(
        self,
        intent: str,
        prepared: _PreparedNavigation,
        context: NavigationContext
    ) -> ExecutionResult:
        session_id = context.session_id
        previous = self._current_routes.get(session_id, context.current_route)

        await self._push(prepared.target)
        self._record(context, prepared.path, previous, intent, prepared.parameters)

        logger.info(f"[{session_id}] Navigated {previous} -> {prepared.target} ({intent})")
        return ExecutionResult(
            success=True,
            executed=True,
            intent=intent,
            route=prepared.path,
            message=f"Navigated to {prepared.target}",
            parameters=prepared.parameters
        )

    async def _push(self, target: str):
        try:
            await self._router.push(target)
        except Exception as e:
            raise NavigationExecutionException(target, str(e)) from e

    def _record(
        self,
        context: NavigationContext,
        route: str,
        previous: Optional[str],
        intent: Optional[str],
        parameters: Dict[str, Any]
    ):
        self._touch(context.session_id)
        history = self._history.setdefault(context.session_id, [])
        history.append(NavigationHistoryEntry(
            route=route,
            previous_route=previous,
            intent=intent,
            parameters=parameters,
            language=context.language
        ))
        if len(history) > self.max_history_entries:
            del history[:len(history) - self.max_history_entries]
        self._current_routes[context.session_id] = route

    def _touch(self, session_id: str):
        if session_id not in self._last_activity and len(self._last_activity) >= self.max_sessions:
            self.cleanup_expired()
            if len(self._last_activity) >= self.max_sessions:
                oldest = min(self._last_activity, key=self._last_activity.get)
                self._drop_session(oldest)
        self._last_activity[session_id] = datetime.now()

    def _drop_session(self, session_id: str):
        self._history.pop(session_id, None)
        self._current_routes.pop(session_id, None)
        self._last_activity.pop(session_id, None)

    def cleanup_expired(self) -> int:
        """Forget sessions idle longer than the timeout and drop stale confirmations."""
        self._purge_expired()
        cutoff = datetime.now() - self.session_timeout
        expired = [sid for sid, seen in self._last_activity.items() if seen < cutoff]
        for sid in expired:
            self._drop_session(sid)
        if expired:
            logger.info(f"Cleaned up navigation state for {len(expired)} expired sessions")
        return len(expired)

    def _purge_expired(self):
        now = time.monotonic()
        expired = [cid for cid, p in self._pending.items() if p.expires_at <= now]
        for cid in expired:
            del self._pending[cid]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired confirmations")

    # =========================
    # Queries
    # =========================

    def get_navigation_history(self, session_id: str = "default") -> List[NavigationHistoryEntry]:
        return list(self._history.get(session_id, []))

    def clear_navigation_history(self, session_id: str = "default"):
        self._drop_session(session_id)

    def get_current_route(self, session_id: str = "default") -> Optional[str]:
        return self._current_routes.get(session_id)

    def get_pending_confirmations(self) -> List[str]:
        self._purge_expired()
        return list(self._pending.keys())

    async def can_access_route(self, path: str, context: NavigationContext) -> bool:
        route = self._table.get_route(path)
        if route is None:
            return False
        security = await self._validator.validate_route_access(route, context)
        return security.has_access
