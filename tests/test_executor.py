"""Tests for navigation execution, confirmation and history."""

from datetime import timedelta

import pytest

from voice_navigation.core.context import NavigationContext
from voice_navigation.core.exceptions import NavigationExecutionException
from voice_navigation.navigation.catalog import BACK_INTENT, IntentMapping, Route
from voice_navigation.navigation.executor import InMemoryRouter, NavigationExecutor


class FailingRouter:
    async def push(self, path: str) -> None:
        raise ConnectionError("router offline")


class TestExecution:
    @pytest.mark.anyio
    async def test_navigation_is_recorded(self, executor, router, artisan_context):
        result = await executor.execute_navigation("navigate_dashboard", {}, artisan_context)

        assert result.success
        assert result.executed
        assert result.route == "/dashboard"
        assert list(router.pushed) == ["/dashboard"]

        history = executor.get_navigation_history("artisan-session")
        assert len(history) == 1
        assert history[0].previous_route == "/"
        assert executor.get_current_route("artisan-session") == "/dashboard"

    @pytest.mark.anyio
    async def test_parameters_become_query_string(self, executor, router, artisan_context):
        result = await executor.execute_navigation("navigate_profile", {"section": "settings"}, artisan_context)
        assert result.success
        assert list(router.pushed) == ["/profile?section=settings"]
        assert result.parameters == {"section": "settings"}

    @pytest.mark.anyio
    async def test_placeholders_are_filled(self, table, validator, router, artisan_context):
        table.add_route(Route(path="/product/{id}", name="Product", category="marketplace", parameters=("id", "tab")))
        table.add_intent_mapping(IntentMapping(name="open_product", routes=["/product/{id}"]))
        executor = NavigationExecutor(table, validator, router)

        result = await executor.execute_navigation("open_product", {"id": "42", "tab": "reviews"}, artisan_context)

        assert result.success
        assert result.route == "/product/42"
        assert list(router.pushed) == ["/product/42?tab=reviews"]
        assert executor.get_current_route("artisan-session") == "/product/42"

    @pytest.mark.anyio
    async def test_placeholder_values_are_escaped(self, table, validator, router, artisan_context):
        table.add_route(Route(path="/product/{id}", name="Product", category="marketplace"))
        table.add_intent_mapping(IntentMapping(name="open_product", routes=["/product/{id}"]))
        executor = NavigationExecutor(table, validator, router)

        await executor.execute_navigation("open_product", {"id": "../admin"}, artisan_context)
        assert list(router.pushed) == ["/product/..%2Fadmin"]

    @pytest.mark.anyio
    async def test_missing_placeholder(self, table, validator, router, artisan_context):
        table.add_route(Route(path="/product/{id}", name="Product", category="marketplace"))
        table.add_intent_mapping(IntentMapping(name="open_product", routes=["/product/{id}"]))
        executor = NavigationExecutor(table, validator, router)

        result = await executor.execute_navigation("open_product", {}, artisan_context)
        assert not result.success
        assert result.error == "Invalid parameters: missing id"
        assert list(router.pushed) == []

    @pytest.mark.anyio
    async def test_invalid_parameters(self, executor, router, artisan_context):
        result = await executor.execute_navigation("navigate_profile", {"section": "<b>"}, artisan_context)
        assert not result.success
        assert result.error.startswith("Invalid parameters")
        assert list(router.pushed) == []

    @pytest.mark.anyio
    async def test_unknown_intent(self, executor, artisan_context):
        result = await executor.execute_navigation("navigate_nowhere", {}, artisan_context)
        assert not result.success
        assert result.error == "Intent not found"

    @pytest.mark.anyio
    async def test_access_denied(self, executor, router, buyer_context):
        result = await executor.execute_navigation("navigate_finance", {}, buyer_context)
        assert not result.success
        assert result.error.startswith("Access denied:")
        assert result.redirect_route == "/dashboard"
        assert list(router.pushed) == []

    @pytest.mark.anyio
    async def test_redirect_on_denial(self, table, validator, router, buyer_context):
        executor = NavigationExecutor(table, validator, router, auto_redirect_on_denial=True)
        result = await executor.execute_navigation("navigate_finance", {}, buyer_context)
        assert result.success
        assert result.redirected
        assert result.route == "/dashboard"
        assert list(router.pushed) == ["/dashboard"]

    @pytest.mark.anyio
    async def test_router_failure_raises(self, table, validator, artisan_context):
        executor = NavigationExecutor(table, validator, FailingRouter())
        with pytest.raises(NavigationExecutionException):
            await executor.execute_navigation("navigate_dashboard", {}, artisan_context)

    @pytest.mark.anyio
    async def test_history_is_bounded(self, table, validator, router, artisan_context):
        executor = NavigationExecutor(table, validator, router, max_history_entries=2)
        for intent in ["navigate_dashboard", "navigate_marketplace", "navigate_trends"]:
            await executor.execute_navigation(intent, {}, artisan_context)
        history = executor.get_navigation_history("artisan-session")
        assert [h.route for h in history] == ["/marketplace", "/trend-spotter"]

    @pytest.mark.anyio
    async def test_can_access_route(self, executor, buyer_context):
        assert await executor.can_access_route("/marketplace", buyer_context)
        assert not await executor.can_access_route("/finance", buyer_context)
        assert not await executor.can_access_route("/missing", buyer_context)


class TestBackNavigation:
    @pytest.mark.anyio
    async def test_empty_history(self, executor):
        result = await executor.execute_back_navigation("nobody")
        assert not result.success
        assert result.error == "Cannot go back"
        assert result.intent == BACK_INTENT

    @pytest.mark.anyio
    async def test_goes_to_previous_route(self, executor, router, artisan_context):
        await executor.execute_navigation("navigate_dashboard", {}, artisan_context)
        await executor.execute_navigation("navigate_marketplace", {}, artisan_context)

        result = await executor.execute_navigation(BACK_INTENT, {}, artisan_context)
        assert result.success
        assert result.route == "/dashboard"
        assert router.current_path == "/dashboard"
        assert len(executor.get_navigation_history("artisan-session")) == 1

    @pytest.mark.anyio
    async def test_clear_history(self, executor, artisan_context):
        await executor.execute_navigation("navigate_dashboard", {}, artisan_context)
        executor.clear_navigation_history("artisan-session")
        assert executor.get_navigation_history("artisan-session") == []
        assert executor.get_current_route("artisan-session") is None


class TestConfirmation:
    @pytest.mark.anyio
    async def test_sensitive_intent_waits(self, executor, router, artisan_context):
        result = await executor.execute_navigation("navigate_create_product", {}, artisan_context)
        assert result.success
        assert not result.executed
        assert result.requires_confirmation
        assert result.confirmation_id in executor.get_pending_confirmations()
        assert result.route == "/smart-product-creator"
        assert list(router.pushed) == []

    @pytest.mark.anyio
    async def test_confirm(self, executor, router, artisan_context):
        pending = await executor.execute_navigation("navigate_create_product", {}, artisan_context)
        result = await executor.confirm_navigation(pending.confirmation_id, True)
        assert result.executed
        assert list(router.pushed) == ["/smart-product-creator"]
        assert executor.get_pending_confirmations() == []

    @pytest.mark.anyio
    async def test_cancel(self, executor, router, artisan_context):
        pending = await executor.execute_navigation("navigate_create_product", {}, artisan_context)
        result = await executor.confirm_navigation(pending.confirmation_id, False)
        assert result.success
        assert not result.executed
        assert list(router.pushed) == []

    @pytest.mark.anyio
    async def test_unknown_confirmation(self, executor):
        result = await executor.confirm_navigation("nav_confirm_missing", True)
        assert not result.success
        assert result.error == "Confirmation not found or expired"

    @pytest.mark.anyio
    async def test_expired_confirmation(self, table, validator, router, artisan_context):
        executor = NavigationExecutor(table, validator, router, confirmation_timeout=0)
        pending = await executor.execute_with_confirmation("navigate_dashboard", {}, artisan_context)
        assert pending.requires_confirmation
        result = await executor.confirm_navigation(pending.confirmation_id, True)
        assert not result.success
        assert list(router.pushed) == []


class TestSessionExpiry:
    @pytest.mark.anyio
    async def test_idle_sessions_are_forgotten(self, executor, artisan_context, buyer_context):
        await executor.execute_navigation("navigate_dashboard", {}, artisan_context)
        await executor.execute_navigation("navigate_marketplace", {}, buyer_context)
        executor._last_activity["artisan-session"] -= timedelta(hours=1)

        assert executor.cleanup_expired() == 1
        assert executor.get_navigation_history("artisan-session") == []
        assert executor.get_current_route("artisan-session") is None
        assert len(executor.get_navigation_history("buyer-session")) == 1

    @pytest.mark.anyio
    async def test_session_count_is_capped(self, table, validator, router, artisan):
        executor = NavigationExecutor(table, validator, router, max_sessions=3)
        for i in range(10):
            context = NavigationContext(user_profile=artisan, current_route="/", session_id=f"s{i}")
            await executor.execute_navigation("navigate_dashboard", {}, context)

        assert len(executor._last_activity) == 3
        assert executor.get_navigation_history("s0") == []
        assert len(executor.get_navigation_history("s9")) == 1

    @pytest.mark.anyio
    async def test_router_log_is_bounded(self, table, validator, artisan_context):
        router = InMemoryRouter(max_entries=2)
        executor = NavigationExecutor(table, validator, router)
        for intent in ["navigate_dashboard", "navigate_marketplace", "navigate_trends"]:
            await executor.execute_navigation(intent, {}, artisan_context)
        assert list(router.pushed) == ["/marketplace", "/trend-spotter"]
        assert router.current_path == "/trend-spotter"
