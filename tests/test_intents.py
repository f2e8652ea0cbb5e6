"""Tests for the intent mapping table."""

from voice_navigation.core.context import NavigationContext, UserProfile
from voice_navigation.navigation.catalog import IntentMapping, Route


class TestRouteResolution:
    def test_unknown_intent(self, table, artisan_context):
        resolution = table.get_route_from_intent("navigate_nowhere", None, artisan_context)
        assert not resolution.is_valid
        assert resolution.error == "Intent not found"

    def test_missing_route(self, table, artisan_context):
        table.add_intent_mapping(IntentMapping(name="navigate_orders", routes=["/orders"]))
        resolution = table.get_route_from_intent("navigate_orders", None, artisan_context)
        assert not resolution.is_valid
        assert resolution.error == "Route not found"

    def test_authenticated_user(self, table, artisan_context):
        resolution = table.get_route_from_intent("navigate_dashboard", None, artisan_context)
        assert resolution.is_valid
        assert resolution.has_access
        assert resolution.route.path == "/dashboard"

    def test_anonymous_user_is_sent_to_sign_in(self, table, anonymous_context):
        resolution = table.get_route_from_intent("navigate_dashboard", None, anonymous_context)
        assert resolution.is_valid
        assert not resolution.has_access
        assert resolution.redirect_route == "/auth"

    def test_home_depends_on_role(self, table, artisan_context, buyer_context):
        assert table.get_route_from_intent("navigate_home", None, artisan_context).route.path == "/dashboard"
        assert table.get_route_from_intent("navigate_home", None, buyer_context).route.path == "/marketplace"
        assert table.get_route_from_intent("navigate_home", None, NavigationContext()).route.path == "/marketplace"

    def test_placeholder_parameters(self, table, artisan_context):
        table.add_route(Route(path="/product/{id}", name="Product", category="marketplace"))
        table.add_intent_mapping(IntentMapping(name="open_product", routes=["/product/{id}"]))
        resolution = table.get_route_from_intent("open_product", {"id": "42"}, artisan_context)
        assert resolution.path == "/product/42"


class TestAvailableRoutes:
    def test_buyer_cannot_see_artisan_tools(self, table, buyer_context):
        paths = [r.path for r in table.get_available_routes(buyer_context)]
        assert "/marketplace" in paths
        assert "/trend-spotter" in paths
        assert "/finance" not in paths
        assert "/smart-product-creator" not in paths
        assert "/admin" not in paths

    def test_anonymous_sees_public_routes_only(self, table, anonymous_context):
        routes = table.get_available_routes(anonymous_context)
        assert all(not r.requires_auth for r in routes)

    def test_admin_sees_everything(self, table):
        admin = NavigationContext(user_profile=UserProfile(uid="admin-1", role="admin"))
        assert len(table.get_available_routes(admin)) == len(table.get_all_routes())

    def test_lookup_is_deterministic(self, table, artisan_context):
        first = [r.path for r in table.get_available_routes(artisan_context)]
        second = [r.path for r in table.get_available_routes(artisan_context)]
        assert first == second


class TestSuggestions:
    def test_limit_and_current_route(self, table, artisan):
        context = NavigationContext(user_profile=artisan, current_route="/dashboard")
        suggestions = table.get_navigation_suggestions(context, 5, "en-US")
        assert 0 < len(suggestions) <= 5
        assert "go to dashboard" not in suggestions

    def test_hindi_suggestions(self, table, artisan_context):
        suggestions = table.get_navigation_suggestions(artisan_context, 3, "hi-IN")
        assert len(suggestions) == 3
        assert all(not s.isascii() for s in suggestions)

    def test_help_commands_skip_inaccessible(self, table, buyer_context):
        commands = table.get_help_commands("en-US", buyer_context)
        assert "finance" not in commands
        assert "help" in commands

    def test_confirmation_lookup(self, table):
        assert table.requires_confirmation("navigate_create_product")
        assert not table.requires_confirmation("navigate_dashboard")
        assert table.get_supported_languages() == ["en-US", "hi-IN"]
