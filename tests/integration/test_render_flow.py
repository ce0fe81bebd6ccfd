"""
Integration tests for the render flow against the mock asset host.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from mocks.assets.server import MockAssetsServer
from service_ui_rules.app.adapters.default_effects_client import HttpDefaultEffectsProvider
from service_ui_rules.app.adapters.flex_features_client import FlexFeaturesClient
from service_ui_rules.app.main import UIRulesService
from service_ui_rules.app.rules.engine import RuleEngine
from shared.config import get_config
from shared.metrics import MetricsCollector
from shared.test_helpers import TestDataFactory, make_cause, make_effect, make_rule

ASSETS_URL = "http://assets.test"


class TestRenderFlow:
    """Integration tests for rendering with remote default effects."""

    @pytest.fixture
    def assets_server(self):
        """Mock asset host."""
        return MockAssetsServer()

    @pytest.fixture
    def transport(self, assets_server):
        """In-process transport to the mock asset host."""
        return httpx.ASGITransport(app=assets_server.app)

    @pytest.fixture
    def defaults_provider(self, transport):
        return HttpDefaultEffectsProvider(ASSETS_URL, transport=transport)

    @pytest.fixture
    def flex_client(self, transport):
        return FlexFeaturesClient(f"{ASSETS_URL}/flex/flexFeatures.json", transport=transport)

    @pytest.fixture
    def engine(self, defaults_provider):
        return RuleEngine(default_effects_provider=defaults_provider, metrics=MetricsCollector("ui_rules_it"))

    @pytest.mark.asyncio
    async def test_active_defaults_and_rules(self, engine):
        """Test the active default effects version plus matching rules."""
        state = await engine.apply_rules(
            TestDataFactory.create_test_rules(),
            TestDataFactory.create_test_context(),
            current_screen="start"
        )

        assert state.shortcuts == ["add-item", "scan-receipt", "rooms"]
        assert state.start_plates == ["welcome", "tips"]
        assert state.quick_actions.start.visible is True
        assert state.header.home_info is True
        assert state.header.avatars is True

    @pytest.mark.asyncio
    async def test_pinned_defaults_version(self, engine):
        """Test a pinned version only applies its own effects."""
        state = await engine.apply_rules([], {}, defaults_version_id="v1")

        assert state.shortcuts == ["add-item", "search"]
        assert state.start_plates == ["welcome", "tips"]
        assert state.quick_actions.start.visible is False
        assert state.header.home_info is False

    @pytest.mark.asyncio
    async def test_unknown_version_renders_without_defaults(self, engine):
        """Test a failed defaults fetch still renders the rules."""
        state = await engine.apply_rules(
            [make_rule("hide-fab", effects=[make_effect("display", "fab", False)])],
            {},
            defaults_version_id="v9"
        )

        assert state.shortcuts == []
        assert state.fab.visible is False

    @pytest.mark.asyncio
    async def test_expenses_subtab(self, engine):
        """Test the sub-tab rule on the expenses screen."""
        context = TestDataFactory.create_test_context()
        rules = [
            make_rule("expenses-all", effects=[
                make_effect("filter", "quickActions", [{"id": "add-item", "show": False},
                                                       {"id": "scan-receipt", "show": True}],
                            screen="expenses-all"),
            ]),
        ]

        state = await engine.apply_rules(rules, context, current_screen="expenses")

        assert state.quick_actions.expenses.visible is True
        assert state.quick_actions.expenses.items == ["add-expense", "scan-receipt"]
        assert state.quick_actions.start.items == []

    @pytest.mark.asyncio
    async def test_replace_tabs_with_remote_catalog(self, engine, flex_client):
        """Test tab replacement resolved through the flex features document."""
        catalog = await flex_client.get_catalog("en-GB")
        rules = [make_rule("tabs", effects=[
            make_effect("replaceTabs", section="tabs", value=[
                {"position": 2, "id": "energy"},
                {"position": 3, "id": "broken"},
                {"position": 0, "id": "documents"},
            ]),
        ])]

        state = await engine.apply_rules(rules, {}, include_defaults=False, tab_resolver=catalog)

        assert state.bottom_tabs[2].id == "energy"
        assert state.bottom_tabs[2].label == "Energy"
        assert state.bottom_tabs[2].icon.endswith("/energy_nav.png")
        assert state.bottom_tabs[3].id == "timeline"
        assert state.bottom_tabs[0].id == "start"


class TestServiceRenderFlow:
    """Integration tests for the preview service against the mock asset host."""

    @pytest.fixture
    def client(self):
        """Service wired to the in-process mock asset host."""
        transport = httpx.ASGITransport(app=MockAssetsServer().app)
        service = UIRulesService(
            config=get_config("ui_rules", 8020, env="test", default_effects_url="", flex_features_url=""),
            default_effects_provider=HttpDefaultEffectsProvider(ASSETS_URL, transport=transport),
            flex_features_client=FlexFeaturesClient(f"{ASSETS_URL}/flex/flexFeatures.json", transport=transport),
            metrics=MetricsCollector("ui_rules_it")
        )
        return TestClient(service.app)

    def test_render(self, client):
        response = client.post("/rules/render", json={
            "rules": [
                make_rule("apartment", causes=[make_cause("home.type", "eq", "apartment")],
                          effects=[make_effect("display", "fab", False)]),
                make_rule("documents-tab", causes=[make_cause("user.tags", "contains", "beta")],
                          effects=[make_effect("replaceTabs", section="tabs", value=[{"position": 4, "id": "documents"}])]),
            ],
            "context": TestDataFactory.create_test_context(),
            "screen": "start",
            "language": "de",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["fab"]["visible"] is True
        assert data["bottomTabs"][4]["label"] == "Dokumente"
        assert data["shortcuts"] == ["add-item", "search"]

    def test_defaults_listing(self, client):
        data = client.get("/defaults", params={"versionId": "v1"}).json()

        assert data["count"] == 2
