"""
Unit tests for the UI Rules main service.
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from service_ui_rules.app.adapters.default_effects_client import StaticDefaultEffectsProvider
from service_ui_rules.app.adapters.flex_features_client import FlexFeaturesClient
from service_ui_rules.app.main import UIRulesService, create_app
from shared.config import get_config
from shared.metrics import MetricsCollector
from shared.test_helpers import TestDataFactory, make_cause, make_effect, make_rule


class TestUIRulesService:
    """Test cases for UIRulesService."""

    @pytest.fixture
    def config(self):
        """Configuration without remote collaborators."""
        return get_config("ui_rules", 8020, env="test", default_effects_url="", flex_features_url="")

    @pytest.fixture
    def flex_client(self):
        """Flex features client over a mock transport."""
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json=TestDataFactory.create_flex_features())
        )
        return FlexFeaturesClient("http://assets.test/flex/flexFeatures.json", transport=transport)

    @pytest.fixture
    def service(self, config, flex_client):
        """Create UIRulesService instance."""
        return UIRulesService(
            config=config,
            default_effects_provider=StaticDefaultEffectsProvider(TestDataFactory.create_default_effects()),
            flex_features_client=flex_client,
            metrics=MetricsCollector("ui_rules_test")
        )

    @pytest.fixture
    def client(self, service):
        """Create test client."""
        return TestClient(service.app)

    @pytest.fixture
    def render_request(self):
        """Render request for the start screen."""
        return {
            "rules": TestDataFactory.create_test_rules(),
            "context": TestDataFactory.create_test_context(),
            "screen": "start",
        }

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "ui_rules"
        assert "render" in data["capabilities"]
        assert data["inactive_condition_mode"] == "force_false"

    def test_health_endpoint(self, client):
        """Test health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"]["default_effects"] == "configured"

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint exposes the service registry."""
        client.get("/")
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "render_duration_seconds" in response.text

    def test_render(self, client, render_request):
        """Test render returns the camelCase applied effects state."""
        response = client.post("/rules/render", json=render_request)

        assert response.status_code == 200
        data = response.json()
        assert data["shortcuts"] == ["add-item", "scan-receipt", "rooms"]
        assert data["startPlates"] == ["welcome", "tips"]
        assert data["header"]["avatars"] is True
        assert data["header"]["homeInfo"] is True
        assert data["quickActions"]["start"]["visible"] is True
        assert data["fab"]["visible"] is True
        assert len(data["bottomTabs"]) == 5

    def test_render_without_defaults(self, client, render_request):
        """Test includeDefaults false skips the default effects."""
        render_request["includeDefaults"] = False

        data = client.post("/rules/render", json=render_request).json()

        assert data["startPlates"] == []
        assert data["header"]["homeInfo"] is False

    def test_render_hides_fab(self, client):
        """Test the house scenario end to end."""
        response = client.post("/rules/render", json={
            "rules": [make_rule(
                "hide-fab",
                causes=[make_cause("home.type", "eq", "house")],
                effects=[make_effect("display", "fab", False)],
            )],
            "context": {"user": {"partner": None}, "home": {"type": "house"}},
            "screen": "start",
            "includeDefaults": False,
        })

        assert response.json()["fab"]["visible"] is False

    def test_render_other_screen(self, client, render_request):
        """Test screen scoping through the API."""
        render_request["screen"] = "inventory"

        data = client.post("/rules/render", json=render_request).json()

        assert data["inventory"]["displayType"] == "grid"
        assert data["shortcuts"] == []

    def test_render_replace_tabs(self, client):
        """Test tab replacement loads the flex features catalog."""
        response = client.post("/rules/render", json={
            "rules": [make_rule("tabs", effects=[
                make_effect("replaceTabs", section="tabs", value=[{"position": 3, "id": "documents"}, {"position": 4, "id": None}]),
            ])],
            "context": {},
            "language": "de",
        })

        tabs = response.json()["bottomTabs"]
        assert tabs[3]["id"] == "documents"
        assert tabs[3]["label"] == "Dokumente"
        assert tabs[4]["visible"] is False
        assert tabs[1]["label"] == "Inventar"

    def test_render_skips_catalog_when_not_needed(self, config):
        """Test the flex features catalog is only loaded for replaceTabs."""
        flex_client = MagicMock()
        flex_client.get_catalog = AsyncMock()
        service = UIRulesService(config=config, flex_features_client=flex_client, metrics=MetricsCollector("ui_rules_test"))

        response = TestClient(service.app).post("/rules/render", json={
            "rules": TestDataFactory.create_test_rules(),
            "context": TestDataFactory.create_test_context(),
        })

        assert response.status_code == 200
        flex_client.get_catalog.assert_not_awaited()

    def test_render_empty_screen_rejected(self, client, render_request):
        """Test an empty screen is a client error."""
        render_request["screen"] = ""

        response = client.post("/rules/render", json=render_request)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_RENDER_REQUEST"

    def test_render_invalid_body(self, client):
        """Test request validation."""
        response = client.post("/rules/render", json={"rules": "not a list"})

        assert response.status_code == 422

    def test_request_id_propagated(self, client, render_request):
        """Test X-Request-ID is echoed back."""
        response = client.post("/rules/render", json=render_request, headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        """Test a request id is assigned when missing."""
        response = client.get("/")

        assert response.headers["X-Request-ID"]

    def test_match(self, client, render_request):
        """Test matching rule names."""
        response = client.post("/rules/match", json={
            "rules": render_request["rules"],
            "context": render_request["context"],
        })

        assert response.status_code == 200
        assert response.json() == {"matched": ["house-owner-shortcuts", "experienced-users", "inventory-grid"]}

    def test_defaults(self, client):
        """Test the default effects listing."""
        response = client.get("/defaults", params={"versionId": "v2"})

        assert response.status_code == 200
        data = response.json()
        assert data["version_id"] == "v2"
        assert data["count"] == 5
        assert data["effects"][0]["action"] == "showContent"
        assert data["effects"][0]["target"] == "shortcuts"

    def test_defaults_disabled(self, config):
        """Test no configured store means no defaults."""
        service = UIRulesService(config=config, metrics=MetricsCollector("ui_rules_test"))

        response = TestClient(service.app).get("/defaults")

        assert response.json()["count"] == 0


class TestCreateApp:
    """Test cases for the application factory."""

    def test_create_app(self, monkeypatch):
        monkeypatch.setenv("UI_RULES_FLEX_FEATURES_URL", "")
        app = create_app()

        response = TestClient(app).get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "ui_rules"
