"""
Unit tests for the default effects providers.
"""

import json

import httpx
import pytest
import yaml

from service_ui_rules.app.adapters.default_effects_client import (
    FileDefaultEffectsProvider,
    HttpDefaultEffectsProvider,
    StaticDefaultEffectsProvider,
    extract_effects,
)
from service_ui_rules.app.catalog.cache import ReadThroughCache
from shared.circuit_breaker import CircuitBreaker
from shared.errors import DefaultEffectsUnavailableError
from shared.test_helpers import TestDataFactory, make_effect

BASE_URL = "http://assets.test"


class RecordingHandler:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestExtractEffects:
    """Test cases for payload unwrapping."""

    def test_plain_list(self):
        assert extract_effects([{"action": "display"}]) == [{"action": "display"}]

    def test_envelope(self):
        assert extract_effects({"effects": [{"action": "display"}], "version": "v2"}) == [{"action": "display"}]

    def test_non_objects_dropped(self):
        assert extract_effects([{"action": "display"}, "junk", 3]) == [{"action": "display"}]

    @pytest.mark.parametrize("payload", [None, "effects", {"effects": "nope"}, {"items": []}])
    def test_invalid_payload(self, payload):
        with pytest.raises(DefaultEffectsUnavailableError):
            extract_effects(payload)


class TestHttpDefaultEffectsProvider:
    """Test cases for HttpDefaultEffectsProvider."""

    @pytest.fixture
    def effects(self):
        return TestDataFactory.create_default_effects()

    def _provider(self, handler, **kwargs):
        return HttpDefaultEffectsProvider(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)

    @pytest.mark.asyncio
    async def test_fetches_latest(self, effects):
        handler = RecordingHandler(httpx.Response(200, json=effects))
        provider = self._provider(handler)

        assert await provider.get_effects() == effects
        assert handler.requests[0].url.path == "/default-effects"
        assert "version_id" not in handler.requests[0].url.params

    @pytest.mark.asyncio
    async def test_fetches_pinned_version(self, effects):
        handler = RecordingHandler(httpx.Response(200, json={"effects": effects[:1]}))
        provider = self._provider(handler)

        assert await provider.get_effects("v1") == effects[:1]
        assert handler.requests[0].url.params["version_id"] == "v1"

    @pytest.mark.asyncio
    async def test_responses_are_cached_per_version(self, effects):
        """Test repeated calls are served from the cache."""
        handler = RecordingHandler(httpx.Response(200, json=effects))
        provider = self._provider(handler)

        await provider.get_effects("v1")
        await provider.get_effects("v1")
        await provider.get_effects("v2")

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_error_status_yields_empty_list(self):
        """Test a failed fetch is fail-soft."""
        provider = self._provider(RecordingHandler(httpx.Response(503)))

        assert await provider.get_effects() == []

    @pytest.mark.asyncio
    async def test_transport_error_yields_empty_list(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        provider = self._provider(handler)

        assert await provider.get_effects() == []

    @pytest.mark.asyncio
    async def test_invalid_payload_yields_empty_list(self):
        provider = self._provider(RecordingHandler(httpx.Response(200, json={"unexpected": True})))

        assert await provider.get_effects() == []

    @pytest.mark.asyncio
    async def test_no_retries(self):
        """Test a failure is not retried within one call."""
        handler = RecordingHandler(httpx.Response(500))
        provider = self._provider(handler)

        await provider.get_effects()

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_stale_list_after_expiry(self, effects):
        """Test the last good list is used when a refresh fails."""
        clock = FakeClock()
        handler = RecordingHandler(httpx.Response(200, json=effects), httpx.Response(500))
        provider = self._provider(handler, cache=ReadThroughCache(ttl_seconds=60, clock=clock))

        assert await provider.get_effects() == effects
        clock.now = 3600

        assert await provider.get_effects() == effects
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_circuit_breaker_stops_calls(self):
        """Test an open breaker short-circuits further fetches."""
        handler = RecordingHandler(httpx.Response(500))
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=30.0, name="test")
        provider = self._provider(handler, circuit_breaker=breaker)

        for _ in range(4):
            assert await provider.get_effects() == []

        assert len(handler.requests) == 2
        assert breaker.is_open() is True


class TestFileDefaultEffectsProvider:
    """Test cases for FileDefaultEffectsProvider."""

    @pytest.mark.asyncio
    async def test_json_list(self, tmp_path):
        path = tmp_path / "defaults.json"
        path.write_text(json.dumps([make_effect("display", "fab", False)]))

        effects = await FileDefaultEffectsProvider(str(path)).get_effects()

        assert effects == [make_effect("display", "fab", False)]

    @pytest.mark.asyncio
    async def test_yaml_versions(self, tmp_path):
        path = tmp_path / "defaults.yaml"
        path.write_text(yaml.safe_dump({
            "activeVersion": "v2",
            "versions": {
                "v1": [make_effect("display", "fab", False)],
                "v2": [make_effect("display", "fab", True)],
            },
        }))
        provider = FileDefaultEffectsProvider(str(path))

        assert (await provider.get_effects())[0]["data"]["value"] is True
        assert (await provider.get_effects("v1"))[0]["data"]["value"] is False

    @pytest.mark.asyncio
    async def test_unknown_version(self, tmp_path):
        path = tmp_path / "defaults.json"
        path.write_text(json.dumps({"activeVersion": "v1", "versions": {"v1": []}}))

        with pytest.raises(DefaultEffectsUnavailableError):
            await FileDefaultEffectsProvider(str(path)).get_effects("v9")

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(DefaultEffectsUnavailableError):
            await FileDefaultEffectsProvider(str(tmp_path / "absent.json")).get_effects()

    @pytest.mark.asyncio
    async def test_invalid_json(self, tmp_path):
        path = tmp_path / "defaults.json"
        path.write_text("{not json")

        with pytest.raises(DefaultEffectsUnavailableError):
            await FileDefaultEffectsProvider(str(path)).get_effects()


class TestStaticDefaultEffectsProvider:
    """Test cases for StaticDefaultEffectsProvider."""

    @pytest.mark.asyncio
    async def test_returns_copy(self):
        provider = StaticDefaultEffectsProvider([make_effect("display", "fab", False)])

        effects = await provider.get_effects("ignored")
        effects.clear()

        assert len(await provider.get_effects()) == 1
