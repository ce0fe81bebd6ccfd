"""
Flex features catalog client: tab metadata for replaceTabs effects.
"""

from typing import Any, Dict, Mapping, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker
from shared.errors import CatalogUnavailableError
from shared.logging import get_logger
from ..catalog.cache import ReadThroughCache
from ..catalog.tab_labels import ICONS_BASE_URL

FLEX_FEATURES_URL = "https://homer-assets.s3.eu-west-1.amazonaws.com/flex/flexFeatures.json"
FLEX_FEATURES_CACHE_KEY = "flex_features"


class FlexFeaturesCatalog:
    """Read-only view over a flex features document.

    Satisfies the tab metadata resolver the effect applier expects.
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None, language: str = "en"):
        self.data: Mapping[str, Any] = data if isinstance(data, Mapping) else {}
        self.language = language
        self.logger = get_logger("ui_rules.flex_features")

    @property
    def is_empty(self) -> bool:
        return not self.data

    def _section(self, name: str) -> Mapping[str, Any]:
        section = self.data.get(name)
        if not isinstance(section, Mapping):
            if self.data:
                self.logger.warning("Flex features section missing", section=name)
            return {}
        return section

    def get_tab_action_config(self, tab_id: str) -> Optional[Mapping[str, Any]]:
        config = self._section("tabItem").get(tab_id)
        return config if isinstance(config, Mapping) else None

    def get_web_screen_config(self, web_screen_key: str) -> Optional[Mapping[str, Any]]:
        config = self._section("webScreen").get(web_screen_key)
        return config if isinstance(config, Mapping) else None

    def resolve_tab_icon(self, web_screen_key: str) -> str:
        return f"{ICONS_BASE_URL}/{web_screen_key}_nav.png"


class FlexFeaturesClient:
    """Loads the flex features document through a read-through cache."""

    def __init__(self, url: str = FLEX_FEATURES_URL,
                 cache: Optional[ReadThroughCache] = None,
                 timeout: float = 5.0,
                 circuit_breaker: Optional[CircuitBreaker] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.cache = cache or ReadThroughCache(name="flex_features")
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("ui_rules.flex_features_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            name="flex_features"
        )

    async def get_catalog(self, language: str = "en") -> FlexFeaturesCatalog:
        """Current catalog; empty when the document cannot be loaded."""
        async def _load():
            return await self.circuit_breaker.call(self._fetch)

        try:
            data = await self.cache.get_or_load(FLEX_FEATURES_CACHE_KEY, _load)
        except Exception as e:
            self.logger.error("Flex features unavailable, tab replacement disabled", error=str(e))
            data = {}
        return FlexFeaturesCatalog(data, language=language)

    async def _fetch(self) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(self.url)

        if response.status_code != 200:
            raise CatalogUnavailableError(
                f"Flex features fetch failed: {response.status_code}",
                details={"status_code": response.status_code, "url": self.url}
            )

        data = response.json()
        if not isinstance(data, dict):
            raise CatalogUnavailableError("Flex features document is not an object", details={"url": self.url})

        self.logger.info("Loaded flex features", sections=sorted(data))
        return data
