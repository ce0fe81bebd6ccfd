"""
UI Rules preview service.
"""

from typing import List, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.circuit_breaker import CircuitBreaker
from shared.config import ServiceConfig, get_config
from shared.errors import InvalidRenderRequestError
from shared.metrics import MetricsCollector

from .adapters.default_effects_client import (
    FileDefaultEffectsProvider,
    HttpDefaultEffectsProvider,
)
from .adapters.flex_features_client import FlexFeaturesCatalog, FlexFeaturesClient
from .catalog.cache import ReadThroughCache, RedisReadThroughCache, create_cache
from .rules.engine import DefaultEffectsProvider, RuleEngine
from .rules.models import (
    EffectAction,
    EffectBase,
    MatchRequest,
    MatchResponse,
    RenderRequest,
    coerce_rules,
)

SERVICE_NAME = "ui_rules"
SERVICE_PORT = 8020


def build_default_effects_provider(config: ServiceConfig, cache: ReadThroughCache) -> Optional[DefaultEffectsProvider]:
    """A local file wins over the remote store; neither configured means no defaults."""
    if config.default_effects_file:
        return FileDefaultEffectsProvider(config.default_effects_file)
    if config.default_effects_url:
        return HttpDefaultEffectsProvider(
            config.default_effects_url,
            cache=cache,
            timeout=config.http_timeout_seconds,
            circuit_breaker=CircuitBreaker(
                failure_threshold=config.circuit_failure_threshold,
                recovery_timeout=config.circuit_recovery_timeout_seconds,
                name="default_effects"
            )
        )
    return None


def build_flex_features_client(config: ServiceConfig, cache: ReadThroughCache) -> Optional[FlexFeaturesClient]:
    if not config.flex_features_url:
        return None
    return FlexFeaturesClient(
        config.flex_features_url,
        cache=cache,
        timeout=config.http_timeout_seconds,
        circuit_breaker=CircuitBreaker(
            failure_threshold=config.circuit_failure_threshold,
            recovery_timeout=config.circuit_recovery_timeout_seconds,
            name="flex_features"
        )
    )


class UIRulesService(BaseService):
    """UI Rules service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 default_effects_provider: Optional[DefaultEffectsProvider] = None,
                 flex_features_client: Optional[FlexFeaturesClient] = None,
                 metrics: Optional[MetricsCollector] = None):
        config = config or get_config(SERVICE_NAME, SERVICE_PORT)
        super().__init__(SERVICE_NAME, config.port, config=config, metrics=metrics)

        self.cache = create_cache(
            self.config.cache_backend,
            ttl_seconds=self.config.catalog_cache_ttl_seconds,
            redis_url=self.config.redis_url,
            metrics=self.metrics
        )
        self.default_effects_provider = default_effects_provider or build_default_effects_provider(
            self.config, self.cache
        )
        self.flex_features_client = flex_features_client or build_flex_features_client(self.config, self.cache)

        self.rule_engine = RuleEngine(
            default_effects_provider=self.default_effects_provider,
            metrics=self.metrics,
            inactive_condition_mode=self.config.inactive_condition_mode
        )

        @self.app.on_event("startup")
        async def _startup():
            await self.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.stop()

        self._setup_ui_rules_routes()

    def _setup_ui_rules_routes(self):
        """Set up rule preview routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "UI Rules - rule engine preview service",
                "version": "1.0.0",
                "capabilities": ["render", "match", "default_effects"],
                "inactive_condition_mode": self.config.inactive_condition_mode
            }

        @self.app.post("/rules/render")
        async def render(request: RenderRequest):
            """Render one screen's applied effects state."""
            if not request.screen:
                raise InvalidRenderRequestError("screen must not be empty")

            language = request.language or self.config.default_language
            defaults: List[EffectBase] = []
            if request.include_defaults:
                defaults = await self.rule_engine.fetch_default_effects(request.defaults_version_id)

            rules = coerce_rules(request.rules)
            tab_resolver = None
            if self._needs_tab_catalog(rules, defaults):
                tab_resolver = await self._get_tab_catalog(language)

            state = self.rule_engine.render(
                rules,
                request.context,
                current_screen=request.screen,
                default_effects=defaults,
                tab_resolver=tab_resolver,
                language=language
            )
            return state.to_payload()

        @self.app.post("/rules/match", response_model=MatchResponse)
        async def match(request: MatchRequest):
            """Names of the active rules whose causes match the context."""
            return MatchResponse(matched=self.rule_engine.matching_rules(request.rules, request.context))

        @self.app.get("/defaults")
        async def get_defaults(
            version_id: Optional[str] = Query(None, alias="versionId", description="Pinned defaults version")
        ):
            """Default effects the engine would apply."""
            effects = await self.rule_engine.fetch_default_effects(version_id)
            return {
                "version_id": version_id,
                "count": len(effects),
                "effects": [effect.model_dump(mode="json", by_alias=True, exclude_none=True) for effect in effects]
            }

    @staticmethod
    def _needs_tab_catalog(rules, defaults) -> bool:
        effects = list(defaults)
        for rule in rules:
            if rule.active:
                effects.extend(rule.effects)
        return any(getattr(effect, "action", None) == EffectAction.REPLACE_TABS.value for effect in effects)

    async def _get_tab_catalog(self, language: str) -> Optional[FlexFeaturesCatalog]:
        if self.flex_features_client is None:
            return None
        return await self.flex_features_client.get_catalog(language)

    async def _check_dependencies(self):
        """Check UI rules service dependencies."""
        dependencies = {}

        if isinstance(self.cache, RedisReadThroughCache):
            try:
                await self.cache.redis.ping()
                dependencies["redis"] = "ok"
            except Exception:
                dependencies["redis"] = "error"

        dependencies["default_effects"] = "configured" if self.default_effects_provider else "disabled"
        breaker = getattr(self.default_effects_provider, "circuit_breaker", None)
        if breaker is not None and breaker.is_open():
            dependencies["default_effects"] = "circuit_open"

        return dependencies

    async def start(self):
        """Start UI rules service components."""
        if isinstance(self.cache, RedisReadThroughCache):
            await self.cache.start()
        self.logger.info("UI rules service started",
                         cache_backend=self.config.cache_backend,
                         defaults=bool(self.default_effects_provider))

    async def stop(self):
        """Stop UI rules service components."""
        if isinstance(self.cache, RedisReadThroughCache):
            await self.cache.stop()
        self.logger.info("UI rules service stopped")


def create_app():
    """Create UI rules service application."""
    service = UIRulesService()
    return service.app


if __name__ == "__main__":
    service = UIRulesService()
    service.run()
