"""
Default effects providers for the UI Rules engine.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx
import yaml

from shared.circuit_breaker import CircuitBreaker
from shared.errors import DefaultEffectsUnavailableError
from shared.logging import get_logger
from ..catalog.cache import ReadThroughCache

LATEST_VERSION_KEY = "latest"


def extract_effects(payload: Any) -> List[Dict[str, Any]]:
    """Accept either a bare list or an ``{"effects": [...]}`` envelope."""
    if isinstance(payload, dict):
        payload = payload.get("effects")
    if not isinstance(payload, list):
        raise DefaultEffectsUnavailableError(
            "Default effects payload is not a list",
            details={"payload_type": type(payload).__name__}
        )
    return [effect for effect in payload if isinstance(effect, dict)]


class HttpDefaultEffectsProvider:
    """Fetches default effects from the remote store.

    Responses are cached per version. A failed fetch is not retried: the last
    known list for that version is used, or nothing at all.
    """

    def __init__(self, base_url: str, cache: Optional[ReadThroughCache] = None,
                 timeout: float = 5.0,
                 circuit_breaker: Optional[CircuitBreaker] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.cache = cache or ReadThroughCache(name="default_effects")
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("ui_rules.default_effects_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            name="default_effects"
        )

    async def get_effects(self, version_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Default effects for a version; the newest when version_id is None."""
        cache_key = f"default_effects:{version_id or LATEST_VERSION_KEY}"

        async def _load():
            return await self.circuit_breaker.call(self._fetch, version_id)

        try:
            return await self.cache.get_or_load(cache_key, _load)
        except Exception as e:
            self.logger.error("Default effects fetch failed, continuing without defaults",
                              version_id=version_id, error=str(e))
            return []

    async def _fetch(self, version_id: Optional[str]) -> List[Dict[str, Any]]:
        params = {"version_id": version_id} if version_id else None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(f"{self.base_url}/default-effects", params=params)

        if response.status_code != 200:
            raise DefaultEffectsUnavailableError(
                f"Default effects store error: {response.status_code}",
                details={"status_code": response.status_code}
            )

        effects = extract_effects(response.json())
        self.logger.info("Fetched default effects", version_id=version_id, count=len(effects))
        return effects


class FileDefaultEffectsProvider:
    """Reads default effects from a local JSON or YAML document.

    The document is either a plain list of effects or a versioned mapping::

        activeVersion: v2
        versions:
          v1: [...]
          v2: [...]
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = get_logger("ui_rules.default_effects_file")

    def _load_document(self) -> Any:
        text = self.path.read_text(encoding="utf-8")
        if self.path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)

    async def get_effects(self, version_id: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            document = self._load_document()
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise DefaultEffectsUnavailableError(
                "Could not read default effects file",
                details={"path": str(self.path), "error": str(e)}
            )

        if isinstance(document, dict) and "versions" in document:
            versions = document.get("versions") or {}
            selected = version_id or document.get("activeVersion")
            if selected not in versions:
                raise DefaultEffectsUnavailableError(
                    f"Unknown default effects version: {selected}",
                    details={"available": sorted(versions)}
                )
            document = versions[selected]

        return extract_effects(document)


class StaticDefaultEffectsProvider:
    def __init__(self, effects: Sequence[Dict[str, Any]] = ()):
        self.effects = list(effects)

    async def get_effects(self, version_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return list(self.effects)
