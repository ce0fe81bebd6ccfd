"""
Mock asset host serving default effects and the flex features catalog.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query

from shared.logging import get_logger
from shared.test_helpers import TestDataFactory


class MockAssetsServer:
    """Mock remote asset store implementation."""

    def __init__(self, port: int = 8090):
        self.port = port
        self.logger = get_logger("mock.assets")
        self.app = FastAPI(title="Mock Assets", version="1.0.0")

        self.active_version = "v2"
        self.default_effects: Dict[str, List[Dict[str, Any]]] = {
            "v1": TestDataFactory.create_default_effects()[:2],
            "v2": TestDataFactory.create_default_effects(),
        }
        self.flex_features = TestDataFactory.create_flex_features()

        self._setup_routes()

    def _setup_routes(self):
        """Set up mock asset routes."""

        @self.app.get("/default-effects")
        async def default_effects(version_id: Optional[str] = Query(None)):
            """Default effects for a version, the active one when unpinned."""
            version = version_id or self.active_version
            effects = self.default_effects.get(version)
            if effects is None:
                raise HTTPException(status_code=404, detail=f"Unknown version: {version}")

            self.logger.info("Serving default effects", version=version, count=len(effects))
            return {"version": version, "effects": effects}

        @self.app.get("/flex/flexFeatures.json")
        async def flex_features():
            """Flex features catalog."""
            return self.flex_features

        @self.app.get("/health")
        async def health():
            return {"status": "ok", "service": "mock-assets"}


def create_app():
    """Create mock assets application."""
    server = MockAssetsServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
