"""
Mock API Server - FastAPI app wired to a FixtureStore and a LifecycleManager.

Architecture:
- FixtureStore: fixtures plus ServerState (injected, one per instance)
- Control routes: /_reset, /stop, /_scenario, /_preset, /_routes
- Fixture routes: catch-all dispatch to the store
- LifecycleManager: socket, readiness, drain-and-close

Several instances can live in one process (different ports, different
test tiers); nothing here is a module-level singleton.
"""

import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gridmock.config import ServerConfig, load_config
from gridmock.errors import MockServerError
from gridmock.fixtures.catalog import build_default_store
from gridmock.fixtures.state import load_seed
from gridmock.fixtures.store import FixtureStore
from gridmock.lifecycle import LifecycleManager
from gridmock.middleware import InFlightRegistry, RequestTrackingMiddleware
from gridmock.routes import create_control_router, create_fixture_router

logger = logging.getLogger(__name__)

CONTROL_ENDPOINTS = [
    ("POST", "/_reset", "Reset all state"),
    ("POST", "/_scenario", "Change route scenario"),
    ("GET", "/_preset", "List available presets"),
    ("POST", "/_preset", "Activate a preset"),
    ("GET", "/_routes", "List registered fixtures"),
    ("GET", "/stop", "Graceful shutdown"),
]


class MockApiServer:
    """
    FastAPI mock server for the frontend test tiers.

    Features:
    - Deterministic fixtures with per-route scenarios and presets
    - /_reset restores the baseline before every test
    - /stop answers 200 first, then drains and closes
    - Every handler error becomes a JSON error response
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        store: Optional[FixtureStore] = None,
    ):
        """
        Initialize the server.

        Args:
            config: Server configuration (read from the environment if None)
            store: Fixture store (default Gridiron catalog if None)
        """
        self.config = config or load_config()
        if store is None:
            seed = load_seed(self.config.seed_path) if self.config.seed_path else None
            store = build_default_store(seed)
        self.store = store
        self.in_flight = InFlightRegistry()

        self.app = self._create_app()
        self.lifecycle = LifecycleManager(self.app, self.config, self.in_flight)
        self._register_routes()

    def _create_app(self) -> FastAPI:
        """Create and configure FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self.log_banner()
            yield
            logger.info(f"🛑 [SERVER] Mock API server on port {self.lifecycle.port} stopped")

        app = FastAPI(title="Gridiron Mock API", version="1.0.0", lifespan=lifespan)

        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        # Added last so it is outermost and sees every request
        app.add_middleware(RequestTrackingMiddleware, registry=self.in_flight)

        @app.exception_handler(MockServerError)
        async def mock_server_error_handler(
            request: Request, exc: MockServerError
        ) -> JSONResponse:
            if exc.status_code >= 500:
                logger.error(f"{request.method} {request.url.path} -> {exc}")
            else:
                logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc}")
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

        @app.exception_handler(RequestValidationError)
        async def validation_error_handler(
            request: Request, exc: RequestValidationError
        ) -> JSONResponse:
            return JSONResponse(
                status_code=400,
                content={
                    "error": "malformed_request",
                    "message": "Request body failed validation",
                    "details": [
                        {"loc": list(e.get("loc", ())), "msg": e.get("msg")}
                        for e in exc.errors()
                    ],
                },
            )

        return app

    def _register_routes(self):
        """Register control routes, then the fixture catch-all."""
        self.app.include_router(create_control_router(self.store, self.lifecycle))
        self.app.include_router(create_fixture_router(self.store))

    def log_banner(self) -> None:
        """Log control endpoints, presets and routes grouped by domain."""
        logger.info(f"🚀 [SERVER] Gridiron Mock API Server running on {self.lifecycle.base_url}")
        logger.info("Available endpoints:")
        for method, path, purpose in CONTROL_ENDPOINTS:
            logger.info(f"  {method:<5} {path:<10} - {purpose}")

        presets = self.store.preset_names()
        if presets:
            logger.info('Available presets (POST /_preset with {"name": "preset-name"}):')
            for name in presets:
                logger.info(f"  {name}")

        by_domain: dict[str, list[str]] = defaultdict(list)
        for fixture in self.store.fixtures():
            parts = [p for p in fixture.pattern.split("/") if p]
            domain = parts[1] if len(parts) > 1 else "other"
            by_domain[domain].append(f"{fixture.method:<6} {fixture.pattern}")
        for domain in sorted(by_domain):
            logger.info(f"  [{domain}]")
            for line in by_domain[domain]:
                logger.info(f"    {line}")

    async def run(self) -> int:
        """Serve until /stop or a signal; returns the process exit code."""
        return await self.lifecycle.run()


def create_server(
    config: Optional[ServerConfig] = None,
    store: Optional[FixtureStore] = None,
) -> MockApiServer:
    """Create mock server instance."""
    return MockApiServer(config=config, store=store)


def get_app() -> FastAPI:
    """Factory function for `uvicorn --factory gridmock.server:get_app`."""
    return MockApiServer().app
