"""
Control Routes - HTTP endpoints that drive the mock server itself.

BLACK BOX INTERFACE:
- POST /_reset    - Restore baseline state, answer with the new generation
- GET  /stop      - Acknowledge, then drain and close the listener
- POST /_scenario - Switch one route's scenario/scope until next reset
- GET  /_preset   - List presets and the active one
- POST /_preset   - Activate a preset (null or "default" clears)
- GET  /_routes   - List registered fixtures

DEPENDENCIES: FixtureStore, LifecycleManager
"""

import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from gridmock.errors import MalformedRequestError
from gridmock.fixtures.store import FixtureStore
from gridmock.lifecycle import LifecycleManager

logger = logging.getLogger(__name__)

STOP_ACK = {"stopping": True, "message": "Shutting down..."}


class ScenarioRequest(BaseModel):
    """Request to switch a route's scenario and/or scope"""

    route: Optional[str] = None
    scenario: Optional[str] = None
    scope: Optional[str] = None


class PresetRequest(BaseModel):
    """Request to activate a preset; None means back to defaults"""

    name: Optional[str] = None


def create_control_router(
    store: FixtureStore,
    lifecycle: LifecycleManager,
) -> APIRouter:
    """
    Create control routes with dependencies injected.

    Args:
        store: Fixture store whose state the endpoints reset and steer
        lifecycle: Lifecycle manager that /stop hands the drain to

    Returns:
        Configured APIRouter
    """
    router = APIRouter(tags=["control"])

    @router.post("/_reset")
    async def reset_state() -> JSONResponse:
        """
        Restore the baseline before a test.

        The reset completes before this handler returns, so the caller
        never sees a response for a half-reset server.
        """
        generation = store.reset()
        return JSONResponse(
            {
                "reset": True,
                "success": True,
                "generation": generation,
                "message": "Mock server state reset",
            }
        )

    @router.get("/stop")
    async def stop_server() -> JSONResponse:
        """
        Graceful shutdown.

        Phase one sends the acknowledgement; phase two (the background
        task) runs only after the response body went out and starts the
        drain. Repeated calls get the same acknowledgement.
        """

        async def schedule_close() -> None:
            lifecycle.request_stop()

        logger.info("📨 Received shutdown request")
        return JSONResponse(STOP_ACK, background=BackgroundTask(schedule_close))

    @router.post("/_scenario")
    async def set_scenario(
        request: Optional[ScenarioRequest] = None,
    ) -> JSONResponse:
        if request is None or not request.route:
            raise MalformedRequestError("Route name is required", path="/_scenario")
        override = store.set_scenario(request.route, request.scenario, request.scope)
        return JSONResponse(
            {
                "success": True,
                "route": request.route,
                "scenario": override.scenario,
                "scope": override.scope,
            }
        )

    @router.get("/_preset")
    async def list_presets() -> JSONResponse:
        return JSONResponse(
            {"active": store.active_preset, "available": store.preset_names()}
        )

    @router.post("/_preset")
    async def activate_preset(
        request: Optional[PresetRequest] = None,
    ) -> JSONResponse:
        updated = store.apply_preset(request.name if request else None)
        active = store.active_preset
        message = (
            f"Preset '{active}' activated"
            if active
            else "Reset to default configuration"
        )
        return JSONResponse(
            {
                "success": True,
                "preset": active,
                "message": message,
                "routesUpdated": updated,
            }
        )

    @router.get("/_routes")
    async def list_routes() -> JSONResponse:
        return JSONResponse(
            {"generation": store.generation, "routes": store.describe_routes()}
        )

    return router
