"""
Error taxonomy for the mock API server.

Router-level errors (RouteNotFoundError, MalformedRequestError,
UnknownRouteError, UnknownPresetError) are converted to JSON responses
by the exception handlers registered in gridmock.server. Lifecycle errors
(PortInUseError, DrainTimeoutError, ReadinessTimeoutError) surface to the
process entry point.
"""

from typing import Any, Optional


class MockServerError(Exception):
    """Base class for all gridmock errors."""

    status_code: int = 500
    error_code: str = "mock_server_error"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": str(self)}


class RouteNotFoundError(MockServerError):
    """Raised when no control endpoint or fixture matches a request."""

    status_code = 404
    error_code = "route_not_found"

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"No fixture registered for {method} {path}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"method": self.method, "path": self.path})
        return data


class MalformedRequestError(MockServerError):
    """Raised when a request cannot be interpreted (bad JSON, bad fields)."""

    status_code = 400
    error_code = "malformed_request"

    def __init__(self, reason: str, path: Optional[str] = None):
        self.reason = reason
        self.path = path
        super().__init__(reason)


class FixtureExecutionError(MockServerError):
    """Raised when a fixture responder or mutation blows up."""

    status_code = 500
    error_code = "fixture_error"

    def __init__(self, route_name: str, cause: Exception):
        self.route_name = route_name
        self.cause = cause
        super().__init__(f"Fixture '{route_name}' failed: {cause}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["route"] = self.route_name
        return data


class UnknownRouteError(MockServerError):
    """Raised when a scenario switch names a route that does not exist."""

    status_code = 404
    error_code = "unknown_route"

    def __init__(self, route_name: str, available: list[str]):
        self.route_name = route_name
        self.available = available
        super().__init__(f"Route '{route_name}' not found")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["available"] = self.available
        return data


class UnknownPresetError(MockServerError):
    """Raised when activating a preset that was never registered."""

    status_code = 404
    error_code = "unknown_preset"

    def __init__(self, preset_name: str, available: list[str]):
        self.preset_name = preset_name
        self.available = available
        super().__init__(f"Preset '{preset_name}' not found")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["available"] = self.available
        return data


class LifecycleError(MockServerError):
    """Raised on an illegal listener state transition."""


class PortInUseError(LifecycleError):
    """
    Raised when the configured port is owned by another process.

    Non-fatal when reuse of an existing healthy server is allowed; the
    lifecycle manager then skips startup instead of raising.
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        super().__init__(f"Port {port} on {host} is already in use")


class ReadinessTimeoutError(LifecycleError):
    """Raised when the health-check path does not answer in time."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Server at {url} did not become ready within {timeout}s")


class DrainTimeoutError(LifecycleError):
    """Raised when in-flight requests do not finish within the drain timeout."""

    def __init__(self, timeout: float, in_flight: list[str]):
        self.timeout = timeout
        self.in_flight = in_flight
        super().__init__(
            f"Drain did not complete within {timeout}s "
            f"({len(in_flight)} request(s) still in flight)"
        )
