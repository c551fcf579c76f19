"""
Control client for a running mock server.

Used by test harnesses and the `gridmock stop` command:

    client = MockServerClient("http://localhost:3002")
    client.wait_until_ready()
    client.reset()            # before each test
    client.stop()             # at suite teardown
"""

import logging
import time
from typing import Any, Optional

import httpx

from gridmock.config import DEFAULT_HEALTH_PATH
from gridmock.errors import ReadinessTimeoutError

logger = logging.getLogger(__name__)


class MockServerClient:
    """Thin synchronous wrapper around the control endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MockServerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def reset(self) -> dict[str, Any]:
        response = self._client.post("/_reset")
        response.raise_for_status()
        return response.json()

    def stop(self) -> Optional[int]:
        """
        Ask the server to shut down.

        Returns:
            The status code, or None if nothing was listening
        """
        try:
            response = self._client.get("/stop")
        except httpx.TransportError as e:
            logger.warning(f"Stop request to {self.base_url} failed: {e}")
            return None
        logger.info(f"shutdown statusCode: {response.status_code}")
        return response.status_code

    def set_scenario(
        self,
        route: str,
        scenario: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> dict[str, Any]:
        payload = {"route": route, "scenario": scenario, "scope": scope}
        response = self._client.post(
            "/_scenario", json={k: v for k, v in payload.items() if v is not None}
        )
        response.raise_for_status()
        return response.json()

    def presets(self) -> dict[str, Any]:
        response = self._client.get("/_preset")
        response.raise_for_status()
        return response.json()

    def activate_preset(self, name: Optional[str]) -> dict[str, Any]:
        response = self._client.post("/_preset", json={"name": name})
        response.raise_for_status()
        return response.json()

    def wait_until_ready(
        self,
        path: str = DEFAULT_HEALTH_PATH,
        timeout: float = 30.0,
        interval: float = 0.1,
    ) -> None:
        """
        Poll path until it answers 2xx.

        Raises:
            ReadinessTimeoutError: If the server is not ready in time
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                response = self._client.get(path)
                if response.is_success:
                    return
            except httpx.TransportError:
                pass  # not listening yet
            if time.monotonic() >= deadline:
                raise ReadinessTimeoutError(f"{self.base_url}{path}", timeout)
            time.sleep(interval)
