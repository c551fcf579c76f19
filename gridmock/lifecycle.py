"""
Server Lifecycle Manager - owns the listening socket and the uvicorn server.

Listener states:
    unbound -> bound -> draining -> closed
    (unbound -> closed and bound -> closed are allowed for reuse/signals)

Shutdown is two-phase. /stop sends its response first and only then calls
request_stop() from a background task; request_stop() flips the listener
to draining and asks uvicorn to exit. wait_closed() then gives in-flight
requests `drain_timeout` seconds before force-closing them.

Usage:
    manager = LifecycleManager(app, config)
    if await manager.start():
        await manager.await_ready()
        await manager.wait_closed()
"""

import asyncio
import errno
import logging
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI

from gridmock.config import ServerConfig
from gridmock.errors import (
    DrainTimeoutError,
    LifecycleError,
    PortInUseError,
    ReadinessTimeoutError,
)
from gridmock.middleware import InFlightRegistry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

# Extra time uvicorn gets to unwind after force_exit before its task is cancelled
FORCE_CLOSE_GRACE = 1.0
HEALTH_TIMEOUT = 1.0
HEALTH_POLL_INTERVAL = 0.05


class ListenerState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    DRAINING = "draining"
    CLOSED = "closed"


_TRANSITIONS = {
    ListenerState.UNBOUND: {ListenerState.BOUND, ListenerState.CLOSED},
    ListenerState.BOUND: {ListenerState.DRAINING, ListenerState.CLOSED},
    ListenerState.DRAINING: {ListenerState.CLOSED},
    ListenerState.CLOSED: set(),
}


def bind_socket(host: str, port: int) -> socket.socket:
    """
    Bind (but do not listen on) a TCP socket.

    Raises:
        PortInUseError: If another socket already owns host:port
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        if e.errno == errno.EADDRINUSE:
            raise PortInUseError(host, port) from e
        raise
    return sock


@dataclass
class ListenerHandle:
    """The one bound socket of a server instance."""

    host: str
    port: int
    sock: Optional[socket.socket] = field(default=None, repr=False)
    state: ListenerState = ListenerState.UNBOUND

    def transition(self, new_state: ListenerState) -> None:
        if new_state == self.state:
            return
        if new_state not in _TRANSITIONS[self.state]:
            raise LifecycleError(
                f"Illegal listener transition {self.state.value} -> {new_state.value}"
            )
        logger.debug(f"Listener {self.state.value} -> {new_state.value}")
        self.state = new_state

    def attach(self, sock: socket.socket) -> None:
        self.transition(ListenerState.BOUND)
        self.sock = sock
        self.port = sock.getsockname()[1]

    def close(self) -> None:
        """Close the socket (idempotent) and mark the listener closed."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        self.transition(ListenerState.CLOSED)


class LifecycleManager:
    """
    Start, readiness, drain and close for one mock server instance.

    Features:
    - Binds the socket itself so a taken port is reported, not fatal to uvicorn
    - Reuses an already-healthy server on the port when configured to
    - Idempotent stop: only the first request_stop() starts a drain
    - Bounded drain; names the requests that blocked it
    """

    def __init__(
        self,
        app: FastAPI,
        config: ServerConfig,
        in_flight: Optional[InFlightRegistry] = None,
    ):
        self.app = app
        self.config = config
        self.in_flight = in_flight if in_flight is not None else InFlightRegistry()
        self.listener = ListenerHandle(host=config.host, port=config.port)
        self.reused_existing = False
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._stop_requested = asyncio.Event()
        self.drain_count = 0

    @property
    def state(self) -> ListenerState:
        return self.listener.state

    @property
    def port(self) -> int:
        return self.listener.port

    @property
    def base_url(self) -> str:
        host = self.config.host
        if host in ("0.0.0.0", ""):
            host = "127.0.0.1"
        elif host == "::":
            host = "::1"
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}"

    @property
    def health_url(self) -> str:
        return f"{self.base_url}{self.config.health_path}"

    async def _check_health(self, client: httpx.AsyncClient) -> bool:
        try:
            response = await client.get(self.health_url)
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    def build_uvicorn_config(self) -> uvicorn.Config:
        """
        uvicorn settings for this listener.

        A signal-driven shutdown never goes through wait_closed(), so uvicorn
        gets its own bound. It is FORCE_CLOSE_GRACE past drain_timeout so
        that on a /stop drain wait_closed() times out first and can name
        the blocking requests.
        """
        return uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.listener.port,
            lifespan="on",
            log_config=None,
            log_level=self.config.log_level.lower(),
            access_log=False,
            timeout_graceful_shutdown=self.config.drain_timeout + FORCE_CLOSE_GRACE,
        )

    async def start(self, port: Optional[int] = None) -> bool:
        """
        Bind the listener and start serving in a background task.

        Returns:
            True if this manager bound the port, False if an existing
            healthy server was reused

        Raises:
            PortInUseError: If the port is taken and cannot be reused
            LifecycleError: If start() was already called
        """
        if self.state != ListenerState.UNBOUND:
            raise LifecycleError(f"Cannot start from state {self.state.value}")

        if port is not None:
            self.listener.port = port

        try:
            sock = bind_socket(self.config.host, self.listener.port)
        except PortInUseError:
            if self.config.reuse_existing:
                async with httpx.AsyncClient(timeout=HEALTH_TIMEOUT) as client:
                    healthy = await self._check_health(client)
                if healthy:
                    logger.info(
                        f"♻️ [LIFECYCLE] Reusing healthy server already on {self.base_url}"
                    )
                    self.reused_existing = True
                    return False
            logger.error(f"❌ [LIFECYCLE] Port {self.listener.port} is already in use")
            raise

        self.listener.attach(sock)
        self._server = uvicorn.Server(self.build_uvicorn_config())
        self._serve_task = asyncio.create_task(
            self._server.serve(sockets=[sock]), name=f"gridmock-{self.listener.port}"
        )
        logger.info(f"🔌 [LIFECYCLE] Bound {self.base_url}")
        return True

    async def await_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait until uvicorn is started and the health path answers 200.

        Raises:
            ReadinessTimeoutError: If not ready within timeout seconds
            LifecycleError: If the server task exits before becoming ready
        """
        timeout = timeout if timeout is not None else self.config.ready_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        async with httpx.AsyncClient(timeout=HEALTH_TIMEOUT) as client:
            while True:
                if self.state == ListenerState.DRAINING:
                    logger.info("🛑 [LIFECYCLE] Stop requested before ready")
                    return
                if self._serve_task is not None and self._serve_task.done():
                    raise LifecycleError("Server exited before becoming ready")
                started = self._server is None or self._server.started
                if started and await self._check_health(client):
                    logger.info(f"✅ [LIFECYCLE] Ready at {self.health_url}")
                    return
                if loop.time() >= deadline:
                    raise ReadinessTimeoutError(self.health_url, timeout)
                await asyncio.sleep(HEALTH_POLL_INTERVAL)

    def request_stop(self) -> bool:
        """
        Begin draining. Safe to call any number of times.

        Returns:
            True only for the call that started the drain
        """
        if self.state in (ListenerState.DRAINING, ListenerState.CLOSED):
            logger.info(f"🛑 [LIFECYCLE] Stop requested while {self.state.value}, ignoring")
            return False
        if self.state == ListenerState.UNBOUND or self._server is None:
            logger.warning("🛑 [LIFECYCLE] Stop requested but no listener is bound")
            return False

        self.listener.transition(ListenerState.DRAINING)
        self.drain_count += 1
        self._server.should_exit = True
        self._stop_requested.set()
        logger.info(
            f"🛑 [LIFECYCLE] Draining {self.base_url} "
            f"({len(self.in_flight)} request(s) in flight, timeout={self.config.drain_timeout}s)"
        )
        return True

    async def wait_closed(self) -> None:
        """
        Wait for the server to finish and release the socket.

        Returns when uvicorn exits on its own (signal) or after a requested
        drain completes.

        Raises:
            DrainTimeoutError: If a drain exceeded drain_timeout; remaining
                connections were force-closed
        """
        task = self._serve_task
        if task is None:
            self.listener.close()
            return

        stop_wait = asyncio.ensure_future(self._stop_requested.wait())
        try:
            await asyncio.wait({task, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()

        if not task.done():
            try:
                await asyncio.wait_for(
                    asyncio.shield(task), timeout=self.config.drain_timeout
                )
            except asyncio.TimeoutError:
                blocked = [entry.describe() for entry in self.in_flight.snapshot()]
                for line in blocked:
                    logger.error(f"⏳ [LIFECYCLE] Drain blocked by in-flight request {line}")
                await self._force_close(task)
                raise DrainTimeoutError(self.config.drain_timeout, blocked)

        self.listener.close()
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
        logger.info(f"✅ [LIFECYCLE] Listener on port {self.port} closed")

    async def _force_close(self, task: asyncio.Task) -> None:
        if self._server is not None:
            self._server.force_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=FORCE_CLOSE_GRACE)
        except asyncio.TimeoutError:
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.listener.close()
        logger.error(f"💥 [LIFECYCLE] Listener on port {self.port} force-closed")

    async def stop(self) -> None:
        """Drain and close; see wait_closed() for the failure mode."""
        self.request_stop()
        await self.wait_closed()

    async def run(self) -> int:
        """
        Serve until stopped.

        Returns:
            Process exit code: 0 on a clean drain or when reusing an
            existing server, 1 on a taken port, startup failure or drain
            timeout
        """
        try:
            bound = await self.start()
        except PortInUseError as e:
            logger.error(f"❌ [LIFECYCLE] {e}")
            return EXIT_FAILURE
        if not bound:
            return EXIT_OK

        try:
            await self.await_ready()
        except LifecycleError as e:
            logger.error(f"❌ [LIFECYCLE] Startup failed: {e}")
            try:
                await self.stop()
            except DrainTimeoutError as drain_error:
                logger.error(f"❌ [LIFECYCLE] {drain_error}")
            return EXIT_FAILURE

        try:
            await self.wait_closed()
        except DrainTimeoutError as e:
            logger.error(f"❌ [LIFECYCLE] {e}")
            return EXIT_FAILURE
        return EXIT_OK
