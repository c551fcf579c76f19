"""
gridmock - Mock API server for frontend test tiers

Serves deterministic fixtures, resets to a baseline on POST /_reset and
shuts down gracefully on GET /stop.
"""

__version__ = "1.0.0"

from gridmock.config import ServerConfig, load_config
from gridmock.fixtures import Fixture, FixtureResponse, FixtureStore, ServerState
from gridmock.lifecycle import LifecycleManager, ListenerState
from gridmock.server import MockApiServer, create_server

__all__ = [
    "__version__",
    "Fixture",
    "FixtureResponse",
    "FixtureStore",
    "LifecycleManager",
    "ListenerState",
    "MockApiServer",
    "ServerConfig",
    "ServerState",
    "create_server",
    "load_config",
]
