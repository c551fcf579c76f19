"""
Fixture layer: data model, path matching, resettable state and the store.
"""

from gridmock.fixtures.catalog import build_default_store
from gridmock.fixtures.matcher import PathPattern
from gridmock.fixtures.models import (
    DEFAULT_SCENARIO,
    ERROR_SCOPE,
    SUCCESS_SCOPE,
    Fixture,
    FixtureRequest,
    FixtureResponse,
    RouteOverride,
)
from gridmock.fixtures.state import ServerState, load_seed
from gridmock.fixtures.store import FixtureStore

__all__ = [
    "DEFAULT_SCENARIO",
    "ERROR_SCOPE",
    "SUCCESS_SCOPE",
    "Fixture",
    "FixtureRequest",
    "FixtureResponse",
    "FixtureStore",
    "PathPattern",
    "RouteOverride",
    "ServerState",
    "build_default_store",
    "load_seed",
]
