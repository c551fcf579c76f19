"""
Pytest configuration and fixtures for gridmock tests

Provides reusable fixtures for testing gridmock, including:
- Environment isolation (no PORT/CI leaking in from the shell)
- A default-catalog store and a small stateful "items" store
- MockApiServer instances and FastAPI test clients
"""

import pytest
from fastapi.testclient import TestClient

from gridmock.config import ServerConfig
from gridmock.fixtures import Fixture, FixtureStore, ServerState, build_default_store
from gridmock.server import MockApiServer

ENV_VARS = (
    "PORT",
    "HOST",
    "CI",
    "REUSE_EXISTING_SERVER",
    "DRAIN_TIMEOUT",
    "READY_TIMEOUT",
    "HEALTH_PATH",
    "SEED_PATH",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def test_environment(monkeypatch, tmp_path):
    """
    Set up isolated test environment for all tests

    Runs in a temporary directory (so no stray .env is picked up) with
    every gridmock environment variable cleared.
    """
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield tmp_path


def _list_items(request, state):
    return state.collection("items")


def _append_item(request, state):
    item = dict(request.body or {})
    item["id"] = state.next_id("items")
    state.append("items", item)
    return 201, state.collection("items")


def build_items_store() -> FixtureStore:
    """Store with a constraints fixture and a stateful /items collection."""
    store = FixtureStore(ServerState(seed={"items": []}))
    store.register(
        Fixture(
            "GET",
            "/api/leagues-management/constraints",
            name="getConstraints",
            body={"maxTeams": 16},
        )
    )
    store.register(
        Fixture("GET", "/items", name="listItems", scenarios={"defaultScenario": _list_items})
    )
    store.register(Fixture("POST", "/items", name="createItem", mutate=_append_item))
    store.seal_baseline()
    return store


@pytest.fixture
def items_store() -> FixtureStore:
    return build_items_store()


@pytest.fixture
def default_store() -> FixtureStore:
    return build_default_store()


@pytest.fixture
def server_config() -> ServerConfig:
    """Ephemeral-port config that never reuses a foreign server."""
    return ServerConfig(port=0, reuse_existing=False, drain_timeout=2.0, ready_timeout=5.0)


@pytest.fixture
def mock_server(server_config, default_store) -> MockApiServer:
    return MockApiServer(config=server_config, store=default_store)


@pytest.fixture
def test_client(mock_server) -> TestClient:
    """FastAPI test client for HTTP endpoint testing."""
    return TestClient(mock_server.app)


@pytest.fixture
def items_server(server_config, items_store) -> MockApiServer:
    return MockApiServer(config=server_config, store=items_store)


@pytest.fixture
def items_client(items_server) -> TestClient:
    return TestClient(items_server.app)
