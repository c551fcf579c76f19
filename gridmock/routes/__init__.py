"""
Routes package for the mock server.

Contains HTTP endpoint handlers: control endpoints first, fixture
catch-all last.
"""

from gridmock.routes.control_routes import create_control_router
from gridmock.routes.fixture_routes import create_fixture_router

__all__ = [
    "create_control_router",
    "create_fixture_router",
]
