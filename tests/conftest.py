"""
Pytest configuration and fixtures.

This module provides:
- Registry, recovery and session fixtures
- Flask app and client fixtures for the web API
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from flask import Flask

from route_flow_editor import (
    EditSession,
    EntityRegistry,
    MemorySnapshotStore,
    Node,
    RecoveryManager,
    Route,
)

# Make web_app/app.py importable as "app"
_web_app_dir = Path(__file__).parent.parent / "web_app"
if str(_web_app_dir) not in sys.path:
    sys.path.insert(0, str(_web_app_dir))


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def route() -> Route:
    """Route with no committed flow."""
    return Route(id="r1", name="List users", method="GET", url="/x")


@pytest.fixture
def other_route() -> Route:
    return Route(id="r2", name="Create user", method="POST", url="/users")


@pytest.fixture
def registry(route: Route, other_route: Route) -> EntityRegistry:
    return EntityRegistry(routes=[route, other_route])


@pytest.fixture
def store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def recovery(store: MemorySnapshotStore) -> RecoveryManager:
    return RecoveryManager(store)


@pytest_asyncio.fixture
async def session(route: Route, registry: EntityRegistry, recovery: RecoveryManager) -> EditSession:
    """Open session on route r1, seeded with the default url node."""
    return await EditSession.open(route, registry, recovery)


@pytest.fixture
def logic_node() -> Node:
    return Node.create("logic", position={"x": 300, "y": 100}, node_id="n2")


# ============================================================================
# Flask App Fixtures
# ============================================================================


@pytest.fixture
def app() -> Flask:
    """
    Flask app with a freshly reset editor.

    Returns:
        Flask: Configured Flask test app
    """
    import app as app_module

    app_module.manager.reset()
    app_module.app.config["TESTING"] = True
    yield app_module.app


@pytest.fixture
def client(app: Flask):
    """Flask test client."""
    return app.test_client()
