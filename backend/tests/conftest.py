"""Shared fixtures for the passport API test suite.

Provides a fake neo4j driver/session pair so the graph client and every
query module can be exercised without a running database.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure backend is importable
BACKEND_DIR = Path(__file__).resolve().parent.parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import config_loader  # noqa: E402


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from the shipped YAML configuration."""
    config_loader.get_config.cache_clear()
    yield config_loader.get_config()
    config_loader.get_config.cache_clear()


# =============================================================================
# FAKE DRIVER
# =============================================================================

class FakeSession:
    """Records every query and replays canned rows.

    ``responses`` is consumed in order; each entry is either a list of rows
    (plain dicts stand in for neo4j Records) or an exception to raise.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.queries: list[tuple[str, dict]] = []
        self.closed = False

    def run(self, cypher, parameters=None):
        self.queries.append((cypher, parameters or {}))
        if not self.responses:
            return []
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


@pytest.fixture
def fake_driver():
    """A MagicMock driver handing out one FakeSession per ``session()`` call."""
    driver = MagicMock()
    driver.sessions = []

    def _session(**kwargs):
        responses = driver.queued.pop(0) if driver.queued else []
        session = FakeSession(responses)
        driver.sessions.append(session)
        return session

    driver.queued = []
    driver.session.side_effect = _session
    return driver


class StubConnection:
    """Stands in for ``database.db`` in query-module tests.

    Maps a query to its canned rows by matching a marker substring, and
    records the parameters every query was called with.
    """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls: list[tuple[str, dict]] = []

    def run_query(self, cypher, parameters=None):
        self.calls.append((cypher, parameters or {}))
        for marker, response in self.routes.items():
            if marker in cypher:
                if isinstance(response, Exception):
                    raise response
                return response
        return []


@pytest.fixture
def stub_connection():
    return StubConnection
