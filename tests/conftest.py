"""
Pytest configuration and fixtures for destkit tests.
"""

import sys
from pathlib import Path

import httpx
import pytest

# Add the repository root to path for imports
# This allows `from destkit.actions import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from destkit.context import NoopContext  # noqa: E402
from destkit.request import RequestFactory  # noqa: E402


@pytest.fixture
def track_event():
    """Minimal track event."""
    return {
        "type": "track",
        "event": "Signed Up",
        "userId": "user-1",
        "properties": {"plan": "pro", "seats": 3, "email": "ada@example.com"},
        "context": {"library": {"name": "analytics.js"}},
    }


@pytest.fixture
def context():
    """Context that records subscriptions without logging or metrics."""
    return NoopContext()


@pytest.fixture
def recorded_requests():
    return []


@pytest.fixture
def mock_factory(recorded_requests):
    """RequestFactory whose transport records requests and answers 200 {"ok": true}."""

    def handler(request: httpx.Request) -> httpx.Response:
        recorded_requests.append(request)
        return httpx.Response(200, json={"ok": True})

    return RequestFactory(transport=httpx.MockTransport(handler))
