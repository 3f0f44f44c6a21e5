"""
Test helpers for destination authors.

Runs a single action of a DestinationDefinition through an in-memory
transport, so integration tests never touch the network.

Example:
    integration = create_test_integration(destination, handler=partner_api)
    responses = await integration.test_action(
        "trackPageView",
        event=create_test_event(type="page"),
        mapping={"url": {"@path": "$.context.page.url"}},
        settings={"apiKey": "secret"},
    )
    assert responses[0].status_code == 200
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

import httpx

from destkit.actions import ExecuteInput, StepResult
from destkit.destination import Destination, DestinationDefinition
from destkit.request import RequestFactory

Handler = Callable[[httpx.Request], httpx.Response]


def create_test_event(**overrides: Any) -> dict[str, Any]:
    """A realistic track event; keyword arguments replace top-level keys."""
    now = datetime.now(timezone.utc).isoformat()
    event: dict[str, Any] = {
        "anonymousId": str(uuid.uuid4()),
        "context": {
            "ip": "8.8.8.8",
            "library": {"name": "analytics.js", "version": "2.11.1"},
            "locale": "en-US",
            "page": {
                "path": "/academy/",
                "referrer": "",
                "search": "",
                "title": "Analytics Academy",
                "url": "https://segment.com/academy/",
            },
            "userAgent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_12_1) AppleWebKit/537.36",
        },
        "event": "Test Event",
        "messageId": str(uuid.uuid4()),
        "properties": {},
        "receivedAt": now,
        "sentAt": now,
        "timestamp": now,
        "traits": {},
        "type": "track",
        "userId": "user1234",
    }
    event.update(overrides)
    return event


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={})


class IntegrationHarness:
    """
    Wraps a destination whose requests go to an httpx.MockTransport.

    `requests` and `responses` accumulate across test_action calls until
    reset() is called.
    """

    __test__ = False

    def __init__(self, definition: DestinationDefinition, handler: Handler | None = None):
        self._handler = handler or _ok
        self.requests: list[httpx.Request] = []
        self.results: list[StepResult] = []
        self.destination = Destination(
            definition,
            requests=RequestFactory(transport=httpx.MockTransport(self._record)),
            capture_responses=True,
        )

    def _record(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def responses(self) -> list[httpx.Response]:
        return self.destination.responses

    def reset(self) -> None:
        self.requests.clear()
        self.results = []
        self.destination.responses.clear()

    async def test_action(
        self,
        slug: str,
        *,
        event: Mapping[str, Any] | None = None,
        mapping: Mapping[str, Any] | None = None,
        settings: Mapping[str, Any] | None = None,
    ) -> list[httpx.Response]:
        """
        Run one action directly, bypassing subscriptions.

        Errors raised by the action propagate to the test.

        Returns:
            Every response captured so far
        """
        action = self.destination.get_action(slug)
        data = ExecuteInput(
            payload=copy.deepcopy(dict(event if event is not None else create_test_event())),
            settings=dict(settings or {}),
            mapping=copy.deepcopy(dict(mapping)) if mapping is not None else None,
        )
        self.results = await action.execute(data, requests=self.destination.requests)
        return self.responses


def create_test_integration(
    definition: DestinationDefinition,
    handler: Handler | None = None,
) -> IntegrationHarness:
    return IntegrationHarness(definition, handler)
