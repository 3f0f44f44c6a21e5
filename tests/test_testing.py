"""
Tests for the destination author test helpers.
"""
import json

import httpx
import pytest

from destkit.actions import ActionDefinition
from destkit.destination import DestinationDefinition
from destkit.errors import RequestError, UnknownActionError
from destkit.testing import create_test_event, create_test_integration


async def track_page_view(request, data):
    return await request.post("https://api.pages.test/events", json=data.payload)


DEFINITION = DestinationDefinition(
    name="Pages",
    extend_request=[lambda data: {"headers": {"X-Api-Key": data.settings.get("apiKey", "")}}],
    actions={
        "trackPageView": ActionDefinition(
            title="Track Page View",
            description="Send a page view",
            fields={"url": {"type": "string", "required": True}},
            perform=track_page_view,
        ),
    },
)


def test_create_test_event():
    event = create_test_event(type="page", userId="u-9")
    assert event["type"] == "page"
    assert event["userId"] == "u-9"
    assert event["context"]["page"]["url"] == "https://segment.com/academy/"
    assert event["messageId"] != create_test_event()["messageId"]


@pytest.mark.asyncio
async def test_action_records_requests_and_responses():
    integration = create_test_integration(
        DEFINITION, handler=lambda request: httpx.Response(201, json={"accepted": True})
    )
    responses = await integration.test_action(
        "trackPageView",
        mapping={"url": {"@path": "$.context.page.url"}},
        settings={"apiKey": "k"},
    )

    assert [r.status_code for r in responses] == [201]
    assert responses[0].json() == {"accepted": True}
    (request,) = integration.requests
    assert request.headers["x-api-key"] == "k"
    assert json.loads(request.content) == {"url": "https://segment.com/academy/"}
    assert integration.results[-1].output == {"status": 201, "body": {"accepted": True}}


@pytest.mark.asyncio
async def test_reset_clears_history():
    integration = create_test_integration(DEFINITION)
    event = create_test_event(type="page")
    await integration.test_action("trackPageView", event=event, mapping={"url": "https://x.test"})
    await integration.test_action("trackPageView", event=event, mapping={"url": "https://x.test"})
    assert len(integration.responses) == 2

    integration.reset()
    assert integration.requests == []
    assert integration.responses == []
    assert integration.results == []


@pytest.mark.asyncio
async def test_action_errors_propagate():
    integration = create_test_integration(DEFINITION, handler=lambda request: httpx.Response(500))
    with pytest.raises(RequestError):
        await integration.test_action("trackPageView", mapping={"url": "https://x.test"})
    assert len(integration.responses) == 1


@pytest.mark.asyncio
async def test_unknown_action():
    integration = create_test_integration(DEFINITION)
    with pytest.raises(UnknownActionError):
        await integration.test_action("nope")
