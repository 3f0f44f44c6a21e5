"""
Tests for request options, extension composition and the request client.
"""
import json

import httpx
import pytest

from destkit.actions import ExecuteInput
from destkit.errors import RequestError
from destkit.request import (
    DEFAULT_USER_AGENT,
    RequestClient,
    RequestFactory,
    RequestOptions,
    compose_request_options,
    response_to_output,
)


def bearer_auth(data):
    return {"headers": {"Authorization": f"Bearer {data.settings['apiKey']}"}}


def api_base(data):
    return {"prefixUrl": "https://api.acme.test/v3/"}


# =============================================================================
# Options
# =============================================================================


class TestRequestOptions:
    """Tests for option coercion and merging."""

    def test_from_value_aliases(self):
        options = RequestOptions.from_value(
            {"baseUrl": "https://x.test", "searchParams": {"a": 1}, "throwHttpErrors": False}
        )
        assert options.base_url == "https://x.test"
        assert options.params == {"a": 1}
        assert options.throw_http_errors is False

    def test_from_value_none(self):
        assert RequestOptions.from_value(None) == RequestOptions()

    def test_from_value_rejects_unknown_keys(self):
        with pytest.raises(ValueError):
            RequestOptions.from_value({"retries": 3})

    def test_from_value_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            RequestOptions.from_value("headers")

    def test_merge_later_wins(self):
        merged = RequestOptions(timeout=5, headers={"A": "1"}).merge(
            RequestOptions(timeout=2, headers={"B": "2"})
        )
        assert merged.timeout == 2
        assert merged.headers == {"A": "1", "B": "2"}

    def test_merge_headers_case_insensitive(self):
        merged = RequestOptions(headers={"Authorization": "old"}).merge(
            RequestOptions(headers={"authorization": "new"})
        )
        assert merged.headers == {"authorization": "new"}

    def test_none_removes_header(self):
        merged = RequestOptions(headers={"User-Agent": "x", "A": "1"}).merge(
            RequestOptions(headers={"user-agent": None})
        )
        assert merged.headers == {"A": "1"}

    def test_compose_folds_left_to_right(self):
        data = ExecuteInput(payload={}, settings={"apiKey": "secret"})

        def override(data):
            return RequestOptions(headers={"Authorization": "Basic other"})

        options = compose_request_options(RequestOptions(), [bearer_auth, api_base, override], data)
        assert options.headers == {"Authorization": "Basic other"}
        assert options.base_url == "https://api.acme.test/v3/"

    def test_extensions_see_settings(self):
        data = ExecuteInput(payload={}, settings={"apiKey": "k1"})
        factory = RequestFactory(extensions=(bearer_auth,))
        options = factory.options_for(data)
        assert options.headers["Authorization"] == "Bearer k1"
        assert options.headers["User-Agent"] == DEFAULT_USER_AGENT


# =============================================================================
# Client
# =============================================================================


class TestRequestClient:
    """Tests for the httpx-backed client."""

    @pytest.mark.asyncio
    async def test_sends_composed_options(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": 7})

        factory = RequestFactory(
            extensions=(bearer_auth, api_base),
            transport=httpx.MockTransport(handler),
        )
        data = ExecuteInput(payload={}, settings={"apiKey": "secret"})

        async with factory.client(data) as request:
            response = await request.post("contacts", json={"email": "a@b.c"})

        assert response.json() == {"id": 7}
        assert str(seen[0].url) == "https://api.acme.test/v3/contacts"
        assert seen[0].method == "POST"
        assert seen[0].headers["authorization"] == "Bearer secret"
        assert json.loads(seen[0].content) == {"email": "a@b.c"}

    @pytest.mark.asyncio
    async def test_callable_form(self):
        def handler(request):
            return httpx.Response(204)

        client = RequestClient(RequestOptions(), transport=httpx.MockTransport(handler))
        async with client:
            response = await client("https://x.test/ping", method="delete")
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(404, json={"error": "missing"})

        client = RequestClient(RequestOptions(), transport=httpx.MockTransport(handler))
        async with client:
            with pytest.raises(RequestError) as exc_info:
                await client.get("https://x.test/missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.status == 404
        assert exc_info.value.response.json() == {"error": "missing"}

    @pytest.mark.asyncio
    async def test_throw_http_errors_disabled(self):
        def handler(request):
            return httpx.Response(500)

        client = RequestClient(
            RequestOptions(throw_http_errors=False), transport=httpx.MockTransport(handler)
        )
        async with client:
            response = await client.get("https://x.test/")
        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = RequestClient(RequestOptions(), transport=httpx.MockTransport(handler))
        async with client:
            with pytest.raises(httpx.ConnectError):
                await client.get("https://x.test/")

    @pytest.mark.asyncio
    async def test_response_hooks_run(self):
        seen = []

        async def hook(response):
            seen.append(response.status_code)

        client = RequestClient(
            RequestOptions(),
            transport=httpx.MockTransport(lambda request: httpx.Response(201)),
            response_hooks=[hook],
        )
        async with client:
            await client.put("https://x.test/")
        assert seen == [201]

    def test_with_base_overrides(self):
        factory = RequestFactory().with_base(timeout=3.0, headers={"User-Agent": None})
        assert factory.base.timeout == 3.0
        assert "User-Agent" not in factory.base.headers


def test_response_to_output():
    assert response_to_output(httpx.Response(200, json={"a": 1})) == {"status": 200, "body": {"a": 1}}
    assert response_to_output(httpx.Response(202, text="queued")) == {"status": 202, "body": "queued"}
