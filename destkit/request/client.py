"""
Request client handed to RequestStep and CachedRequestStep functions.

Wraps an httpx.AsyncClient configured from composed RequestOptions. There
is no retry here: a failed call surfaces immediately and retry policy
belongs to the caller.

Error mapping:
    - Non-2xx responses raise RequestError when throw_http_errors is on
    - httpx.TransportError (timeouts, connection failures) propagates as-is

Usage inside an action:
    async def perform(request, data):
        return await request.post("/v3/track", json=data.payload)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

import httpx

from destkit.errors import RequestError

from .options import RequestExtension, RequestOptions, compose_request_options

if TYPE_CHECKING:
    from destkit.actions.input import ExecuteInput

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "destkit/0.1.0"

ResponseHook = Callable[[httpx.Response], Awaitable[None]]


class RequestClient:
    """
    HTTP client bound to one set of composed options.

    Callable like a function (`await request(url, method="post", json=...)`)
    or through the verb helpers (`await request.post(url, json=...)`).
    """

    def __init__(
        self,
        options: RequestOptions,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        response_hooks: Iterable[ResponseHook] = (),
    ):
        self.options = options
        self._transport = transport
        self._response_hooks = list(response_hooks)
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.options.base_url or "",
                headers=self.options.resolved_headers,
                params=self.options.resolved_params,
                timeout=self.options.timeout if self.options.timeout is not None else DEFAULT_TIMEOUT,
                follow_redirects=bool(self.options.follow_redirects),
                transport=self._transport,
                event_hooks={"response": list(self._response_hooks)},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> RequestClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        content: str | bytes | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """
        Send one request.

        Raises:
            RequestError: For non-success statuses (unless throw_http_errors is False)
            httpx.TransportError: For network failures, unmodified
        """
        client = self._get_client()
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        response = await client.request(
            method.upper(),
            url,
            json=json,
            data=data,
            content=content,
            params=params,
            headers=headers,
            **kwargs,
        )
        logger.debug(f"[request] {method.upper()} {response.request.url} -> {response.status_code}")

        if self.options.throw_http_errors is not False and not response.is_success:
            raise RequestError(
                f"{method.upper()} {response.request.url} failed with status {response.status_code}",
                status_code=response.status_code,
                response=response,
            )
        return response

    async def __call__(self, url: str, method: str = "get", **kwargs: Any) -> httpx.Response:
        return await self.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    def __repr__(self) -> str:
        return f"RequestClient(base_url={self.options.base_url!r})"


@dataclass(frozen=True)
class RequestFactory:
    """
    Builds RequestClients for one action invocation.

    Owns the destination's extensions (fixed when the action is built),
    the base options, and the transport/hooks injected by the runtime.
    """

    extensions: tuple[RequestExtension, ...] = ()
    base: RequestOptions = field(
        default_factory=lambda: RequestOptions(
            headers={"User-Agent": DEFAULT_USER_AGENT},
            timeout=DEFAULT_TIMEOUT,
        )
    )
    transport: httpx.AsyncBaseTransport | None = None
    response_hooks: tuple[ResponseHook, ...] = ()

    def options_for(self, data: ExecuteInput) -> RequestOptions:
        return compose_request_options(self.base, self.extensions, data)

    def client(self, data: ExecuteInput) -> RequestClient:
        return RequestClient(
            self.options_for(data),
            transport=self.transport,
            response_hooks=self.response_hooks,
        )

    def with_base(self, **overrides: Any) -> RequestFactory:
        """Factory whose base options have the given fields overridden."""
        return replace(self, base=self.base.merge(RequestOptions(**overrides)))


def response_to_output(response: httpx.Response) -> dict[str, Any]:
    """Summarize a response as a JSON-serializable StepResult output."""
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    return {"status": response.status_code, "body": body}
