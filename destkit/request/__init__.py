"""
Request Extension Chain.

Composes destination-level request extensions into one httpx-backed client
per use.
"""

from .client import (
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    RequestClient,
    RequestFactory,
    ResponseHook,
    response_to_output,
)
from .options import RequestExtension, RequestOptions, compose_request_options

__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "RequestClient",
    "RequestExtension",
    "RequestFactory",
    "RequestOptions",
    "ResponseHook",
    "compose_request_options",
    "response_to_output",
]
