"""
Request options and extension composition.

A request extension reads the ExecuteInput (usually its settings) and
returns partial request options, for example an Authorization header built
from settings["apiKey"]. Extensions are folded left to right; later ones
override what earlier ones set.

Merge rules:
    - headers and params are merged per key
    - a header or param set to None removes it
    - scalar options are replaced by any later value that is not None
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from destkit.actions.input import ExecuteInput

_ALIASES = {
    "base_url": "base_url",
    "baseUrl": "base_url",
    "prefixUrl": "base_url",
    "headers": "headers",
    "params": "params",
    "searchParams": "params",
    "timeout": "timeout",
    "follow_redirects": "follow_redirects",
    "followRedirect": "follow_redirects",
    "throw_http_errors": "throw_http_errors",
    "throwHttpErrors": "throw_http_errors",
}


@dataclass(frozen=True)
class RequestOptions:
    """Partial or complete configuration for outgoing requests."""

    base_url: str | None = None
    headers: dict[str, str | None] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    timeout: float | None = None
    follow_redirects: bool | None = None
    throw_http_errors: bool | None = None

    @classmethod
    def from_value(cls, value: RequestOptions | Mapping[str, Any] | None) -> RequestOptions:
        """
        Coerce an extension's return value to RequestOptions.

        Raises:
            ValueError: If a dict contains unknown option names
        """
        if value is None:
            return cls()
        if isinstance(value, RequestOptions):
            return value
        if not isinstance(value, Mapping):
            raise ValueError(
                f"Request extensions must return a dict or RequestOptions, got {type(value).__name__}"
            )

        kwargs: dict[str, Any] = {}
        for key, option in value.items():
            name = _ALIASES.get(key)
            if name is None:
                raise ValueError(f"Unknown request option {key!r}")
            kwargs[name] = dict(option) if name in ("headers", "params") else option
        return cls(**kwargs)

    def merge(self, other: RequestOptions) -> RequestOptions:
        """Options with `other` layered on top of self."""
        return RequestOptions(
            base_url=other.base_url if other.base_url is not None else self.base_url,
            headers=_merge_dicts(self.headers, other.headers),
            params=_merge_dicts(self.params, other.params),
            timeout=other.timeout if other.timeout is not None else self.timeout,
            follow_redirects=(
                other.follow_redirects if other.follow_redirects is not None else self.follow_redirects
            ),
            throw_http_errors=(
                other.throw_http_errors if other.throw_http_errors is not None else self.throw_http_errors
            ),
        )

    @property
    def resolved_headers(self) -> dict[str, str]:
        return {k: v for k, v in self.headers.items() if v is not None}

    @property
    def resolved_params(self) -> dict[str, Any]:
        return {k: v for k, v in self.params.items() if v is not None}


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    # Header names are case-insensitive; a later "authorization" replaces "Authorization"
    merged = dict(base)
    for key, value in override.items():
        for existing in [k for k in merged if k.lower() == key.lower()]:
            del merged[existing]
        merged[key] = value
    return {k: v for k, v in merged.items() if v is not None}


RequestExtension = Callable[["ExecuteInput"], Union[RequestOptions, Mapping[str, Any], None]]


def compose_request_options(
    base: RequestOptions,
    extensions: Iterable[RequestExtension],
    data: ExecuteInput,
) -> RequestOptions:
    """Fold extensions left to right over base."""
    options = base
    for extension in extensions:
        options = options.merge(RequestOptions.from_value(extension(data)))
    return options
