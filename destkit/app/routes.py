"""
Destination routes.

    POST /v1/destinations/{slug}/events
    POST /v1/destinations/{slug}/authentication
    POST /v1/destinations/{slug}/actions/{action}/fields/{field}/autocomplete

Every events request gets its own Context; the context is logged and its
metrics sent once the request is done, whether it succeeded or not.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from destkit.context import Context
from destkit.destination import DestinationRegistry
from destkit.errors import error_status
from destkit.observability import LogLevel
from destkit.utils import duration, time

from .dependencies import get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/destinations", tags=["destinations"])


# =============================================================================
# Request Models
# =============================================================================


class EventRequest(BaseModel):
    event: dict[str, Any]
    settings: dict[str, Any] = Field(default_factory=dict)
    private_settings: list[str] = Field(default_factory=list)


class AuthenticationRequest(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)


class AutocompleteRequest(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)
    payload: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Routes
# =============================================================================


@router.get("")
async def list_destinations(registry: DestinationRegistry = Depends(get_registry)) -> dict[str, Any]:
    return {
        "destinations": [
            {"slug": d.slug, "name": d.name, "actions": list(d.actions)}
            for d in registry.list_destinations()
        ]
    }


@router.post("/{slug}/events")
async def handle_event(
    slug: str,
    body: EventRequest,
    request: Request,
    registry: DestinationRegistry = Depends(get_registry),
) -> dict[str, Any]:
    context = Context()
    context.set("http_req_method", request.method)
    context.set("http_req_path", request.url.path)
    context.set("http_req_headers", dict(request.headers))
    context.set("http_req_ip", request.client.host if request.client else None)
    context.set("req_route", "/v1/destinations/:slug/events")
    context.set("req_destination", slug)

    started_at = time()
    try:
        destination = registry.get_required(slug)
        results = await destination.on_event(context, body.event, body.settings, body.private_settings)
    except Exception as e:
        context.set("error", e)
        context.set("http_res_status", error_status(e))
        raise
    else:
        context.set("http_res_status", 200)
    finally:
        context.set("req_duration", duration(started_at, time()))
        level = LogLevel.ERROR if context.get_error() is not None else LogLevel.INFO
        context.log(level, "Event handled")
        context.send_metrics()

    return {"results": [result.to_dict() for result in results]}


@router.post("/{slug}/authentication")
async def test_authentication(
    slug: str,
    body: AuthenticationRequest,
    registry: DestinationRegistry = Depends(get_registry),
) -> dict[str, Any]:
    destination = registry.get_required(slug)
    await destination.test_credentials(body.settings)
    return {"ok": True}


@router.post("/{slug}/actions/{action}/fields/{field}/autocomplete")
async def autocomplete_field(
    slug: str,
    action: str,
    field: str,
    body: AutocompleteRequest,
    registry: DestinationRegistry = Depends(get_registry),
) -> dict[str, Any]:
    destination = registry.get_required(slug)
    response = await destination.autocomplete(action, field, body.settings, body.payload)
    return response.to_dict()
