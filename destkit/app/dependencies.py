"""
Dependency Injection for destkit.

The destination registry is built once, from the modules listed in
DESTKIT_DESTINATION_MODULES. Each module must expose a `destination`
attribute holding a DestinationDefinition.

Routes depend on get_registry() through FastAPI's Depends, so tests can
swap the registry with app.dependency_overrides.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable
from typing import Optional

from destkit.config import AppSettings, get_settings
from destkit.destination import Destination, DestinationDefinition, DestinationRegistry
from destkit.request import RequestFactory, RequestOptions

logger = logging.getLogger(__name__)

# Global instance (initialized on first access)
_registry: Optional[DestinationRegistry] = None


def create_request_factory(settings: AppSettings) -> RequestFactory:
    return RequestFactory(
        base=RequestOptions(
            headers={"User-Agent": settings.user_agent},
            timeout=settings.request_timeout,
        )
    )


def load_definition(module_path: str) -> DestinationDefinition:
    """
    Import a destination module and return its definition.

    Raises:
        ImportError: If the module cannot be imported
        TypeError: If the module has no DestinationDefinition named `destination`
    """
    module = importlib.import_module(module_path)
    definition = getattr(module, "destination", None)
    if not isinstance(definition, DestinationDefinition):
        raise TypeError(f"Module {module_path!r} does not expose a DestinationDefinition as `destination`")
    return definition


def build_registry(module_paths: Iterable[str], settings: AppSettings) -> DestinationRegistry:
    registry = DestinationRegistry()
    requests = create_request_factory(settings)

    for module_path in module_paths:
        definition = load_definition(module_path)
        registry.register(
            Destination(
                definition,
                requests=requests,
                redaction_placeholder=settings.redaction_placeholder,
                credential_test_timeout=settings.credential_test_timeout,
            )
        )

    logger.info(f"[registry] Loaded {len(registry)} destination(s): {registry.list_names()}")
    return registry


def get_registry() -> DestinationRegistry:
    """Get the destination registry, building it on first call."""
    global _registry
    if _registry is None:
        settings = get_settings()
        _registry = build_registry(settings.destination_modules, settings)
    return _registry


def set_registry(registry: Optional[DestinationRegistry]) -> None:
    """Replace (or with None, reset) the process-wide registry."""
    global _registry
    _registry = registry
