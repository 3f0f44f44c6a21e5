"""
Destination Registry.

Destinations are registered once at startup and the registry is handed to
whatever serves events (the FastAPI app, a worker, a test). There is no
module-level registry.

Usage:
    registry = DestinationRegistry()
    registry.register(Destination(acme_definition))

    destination = registry.get_required("acme")
    results = await destination.on_event(context, event, settings)
"""

from __future__ import annotations

import logging

from destkit.errors import DestinationNotFoundError

from .definition import DestinationDefinition
from .runtime import Destination

logger = logging.getLogger(__name__)


class DestinationRegistry:
    """Registry of loaded destinations, keyed by slug."""

    def __init__(self) -> None:
        self._destinations: dict[str, Destination] = {}

    def register(self, destination: Destination | DestinationDefinition) -> Destination:
        """
        Register a destination (a bare definition is wrapped in a Destination).

        Raises:
            ValueError: If the slug is empty or already registered
        """
        if isinstance(destination, DestinationDefinition):
            destination = Destination(destination)

        slug = destination.slug
        if not slug:
            raise ValueError(f"Destination must have a slug or name: {destination}")
        if slug in self._destinations:
            raise ValueError(f"Destination '{slug}' already registered. Use a unique slug or unregister first.")

        self._destinations[slug] = destination
        logger.info(f"[destination_registry] Registered destination: {slug}")
        return destination

    def unregister(self, slug: str) -> bool:
        if slug in self._destinations:
            del self._destinations[slug]
            logger.info(f"[destination_registry] Unregistered destination: {slug}")
            return True
        return False

    def get(self, slug: str) -> Destination | None:
        return self._destinations.get(slug)

    def get_required(self, slug: str) -> Destination:
        """
        Get a destination by slug, raising if not found.

        Raises:
            DestinationNotFoundError: If slug is not registered
        """
        destination = self._destinations.get(slug)
        if destination is None:
            raise DestinationNotFoundError(slug, self.list_names())
        return destination

    def list_destinations(self) -> list[Destination]:
        return list(self._destinations.values())

    def list_names(self) -> list[str]:
        return list(self._destinations.keys())

    def __len__(self) -> int:
        return len(self._destinations)

    def __contains__(self, slug: str) -> bool:
        return slug in self._destinations

    def __repr__(self) -> str:
        return f"<DestinationRegistry destinations={self.list_names()}>"
