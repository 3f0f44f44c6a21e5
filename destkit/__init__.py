"""
destkit - routes analytics events to partner destination actions.

Each event is matched against the subscriptions embedded in a
destination's settings; every matching subscription maps the event into a
partner payload and runs it through its action's step pipeline.

- **Subscriptions**: predicate language deciding which actions fire
- **Mapping**: directive-based templates turning events into payloads
- **Actions**: immutable pipelines of validate / cached request / request steps
- **Destinations**: fan-out runtime with error isolation and instrumentation

Quick Start:
    >>> from destkit import ActionDefinition, Destination, DestinationDefinition, NoopContext
    >>>
    >>> destination = Destination(DestinationDefinition(
    ...     name="Acme",
    ...     actions={"track": ActionDefinition(
    ...         title="Track",
    ...         description="Send a track event",
    ...         perform=lambda request, data: request.post("https://api.acme.test/track", json=data.payload),
    ...     )},
    ... ))
    >>> results = await destination.on_event(NoopContext(), event, settings)
"""

__version__ = "0.1.0"

# Core exports for convenient imports
from destkit.actions import Action, ActionBuilder, ActionDefinition, ExecuteInput, StepResult
from destkit.context import Context, NoopContext
from destkit.destination import Authentication, Destination, DestinationDefinition, DestinationRegistry
from destkit.errors import DestinationError
from destkit.mapping import transform
from destkit.subscriptions import matches

__all__ = [
    # Version info
    "__version__",
    # Actions
    "Action",
    "ActionBuilder",
    "ActionDefinition",
    "ExecuteInput",
    "StepResult",
    # Runtime
    "Authentication",
    "Context",
    "Destination",
    "DestinationDefinition",
    "DestinationRegistry",
    "DestinationError",
    "NoopContext",
    # Core functions
    "matches",
    "transform",
]
