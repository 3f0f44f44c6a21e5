"""
Destination Runtime.

Definitions describe a partner integration; a Destination compiles one
into immutable actions and runs events through them.
"""

from .definition import ActionSpec, Authentication, DestinationDefinition
from .redact import REDACTED, redact_settings
from .registry import DestinationRegistry
from .runtime import CREDENTIAL_TEST_TIMEOUT, Destination

__all__ = [
    "CREDENTIAL_TEST_TIMEOUT",
    "REDACTED",
    "ActionSpec",
    "Authentication",
    "Destination",
    "DestinationDefinition",
    "DestinationRegistry",
    "redact_settings",
]
