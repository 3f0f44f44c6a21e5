"""Settings redaction for instrumentation records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "***"


def redact_settings(
    settings: Mapping[str, Any],
    private_settings: Iterable[str],
    placeholder: str = REDACTED,
) -> dict[str, Any]:
    """
    Copy of settings with every private key that is present replaced.

    Keys listed as private but absent from settings are not added.
    """
    private = set(private_settings)
    return {
        key: placeholder if key in private else value
        for key, value in settings.items()
    }
