"""Client identity resolution from proxy headers."""

from __future__ import annotations

from typing import Mapping

FORWARDED_HEADERS = ("x-forwarded-for", "x-real-ip")
UNKNOWN_CLIENT = "unknown"


def resolve_client_identifier(headers: Mapping[str, str]) -> str:
    """Return the originating client address, or ``"unknown"``.

    Only the first hop of a comma separated forwarded list is used.
    """

    lowered = {key.lower(): value for key, value in headers.items()}
    for name in FORWARDED_HEADERS:
        value = lowered.get(name)
        if not value:
            continue
        first = value.split(",", 1)[0].strip()
        if first:
            return first
    return UNKNOWN_CLIENT


__all__ = ["resolve_client_identifier", "FORWARDED_HEADERS", "UNKNOWN_CLIENT"]
