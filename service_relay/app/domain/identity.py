"""
Client identity extraction.
"""

from typing import Mapping, Optional

UNKNOWN_IDENTITY = "unknown"


def extract_client_ip(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """Derive the caller IP used as the rate-limit key.

    Preference order: first entry of ``X-Forwarded-For``, then ``X-Real-IP``,
    then the transport peer address, then ``"unknown"``. The value is an opaque
    key and is not checked for IP syntax.

    ``headers`` may be a Starlette ``Headers`` (case-insensitive already) or any
    plain mapping; plain mappings are searched case-insensitively.
    """
    forwarded_for = get_header(headers, "x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = get_header(headers, "x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if peer:
        return peer

    return UNKNOWN_IDENTITY


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup that also works on plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None
