"""
Domain logic for the relay.

Each admission stage lives in its own module so it can be tested without a
request object; ``relay`` chains them per route.
"""

from .identity import extract_client_ip
from .relay import RelayResult, WebhookRelay, make_identifier
from .signature import SignatureVerifier, compute_signature, verify_signature

__all__ = [
    "extract_client_ip",
    "RelayResult",
    "WebhookRelay",
    "make_identifier",
    "SignatureVerifier",
    "compute_signature",
    "verify_signature",
]
