"""
Request signature verification for the authenticated relay route.

Clients sign ``hwid + str(timestamp) + shared_secret`` with SHA-256 and send
the hex digest. The server recomputes it and compares in constant time.
"""

import hashlib
import hmac
import time
from typing import Optional, Union

from shared.errors import AuthenticationError
from shared.logging import get_logger

DEFAULT_TOLERANCE_SECONDS = 30

logger = get_logger("relay.signature")


def compute_signature(hwid: str, timestamp: Union[int, str], secret: str) -> str:
    """Return the hex SHA-256 digest clients are expected to send."""
    raw = f"{hwid}{timestamp}{secret}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def verify_signature(hwid: str, timestamp: Union[int, str], signature: str, secret: str) -> bool:
    """Check ``signature`` against the expected digest.

    Never raises on malformed input; anything that is not the exact expected
    digest is a failed comparison.
    """
    if not isinstance(signature, str):
        return False
    expected = compute_signature(hwid, timestamp, secret)
    # compare_digest only accepts ASCII str, so compare bytes
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def is_fresh(timestamp: int, now: Optional[float] = None, tolerance: int = DEFAULT_TOLERANCE_SECONDS) -> bool:
    """True when ``timestamp`` is within ``tolerance`` seconds of ``now`` (inclusive)."""
    if now is None:
        now = time.time()
    return abs(int(now) - int(timestamp)) <= tolerance


class SignatureVerifier:
    """Freshness and signature checks bound to the server's shared secret."""

    def __init__(self, shared_secret: str, tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS):
        self.shared_secret = shared_secret
        self.tolerance_seconds = tolerance_seconds

    def verify(self, hwid: str, timestamp: int, signature: str, now: Optional[float] = None) -> None:
        """Raise AuthenticationError unless the request is fresh and correctly signed."""
        if now is None:
            now = time.time()

        if not is_fresh(timestamp, now, self.tolerance_seconds):
            logger.warning("Stale request timestamp", hwid=hwid, timestamp=timestamp, skew=int(now) - int(timestamp))
            raise AuthenticationError("Timestamp out of sync")

        if not verify_signature(hwid, str(timestamp), signature, self.shared_secret):
            logger.warning("Signature mismatch", hwid=hwid)
            raise AuthenticationError("Invalid signature")
