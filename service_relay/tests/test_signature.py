"""
Unit tests for request signature verification.
"""

import hashlib

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_relay.app.domain.signature import (
    SignatureVerifier,
    compute_signature,
    is_fresh,
    verify_signature,
)
from shared.errors import AuthenticationError

SECRET = "s3cret"
HWID = "HWID-1234"
NOW = 1_700_000_000


class TestSignature:
    """Test cases for compute_signature / verify_signature."""

    def test_compute_signature_is_sha256_of_concatenation(self):
        expected = hashlib.sha256(f"{HWID}{NOW}{SECRET}".encode()).hexdigest()
        assert compute_signature(HWID, NOW, SECRET) == expected
        assert compute_signature(HWID, str(NOW), SECRET) == expected

    def test_valid_signature(self):
        signature = compute_signature(HWID, NOW, SECRET)
        assert verify_signature(HWID, str(NOW), signature, SECRET) is True

    def test_every_single_character_tamper_is_rejected(self):
        signature = compute_signature(HWID, NOW, SECRET)
        for i, ch in enumerate(signature):
            replacement = "0" if ch != "0" else "1"
            tampered = signature[:i] + replacement + signature[i + 1:]
            assert verify_signature(HWID, str(NOW), tampered, SECRET) is False

    @pytest.mark.parametrize("bad", ["", "abc", "zz" * 32, "é" * 64, "0" * 65])
    def test_malformed_signature_does_not_raise(self, bad):
        assert verify_signature(HWID, str(NOW), bad, SECRET) is False

    def test_non_string_signature(self):
        assert verify_signature(HWID, str(NOW), None, SECRET) is False

    def test_uppercase_hex_is_rejected(self):
        signature = compute_signature(HWID, NOW, SECRET).upper()
        assert verify_signature(HWID, str(NOW), signature, SECRET) is False

    def test_wrong_secret(self):
        signature = compute_signature(HWID, NOW, "other")
        assert verify_signature(HWID, str(NOW), signature, SECRET) is False


class TestFreshness:
    """Test cases for is_fresh."""

    @pytest.mark.parametrize("skew", [0, 1, 29, 30, -30])
    def test_within_tolerance(self, skew):
        assert is_fresh(NOW + skew, now=NOW) is True

    @pytest.mark.parametrize("skew", [31, -31, 3600])
    def test_outside_tolerance(self, skew):
        assert is_fresh(NOW + skew, now=NOW) is False

    def test_fractional_now_is_truncated(self):
        assert is_fresh(NOW - 30, now=NOW + 0.999) is True


class TestSignatureVerifier:
    """Test cases for SignatureVerifier."""

    @pytest.fixture
    def verifier(self):
        return SignatureVerifier(SECRET)

    def test_accepts_fresh_signed_request(self, verifier):
        signature = compute_signature(HWID, NOW, SECRET)
        verifier.verify(HWID, NOW, signature, now=NOW + 30)

    def test_rejects_stale_request(self, verifier):
        signature = compute_signature(HWID, NOW, SECRET)
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(HWID, NOW, signature, now=NOW + 31)
        assert exc_info.value.message == "Timestamp out of sync"
        assert exc_info.value.status_code == 401

    def test_rejects_bad_signature(self, verifier):
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(HWID, NOW, "deadbeef", now=NOW)
        assert exc_info.value.message == "Invalid signature"

    def test_staleness_checked_before_signature(self, verifier):
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(HWID, NOW, "deadbeef", now=NOW + 100)
        assert exc_info.value.message == "Timestamp out of sync"

    def test_custom_tolerance(self):
        verifier = SignatureVerifier(SECRET, tolerance_seconds=5)
        signature = compute_signature(HWID, NOW, SECRET)
        with pytest.raises(AuthenticationError):
            verifier.verify(HWID, NOW, signature, now=NOW + 6)
