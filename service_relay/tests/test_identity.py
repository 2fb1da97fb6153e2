"""
Unit tests for client identity extraction.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_relay.app.domain.identity import UNKNOWN_IDENTITY, extract_client_ip, get_header


class TestExtractClientIp:
    """Test cases for extract_client_ip."""

    def test_forwarded_for_first_entry(self):
        """First X-Forwarded-For hop wins."""
        headers = {"x-forwarded-for": "1.2.3.4, 5.6.7.8"}
        assert extract_client_ip(headers, "10.0.0.1") == "1.2.3.4"

    def test_forwarded_for_is_trimmed(self):
        headers = {"x-forwarded-for": "   9.9.9.9   ,10.0.0.2"}
        assert extract_client_ip(headers) == "9.9.9.9"

    def test_header_lookup_is_case_insensitive(self):
        headers = {"X-Forwarded-For": "1.2.3.4", "X-Real-IP": "5.6.7.8"}
        assert extract_client_ip(headers) == "1.2.3.4"

    def test_real_ip_when_no_forwarded_for(self):
        headers = {"X-Real-IP": "5.6.7.8"}
        assert extract_client_ip(headers, "10.0.0.1") == "5.6.7.8"

    def test_blank_forwarded_for_falls_through(self):
        headers = {"x-forwarded-for": " , 5.6.7.8", "x-real-ip": "7.7.7.7"}
        assert extract_client_ip(headers) == "7.7.7.7"

    def test_peer_address_fallback(self):
        assert extract_client_ip({}, "10.0.0.1") == "10.0.0.1"

    def test_unknown_sentinel(self):
        """Identity is never empty."""
        assert extract_client_ip({}, None) == UNKNOWN_IDENTITY
        assert extract_client_ip({"x-real-ip": "  "}, "") == "unknown"

    def test_value_is_not_validated_as_ip(self):
        headers = {"x-forwarded-for": "not-an-ip"}
        assert extract_client_ip(headers) == "not-an-ip"


class TestGetHeader:
    """Test cases for get_header."""

    @pytest.mark.parametrize("key", ["x-client-key", "X-Client-Key", "X-CLIENT-KEY"])
    def test_any_case(self, key):
        assert get_header({key: "abc"}, "x-client-key") == "abc"

    def test_missing(self):
        assert get_header({"other": "x"}, "x-client-key") is None
