"""
Unit tests for the Discord webhook client.
"""

import asyncio

import pytest
import httpx
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_relay.app.adapters.discord_client import DiscordWebhookClient
from shared.errors import InternalError, UpstreamRejectedError, UpstreamTimeoutError
from shared.test_helpers import TEST_WEBHOOK_URL


def _response(status_code: int, text: str = "") -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        content=text,
        request=httpx.Request("POST", TEST_WEBHOOK_URL),
    )


class TestDiscordWebhookClient:
    """Test cases for DiscordWebhookClient."""

    @pytest.fixture
    def discord_client(self):
        """Create DiscordWebhookClient instance."""
        return DiscordWebhookClient(TEST_WEBHOOK_URL, timeout=10.0, user_agent="Test-Relay/1.0")

    @pytest.mark.asyncio
    async def test_send_success(self, discord_client):
        with patch('httpx.AsyncClient') as mock_client:
            post = AsyncMock(return_value=_response(204))
            mock_client.return_value.__aenter__.return_value.post = post

            status = await discord_client.send({"content": "hello"})

        assert status == 204
        post.assert_called_once_with(
            TEST_WEBHOOK_URL,
            json={"content": "hello"},
            headers={"Content-Type": "application/json", "User-Agent": "Test-Relay/1.0"},
        )

    @pytest.mark.asyncio
    async def test_send_sets_timeout(self, discord_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(return_value=_response(200))

            await discord_client.send({"content": "hello"})

        timeout = mock_client.call_args.kwargs["timeout"]
        assert timeout.read == 10.0

    @pytest.mark.asyncio
    async def test_upstream_rejection_carries_body(self, discord_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=_response(400, '{"message": "Invalid Form Body", "code": 50035}')
            )

            with pytest.raises(UpstreamRejectedError) as exc_info:
                await discord_client.send({"content": "hello"})

        error = exc_info.value
        assert error.status_code == 500
        assert error.upstream_status == 400
        assert "Invalid Form Body" in error.details
        assert error.extra == {"status": 400}

    @pytest.mark.asyncio
    async def test_upstream_status_propagated(self, discord_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=_response(404, '{"message": "Unknown Webhook"}')
            )

            with pytest.raises(UpstreamRejectedError) as exc_info:
                await discord_client.send({"content": "hello"}, propagate_status=True)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_httpx_timeout_maps_to_upstream_timeout(self, discord_client):
        with patch('httpx.AsyncClient') as mock_client:
            post = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))
            mock_client.return_value.__aenter__.return_value.post = post

            with pytest.raises(UpstreamTimeoutError) as exc_info:
                await discord_client.send({"content": "hello"})

        assert exc_info.value.status_code == 408
        # No retry
        assert post.await_count == 1

    @pytest.mark.asyncio
    async def test_overall_deadline(self):
        """A post that never answers is cancelled at the deadline."""
        discord_client = DiscordWebhookClient(TEST_WEBHOOK_URL, timeout=0.05)

        async def _hang(*args, **kwargs):
            await asyncio.sleep(5)

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = _hang

            with pytest.raises(UpstreamTimeoutError):
                await discord_client.send({"content": "hello"})

            # Client context was exited, releasing its connections
            mock_client.return_value.__aexit__.assert_called_once()

    @pytest.mark.asyncio
    async def test_network_error_maps_to_internal_error(self, discord_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(InternalError) as exc_info:
                await discord_client.send({"content": "hello"})

        assert exc_info.value.message == "Error forwarding to Discord"
        assert "connection refused" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_unexpected_error_maps_to_internal_error(self, discord_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(side_effect=RuntimeError("boom"))

            with pytest.raises(InternalError):
                await discord_client.send({"content": "hello"})
