"""
Discord incoming-webhook client for the relay.
"""

import asyncio
from typing import Any, Dict

import httpx

from shared.logging import get_logger
from shared.errors import InternalError, UpstreamRejectedError, UpstreamTimeoutError

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "Webhook-Relay/1.0"


class DiscordWebhookClient:
    """Posts one JSON message to a webhook URL. No retries."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.user_agent = user_agent
        self.logger = get_logger("relay.discord_client")

    async def send(self, payload: Dict[str, Any], propagate_status: bool = False) -> int:
        """Forward ``payload`` and return the upstream status code.

        Raises UpstreamTimeoutError when the call outlives ``timeout``,
        UpstreamRejectedError on a non-2xx answer and InternalError for any
        other failure.
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }

        try:
            # The client context closes sockets even when wait_for cancels the post
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                response = await asyncio.wait_for(
                    client.post(self.webhook_url, json=payload, headers=headers),
                    timeout=self.timeout,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            self.logger.error("Discord request timed out", timeout=self.timeout)
            raise UpstreamTimeoutError(details=f"No response within {self.timeout}s") from e
        except httpx.HTTPError as e:
            self.logger.error("Discord request failed", error=str(e))
            raise InternalError("Error forwarding to Discord", details=str(e)) from e
        except Exception as e:
            self.logger.error("Discord client error", error=str(e), exc_info=True)
            raise InternalError("Error forwarding to Discord", details=str(e)) from e

        if response.is_success:
            self.logger.debug("Discord accepted message", status_code=response.status_code)
            return response.status_code

        self.logger.error(
            "Discord rejected message",
            status_code=response.status_code,
            response=response.text,
        )
        raise UpstreamRejectedError(
            response.status_code,
            details=response.text,
            propagate_status=propagate_status,
        )
