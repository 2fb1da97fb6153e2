"""
Request admission pipeline for the relay routes.

Stages run strictly in order and the first failure raises. Nothing before the
rate limiter touches the counter store; once the limiter admits a call its
quota unit is spent whatever happens downstream.
"""

import hmac
import time
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from shared.config import RelayConfig
from shared.errors import ConfigurationMissingError, ForbiddenError, RateLimitError, RelayException
from shared.logging import get_logger, set_client_context
from shared.metrics import MetricsCollector

from service_relay.app.adapters.discord_client import DiscordWebhookClient
from service_relay.app.domain.identity import extract_client_ip, get_header
from service_relay.app.domain.signature import SignatureVerifier
from service_relay.app.domain.validation import (
    format_signed_content,
    parse_body,
    validate_message,
    validate_signed_message,
)
from service_relay.app.ratelimit.sliding_window import (
    RateLimitDecision,
    SlidingWindowRateLimiter,
    retry_after_seconds,
)

NOTIFY_ROUTE = "notify"
WEBHOOK_ROUTE = "webhook"


def make_identifier(client_ip: str, hwid: Optional[str] = None) -> str:
    """Rate-limit identifier for a caller; hwid narrows it on the signed route."""
    if hwid is None:
        return f"ip:{client_ip}"
    return f"ip:{client_ip}:hwid:{hwid}"


@dataclass
class RelayResult:
    """A delivered message and the limiter decision that admitted it."""

    decision: RateLimitDecision

    def to_response(self) -> Dict[str, Any]:
        return {
            "message": "Sent successfully",
            "limit": self.decision.limit,
            "remaining": max(0, self.decision.remaining - 1),
            "resetTime": self.decision.reset_time,
        }

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.decision.limit),
            "X-RateLimit-Remaining": str(max(0, self.decision.remaining - 1)),
            "X-RateLimit-Reset": str(self.decision.reset),
        }


class WebhookRelay:
    """Runs the admission stages and forwards admitted messages."""

    def __init__(
        self,
        config: RelayConfig,
        rate_limiter: SlidingWindowRateLimiter,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.rate_limiter = rate_limiter
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("relay.pipeline")

        self.discord_client: Optional[DiscordWebhookClient] = None
        if config.webhook_url:
            self.discord_client = DiscordWebhookClient(
                config.webhook_url,
                timeout=config.forward_timeout_seconds,
                user_agent=config.user_agent,
            )
        self.signature_verifier: Optional[SignatureVerifier] = None
        if config.shared_secret:
            self.signature_verifier = SignatureVerifier(
                config.shared_secret,
                tolerance_seconds=config.signature_tolerance_seconds,
            )

    async def notify(self, headers: Mapping[str, str], peer: Optional[str], raw_body: bytes) -> RelayResult:
        """Open relay: validate, rate limit by IP, forward the message as sent."""
        self._require_webhook()

        client_ip = extract_client_ip(headers, peer)
        set_client_context(client_ip=client_ip, route=NOTIFY_ROUTE)

        payload = validate_message(parse_body(raw_body))
        decision = await self._check_rate_limit(make_identifier(client_ip), NOTIFY_ROUTE)

        await self._forward(payload, NOTIFY_ROUTE, propagate_status=True)
        self.logger.info("Message relayed", route=NOTIFY_ROUTE, client_ip=client_ip)
        return RelayResult(decision)

    async def relay_signed(self, headers: Mapping[str, str], peer: Optional[str], raw_body: bytes) -> RelayResult:
        """Authenticated relay: client key, signature, IP+hwid rate limit, reformatted message."""
        self._require_webhook()
        if not self.config.client_key or self.signature_verifier is None:
            raise ConfigurationMissingError("Relay authentication not configured")

        client_ip = extract_client_ip(headers, peer)
        set_client_context(client_ip=client_ip, route=WEBHOOK_ROUTE)

        self._check_client_key(get_header(headers, "x-client-key"))

        context = validate_signed_message(parse_body(raw_body))
        self.signature_verifier.verify(context.hwid, context.timestamp, context.signature, now=self.clock())

        identifier = make_identifier(client_ip, context.hwid)
        decision = await self._check_rate_limit(identifier, WEBHOOK_ROUTE)

        await self._forward(format_signed_content(context), WEBHOOK_ROUTE, propagate_status=False)
        self.logger.info(
            "Message relayed",
            route=WEBHOOK_ROUTE,
            client_ip=client_ip,
            user_id=context.user_id,
            hwid=context.hwid,
        )
        return RelayResult(decision)

    def _require_webhook(self) -> DiscordWebhookClient:
        if self.discord_client is None:
            self.logger.error("Webhook URL is not configured")
            raise ConfigurationMissingError()
        return self.discord_client

    def _check_client_key(self, provided: Optional[str]) -> None:
        expected = self.config.client_key or ""
        if not provided or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            self.logger.warning("Invalid client key")
            raise ForbiddenError()

    async def _check_rate_limit(self, identifier: str, route: str) -> RateLimitDecision:
        now_ms = int(self.clock() * 1000)
        decision = await self.rate_limiter.limit(identifier, now_ms=now_ms)
        if decision.success:
            return decision

        if self.metrics:
            self.metrics.increment_counter("relay_rate_limit_hits_total", route=route)
        raise RateLimitError(
            limit=decision.limit,
            remaining=decision.remaining,
            reset_time=decision.reset_time,
            retry_after=retry_after_seconds(decision.reset, now_ms),
        )

    async def _forward(self, payload: Dict[str, Any], route: str, propagate_status: bool) -> None:
        discord_client = self._require_webhook()
        timer = (
            self.metrics.time_operation("relay_forward_duration_seconds", route=route)
            if self.metrics else nullcontext()
        )
        outcome = "success"
        with timer:
            try:
                await discord_client.send(payload, propagate_status=propagate_status)
            except RelayException as e:
                outcome = e.code.lower()
                raise
            finally:
                if self.metrics:
                    self.metrics.increment_counter("relay_forward_total", route=route, outcome=outcome)
