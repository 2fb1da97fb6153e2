"""
Webhook Relay service.
"""

import time
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import RelayConfig
from shared.errors import InternalError, MethodNotAllowedError, RelayException

from service_relay.app.domain.relay import RelayResult, WebhookRelay
from service_relay.app.ratelimit.sliding_window import (
    SlidingWindowRateLimiter,
    close_rate_limiter,
    get_rate_limiter,
)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class RelayService(BaseService):
    """Webhook Relay service implementation."""

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__("relay", config)
        self._owns_rate_limiter = rate_limiter is None
        self.rate_limiter = rate_limiter or get_rate_limiter(
            self.config.redis_url,
            max_requests=self.config.rate_limit_max,
            window_seconds=self.config.rate_limit_window_seconds,
        )
        self.relay = WebhookRelay(self.config, self.rate_limiter, metrics=self.metrics, clock=clock)

        @self.app.on_event("shutdown")
        async def _shutdown():
            if self._owns_rate_limiter:
                await close_rate_limiter()

        self._setup_relay_routes()

        self.app.state.relay_service = self

    def _setup_relay_routes(self):
        """Set up relay-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "relay",
                "message": "Webhook Relay",
                "version": "1.0.0"
            }

        @self.app.api_route("/api/notify", methods=ALL_METHODS)
        async def notify(request: Request):
            """Open relay: forwards a Discord message body as sent."""
            return await self._handle(request, self.relay.notify)

        @self.app.api_route("/api/webhook", methods=ALL_METHODS)
        async def webhook(request: Request):
            """Signed relay: client key + signature, message prefixed with the sender."""
            return await self._handle(request, self.relay.relay_signed)

    async def _handle(
        self,
        request: Request,
        stage: Callable[..., Awaitable[RelayResult]],
    ) -> Response:
        """Request gate shared by relay routes, then the route's pipeline."""
        if request.method == "OPTIONS":
            return Response(status_code=200)
        if request.method != "POST":
            raise MethodNotAllowedError()

        try:
            peer = request.client.host if request.client else None
            result = await stage(request.headers, peer, await request.body())
        except RelayException:
            raise
        except Exception as e:
            self.logger.error("Unexpected relay failure", error=str(e), exc_info=True)
            raise InternalError(details=str(e)) from e

        return JSONResponse(status_code=200, content=result.to_response(), headers=result.headers)

    async def _check_dependencies(self):
        """Check the counter store."""
        return {"redis": "ok" if await self.rate_limiter.ping() else "unavailable"}


def create_app():
    """Create FastAPI application."""
    service = RelayService()
    return service.app


if __name__ == "__main__":
    service = RelayService()
    service.run()
