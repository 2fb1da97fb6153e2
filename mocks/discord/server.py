"""
Mock Discord server providing an incoming-webhook endpoint.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from shared.logging import get_logger


class MockDiscordServer:
    """Mock Discord incoming-webhook implementation."""

    def __init__(self, port: int = 8090, delay_seconds: float = 0.0, fail_status: Optional[int] = None):
        self.port = port
        self.delay_seconds = delay_seconds
        self.fail_status = fail_status
        self.logger = get_logger("mock.discord")
        self.app = FastAPI(title="Mock Discord", version="1.0.0")

        # Messages received per webhook id
        self.messages: Dict[str, List[Dict[str, Any]]] = {}

        self._setup_routes()

    def _setup_routes(self):
        """Set up mock Discord routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "mock-discord",
                "message": "Mock Discord webhook server for the Webhook Relay",
                "version": "1.0.0",
            }

        @self.app.post("/api/webhooks/{webhook_id}/{token}")
        async def execute_webhook(webhook_id: str, token: str, request: Request):
            """Execute webhook: accept a message the way Discord does."""
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)

            if self.fail_status:
                return JSONResponse(
                    status_code=self.fail_status,
                    content={"message": "Mock failure", "code": 0},
                )

            try:
                message = await request.json()
            except ValueError:
                return JSONResponse(status_code=400, content={"message": "Cannot send an empty message", "code": 50006})

            error = self._validate(message)
            if error:
                return JSONResponse(status_code=400, content=error)

            self.messages.setdefault(webhook_id, []).append({
                "received_at": time.time(),
                "user_agent": request.headers.get("user-agent"),
                "message": message,
            })
            self.logger.info("Webhook executed", webhook_id=webhook_id, content=message.get("content"))
            return Response(status_code=204)

        @self.app.get("/api/webhooks/{webhook_id}/messages")
        async def list_messages(webhook_id: str):
            """Inspect received messages (mock only)."""
            return {"messages": self.messages.get(webhook_id, [])}

    def _validate(self, message: Any) -> Optional[Dict[str, Any]]:
        """Apply the subset of Discord's message rules the relay relies on."""
        if not isinstance(message, dict) or not (message.get("content") or message.get("embeds")):
            return {"message": "Cannot send an empty message", "code": 50006}
        content = message.get("content") or ""
        if len(content) > 2000:
            return {
                "message": "Invalid Form Body",
                "code": 50035,
                "errors": {"content": {"_errors": [{"code": "BASE_TYPE_MAX_LENGTH"}]}},
            }
        if len(message.get("embeds") or []) > 10:
            return {"message": "Invalid Form Body", "code": 50035}
        return None


def create_app():
    """Create mock Discord application."""
    server = MockDiscordServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
