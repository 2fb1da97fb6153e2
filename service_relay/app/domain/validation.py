"""
Payload validation for relay routes.

Rules run in a fixed order and the first failure wins.
"""

import json
from typing import Any, Dict

from pydantic import BaseModel

from shared.errors import InvalidBodyError, ValidationFailedError

MAX_CONTENT_LENGTH = 2000
MAX_EMBEDS = 10

# Message keys passed through verbatim on the open route
FORWARDED_KEYS = ("content", "embeds", "username", "avatar_url", "tts", "allowed_mentions")


class AuthContext(BaseModel):
    """Fields of a signed relay request."""

    user_id: int
    username: str
    hwid: str
    timestamp: int
    signature: str
    content: str


def parse_body(raw: bytes) -> Any:
    """Decode a JSON request body; an empty body decodes to None."""
    if not raw or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise InvalidBodyError(details=str(e)) from e


def require_object(body: Any) -> Dict[str, Any]:
    """Body must be a present, non-null JSON object."""
    if body is None or not isinstance(body, dict):
        raise InvalidBodyError()
    return body


def validate_message(body: Any) -> Dict[str, Any]:
    """Validate an open-route message body and return the payload to forward."""
    body = require_object(body)

    content = body.get("content")
    embeds = body.get("embeds")

    has_content = isinstance(content, str) and len(content) > 0
    has_embeds = isinstance(embeds, (list, tuple)) and len(embeds) > 0
    if not has_content and not has_embeds:
        raise ValidationFailedError("Either content or embeds is required")

    if content is not None:
        if not isinstance(content, str):
            raise ValidationFailedError("content must be a string")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValidationFailedError(
                f"content must be {MAX_CONTENT_LENGTH} characters or fewer",
                details={"length": len(content)},
            )

    if embeds is not None:
        if not isinstance(embeds, list):
            raise ValidationFailedError("embeds must be an array")
        if len(embeds) > MAX_EMBEDS:
            raise ValidationFailedError(
                f"embeds must contain {MAX_EMBEDS} entries or fewer",
                details={"count": len(embeds)},
            )

    return {key: body[key] for key in FORWARDED_KEYS if key in body}


def validate_signed_message(body: Any) -> AuthContext:
    """Validate a signed relay body and return its fields."""
    body = require_object(body)

    user_id = body.get("userId")
    username = body.get("username")
    hwid = body.get("hwid")
    timestamp = _coerce_timestamp(body.get("timestamp"))
    signature = body.get("signature")
    content = body.get("content")

    # bool is an int subclass; reject it explicitly
    if (
        not isinstance(user_id, int) or isinstance(user_id, bool) or user_id == 0
        or not isinstance(username, str) or not username
        or not isinstance(hwid, str) or not hwid
        or timestamp is None
        or not isinstance(signature, str) or not signature
        or not isinstance(content, str) or not content
    ):
        raise ValidationFailedError("Missing or invalid fields")

    # Limit applies to the forwarded text, sender prefix included
    forwarded_length = len(_sender_prefix(username, user_id)) + len(content)
    if forwarded_length > MAX_CONTENT_LENGTH:
        raise ValidationFailedError(
            f"content must be {MAX_CONTENT_LENGTH} characters or fewer",
            details={"length": forwarded_length},
        )

    return AuthContext(
        user_id=user_id,
        username=username,
        hwid=hwid,
        timestamp=timestamp,
        signature=signature,
        content=content,
    )


def _coerce_timestamp(value: Any):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value) or None
    return None


def format_signed_content(context: AuthContext) -> Dict[str, Any]:
    """Rebuild the outbound message with the caller's name and id in front."""
    return {"content": _sender_prefix(context.username, context.user_id) + context.content}


def _sender_prefix(username: str, user_id: int) -> str:
    return f"[{username} | {user_id}] "
