"""
Error taxonomy shared by the gateway server and the client library.

Provider adapters raise these; only the outermost request handler turns
them into a JSON error body.
"""

import re
from typing import Optional

_URL_PATTERN = re.compile(r"https?://[^\s]+")
_BAD_REQUEST_MARKER = "[400 Bad Request]"


class ChatError(Exception):
    """Base exception for all gateway errors."""

    status_code: int = 500
    code: str = "Error"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        """Render as the `{"error": {...}}` body returned to callers."""
        return {"error": {"code": self.code, "message": scrub_message(self.message)}}


class ConfigurationError(ChatError):
    """No usable model or credential could be resolved."""
    status_code = 500
    code = "ConfigurationError"


class InvalidRequestError(ChatError):
    """Malformed turn sequence or unknown model id."""
    status_code = 400
    code = "InvalidRequest"


class ContentError(InvalidRequestError):
    """A turn carries no content, or an image payload is malformed."""
    code = "InvalidContent"


class AuthError(ChatError):
    """Password or signature mismatch."""
    status_code = 401
    code = "Unauthorized"


class UpstreamError(ChatError):
    """Non-2xx or malformed payload from a provider."""
    status_code = 502

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code or 502)
        # Tag with the provider status so callers can tell 429 from 500
        self.code = f"HTTP_{status_code}" if status_code else "UpstreamError"


class TransportError(ChatError):
    """Network failure or cancellation while streaming."""
    status_code = 502
    code = "TransportError"


def scrub_message(message: str) -> str:
    """Strip upstream URLs and provider boilerplate from an error message."""
    filtered = _URL_PATTERN.sub("", message or "").strip()
    parts = filtered.split(_BAD_REQUEST_MARKER)
    return parts[1].strip() if len(parts) > 1 else filtered
