"""Tests for the error taxonomy."""

from __future__ import annotations

from errors import (
    AuthError,
    ConfigurationError,
    ContentError,
    InvalidRequestError,
    TransportError,
    UpstreamError,
    scrub_message,
)


class TestStatusCodes:
    def test_defaults(self) -> None:
        assert ConfigurationError("x").status_code == 500
        assert InvalidRequestError("x").status_code == 400
        assert ContentError("x").status_code == 400
        assert AuthError("x").status_code == 401
        assert TransportError("x").status_code == 502

    def test_content_error_is_invalid_request(self) -> None:
        assert isinstance(ContentError("x"), InvalidRequestError)

    def test_upstream_carries_provider_status(self) -> None:
        error = UpstreamError("slow down", status_code=429)
        assert error.status_code == 429
        assert error.code == "HTTP_429"

    def test_upstream_without_status(self) -> None:
        error = UpstreamError("bad payload")
        assert error.status_code == 502
        assert error.code == "UpstreamError"


class TestScrubbing:
    def test_urls_removed(self) -> None:
        assert scrub_message("failed at https://api.example.com/v1/chat now") == "failed at  now"

    def test_bad_request_marker(self) -> None:
        message = "[GoogleGenerativeAI Error]: Error fetching [400 Bad Request] API key not valid"
        assert scrub_message(message) == "API key not valid"

    def test_to_dict(self) -> None:
        body = UpstreamError("see https://x.test/y", status_code=500).to_dict()
        assert body == {"error": {"code": "HTTP_500", "message": "see"}}
