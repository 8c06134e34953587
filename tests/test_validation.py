# tests/test_validation.py
"""
Tests for request validation.
"""

import pytest

from voiceui.errors import ValidationError
from voiceui.validation import (
    MAX_AUDIO_BYTES,
    cors_headers,
    sanitize_string,
    validate_origin,
    validate_plan_request,
    validate_transcribe_request,
)


class TestSanitize:
    """Tests for sanitize_string."""

    def test_strips_markup_and_schemes(self):
        assert sanitize_string("  <b>JavaScript:alert(1)</b> data:x ") == "balert(1)/b x"

    def test_length_capped(self):
        assert len(sanitize_string("a" * 20000)) == 10000


class TestPlanRequest:
    """Tests for validate_plan_request."""

    def test_valid_request_sanitized(self):
        request = validate_plan_request("  click <save> ", [{"path": "#save"}])
        assert request.user_query == "click save"

    @pytest.mark.parametrize("query", ["", "<>", "x" * 1001])
    def test_bad_queries_rejected(self, query):
        with pytest.raises(ValidationError):
            validate_plan_request(query, [])

    def test_context_too_large(self):
        context = [{"path": f"#el{i}", "textContent": "x" * 100} for i in range(600)]
        with pytest.raises(ValidationError) as exc_info:
            validate_plan_request("click", context)
        assert exc_info.value.details


class TestTranscribeRequest:
    """Tests for validate_transcribe_request."""

    def test_valid_audio(self):
        request = validate_transcribe_request(b"\x1a\x45", language=" en ")
        assert request.language == "en"
        assert request.filename == "recording.webm"

    def test_webm_name_accepts_generic_type(self):
        request = validate_transcribe_request(b"abc", "clip.webm", "application/octet-stream")
        assert request.content_type == "application/octet-stream"

    def test_non_audio_rejected(self):
        with pytest.raises(ValidationError):
            validate_transcribe_request(b"abc", "notes.txt", "text/plain")

    def test_empty_audio_rejected(self):
        with pytest.raises(ValidationError):
            validate_transcribe_request(b"")

    def test_oversized_audio_rejected(self):
        with pytest.raises(ValidationError):
            validate_transcribe_request(b"0" * (MAX_AUDIO_BYTES + 1))

    def test_long_language_rejected(self):
        with pytest.raises(ValidationError):
            validate_transcribe_request(b"abc", language="english-united-states")


class TestOrigin:
    """Tests for origin checks and CORS headers."""

    ALLOWED = ["http://localhost:3000"]

    def test_allowed_origin(self):
        assert validate_origin("http://localhost:3000", self.ALLOWED)
        assert not validate_origin("https://evil.example", self.ALLOWED)
        assert not validate_origin(None, self.ALLOWED)

    def test_development_allows_all(self):
        assert validate_origin(None, self.ALLOWED, development=True)

    def test_cors_headers(self):
        assert cors_headers("http://localhost:3000", self.ALLOWED)["Access-Control-Allow-Origin"] == "http://localhost:3000"
        assert "Access-Control-Allow-Origin" not in cors_headers("https://evil.example", self.ALLOWED)
