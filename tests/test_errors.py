import httpx
import pytest
from openai import APIStatusError

from codebuddy_gateway.proxy.client import _upstream_error
from codebuddy_gateway.proxy.errors import (
    AuthError,
    InternalError,
    UpstreamError,
    _error_payload,
    _extract_upstream_message,
)


def _status_error(status, **response_kwargs):
    request = httpx.Request("POST", "https://upstream.test/v2/chat/completions")
    response = httpx.Response(status, request=request, **response_kwargs)
    return APIStatusError("upstream failed", response=response, body=None)


class TestExtractUpstreamMessage:
    @pytest.mark.parametrize(
        "body, expected",
        [
            ('{"error": {"message": "quota exceeded", "type": "x"}}', "quota exceeded"),
            ('{"message": "bad model"}', "bad model"),
            ('{"error": {"message": ""}, "message": "fallback"}', "fallback"),
            ('{"error": "plain string"}', "API request failed"),
            ('["not", "an", "object"]', "API request failed"),
            ("<html>502 Bad Gateway</html>", "API request failed"),
            ("", "API request failed"),
        ],
    )
    def test_message_extraction(self, body, expected):
        assert _extract_upstream_message(body) == expected


class TestErrorTypes:
    def test_envelope_shape(self):
        assert _error_payload("nope", error_type="auth_error") == {
            "error": {"message": "nope", "type": "auth_error"},
            "type": "error",
        }

    def test_defaults(self):
        assert (AuthError("x").status, AuthError("x").error_type) == (401, "auth_error")
        assert (UpstreamError("x", status=429).status, UpstreamError("x").error_type) == (429, "server_error")
        assert InternalError("x").status == 500

    def test_internal_error_uses_exception_message(self):
        assert InternalError.from_exception(ValueError("broken")).message == "broken"
        assert InternalError.from_exception(ValueError()).message == "Internal Server Error"


class TestUpstreamError:
    def test_status_and_message_are_mirrored(self):
        error = _upstream_error(_status_error(429, json={"error": {"message": "slow down"}}))

        assert isinstance(error, UpstreamError)
        assert error.status == 429
        assert error.message == "slow down"

    def test_unparseable_body_gives_generic_message(self):
        error = _upstream_error(_status_error(503, text="Service Unavailable"))

        assert error.status == 503
        assert error.message == "API request failed"
