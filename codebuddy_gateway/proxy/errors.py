import json

from flask import jsonify


class ProxyError(Exception):
    status = 500
    error_type = "server_error"

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class AuthError(ProxyError):
    status = 401
    error_type = "auth_error"


class InvalidRequestError(ProxyError):
    status = 400
    error_type = "invalid_request_error"


class UpstreamError(ProxyError):
    """Non-2xx answer from the vendor API; the status is mirrored to the client."""


class InternalError(ProxyError):
    @classmethod
    def from_exception(cls, exc):
        return cls(str(exc) or "Internal Server Error")


def _error_payload(message, error_type="server_error"):
    return {"error": {"message": message, "type": error_type}, "type": "error"}


def _error(message, status=500, error_type="server_error"):
    return jsonify(_error_payload(message, error_type=error_type)), status


def _proxy_error_response(error):
    return _error(error.message, status=error.status, error_type=error.error_type)


def _extract_upstream_message(body_text, default="API request failed"):
    try:
        parsed = json.loads(body_text)
    except (TypeError, ValueError):
        return default
    if not isinstance(parsed, dict):
        return default
    error = parsed.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if parsed.get("message"):
        return str(parsed["message"])
    return default


def _stream_error_payload(error):
    if isinstance(error, ProxyError):
        return _error_payload(error.message, error_type=error.error_type), error.status
    status = getattr(error, "status_code", 500)
    message = getattr(error, "message", None) or str(error) or "Internal Server Error"
    return _error_payload(message, error_type="server_error"), status
