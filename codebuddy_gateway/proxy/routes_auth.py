from flask import request

from .config import PROXY_CREDENTIAL_HEADERS
from .errors import AuthError


def _extract_credential():
    for header in PROXY_CREDENTIAL_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


def _require_credential():
    token = _extract_credential()
    if not token:
        raise AuthError("Authorization header is required")
    return token
