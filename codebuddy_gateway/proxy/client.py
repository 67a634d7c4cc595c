from contextlib import contextmanager

import httpx
from openai import APIStatusError, OpenAI

from .config import (
    CODEBUDDY_BASE_URL,
    CODEBUDDY_MAX_RETRIES,
    CODEBUDDY_TIMEOUT,
    CODEBUDDY_USER_AGENT,
)
from .errors import UpstreamError, _extract_upstream_message
from .logger import logger
from .logging_utils import _truncate_log

CLIENT_CACHE = {}

_PLACEHOLDER_API_KEY = "forwarded-per-request"

_BODY_KEYS = {"model", "messages", "stream"}


def _get_client():
    client = CLIENT_CACHE.get(CODEBUDDY_BASE_URL)
    if client is None:
        client = OpenAI(
            api_key=_PLACEHOLDER_API_KEY,
            base_url=CODEBUDDY_BASE_URL,
            timeout=CODEBUDDY_TIMEOUT,
            max_retries=CODEBUDDY_MAX_RETRIES,
            default_headers={
                "User-Agent": CODEBUDDY_USER_AGENT,
                "Connection": "close",
            },
        )
        CLIENT_CACHE[CODEBUDDY_BASE_URL] = client
    return client


def _upstream_error(exc):
    try:
        body_text = exc.response.text
    except httpx.ResponseNotRead:
        body_text = ""
    logger.error(
        "CodeBuddy API error status=%s body=%s",
        exc.status_code,
        _truncate_log(body_text),
    )
    return UpstreamError(_extract_upstream_message(body_text), status=exc.status_code)


@contextmanager
def _open_upstream_stream(payload, credential):
    """POST ``payload`` upstream and yield an iterator over the raw SSE bytes.

    The credential is forwarded verbatim as ``Authorization``. The upstream
    response is closed when the block exits, whichever way it exits.
    """
    extra_body = {key: value for key, value in payload.items() if key not in _BODY_KEYS}
    manager = _get_client().chat.completions.with_streaming_response.create(
        model=payload["model"],
        messages=payload["messages"],
        stream=True,
        extra_headers={"Authorization": credential},
        extra_body=extra_body or None,
    )
    try:
        with manager as response:
            yield response.iter_bytes()
    except APIStatusError as exc:
        raise _upstream_error(exc) from exc
