import json
import time

from flask import g, request

from .config import LOG_MAX_CHARS, LOG_PAYLOAD_MAX_CHARS, LOG_PAYLOADS, LOG_STREAM_EVENTS, LOG_TOOL_CALLS
from .logger import logger

_PAYLOAD_CORE_KEYS = {"model", "stream", "messages"}


def _truncate(value, limit):
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...<truncated>"


def _truncate_log(value):
    return _truncate(value, LOG_MAX_CHARS)


def _redact_credential(token):
    if not token:
        return ""
    if len(token) <= 12:
        return "***"
    return f"{token[:8]}...{token[-4:]}"


def _summarize_message(message):
    if not isinstance(message, dict):
        return {"invalid": type(message).__name__}
    content = message.get("content")
    summary = {"role": message.get("role")}
    if isinstance(content, str):
        summary["chars"] = len(content)
    elif isinstance(content, (list, tuple)):
        texts = [block["text"] for block in content if isinstance(block, dict) and isinstance(block.get("text"), str)]
        summary["blocks"] = len(content)
        summary["chars"] = sum(len(text) for text in texts)
    else:
        summary["content"] = type(content).__name__
    return summary


def _summarize_chat_payload(payload):
    """Shape of a chat request without message text: roles, sizes, parameter names."""
    messages = payload.get("messages")
    if isinstance(messages, (list, tuple)):
        messages = [_summarize_message(message) for message in messages]
    else:
        messages = type(messages).__name__
    return {
        "model": payload.get("model"),
        "stream": payload.get("stream"),
        "messages": messages,
        "params": sorted(str(key) for key in payload if key not in _PAYLOAD_CORE_KEYS),
    }


def _log_payload(label, payload):
    if not LOG_PAYLOADS:
        return
    text = json.dumps(_summarize_chat_payload(payload), ensure_ascii=False, default=str)
    logger.info("%s=%s", label, _truncate(text, LOG_PAYLOAD_MAX_CHARS))


def _log_stream_chunk(chunk, tool_calls):
    if not LOG_STREAM_EVENTS:
        return
    choices = chunk.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], dict) else {}
    delta = choice.get("delta") if isinstance(choice.get("delta"), dict) else {}
    content = delta.get("content")
    tool_deltas = delta.get("tool_calls") if isinstance(delta.get("tool_calls"), list) else []
    logger.info(
        "event.chunk id=%s content_chars=%s tool_indexes=%s arguments_chars=%s finish_reason=%s usage=%s",
        chunk.get("id"),
        len(content) if isinstance(content, str) else 0,
        [tool.get("index", 0) for tool in tool_deltas if isinstance(tool, dict)],
        {index: len(call["function"]["arguments"]) for index, call in sorted(tool_calls.items())},
        choice.get("finish_reason"),
        bool(chunk.get("usage")),
    )


def _log_tool_call(index, call, source):
    if not LOG_TOOL_CALLS:
        return
    function = call["function"]
    logger.info(
        "Tool call (%s) index=%s id=%s name=%s arguments_chars=%s arguments=%s",
        source,
        index,
        call["id"],
        function["name"],
        len(function["arguments"]),
        _truncate_log(function["arguments"]),
    )


def _log_stream_disconnect():
    logger.info(
        "Stream client disconnect request_id=%s method=%s path=%s",
        getattr(g, "request_id", None),
        request.method,
        request.path,
    )


def _log_stream_error(status):
    logger.exception(
        "Stream error request_id=%s method=%s path=%s status=%s",
        getattr(g, "request_id", None),
        request.method,
        request.path,
        status,
    )


def _log_request_complete(status_code, stream=False):
    start_time = getattr(g, "start_time", None)
    duration_ms = (time.time() - start_time) * 1000.0 if start_time else 0.0
    logger.info(
        "request.complete request_id=%s method=%s path=%s status=%s duration_ms=%.2f stream=%s",
        getattr(g, "request_id", None),
        request.method,
        request.path,
        status_code,
        duration_ms,
        stream,
    )
