import codecs
import json
import time

from .config import PROXY_FALLBACK_MODEL
from .errors import _stream_error_payload
from .logger import logger
from .logging_utils import (
    _log_request_complete,
    _log_stream_chunk,
    _log_stream_disconnect,
    _log_stream_error,
    _log_tool_call,
    _truncate_log,
)
from .normalize import _ensure_json_str

_DATA_PREFIX = "data: "
_DONE_MARKER = "[DONE]"


def _line_data(line):
    if not line.startswith(_DATA_PREFIX):
        return None
    return line[len(_DATA_PREFIX):].strip()


def _iter_sse_data(chunks):
    """Yield the payload of every ``data: `` line in an SSE byte stream.

    Chunk boundaries may fall inside a line or inside a multi-byte character,
    so the unterminated tail of each chunk is held back and prepended to the
    next one. Only that tail and the current chunk are ever buffered.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    for chunk in chunks:
        if not chunk:
            continue
        pending += chunk if isinstance(chunk, str) else decoder.decode(chunk)
        lines = pending.split("\n")
        pending = lines.pop()
        for line in lines:
            data = _line_data(line)
            if data is not None:
                yield data
    pending += decoder.decode(b"", final=True)
    data = _line_data(pending)
    if data is not None:
        yield data


def _new_completion_state():
    return {
        "id": None,
        "model": None,
        "created": int(time.time()),
        "content": [],
        "tool_calls": {},
        "finish_reason": "stop",
        "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
    }


def _tool_index(value):
    if isinstance(value, bool):
        return 0
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _merge_tool_call_delta(tool_calls, delta):
    if not isinstance(delta, dict):
        return
    function = delta.get("function")
    if not isinstance(function, dict):
        return
    index = _tool_index(delta.get("index"))

    if delta.get("id") and delta.get("type"):
        tool_calls[index] = {
            "id": delta["id"],
            "type": delta["type"],
            "function": {
                "name": function.get("name") or "",
                "arguments": _ensure_json_str(function.get("arguments")),
            },
        }
        return

    current = tool_calls.get(index)
    if current is None:
        return
    if function.get("arguments") is not None:
        current["function"]["arguments"] += _ensure_json_str(function["arguments"])
    if function.get("name"):
        current["function"]["name"] = function["name"]


def _merge_chunk(state, chunk):
    for key in ("id", "model", "created"):
        if chunk.get(key):
            state[key] = chunk[key]
    if chunk.get("usage"):
        state["usage"] = chunk["usage"]

    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return
    choice = choices[0]

    delta = choice.get("delta")
    if isinstance(delta, dict):
        if delta.get("content"):
            state["content"].append(_ensure_json_str(delta["content"]))
        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, list):
            for tool_delta in tool_calls:
                _merge_tool_call_delta(state["tool_calls"], tool_delta)

    if choice.get("finish_reason"):
        state["finish_reason"] = choice["finish_reason"]


def _build_completion_document(state):
    content = "".join(state["content"])
    message = {"role": "assistant", "content": content or None}
    if state["tool_calls"]:
        message["tool_calls"] = [state["tool_calls"][index] for index in sorted(state["tool_calls"])]
    return {
        "id": state["id"] or f"chatcmpl-{int(time.time() * 1000)}",
        "object": "chat.completion",
        "created": state["created"],
        "model": state["model"] or PROXY_FALLBACK_MODEL,
        "choices": [
            {
                "index": 0,
                "message": message,
                "finish_reason": state["finish_reason"],
            }
        ],
        "usage": state["usage"],
    }


def _collect_stream_completion(chunks):
    """Fold an upstream chat-completion SSE stream into one ``chat.completion``.

    The whole stream is drained; ``[DONE]`` does not end the loop, only the
    exhaustion of ``chunks`` does. Lines that fail to parse are skipped.
    """
    state = _new_completion_state()
    for data in _iter_sse_data(chunks):
        if data == _DONE_MARKER:
            continue
        try:
            parsed = json.loads(data)
        except ValueError:
            logger.debug("Skipping malformed SSE data: %s", _truncate_log(data))
            continue
        if not isinstance(parsed, dict):
            continue
        _merge_chunk(state, parsed)
        _log_stream_chunk(parsed, state["tool_calls"])

    for index in sorted(state["tool_calls"]):
        _log_tool_call(index, state["tool_calls"][index], "stream.collect")
    return _build_completion_document(state)


def _stream_passthrough(chunks, upstream):
    """Relay upstream SSE bytes unchanged, releasing ``upstream`` on every exit.

    Runs inside the request context (``stream_with_context``) so the closing
    log line carries the request id and duration.
    """
    status = 200
    try:
        for chunk in chunks:
            yield chunk
    except GeneratorExit:
        status = 499
        _log_stream_disconnect()
        raise
    except (BrokenPipeError, ConnectionResetError):
        status = 499
        _log_stream_disconnect()
    except Exception as exc:
        payload, status = _stream_error_payload(exc)
        _log_stream_error(status)
        yield f"data: {json.dumps(payload)}\n\n".encode("utf-8")
        yield f"data: {_DONE_MARKER}\n\n".encode("utf-8")
    finally:
        upstream.close()
        _log_request_complete(status, stream=True)
