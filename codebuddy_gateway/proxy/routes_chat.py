from contextlib import ExitStack

from flask import Response, g, jsonify, request, stream_with_context

from .client import _open_upstream_stream
from .errors import InvalidRequestError
from .logger import logger
from .logging_utils import _log_payload, _redact_credential
from .normalize import _build_upstream_payload
from .routes_auth import _require_credential
from .streaming import _collect_stream_completion, _stream_passthrough


def register_chat_routes(app):
    @app.post("/v1/chat/completions")
    @app.post("/chat/completions")
    def create_chat_completion():
        credential = _require_credential()
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise InvalidRequestError("Invalid or missing JSON body.")
        stream = body.get("stream") is True
        _log_payload("incoming.raw", body)
        payload = _build_upstream_payload(body)
        _log_payload("outgoing.payload", payload)
        logger.info(
            "chat.completions request_id=%s model=%s upstream_model=%s messages=%s stream=%s credential=%s",
            getattr(g, "request_id", None),
            body.get("model"),
            payload["model"],
            len(payload["messages"]),
            stream,
            _redact_credential(credential),
        )

        with ExitStack() as upstream:
            chunks = upstream.enter_context(_open_upstream_stream(payload, credential))
            if not stream:
                return jsonify(_collect_stream_completion(chunks))
            handle = upstream.pop_all()
            passthrough = _stream_passthrough(chunks, handle)
            response = Response(
                stream_with_context(passthrough),
                mimetype="text/event-stream",
                headers={"Cache-Control": "no-cache"},
            )
            response.call_on_close(handle.close)
            return response
