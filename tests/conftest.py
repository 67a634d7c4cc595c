import json

import httpx
import pytest
from openai import OpenAI

from codebuddy_gateway.app import create_app
from codebuddy_gateway.proxy import client as client_module


# ---------------------------------------------------------------------------
# SSE helpers
# ---------------------------------------------------------------------------

def sse_body(*events, done=True):
    """Encode events as an upstream SSE body. Strings are sent as raw data."""
    parts = []
    for event in events:
        data = event if isinstance(event, str) else json.dumps(event)
        parts.append(f"data: {data}\n\n")
    if done:
        parts.append("data: [DONE]\n\n")
    return "".join(parts).encode("utf-8")


def content_delta(text, **extra):
    return {"choices": [{"index": 0, "delta": {"content": text}}], **extra}


def finish(reason="stop", **extra):
    return {"choices": [{"index": 0, "delta": {}, "finish_reason": reason}], **extra}


def tool_delta(**call):
    return {"choices": [{"index": 0, "delta": {"tool_calls": [call]}}]}


# ---------------------------------------------------------------------------
# Fake upstream
# ---------------------------------------------------------------------------

class RecordingStream(httpx.SyncByteStream):
    """Upstream body that records whether it was closed, optionally failing mid-body."""

    def __init__(self, *chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    def __iter__(self):
        yield from self.chunks
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


class FakeUpstream:
    """Answers every upstream request with a canned response. No network calls."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.body = sse_body()
        self.headers = {"content-type": "text/event-stream"}
        self.error = None
        self.stream = None

    def handler(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.stream is not None:
            return httpx.Response(self.status, headers=self.headers, stream=self.stream)
        return httpx.Response(self.status, headers=self.headers, content=self.body)

    def reply_json(self, status, payload):
        self.status = status
        self.headers = {"content-type": "application/json"}
        self.body = json.dumps(payload).encode("utf-8")

    @property
    def last_request(self):
        return self.requests[-1]

    @property
    def last_json(self):
        return json.loads(self.last_request.content)


@pytest.fixture
def upstream(monkeypatch):
    fake = FakeUpstream()
    openai_client = OpenAI(
        api_key="unused",
        base_url="https://upstream.test/v2",
        max_retries=0,
        http_client=httpx.Client(transport=httpx.MockTransport(fake.handler)),
    )
    monkeypatch.setattr(client_module, "_get_client", lambda: openai_client)
    return fake


@pytest.fixture
def app():
    app = create_app()
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test-token"}
