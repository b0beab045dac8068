import json

import pytest
from fastapi.testclient import TestClient

from conftest import make_config
from job_orchestrator.engine import content_chunk
from job_orchestrator.errors import TransportError
from job_orchestrator.main import create_app
from job_orchestrator.models import ChatCompletionResponse, ChatMessage, Choice


class StubEngine:
    """Engine double answering every turn with fixed text."""

    def __init__(self, text="Hello from the gateway.", error=None):
        self.text = text
        self.error = error
        self.requests = []

    async def complete(self, request, is_disconnected=None):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return ChatCompletionResponse(
            id="chatcmpl-test",
            created=1,
            model="qd-job-turbo",
            choices=[Choice(message=ChatMessage(role="assistant", content=self.text), finish_reason="stop")],
        )

    async def stream(self, request, is_disconnected=None):
        self.requests.append(request)
        for word in self.text.split(" "):
            yield content_chunk(word)
        if self.error is not None:
            raise self.error
        yield content_chunk(None, "stop")


@pytest.fixture
def engine():
    return StubEngine()


@pytest.fixture
def client(engine):
    app = create_app(engine=engine, cfg=make_config())
    with TestClient(app) as test_client:
        yield test_client


def chat_body(**overrides):
    body = {"model": "qd-job-turbo", "messages": [{"role": "user", "content": "hi"}]}
    body.update(overrides)
    return body


def sse_events(text):
    events = [line[len("data: "):] for line in text.split("\n") if line.startswith("data: ")]
    return events


def test_models_lists_published_model(client):
    response = client.get("/v1/models")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [m["id"] for m in data] == ["qd-job-turbo"]
    assert data[0]["object"] == "model"


def test_buffered_completion(client, engine):
    response = client.post("/v1/chat/completions", json=chat_body())

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "chat.completion"
    assert body["choices"][0]["message"]["content"] == "Hello from the gateway."
    assert body["choices"][0]["finish_reason"] == "stop"
    assert engine.requests[0].messages[0].content == "hi"


def test_mixed_content_message_accepted(client, engine):
    messages = [{
        "role": "user",
        "content": [
            {"type": "text", "text": "is this my resume?"},
            {"type": "image_url", "image_url": {"url": "http://files/cv.png"}},
        ],
    }]

    response = client.post("/v1/chat/completions", json=chat_body(messages=messages))

    assert response.status_code == 200
    assert engine.requests[0].messages[0].content[1].image_url.url == "http://files/cv.png"


def test_streamed_completion(client):
    response = client.post("/v1/chat/completions", json=chat_body(stream=True))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = sse_events(response.text)
    assert events[-1] == "[DONE]"

    chunks = [json.loads(e) for e in events[:-1]]
    assert chunks[0]["choices"][0]["delta"]["role"] == "assistant"
    assert "role" not in chunks[1]["choices"][0]["delta"]
    assert len({c["id"] for c in chunks}) == 1
    assert all(c["model"] == "qd-job-turbo" for c in chunks)
    assert "".join(c["choices"][0]["delta"].get("content", "") for c in chunks) == "Hellofromthegateway."
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"


def test_stream_error_becomes_error_chunk():
    engine = StubEngine(text="partial", error=TransportError("backend unreachable"))
    with TestClient(create_app(engine=engine, cfg=make_config())) as client:
        response = client.post("/v1/chat/completions", json=chat_body(stream=True))

    events = sse_events(response.text)
    assert events[-1] == "[DONE]"
    error = json.loads(events[-2])["choices"][0]
    assert error["finish_reason"] == "error"
    assert "backend unreachable" in error["delta"]["content"]


def test_buffered_gateway_error_maps_to_status():
    engine = StubEngine(error=TransportError("backend unreachable"))
    with TestClient(create_app(engine=engine, cfg=make_config())) as client:
        response = client.post("/v1/chat/completions", json=chat_body())

    assert response.status_code == 502
    assert response.json() == {"error": {"message": "backend unreachable", "type": "upstream_error"}}


def test_unknown_model_rejected(client, engine):
    response = client.post("/v1/chat/completions", json=chat_body(model="gpt-4"))

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "invalid_request"
    assert engine.requests == []


def test_empty_messages_rejected(client):
    response = client.post("/v1/chat/completions", json=chat_body(messages=[]))
    assert response.status_code == 400


def test_invalid_json_rejected(client):
    response = client.post(
        "/v1/chat/completions",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400


def test_invalid_role_rejected(client):
    response = client.post(
        "/v1/chat/completions",
        json=chat_body(messages=[{"role": "robot", "content": "hi"}]),
    )
    assert response.status_code == 400
    assert "messages" in response.json()["error"]["message"]


def test_health_and_root(client):
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["model"] == "qd-job-turbo"

    root = client.get("/").json()
    assert root["endpoints"]["chat"] == "/v1/chat/completions"
    assert root["endpoints"]["metrics"] == "/metrics"


def test_metrics_count_requests(client):
    client.get("/health")
    client.post("/v1/chat/completions", json=chat_body(model="nope"))

    snapshot = client.get("/metrics").json()

    # The metrics request itself is still in flight
    assert snapshot["requests"]["total"] == 3
    assert snapshot["requests"]["active"] == 1
    assert snapshot["requests"]["failed"] == 1
    assert "GET /health" in snapshot["latency"]


def test_metrics_can_be_disabled():
    app = create_app(engine=StubEngine(), cfg=make_config(enable_metrics=False))
    with TestClient(app) as client:
        assert client.get("/metrics").status_code == 404
        assert "metrics" not in client.get("/").json()["endpoints"]
