import json

import pytest

from fakes import FakeAPIError
from insight.errors import RATE_LIMIT_MESSAGE, SESSION_EXPIRED_MESSAGE
from schema import Citation, GroundingMetadata, ResponseFragment, StreamInput
from service.service import message_generator


def parse_events(body: str) -> list:
    events = []
    for block in body.split("\n\n"):
        if not block.startswith("data: "):
            continue
        data = block[len("data: ") :]
        events.append(data if data == "[DONE]" else json.loads(data))
    return events


def test_stream_relays_tokens_then_message(test_client):
    response = test_client.post("/chat/stream", json={"message": "What is in report.pdf?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = parse_events(response.text)
    assert [e["content"] for e in events if isinstance(e, dict) and e["type"] == "token"] == ["Hello", " world"]
    final = [e for e in events if isinstance(e, dict) and e["type"] == "message"][0]
    assert final["content"]["text"] == "Hello world"
    assert final["content"]["role"] == "model"
    assert events[-1] == "[DONE]"


def test_stream_includes_resolved_grounding(test_client, backend):
    [result] = test_client.post(
        "/files/upload", files=[("files", ("report.pdf", b"%PDF-1.7\nbody", "application/pdf"))]
    ).json()
    backend.reply = [
        ResponseFragment(
            text="See the report.",
            grounding=GroundingMetadata(
                citations=[Citation(kind="document", uri=result["file"]["document_ref"], title="report.pdf")]
            ),
        )
    ]

    events = parse_events(test_client.post("/chat/stream", json={"message": "Summarize report.pdf"}).text)

    [token] = [e for e in events if isinstance(e, dict) and e["type"] == "token"]
    [citation] = token["grounding"]["citations"]
    assert citation["file_id"] == result["file"]["id"]
    assert citation["file_name"] == "report.pdf"


def test_expired_session_is_an_error_event(test_client, context, backend):
    test_client.post("/chat/stream", json={"message": "first"})
    del backend.stores[context.sessions.session.index.name]

    events = parse_events(test_client.post("/chat/stream", json={"message": "second"}).text)

    assert {"type": "error", "content": SESSION_EXPIRED_MESSAGE} in events
    assert events[-1] == "[DONE]"
    assert context.sessions.session is None


def test_rate_limit_is_an_error_event(test_client, backend):
    backend.stream_error = FakeAPIError(429)

    events = parse_events(test_client.post("/chat/stream", json={"message": "hi"}).text)

    assert {"type": "error", "content": RATE_LIMIT_MESSAGE} in events
    assert events[-1] == "[DONE]"


def test_unexpected_errors_are_masked(test_client, backend):
    backend.stream_error = RuntimeError("internal detail")

    events = parse_events(test_client.post("/chat/stream", json={"message": "hi"}).text)

    assert {"type": "error", "content": "Internal server error"} in events


def test_blank_message_is_rejected(test_client):
    assert test_client.post("/chat/stream", json={"message": "   "}).status_code == 422
    assert test_client.post("/chat/stream", json={"message": ""}).status_code == 422


def test_history_and_reset(test_client, context):
    test_client.post("/chat/stream", json={"message": "hi"})

    history = test_client.get("/chat/history").json()["messages"]
    assert [m["role"] for m in history] == ["user", "model"]
    assert history[1]["streaming"] is False

    assert test_client.post("/chat/reset").status_code == 204
    assert test_client.get("/chat/history").json() == {"messages": []}
    assert context.sessions.session is None


def test_info_reports_state(test_client):
    info = test_client.get("/info").json()
    assert info["has_credential"] is True
    assert info["session_state"] == "absent"
    assert info["active_store"] is None

    test_client.post("/chat/stream", json={"message": "hi"})
    info = test_client.get("/info").json()
    assert info["session_state"] == "bound"
    assert info["active_store"] is not None


def test_credentials_replace_and_clear(test_client, context):
    test_client.post("/files/upload", files=[("files", ("a.txt", b"hello", "text/plain"))])

    assert test_client.put("/credentials", json={"api_key": "new-key"}).status_code == 204
    assert context.credentials.require() == "new-key"
    assert test_client.get("/files").json()["items"] == []

    assert test_client.delete("/credentials").status_code == 204
    assert test_client.get("/info").json()["has_credential"] is False
    events = parse_events(test_client.post("/chat/stream", json={"message": "hi"}).text)
    assert events[0]["type"] == "error"
    assert "API key missing" in events[0]["content"]


@pytest.mark.asyncio
async def test_message_generator_ends_with_done(context):
    chunks = [chunk async for chunk in message_generator(StreamInput(message="hi"), context)]

    assert chunks[-1] == "data: [DONE]\n\n"
    assert all(chunk.startswith("data: ") for chunk in chunks)
