import pytest

from fakes import FakeAPIError
from insight import RateLimitError
from schema import MessageRole


@pytest.mark.asyncio
async def test_send_records_user_and_model_turns(context):
    updates = []

    reply = await context.conversation.send("  What is in report.pdf?  ", lambda m: updates.append(m.text))

    user, model = context.conversation.messages
    assert user.role is MessageRole.USER
    assert user.text == "What is in report.pdf?"
    assert model is reply
    assert model.text == "Hello world"
    assert model.streaming is False
    assert updates[:2] == ["Hello", "Hello world"]


@pytest.mark.asyncio
async def test_chunk_callback_receives_deltas(context):
    deltas = []

    await context.conversation.send("hi", on_chunk=lambda text, grounding: deltas.append(text))

    assert deltas == ["Hello", " world"]


@pytest.mark.asyncio
async def test_failed_turn_keeps_partial_text_and_error(context, backend):
    backend.stream_error = FakeAPIError(429)

    with pytest.raises(RateLimitError):
        await context.conversation.send("hi")

    model = context.conversation.messages[-1]
    assert model.text == "Hello world"
    assert model.streaming is False
    assert model.error


@pytest.mark.asyncio
async def test_empty_message_is_rejected(context, backend):
    with pytest.raises(ValueError):
        await context.conversation.send("   ")
    assert context.conversation.messages == []
    assert backend.calls["send_message_stream"] == 0
