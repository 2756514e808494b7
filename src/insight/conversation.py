from __future__ import annotations

import logging
from collections.abc import Callable

from insight.relay import StreamingRelay
from schema.chat import ChatMessage, GroundingMetadata, MessageRole

logger = logging.getLogger(__name__)

MessageCallback = Callable[[ChatMessage], None]
ChunkCallback = Callable[[str, GroundingMetadata | None], None]


class Conversation:
    """Transcript of one chat: user turns and the streamed model answers."""

    def __init__(self, relay: StreamingRelay) -> None:
        self.relay = relay
        self.messages: list[ChatMessage] = []

    async def send(
        self,
        text: str,
        on_update: MessageCallback | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> ChatMessage:
        """
        Append the user turn and a streaming model message, then fill the model
        message chunk by chunk. The model message is always finalized; on error
        it keeps whatever text already arrived and the error is re-raised.
        """
        text = text.strip()
        if not text:
            raise ValueError("Message must not be empty")

        self.messages.append(ChatMessage(role=MessageRole.USER, text=text))
        reply = ChatMessage(role=MessageRole.MODEL, streaming=True)
        self.messages.append(reply)

        def apply(chunk: str, grounding: GroundingMetadata | None) -> None:
            reply.text += chunk
            if grounding is not None:
                reply.grounding = grounding
            if on_chunk is not None:
                on_chunk(chunk, grounding)
            if on_update is not None:
                on_update(reply)

        try:
            await self.relay.send(text, apply)
        except Exception as e:
            reply.error = str(e)
            raise
        finally:
            reply.streaming = False
            if on_update is not None:
                on_update(reply)
        return reply

    def clear(self) -> None:
        self.messages.clear()
