from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from core.settings import Settings
from insight.chat import ChatSessionManager
from insight.credentials import CredentialHolder
from insight.errors import RateLimitError, SessionExpiredError, error_status, is_not_found
from insight.retry import with_retry
from schema.chat import Citation, GroundingMetadata
from schema.files import UploadableFile

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str, GroundingMetadata | None], None]


class CitationResolver(Protocol):
    def resolve(self, citation: Citation) -> UploadableFile | None: ...


class StreamingRelay:
    """Sends a message on the current session and republishes the streamed answer."""

    def __init__(
        self,
        sessions: ChatSessionManager,
        settings: Settings,
        resolver: CitationResolver | None = None,
        credentials: CredentialHolder | None = None,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.sessions = sessions
        self.settings = settings
        self.resolver = resolver
        self.credentials = credentials
        self.sleep = sleep

    def _resolve(self, grounding: GroundingMetadata | None) -> GroundingMetadata | None:
        if grounding is None or self.resolver is None:
            return grounding
        citations = []
        for citation in grounding.citations:
            if citation.kind == "document":
                file = self.resolver.resolve(citation)
                if file is not None:
                    citation = citation.model_copy(update={"file_id": file.id, "file_name": file.name})
            citations.append(citation)
        return grounding.model_copy(update={"citations": citations})

    async def send(self, message: str, on_chunk: ChunkCallback) -> str:
        if self.credentials is not None:
            self.credentials.require()
        session = await self.sessions.ensure_session()
        backend = self.sessions.backend
        full_text = ""
        try:
            # only the opening request is retried; a started stream cannot be replayed
            stream = await with_retry(
                lambda: backend.send_message_stream(session.handle, message),
                max_retries=self.settings.MAX_RETRIES,
                base_delay=self.settings.RETRY_BASE_DELAY,
                sleep=self.sleep,
            )
            async for fragment in stream:
                full_text += fragment.text
                on_chunk(fragment.text, self._resolve(fragment.grounding))
        except Exception as e:
            self.sessions.invalidate()
            status = error_status(e)
            logger.error(
                "Message stream failed",
                extra={"status": status, "store": session.index.name, "received": len(full_text)},
            )
            if is_not_found(e):
                raise SessionExpiredError() from e
            if status == 429:
                raise RateLimitError() from e
            raise
        return full_text
