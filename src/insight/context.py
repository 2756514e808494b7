from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from core.settings import Settings
from insight.chat import ChatSessionManager
from insight.conversation import Conversation
from insight.credentials import CredentialHolder
from insight.files import FileManager
from insight.gateway import GeminiBackend, IndexBackend
from insight.pipeline import IndexingPipeline
from insight.relay import StreamingRelay
from insight.stores import IndexStoreManager

logger = logging.getLogger(__name__)


class InsightContext:
    """
    Everything one user session needs, owned by the host application.

    The cached store and the chat session live on the managers held here
    instead of in module globals, so credential rotation is an explicit reset().
    """

    def __init__(
        self,
        settings: Settings,
        backend: IndexBackend,
        credentials: CredentialHolder,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.credentials = credentials
        self.stores = IndexStoreManager(backend, settings, sleep=sleep)
        self.pipeline = IndexingPipeline(backend, self.stores, settings, credentials, clock=clock, sleep=sleep)
        self.sessions = ChatSessionManager(backend, self.stores, settings)
        self.files = FileManager(backend, self.pipeline, self.sessions)
        self.relay = StreamingRelay(self.sessions, settings, resolver=self.files, credentials=credentials, sleep=sleep)
        self.conversation = Conversation(self.relay)

    @classmethod
    def from_settings(cls, settings: Settings) -> InsightContext:
        credentials = CredentialHolder(settings.GEMINI_API_KEY)
        return cls(settings, GeminiBackend(credentials), credentials)

    def set_credential(self, api_key: str) -> None:
        """Switch to a new API key; resources of the old key are not reused."""
        self.reset()
        self.credentials.set(api_key)

    def reset(self) -> None:
        self.credentials.clear()
        self.sessions.invalidate()
        self.stores.reset()
        self.files.clear()
        self.conversation.clear()
        logger.info("Context reset")
