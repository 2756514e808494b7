from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from core.settings import Settings
from insight.errors import is_not_found
from insight.gateway import IndexBackend
from insight.stores import IndexStoreManager
from schema.index import IndexHandle

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    ABSENT = "absent"
    BOUND = "bound"


@dataclass
class ChatSession:
    """A backend chat bound to one store for its whole life."""

    handle: Any
    index: IndexHandle
    model: str
    created_at: float = field(default_factory=time.time)


class ChatSessionManager:
    """
    Holds the single chat session of a context.

    Sessions are never updated in place: a refresh (new files imported, store
    recreated) or a stale-resource error replaces the session with a new one.
    """

    def __init__(self, backend: IndexBackend, stores: IndexStoreManager, settings: Settings) -> None:
        self.backend = backend
        self.stores = stores
        self.settings = settings
        self._session: ChatSession | None = None
        self.created_count = 0

    @property
    def session(self) -> ChatSession | None:
        return self._session

    @property
    def state(self) -> SessionState:
        return SessionState.BOUND if self._session is not None else SessionState.ABSENT

    async def _create(self, index: IndexHandle) -> ChatSession:
        handle = await self.backend.create_chat(
            self.settings.DEFAULT_MODEL,
            self.settings.SYSTEM_PROMPT,
            [index.name],
        )
        self.created_count += 1
        logger.info("Chat session created", extra={"store": index.name, "model": self.settings.DEFAULT_MODEL})
        return ChatSession(handle=handle, index=index, model=self.settings.DEFAULT_MODEL)

    async def ensure_session(self, index: IndexHandle | None = None, refresh: bool = False) -> ChatSession:
        if self._session is not None and not refresh and index is None:
            return self._session
        if self._session is not None and not refresh and index == self._session.index:
            return self._session

        self._session = None
        target = index or await self.stores.ensure_index()
        try:
            self._session = await self._create(target)
        except Exception as e:
            if not is_not_found(e) or index is not None:
                raise
            # the cached store vanished between verification and chat creation
            logger.warning("Chat init failed with 404, resetting store and retrying", extra={"store": target.name})
            self.stores.invalidate()
            self._session = await self._create(await self.stores.ensure_index())
        return self._session

    def invalidate(self) -> None:
        if self._session is not None:
            logger.info("Chat session invalidated", extra={"store": self._session.index.name})
        self._session = None
