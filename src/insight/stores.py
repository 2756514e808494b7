from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from core.settings import Settings
from insight.errors import is_not_found
from insight.gateway import IndexBackend, supports_liveness
from insight.retry import with_retry
from insight.single_flight import SingleFlight
from schema.index import IndexHandle, StoreInfo

logger = logging.getLogger(__name__)


class IndexStoreManager:
    """
    Owns the File Search store used by one context.

    ``ensure_index`` creates the store on first use and shares the in-flight
    creation with every concurrent caller. A cached store is verified with the
    backend before reuse and replaced when the server no longer knows it.
    """

    def __init__(
        self,
        backend: IndexBackend,
        settings: Settings,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.settings = settings
        self.sleep = sleep
        self._flight: SingleFlight[IndexHandle] = SingleFlight()
        self._seed_name = settings.INDEX_STORE_NAME
        self.created_count = 0

    @property
    def current(self) -> IndexHandle | None:
        return self._flight.peek()

    async def _retry(self, fn):
        return await with_retry(
            fn,
            max_retries=self.settings.MAX_RETRIES,
            base_delay=self.settings.RETRY_BASE_DELAY,
            sleep=self.sleep,
        )

    async def _create(self) -> IndexHandle:
        display_name = f"{self.settings.INDEX_DISPLAY_PREFIX}_{int(time.time() * 1000)}"
        try:
            handle = await self._retry(lambda: self.backend.create_store(display_name))
        except Exception:
            logger.exception("Failed to create store", extra={"display_name": display_name})
            raise
        self.created_count += 1
        logger.info("Created store", extra={"store": handle.name, "display_name": display_name})
        return handle

    async def _is_alive(self, handle: IndexHandle) -> bool:
        if not supports_liveness(self.backend):
            return True
        try:
            await self._retry(lambda: self.backend.get_store(handle.name))  # type: ignore[attr-defined]
        except Exception as e:
            if is_not_found(e):
                logger.warning("Cached store not found, creating new one", extra={"store": handle.name})
                return False
            raise
        return True

    async def ensure_index(self) -> IndexHandle:
        if self._seed_name and self.current is None:
            self._flight.seed(IndexHandle(name=self._seed_name))
            self._seed_name = None

        cached = self.current
        if cached is not None:
            if await self._is_alive(cached):
                return cached
            self._flight.invalidate(expected=cached)

        return await self._flight.get(self._create)

    def invalidate(self) -> None:
        """Forget the cached store; the next ``ensure_index`` creates or re-verifies one."""
        if self._flight.invalidate():
            logger.info("Store cache invalidated")

    def reset(self) -> None:
        self._seed_name = None
        self._flight.invalidate()

    async def list_stores(self) -> list[StoreInfo]:
        return await self._retry(self.backend.list_stores)

    async def delete_store(self, name: str, force: bool = True) -> None:
        await self._retry(lambda: self.backend.delete_store(name, force=force))
        current = self.current
        if current is not None and current.name == name:
            self._flight.invalidate(expected=current)
        logger.info("Deleted store", extra={"store": name})
