"""
File indexing pipeline.

Drives one file through upload -> import into the store -> wait for the import
operation. Every failure ends up on the returned file as ``status="error"``;
callers never have to catch anything except a missing API key.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum

from core.settings import Settings
from insight.credentials import CredentialHolder
from insight.errors import (
    FileValidationError,
    IndexingFailedError,
    IndexingTimeoutError,
    describe,
)
from insight.gateway import IndexBackend, upload_name
from insight.retry import with_retry
from insight.stores import IndexStoreManager
from schema.files import UploadableFile
from schema.index import IndexOperation

logger = logging.getLogger(__name__)

FileCallback = Callable[[UploadableFile], None]


class PollState(StrEnum):
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def validate_file(file: UploadableFile, settings: Settings) -> None:
    """Reject a file locally; raises FileValidationError."""
    ext = f".{file.extension}" if file.extension else ""
    if ext not in settings.SUPPORTED_EXTENSIONS:
        raise FileValidationError(f"Unsupported file type: {ext or file.name}")
    if file.size <= 0:
        raise FileValidationError("File is empty")
    if file.size > settings.MAX_UPLOAD_BYTES:
        raise FileValidationError(f"File exceeds max size of {settings.MAX_UPLOAD_MB} MB")
    if not file.has_content:
        raise FileValidationError("File content missing.")


class IndexingPipeline:
    def __init__(
        self,
        backend: IndexBackend,
        stores: IndexStoreManager,
        settings: Settings,
        credentials: CredentialHolder,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.stores = stores
        self.settings = settings
        self.credentials = credentials
        self.clock = clock
        self.sleep = sleep

    async def _retry(self, fn):
        return await with_retry(
            fn,
            max_retries=self.settings.MAX_RETRIES,
            base_delay=self.settings.RETRY_BASE_DELAY,
            sleep=self.sleep,
        )

    async def wait_for_operation(self, operation: IndexOperation) -> IndexOperation:
        """
        Poll until the operation is done or the deadline passes.

        The loop is driven by the deadline, not an iteration count, so a slow
        poll call shortens the remaining wait instead of extending it.
        """
        timeout = self.settings.INDEXING_TIMEOUT_SECONDS
        interval = self.settings.POLL_INTERVAL_SECONDS
        deadline = self.clock() + timeout
        state = PollState.POLLING

        while state is PollState.POLLING:
            if operation.done:
                state = PollState.FAILED if operation.error else PollState.DONE
                continue
            remaining = deadline - self.clock()
            if remaining <= 0:
                state = PollState.TIMED_OUT
                continue
            await self.sleep(min(interval, remaining))
            if self.clock() >= deadline:
                state = PollState.TIMED_OUT
                continue
            current = operation
            operation = await self._retry(lambda: self.backend.get_operation(current))

        if state is PollState.TIMED_OUT:
            raise IndexingTimeoutError(timeout)
        if state is PollState.FAILED:
            raise IndexingFailedError(operation.error or "File processing failed on server.")
        return operation

    async def index(self, file: UploadableFile, on_update: FileCallback | None = None) -> UploadableFile:
        # no key is a configuration problem, not a per-file failure
        self.credentials.require()

        def update(doc: UploadableFile, **changes) -> UploadableFile:
            doc = doc.model_copy(update=changes)
            if on_update is not None:
                on_update(doc)
            return doc

        try:
            validate_file(file, self.settings)
        except FileValidationError as e:
            logger.warning("Rejected file", extra={"file_id": file.id, "file_name": file.name, "error": str(e)})
            return update(file, status="error", error=str(e), remote_ref=None)

        doc = update(file, status="uploading", error=None, remote_ref=None, document_ref=None)
        try:
            data = doc.read_bytes()
            remote_ref = await self._retry(
                lambda: self.backend.upload_file(
                    data,
                    display_name=doc.name,
                    mime_type=doc.mime_type,
                    name=upload_name(doc.id),
                )
            )
        except Exception as e:
            logger.error("Upload failed", extra={"file_id": doc.id, "file_name": doc.name, "error": str(e)})
            return update(doc, status="error", error=describe(e))

        doc = update(doc, status="processing")
        try:
            store = await self.stores.ensure_index()
            operation = await self._retry(lambda: self.backend.import_file(store.name, remote_ref))
            operation = await self.wait_for_operation(operation)
        except Exception as e:
            logger.error(
                "Indexing failed",
                extra={"file_id": doc.id, "file_name": doc.name, "remote_ref": remote_ref, "error": str(e)},
            )
            return update(doc, status="error", error=describe(e), remote_ref=remote_ref)

        logger.info("File indexed", extra={"file_id": doc.id, "store": store.name, "remote_ref": remote_ref})
        return update(
            doc,
            status="active",
            error=None,
            remote_ref=remote_ref,
            document_ref=operation.document_name,
        )

    async def index_batch(
        self, files: list[UploadableFile], on_update: FileCallback | None = None
    ) -> list[UploadableFile]:
        """Index files one after another; a shared store must not be created twice."""
        results = []
        for file in files:
            results.append(await self.index(file, on_update))
        return results
