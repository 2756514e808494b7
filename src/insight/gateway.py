"""
Boundary to the Gemini API.

Everything the orchestration layer needs from the server goes through the
``IndexBackend`` protocol: uploads, File Search stores, import operations and
streaming chats. ``GeminiBackend`` implements it on top of google-genai's async
client; tests substitute an in-memory backend.
"""

from __future__ import annotations

import io
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from google import genai
from google.genai import errors, types

from insight.credentials import CredentialHolder
from insight.errors import error_status
from schema.chat import Citation, GroundingMetadata, ResponseFragment
from schema.index import IndexHandle, IndexOperation, StoreInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class IndexBackend(Protocol):
    async def upload_file(
        self, data: bytes, *, display_name: str, mime_type: str, name: str | None = None
    ) -> str: ...

    async def delete_file(self, name: str) -> None: ...

    async def create_store(self, display_name: str) -> IndexHandle: ...

    async def list_stores(self) -> list[StoreInfo]: ...

    async def delete_store(self, name: str, force: bool = True) -> None: ...

    async def import_file(self, store_name: str, file_name: str) -> IndexOperation: ...

    async def get_operation(self, operation: IndexOperation) -> IndexOperation: ...

    async def delete_document(self, name: str) -> None: ...

    async def create_chat(
        self, model: str, system_instruction: str, store_names: list[str]
    ) -> Any: ...

    async def send_message_stream(
        self, chat: Any, message: str
    ) -> AsyncIterator[ResponseFragment]: ...


def supports_liveness(backend: object) -> bool:
    """True when the backend can verify a cached store still exists (``get_store``)."""
    return callable(getattr(backend, "get_store", None))


def upload_name(file_id: str) -> str:
    """Stable Files API resource name for an upload, so retries cannot duplicate it."""
    slug = "".join(c for c in file_id.lower() if c.isalnum() or c == "-")[:40]
    return f"files/{slug}"


def _str_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


def _store_info(store: Any) -> StoreInfo:
    return StoreInfo(
        name=store.name or "",
        display_name=getattr(store, "display_name", None),
        create_time=_str_or_none(getattr(store, "create_time", None)),
        update_time=_str_or_none(getattr(store, "update_time", None)),
    )


def _operation_error(error: Any) -> str | None:
    if not error:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(getattr(error, "message", None) or error)


def operation_from_sdk(op: Any) -> IndexOperation:
    response = getattr(op, "response", None)
    return IndexOperation(
        name=getattr(op, "name", None),
        done=bool(getattr(op, "done", False)),
        error=_operation_error(getattr(op, "error", None)),
        document_name=getattr(response, "document_name", None) if response else None,
        raw=op,
    )


def grounding_from_sdk(metadata: Any) -> GroundingMetadata | None:
    if metadata is None:
        return None
    citations: list[Citation] = []
    for chunk in getattr(metadata, "grounding_chunks", None) or []:
        web = getattr(chunk, "web", None)
        retrieved = getattr(chunk, "retrieved_context", None)
        if web is not None:
            citations.append(Citation(kind="web", uri=web.uri, title=web.title))
        elif retrieved is not None:
            citations.append(
                Citation(
                    kind="document",
                    uri=getattr(retrieved, "uri", None)
                    or getattr(retrieved, "document_name", None),
                    title=getattr(retrieved, "title", None),
                )
            )
    grounding = GroundingMetadata(
        citations=citations,
        web_search_queries=list(getattr(metadata, "web_search_queries", None) or []),
    )
    return grounding or None


def fragment_from_response(chunk: Any) -> ResponseFragment:
    candidates = getattr(chunk, "candidates", None) or []
    metadata = getattr(candidates[0], "grounding_metadata", None) if candidates else None
    return ResponseFragment(text=chunk.text or "", grounding=grounding_from_sdk(metadata))


class GeminiBackend:
    """IndexBackend over ``genai.Client(...).aio``; the client follows the current API key."""

    def __init__(self, credentials: CredentialHolder) -> None:
        self.credentials = credentials
        self._client: genai.Client | None = None
        self._client_key: str | None = None

    @property
    def client(self) -> genai.Client:
        key = self.credentials.require()
        if self._client is None or key != self._client_key:
            self._client = genai.Client(api_key=key)
            self._client_key = key
        return self._client

    # ---------- Files API ----------
    async def upload_file(
        self, data: bytes, *, display_name: str, mime_type: str, name: str | None = None
    ) -> str:
        config = types.UploadFileConfig(display_name=display_name, mime_type=mime_type, name=name)
        try:
            uploaded = await self.client.aio.files.upload(file=io.BytesIO(data), config=config)
        except errors.APIError as e:
            # a retried upload whose first attempt reached the server
            if name and error_status(e) == 409:
                logger.info("Upload already present", extra={"file": name})
                return name
            raise
        if not uploaded.name:
            raise RuntimeError("Upload failed: No URI returned.")
        return uploaded.name

    async def delete_file(self, name: str) -> None:
        await self.client.aio.files.delete(name=name)

    # ---------- File Search stores ----------
    async def create_store(self, display_name: str) -> IndexHandle:
        store = await self.client.aio.file_search_stores.create(
            config=types.CreateFileSearchStoreConfig(display_name=display_name)
        )
        return IndexHandle(name=store.name or "", display_name=store.display_name or display_name)

    async def get_store(self, name: str) -> StoreInfo:
        return _store_info(await self.client.aio.file_search_stores.get(name=name))

    async def list_stores(self) -> list[StoreInfo]:
        pager = await self.client.aio.file_search_stores.list()
        return [_store_info(store) async for store in pager]

    async def delete_store(self, name: str, force: bool = True) -> None:
        await self.client.aio.file_search_stores.delete(
            name=name, config=types.DeleteFileSearchStoreConfig(force=force)
        )

    async def import_file(self, store_name: str, file_name: str) -> IndexOperation:
        op = await self.client.aio.file_search_stores.import_file(
            file_search_store_name=store_name, file_name=file_name
        )
        return operation_from_sdk(op)

    async def get_operation(self, operation: IndexOperation) -> IndexOperation:
        return operation_from_sdk(await self.client.aio.operations.get(operation.raw))

    async def delete_document(self, name: str) -> None:
        await self.client.aio.file_search_stores.documents.delete(name=name, config={"force": True})

    # ---------- Chats ----------
    async def create_chat(self, model: str, system_instruction: str, store_names: list[str]) -> Any:
        return self.client.aio.chats.create(
            model=model,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                tools=[
                    types.Tool(
                        file_search=types.FileSearch(file_search_store_names=store_names)
                    )
                ],
            ),
        )

    async def send_message_stream(self, chat: Any, message: str) -> AsyncIterator[ResponseFragment]:
        stream = await chat.send_message_stream(message)
        return self._fragments(stream)

    async def _fragments(self, stream: AsyncIterator[Any]) -> AsyncIterator[ResponseFragment]:
        async for chunk in stream:
            yield fragment_from_response(chunk)
