# src/client/client.py

import json
import os
from collections.abc import AsyncGenerator, Generator
from typing import IO

import httpx

from schema import (
    ChatHistory,
    ChatMessage,
    CredentialInput,
    GroundingMetadata,
    ListFilesResponse,
    MessageRole,
    ResponseFragment,
    ServiceInfo,
    StoreInfo,
    StreamInput,
    UploadableFile,
    UploadResult,
)


class InsightClientError(Exception):
    pass


class InsightClient:
    """Client for interacting with the FileInsight service."""

    def __init__(
        self,
        base_url: str = "http://0.0.0.0",
        timeout: float | None = None,
        get_info: bool = True,
        auth_secret: str | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url (str): The base URL of the FileInsight service.
            timeout (float, optional): The timeout for requests.
            get_info (bool, optional): Whether to fetch service information on init.
                Default: True
            auth_secret (str, optional): Bearer secret; defaults to the AUTH_SECRET env var.
        """
        self.base_url = base_url
        self.auth_secret = auth_secret or os.getenv("AUTH_SECRET")
        self.timeout = timeout
        self.info: ServiceInfo | None = None
        if get_info:
            self.retrieve_info()

    @property
    def _headers(self) -> dict[str, str]:
        headers = {}
        if self.auth_secret:
            headers["Authorization"] = f"Bearer {self.auth_secret}"
        return headers

    def retrieve_info(self) -> ServiceInfo:
        try:
            response = httpx.get(
                f"{self.base_url}/info",
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Error getting service info: {e}")

        self.info = ServiceInfo.model_validate(response.json())
        return self.info

    def set_api_key(self, api_key: str) -> None:
        """Replace the Gemini API key used by the service. Existing files and chat are dropped."""
        request = CredentialInput(api_key=api_key)
        try:
            response = httpx.put(
                f"{self.base_url}/credentials",
                json=request.model_dump(),
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Error setting API key: {e}")

    def clear_api_key(self) -> None:
        try:
            response = httpx.delete(
                f"{self.base_url}/credentials",
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Error clearing API key: {e}")

    def _parse_stream_line(self, line: str) -> ChatMessage | ResponseFragment | None:
        line = line.strip()
        if line.startswith("data: "):
            data = line[6:]
            if data == "[DONE]":
                return None
            try:
                parsed = json.loads(data)
            except Exception as e:
                raise InsightClientError(f"Error JSON parsing message from server: {e}")
            match parsed["type"]:
                case "message":
                    try:
                        return ChatMessage.model_validate(parsed["content"])
                    except Exception as e:
                        raise InsightClientError(f"Server returned invalid message: {e}")
                case "token":
                    grounding = parsed.get("grounding")
                    return ResponseFragment(
                        text=parsed["content"],
                        grounding=GroundingMetadata.model_validate(grounding) if grounding else None,
                    )
                case "error":
                    return ChatMessage(
                        role=MessageRole.MODEL,
                        text="Error: " + parsed["content"],
                        error=parsed["content"],
                    )
        return None

    def stream(self, message: str) -> Generator[ChatMessage | ResponseFragment, None, None]:
        """
        Stream the answer to a question synchronously.

        Text chunks are yielded as ResponseFragment as they arrive, followed by
        the complete ChatMessage. A failed turn yields a ChatMessage with ``error`` set.

        Args:
            message (str): The question about the uploaded files

        Returns:
            Generator[ChatMessage | ResponseFragment, None, None]: The streamed answer
        """
        request = StreamInput(message=message)
        try:
            with httpx.stream(
                "POST",
                f"{self.base_url}/chat/stream",
                json=request.model_dump(),
                headers=self._headers,
                timeout=self.timeout,
            ) as response:
                response.raise_for_status()
                for line in response.iter_lines():
                    if line.strip():
                        parsed = self._parse_stream_line(line)
                        if parsed is None:
                            break
                        yield parsed
        except httpx.HTTPError as e:
            raise InsightClientError(f"Error: {e}")

    async def astream(self, message: str) -> AsyncGenerator[ChatMessage | ResponseFragment, None]:
        """
        Stream the answer to a question asynchronously.

        Args:
            message (str): The question about the uploaded files

        Returns:
            AsyncGenerator[ChatMessage | ResponseFragment, None]: The streamed answer
        """
        request = StreamInput(message=message)
        async with httpx.AsyncClient() as client:
            try:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/stream",
                    json=request.model_dump(),
                    headers=self._headers,
                    timeout=self.timeout,
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if line.strip():
                            parsed = self._parse_stream_line(line)
                            if parsed is None:
                                break
                            yield parsed
            except httpx.HTTPError as e:
                raise InsightClientError(f"Error: {e}")

    def get_history(self) -> ChatHistory:
        try:
            response = httpx.get(
                f"{self.base_url}/chat/history",
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Error: {e}")

        return ChatHistory.model_validate(response.json())

    def reset_chat(self) -> None:
        try:
            response = httpx.post(
                f"{self.base_url}/chat/reset",
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Error: {e}")

    # ---------- Files API ----------
    def list_files(self) -> ListFilesResponse:
        try:
            r = httpx.get(
                f"{self.base_url}/files",
                headers=self._headers,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"List files failed: {e}")
        return ListFilesResponse.model_validate(r.json())

    def get_file(self, file_id: str) -> UploadableFile:
        try:
            r = httpx.get(
                f"{self.base_url}/files/{file_id}",
                headers=self._headers,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Get file failed: {e}")
        return UploadableFile.model_validate(r.json())

    def delete_file(self, file_id: str) -> None:
        try:
            r = httpx.delete(
                f"{self.base_url}/files/{file_id}",
                headers=self._headers,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Delete failed: {e}")

    def upload_files(self, files: list[tuple[str, bytes | IO[bytes], str | None]]) -> list[UploadResult]:
        """
        Upload and index multiple files.

        files: list of tuples (filename, data_or_stream, mime). The call returns
        once every file is either active or failed.
        """
        multipart = []
        for name, data, mime in files:
            multipart.append(("files", (name, data, mime or "application/octet-stream")))
        try:
            r = httpx.post(
                f"{self.base_url}/files/upload",
                files=multipart,
                headers=self._headers,
                timeout=None,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Upload failed: {e}")
        return [UploadResult.model_validate(item) for item in r.json()]

    async def aupload_files(self, files: list[tuple[str, bytes | IO[bytes], str | None]]) -> list[UploadResult]:
        multipart = []
        for name, data, mime in files:
            multipart.append(("files", (name, data, mime or "application/octet-stream")))
        async with httpx.AsyncClient() as client:
            try:
                r = await client.post(
                    f"{self.base_url}/files/upload",
                    files=multipart,
                    headers=self._headers,
                    timeout=None,
                )
                r.raise_for_status()
            except httpx.HTTPError as e:
                raise InsightClientError(f"Upload failed: {e}")
        return [UploadResult.model_validate(item) for item in r.json()]

    # ---------- Stores API ----------
    def list_stores(self) -> list[StoreInfo]:
        try:
            r = httpx.get(
                f"{self.base_url}/stores",
                headers=self._headers,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"List stores failed: {e}")
        return [StoreInfo.model_validate(item) for item in r.json()]

    def delete_store(self, store_name: str) -> None:
        try:
            r = httpx.delete(
                f"{self.base_url}/stores/{store_name}",
                headers=self._headers,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise InsightClientError(f"Delete store failed: {e}")
