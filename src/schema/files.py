from __future__ import annotations

import mimetypes
import time
import uuid
from pathlib import Path
from typing import Literal

import filetype
from pydantic import BaseModel, Field

FileStatus = Literal["pending", "uploading", "processing", "active", "error"]

SNIFF_BYTES = 8192  # read a small header; safe for large files


def file_extension(name: str) -> str:
    """Extension without the leading dot, lowercase; '' when there is none."""
    suffix = Path(name).suffix
    return suffix[1:].lower() if suffix else ""


def guess_mime(name: str, head: bytes, mime_map: dict[str, str] | None = None) -> str:
    """
    Determine MIME type from the file signature first, then the extension map,
    then the platform registry. Text formats have no signature, so most fall through.
    """
    kind = filetype.guess(head) if head else None
    if kind and kind.mime:
        return kind.mime
    mapped = (mime_map or {}).get(file_extension(name))
    if mapped:
        return mapped
    return mimetypes.guess_type(name)[0] or "text/plain"


class UploadableFile(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    size: int
    mime_type: str
    extension: str = ""
    content: bytes | None = Field(default=None, repr=False, exclude=True)
    path: str | None = Field(default=None, repr=False, exclude=True)
    status: FileStatus = "pending"
    error: str | None = None
    remote_ref: str | None = None
    document_ref: str | None = None
    created_at: int = Field(default_factory=lambda: int(time.time()))

    def model_post_init(self, __context) -> None:
        if not self.extension:
            self.extension = file_extension(self.name)

    @classmethod
    def from_bytes(
        cls,
        name: str,
        data: bytes,
        mime_type: str | None = None,
        mime_map: dict[str, str] | None = None,
    ) -> UploadableFile:
        return cls(
            name=name,
            size=len(data),
            mime_type=mime_type or guess_mime(name, data[:SNIFF_BYTES], mime_map),
            content=data,
        )

    @classmethod
    def from_path(cls, path: str | Path, mime_map: dict[str, str] | None = None) -> UploadableFile:
        p = Path(path)
        with open(p, "rb") as f:
            head = f.read(SNIFF_BYTES)
        return cls(
            name=p.name,
            size=p.stat().st_size,
            mime_type=guess_mime(p.name, head, mime_map),
            path=str(p),
        )

    @property
    def has_content(self) -> bool:
        return self.content is not None or (self.path is not None and Path(self.path).exists())

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.path is not None:
            return Path(self.path).read_bytes()
        raise ValueError(f"File content missing for {self.name}")


class UploadResult(BaseModel):
    status: FileStatus
    message: str
    file: UploadableFile | None = None


class ListFilesResponse(BaseModel):
    items: list[UploadableFile]
    active_count: int = 0
    is_uploading: bool = False
